import base64
import datetime
from io import BytesIO

import pyotp
import qrcode
from loguru import logger

from src import settings
from src.common.nanoid import NanoIdType
from src.common.utils import as_aware_utc, utcnow
from src.core.user import UserRead, UserService


class TotpEngine:
    """
    RFC 6238 codes from a per user secret. Stateless per verification, only
    the lockout guard limits guessing
    """

    CODE_DIGITS = 6

    def __init__(
        self,
        user_service: UserService,
        issuer: str | None = None,
        step_seconds: int | None = None,
        drift_window: int | None = None,
    ):
        self.user_service = user_service
        self.issuer = issuer or settings.TOTP_SETTINGS['ISSUER']
        self.step_seconds = step_seconds or settings.TOTP_SETTINGS['STEP_SECONDS']
        self.drift_window = drift_window if drift_window is not None else settings.TOTP_SETTINGS['DRIFT_WINDOW']

    @classmethod
    def factory(cls) -> 'TotpEngine':
        return cls(user_service=UserService.factory())

    def generate_secret(self) -> str:
        """
        Returns base32-encoded secret (recommended by RFC 6238).
        """
        return pyotp.random_base32()

    def enroll(self, user_id: NanoIdType) -> tuple[str, bool]:
        """
        Idempotent, an enrolled user keeps their secret. Returns (secret, is_new)
        """
        user = self.user_service.get_user_with_secret_for_id(user_id)
        if user.totp_secret:
            return user.totp_secret, False

        secret = self.generate_secret()
        self.user_service.set_totp_secret(user_id, secret)
        logger.info(f'enrolled totp secret for {user_id}')
        return secret, True

    def challenge_uri(self, user: UserRead, secret: str) -> str:
        totp = pyotp.TOTP(secret, digits=self.CODE_DIGITS, interval=self.step_seconds)
        return totp.provisioning_uri(name=user.email or user.phone or user.id, issuer_name=self.issuer)

    def qr_code(self, provisioning_uri: str) -> str:
        """
        Base64 PNG data url of the provisioning uri
        """
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=10,
            border=4,
        )
        qr.add_data(provisioning_uri)
        qr.make(fit=True)
        img = qr.make_image(fill_color='black', back_color='white')

        buffer = BytesIO()
        img.save(buffer, format='PNG')
        return f'data:image/png;base64,{base64.b64encode(buffer.getvalue()).decode()}'

    def validate(
        self,
        secret: str,
        submitted_code: str,
        step_seconds: int | None = None,
        drift_window: int | None = None,
        at: datetime.datetime | None = None,
    ) -> bool:
        """
        Accepts the current step and drift_window steps either side
        """
        submitted_code = (submitted_code or '').strip()
        if not secret or len(submitted_code) != self.CODE_DIGITS or not submitted_code.isdigit():
            return False

        totp = pyotp.TOTP(secret, digits=self.CODE_DIGITS, interval=step_seconds or self.step_seconds)
        window = drift_window if drift_window is not None else self.drift_window
        # Naive datetimes are read as local time by pyotp
        return totp.verify(submitted_code, for_time=as_aware_utc(at or utcnow()), valid_window=window)
