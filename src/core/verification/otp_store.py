import datetime
import hmac
import string

from loguru import logger

from src import settings
from src.common.nanoid import NanoIdType, generate_custom_nanoid
from src.common.utils import utcnow
from src.core.verification.constants import ChannelEnum, VerifyOutcome
from src.core.verification.domains import OtpCodeCreate, OtpCodeRead
from src.core.verification.models import OtpCode


class OtpStore:
    """
    Lifecycle of per (user, channel) one time codes.

    Every mutation is a single conditional statement so concurrent verify
    calls against one code cannot both succeed:
        issue   delete any live code then insert
        verify  compare-and-swap the attempt counter, then delete-on-match
    """

    def __init__(
        self,
        code_digits: int | None = None,
        max_attempts: int | None = None,
        code_ttl: datetime.timedelta | None = None,
    ):
        self.code_digits = code_digits or settings.OTP_SETTINGS['CODE_DIGITS']
        self.max_attempts = max_attempts or settings.OTP_SETTINGS['MAX_ATTEMPTS']
        self.code_ttl = code_ttl or settings.OTP_SETTINGS['CODE_TTL']

    @classmethod
    def factory(cls) -> 'OtpStore':
        return cls()

    def generate_code(self) -> str:
        return generate_custom_nanoid(size=self.code_digits, char_pool=string.digits)

    def issue(
        self,
        user_id: NanoIdType,
        channel: ChannelEnum,
        code: str,
        ttl: datetime.timedelta | None = None,
        now: datetime.datetime | None = None,
    ) -> OtpCodeRead:
        now = now or utcnow()
        ttl = ttl or self.code_ttl
        replaced = OtpCode.delete(OtpCode.user_id == user_id, OtpCode.channel == channel)
        otp_code = OtpCode.create(
            OtpCodeCreate(user_id=user_id, channel=channel, code=code, expires_at=now + ttl, attempts=0)
        )
        logger.info(f'issued {channel} code for {user_id} expiring {otp_code.expires_at} (replaced: {replaced})')
        return otp_code

    def verify(
        self,
        user_id: NanoIdType,
        channel: ChannelEnum,
        submitted_code: str,
        now: datetime.datetime | None = None,
    ) -> VerifyOutcome:
        now = now or utcnow()
        # Each lost race means another attempt was counted, the counter is bounded
        for _ in range(self.max_attempts + 1):
            otp_code = OtpCode.get_or_none(OtpCode.user_id == user_id, OtpCode.channel == channel)
            if otp_code is None:
                return VerifyOutcome.NOT_FOUND

            if now > otp_code.expires_at:
                OtpCode.delete(OtpCode.id == otp_code.id)
                logger.info(f'{channel} code for {user_id} expired')
                return VerifyOutcome.EXPIRED

            if otp_code.attempts >= self.max_attempts:
                OtpCode.delete(OtpCode.id == otp_code.id)
                return VerifyOutcome.ATTEMPTS_EXCEEDED

            attempts = otp_code.attempts + 1
            counted = OtpCode.update_where(
                OtpCode.id == otp_code.id,
                OtpCode.attempts == otp_code.attempts,
                values={'attempts': attempts},
            )
            if not counted:
                continue

            if hmac.compare_digest(otp_code.code.encode(), submitted_code.strip().encode()):
                # Only the caller that removes the row wins the code
                deleted = OtpCode.delete(OtpCode.id == otp_code.id)
                if deleted != 1:
                    return VerifyOutcome.NOT_FOUND
                return VerifyOutcome.VALID

            if attempts >= self.max_attempts:
                OtpCode.delete(OtpCode.id == otp_code.id)
                logger.info(f'{channel} code for {user_id} removed after {attempts} failed attempts')
                return VerifyOutcome.ATTEMPTS_EXCEEDED

            return VerifyOutcome.MISMATCH

        return VerifyOutcome.ATTEMPTS_EXCEEDED

    def purge_expired(self, now: datetime.datetime | None = None, limit: int | None = None) -> int:
        now = now or utcnow()
        expired_ids = OtpCode.list_attribute('id', OtpCode.expires_at < now, limit=limit)
        if not expired_ids:
            return 0

        return OtpCode.delete(OtpCode.id.in_(expired_ids))
