import datetime

from loguru import logger

from src import settings
from src.common.nanoid import NanoIdType
from src.common.utils import mask_destination, utcnow
from src.core.user import UserCreate, UserRead, UserService, UserUpdate
from src.core.verification.aggregator import VerificationAggregator
from src.core.verification.constants import (
    CHANNEL_DISPLAY_NAMES,
    DESTINATION_FIELD,
    LOCKOUT_OUTCOMES,
    ChannelEnum,
    DeliveryStatusEnum,
    VerifyOutcome,
)
from src.core.verification.credential import CredentialService
from src.core.verification.dispatch import DispatchQueue
from src.core.verification.domains import (
    ChannelInfo,
    CodeRequest,
    CodeRequestResult,
    TotpSetup,
    UserSummary,
    VerificationResult,
)
from src.core.verification.exceptions import (
    OUTCOME_EXCEPTIONS,
    ChannelUnavailable,
    ContactConflict,
    DeliveryFailed,
)
from src.core.verification.lockout import LockoutGuard
from src.core.verification.otp_store import OtpStore
from src.core.verification.totp_engine import TotpEngine
from src.network.database.session import db

CHANNEL_PROVIDERS = {
    ChannelEnum.SMS: ('SMS_BACKEND', 'ClickSend / AWS SNS'),
    ChannelEnum.EMAIL: ('EMAIL_BACKEND', 'SMTP / AWS SES'),
    ChannelEnum.VOICE: ('VOICE_BACKEND', 'Vapi'),
    ChannelEnum.WHATSAPP: ('WHATSAPP_BACKEND', 'WhatsApp Cloud API'),
}


class VerificationService:
    """
    Public operations of the verification engine. Channel proofs are keyed
    strictly on (user, channel), a code requested in one session can be
    verified from another
    """

    def __init__(
        self,
        user_service: UserService,
        otp_store: OtpStore,
        totp_engine: TotpEngine,
        lockout_guard: LockoutGuard,
        aggregator: VerificationAggregator,
        dispatch_queue: DispatchQueue,
        credential_service: CredentialService,
        dispatch_mode: str | None = None,
    ):
        self.user_service = user_service
        self.otp_store = otp_store
        self.totp_engine = totp_engine
        self.lockout_guard = lockout_guard
        self.aggregator = aggregator
        self.dispatch_queue = dispatch_queue
        self.credential_service = credential_service
        self.dispatch_mode = dispatch_mode or settings.DISPATCH_SETTINGS['MODE']

    @classmethod
    def factory(cls) -> 'VerificationService':
        user_service = UserService.factory()
        return cls(
            user_service=user_service,
            otp_store=OtpStore.factory(),
            totp_engine=TotpEngine(user_service=user_service),
            lockout_guard=LockoutGuard.factory(),
            aggregator=VerificationAggregator.factory(),
            dispatch_queue=DispatchQueue.factory(),
            credential_service=CredentialService.factory(),
        )

    def request_code(self, code_request: CodeRequest, now: datetime.datetime | None = None) -> CodeRequestResult:
        now = now or utcnow()
        channel = ChannelEnum(code_request.channel)
        user = self._resolve_user(code_request)
        self.lockout_guard.ensure_not_locked(user.id, now=now)

        if channel == ChannelEnum.TOTP:
            # The authenticator app produces the code, nothing is minted
            if not user.totp_enabled:
                raise ChannelUnavailable(message='TOTP is not enabled for this user')
            return CodeRequestResult(user_id=user.id, channel=channel, status=DeliveryStatusEnum.NOT_REQUIRED)

        destination = self._get_destination(user, channel)
        code = self.otp_store.generate_code()
        self.otp_store.issue(user.id, channel, code, now=now)
        job = self.dispatch_queue.enqueue(user.id, channel, destination, code)

        if self.dispatch_mode == 'queue':
            return CodeRequestResult(user_id=user.id, channel=channel, status=DeliveryStatusEnum.QUEUED)

        if not self.dispatch_queue.deliver_now(job):
            # The failed job must outlive the rollback of the 502 response
            db.session.commit()
            raise DeliveryFailed(message=f'Failed to send code via {channel}')

        logger.info(f'delivered {channel} code for {user.id} to {mask_destination(destination)}')
        return CodeRequestResult(user_id=user.id, channel=channel, status=DeliveryStatusEnum.DELIVERED)

    def verify_code(
        self,
        user_id: NanoIdType,
        submitted_code: str,
        channel: ChannelEnum,
        now: datetime.datetime | None = None,
    ) -> VerificationResult:
        now = now or utcnow()
        channel = ChannelEnum(channel)
        user = self.user_service.get_user_with_secret_for_id(user_id)

        lockout_state = self.lockout_guard.check_locked(user.id, now=now)
        if lockout_state.locked:
            # A submission while locked is still a guess
            self.lockout_guard.on_failure(user.id, now=now)
            self.lockout_guard.ensure_not_locked(user.id, now=now)

        if channel == ChannelEnum.TOTP:
            if not user.totp_enabled or not user.totp_secret:
                raise ChannelUnavailable(message='TOTP is not enabled for this user')
            is_valid = self.totp_engine.validate(user.totp_secret, submitted_code, at=now)
            outcome = VerifyOutcome.VALID if is_valid else VerifyOutcome.MISMATCH
        else:
            outcome = self.otp_store.verify(user.id, channel, submitted_code, now=now)

        logger.info(f'{channel} verification for {user.id}: {outcome}')
        if outcome != VerifyOutcome.VALID:
            if outcome in LOCKOUT_OUTCOMES:
                self.lockout_guard.on_failure(user.id, now=now)
            raise OUTCOME_EXCEPTIONS[outcome]()

        self.lockout_guard.on_success(user.id)
        self.aggregator.mark_verified(user.id, channel)
        verified_channels = self.aggregator.count_verified(user.id)
        fully_verified = self.aggregator.is_fully_verified(user.id)

        credential = None
        if fully_verified:
            credential = self.credential_service.mint(user, verified_channels, now=now)
            self.user_service.record_login(user.id, at=now)
            logger.info(f'{user.id} fully verified with {verified_channels} channels')

        return VerificationResult(
            verified=True,
            fully_verified=fully_verified,
            verified_channels=verified_channels,
            credential=credential,
        )

    def setup_totp(self, user_id: NanoIdType) -> TotpSetup:
        user = self.user_service.get_user_for_id(user_id)
        secret, is_new = self.totp_engine.enroll(user.id)
        provisioning_uri = self.totp_engine.challenge_uri(user, secret)
        return TotpSetup(
            secret=secret,
            provisioning_uri=provisioning_uri,
            qr_code=self.totp_engine.qr_code(provisioning_uri),
            is_new=is_new,
        )

    def enable_totp(self, user_id: NanoIdType, code: str, now: datetime.datetime | None = None) -> bool:
        now = now or utcnow()
        user = self.user_service.get_user_with_secret_for_id(user_id)
        self.lockout_guard.ensure_not_locked(user.id, now=now)
        if not user.totp_secret:
            raise ChannelUnavailable(message='TOTP secret not set up')

        if not self.totp_engine.validate(user.totp_secret, code, at=now):
            self.lockout_guard.on_failure(user.id, now=now)
            return False

        self.lockout_guard.on_success(user.id)
        self.user_service.set_totp_enabled(user.id, True)
        logger.info(f'totp enabled for {user.id}')
        return True

    def disable_totp(self, user_id: NanoIdType, code: str, now: datetime.datetime | None = None) -> bool:
        now = now or utcnow()
        user = self.user_service.get_user_with_secret_for_id(user_id)
        self.lockout_guard.ensure_not_locked(user.id, now=now)
        if not user.totp_enabled or not user.totp_secret:
            raise ChannelUnavailable(message='TOTP is not enabled for this user')

        if not self.totp_engine.validate(user.totp_secret, code, at=now):
            self.lockout_guard.on_failure(user.id, now=now)
            return False

        self.lockout_guard.on_success(user.id)
        self.user_service.set_totp_enabled(user.id, False)
        logger.info(f'totp disabled for {user.id}')
        return True

    def get_user_summary(self, user_id: NanoIdType) -> UserSummary:
        user = self.user_service.get_user_for_id(user_id)
        verified = self.aggregator.get_status(user.id)
        verified_channels = sum(verified.values())
        return UserSummary(
            id=user.id,
            name=user.name,
            phone=user.phone,
            email=user.email,
            authentication_by=user.authentication_by,
            totp_enabled=user.totp_enabled,
            last_login_at=user.last_login_at,
            created_at=user.created_at,
            verified=verified,
            verified_channels=verified_channels,
            fully_verified=self.aggregator.is_fully_verified(user.id),
        )

    def list_channels(self) -> list[ChannelInfo]:
        channels = []
        for channel, (backend_setting, provider) in CHANNEL_PROVIDERS.items():
            backend = getattr(settings, backend_setting)
            channels.append(
                ChannelInfo(
                    id=channel,
                    name=CHANNEL_DISPLAY_NAMES[channel],
                    provider=provider if backend != 'file' else f'{provider} (file preview)',
                    available=self._is_channel_configured(channel),
                )
            )
        channels.append(
            ChannelInfo(
                id=ChannelEnum.TOTP,
                name=CHANNEL_DISPLAY_NAMES[ChannelEnum.TOTP],
                provider=settings.TOTP_SETTINGS['ISSUER'],
                available=True,
            )
        )
        return channels

    def _is_channel_configured(self, channel: ChannelEnum) -> bool:
        backend = getattr(settings, CHANNEL_PROVIDERS[channel][0])
        if backend != 'live':
            # File and smtp backends need no credentials
            return True
        if channel == ChannelEnum.SMS:
            return bool(
                (settings.CLICKSEND_USERNAME and settings.CLICKSEND_API_KEY)
                or (settings.AWS_SNS_ACCESS_KEY_ID and settings.AWS_SNS_SECRET_ACCESS_KEY)
            )
        if channel == ChannelEnum.EMAIL:
            return bool(
                settings.EMAIL_SMTP_HOST or (settings.AWS_SES_ACCESS_KEY_ID and settings.AWS_SES_SECRET_ACCESS_KEY)
            )
        if channel == ChannelEnum.VOICE:
            return bool(settings.VAPI_API_KEY and settings.VAPI_ASSISTANT_ID and settings.VAPI_PHONE_NUMBER_ID)
        return bool(settings.WHATSAPP_ACCESS_TOKEN and settings.WHATSAPP_PHONE_NUMBER_ID)

    def _resolve_user(self, code_request: CodeRequest) -> UserRead:
        channel = ChannelEnum(code_request.channel)
        contact = UserUpdate(name=code_request.name, phone=code_request.phone_number, email=code_request.email)

        if code_request.user_id:
            user = self.user_service.get_user_for_id(code_request.user_id)
            return self._apply_contact_updates(user, contact)

        if channel == ChannelEnum.TOTP:
            raise ChannelUnavailable(message='A userId is required for the totp channel')

        existing_user = self.user_service.get_user_for_contact_or_none(phone=contact.phone, email=contact.email)
        if existing_user is not None:
            return self._apply_contact_updates(existing_user, contact)

        # Validate before creating so a bad request leaves no user behind
        if not getattr(contact, DESTINATION_FIELD[channel]):
            raise ChannelUnavailable(message=f'{DESTINATION_FIELD[channel]} is required for the {channel} channel')

        user = self.user_service.create_user(
            UserCreate(name=contact.name, phone=contact.phone, email=contact.email, authentication_by=channel.value)
        )
        self.aggregator.ensure_status(user.id)
        return user

    def _apply_contact_updates(self, user: UserRead, contact: UserUpdate) -> UserRead:
        updates = {
            field: value
            for field in ('name', 'phone', 'email')
            if (value := getattr(contact, field)) and value != getattr(user, field)
        }
        if not updates:
            return user

        for field in ('phone', 'email'):
            if field not in updates:
                continue
            # Only unset contacts are filled in, swapping one would hand over that channel
            if getattr(user, field):
                raise ContactConflict(message=f'A different {field} is already set for this user')
            owner = self.user_service.get_user_for_contact_or_none(**{field: updates[field]})
            if owner is not None and owner.id != user.id:
                raise ContactConflict(message=f'{field} already belongs to another user')

        return self.user_service.update_user(user.id, UserUpdate(**updates))

    def _get_destination(self, user: UserRead, channel: ChannelEnum) -> str:
        destination = getattr(user, DESTINATION_FIELD[channel])
        if not destination:
            raise ChannelUnavailable(message=f'{DESTINATION_FIELD[channel]} is required for the {channel} channel')
        return destination
