import datetime

from pydantic import Field

from src.common.domain import BaseDomain
from src.common.nanoid import NanoIdType
from src.core.verification.constants import ChannelEnum, DeliveryStatusEnum, DispatchStatusEnum


class OtpCodeCreate(BaseDomain):
    user_id: NanoIdType
    channel: ChannelEnum
    code: str
    expires_at: datetime.datetime
    attempts: int = 0


class OtpCodeRead(OtpCodeCreate):
    id: NanoIdType
    # Never rendered in reprs or logs
    code: str = Field(repr=False)
    created_at: datetime.datetime | None = None


class VerificationStatusCreate(BaseDomain):
    user_id: NanoIdType
    sms: bool = False
    email: bool = False
    voice: bool = False
    whatsapp: bool = False
    totp: bool = False


class VerificationStatusRead(VerificationStatusCreate):
    id: NanoIdType

    @property
    def verified(self) -> dict[str, bool]:
        return {channel: getattr(self, channel) for channel in ChannelEnum.list_all()}

    @property
    def verified_count(self) -> int:
        return sum(self.verified.values())


class DispatchJobCreate(BaseDomain):
    user_id: NanoIdType
    channel: ChannelEnum
    destination: str
    code: str = Field(repr=False)
    status: DispatchStatusEnum = DispatchStatusEnum.PENDING


class DispatchJobRead(DispatchJobCreate):
    id: NanoIdType
    error: str | None = None
    attempts: int = 0
    claimed_at: datetime.datetime | None = None
    completed_at: datetime.datetime | None = None
    created_at: datetime.datetime | None = None


class LockoutState(BaseDomain):
    locked: bool
    remaining_seconds: int = 0
    failed_attempts: int = 0


class CodeRequest(BaseDomain):
    """
    Input of request_code, the user is resolved by id first and by contact otherwise
    """

    channel: ChannelEnum
    user_id: NanoIdType | None = None
    name: str | None = None
    phone_number: str | None = None
    email: str | None = None


class CodeRequestResult(BaseDomain):
    user_id: NanoIdType
    channel: ChannelEnum
    status: DeliveryStatusEnum


class VerificationResult(BaseDomain):
    verified: bool
    fully_verified: bool
    verified_channels: int
    credential: str | None = None


class TotpSetup(BaseDomain):
    secret: str
    provisioning_uri: str
    qr_code: str
    is_new: bool


class ChannelInfo(BaseDomain):
    id: ChannelEnum
    name: str
    provider: str
    available: bool


class UserSummary(BaseDomain):
    id: NanoIdType
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    authentication_by: str | None = None
    totp_enabled: bool = False
    last_login_at: datetime.datetime | None = None
    created_at: datetime.datetime | None = None
    verified: dict[str, bool]
    verified_channels: int
    fully_verified: bool


class CredentialClaims(BaseDomain):
    sub: NanoIdType
    verified: bool = True
    verified_channels: int
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    iat: int
    nbf: int
    exp: int
    jti: str


class DispatchSummary(BaseDomain):
    claimed: int = 0
    completed: int = 0
    failed: int = 0


class ReaperSummary(BaseDomain):
    expired_codes: int = 0
    lockouts_reset: int = 0
