import datetime

from pydantic import EmailStr, Field, model_validator

from src.common.domain import BaseDomain
from src.common.nanoid import NanoIdType


class UserRead(BaseDomain):
    id: NanoIdType
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    authentication_by: str | None = None
    totp_enabled: bool = False
    failed_attempts: int = 0
    last_failed_at: datetime.datetime | None = None
    last_login_at: datetime.datetime | None = None
    created_at: datetime.datetime | None = None


class UserWithSecretRead(UserRead):
    """
    Only read where a TOTP secret is needed, never serialized to callers
    """

    totp_secret: str | None = Field(default=None, repr=False)


class UserUpdate(BaseDomain):
    name: str | None = None
    phone: str | None = None
    email: EmailStr | None = None

    @model_validator(mode='after')
    def strip_validator(self):
        self.name = self.name.strip() if self.name else None
        self.phone = self.phone.strip() if self.phone else None
        self.email = self.email.lower() if self.email else None
        return self


class UserCreate(UserUpdate):
    authentication_by: str | None = None
