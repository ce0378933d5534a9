import datetime
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, declared_attr, mapped_column, relationship

from src.common.encrypted_field import EncryptedString
from src.common.model import BaseModel
from src.core.user.domains import UserCreate, UserRead, UserWithSecretRead


class User(BaseModel[UserRead, UserCreate]):
    name: Mapped[Optional[str]] = mapped_column(String(length=200), nullable=True)
    # Unique but nullable, a user may be known by phone, email or both
    phone: Mapped[Optional[str]] = mapped_column(String(length=32), unique=True, index=True, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(length=320), unique=True, index=True, nullable=True)
    # Channel the user first authenticated with
    authentication_by: Mapped[Optional[str]] = mapped_column(String(length=20), nullable=True)
    totp_secret: Mapped[Optional[str]] = mapped_column(EncryptedString, nullable=True)
    totp_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    failed_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_failed_at: Mapped[Optional[datetime.datetime]] = mapped_column(nullable=True)
    last_login_at: Mapped[Optional[datetime.datetime]] = mapped_column(nullable=True)

    __pk_abbrev__ = 'user'
    __read_domain__ = UserRead
    __create_domain__ = UserCreate

    @classmethod
    def get_with_secret(cls, *clauses, **specification) -> UserWithSecretRead:
        instance = cls._get(*clauses, **specification)

        return UserWithSecretRead.model_validate(instance)


class HasUser:
    """
    Mixin for user relationships in other domains
    """

    @declared_attr
    def user_id(cls) -> Mapped[str]:
        return mapped_column(ForeignKey('user.id', ondelete='CASCADE'), index=True, nullable=False)

    @declared_attr
    def user(cls) -> Mapped['User']:
        return relationship('User')
