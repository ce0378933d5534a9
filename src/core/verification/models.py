import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.common.model import BaseModel
from src.core.user.models import HasUser
from src.core.verification.domains import (
    DispatchJobCreate,
    DispatchJobRead,
    OtpCodeCreate,
    OtpCodeRead,
    VerificationStatusCreate,
    VerificationStatusRead,
)


class OtpCode(BaseModel[OtpCodeRead, OtpCodeCreate], HasUser):
    channel: Mapped[str] = mapped_column(String(length=20), nullable=False)
    code: Mapped[str] = mapped_column(String(length=12), nullable=False)
    expires_at: Mapped[datetime.datetime] = mapped_column(DateTime, index=True, nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # At most one live code per user and channel
    __table_args__ = (UniqueConstraint('user_id', 'channel', name='otpcode_user_channel_unique'),)

    __pk_abbrev__ = 'otp'
    __read_domain__ = OtpCodeRead
    __create_domain__ = OtpCodeCreate


class VerificationStatus(BaseModel[VerificationStatusRead, VerificationStatusCreate], HasUser):
    sms: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    email: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    voice: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    whatsapp: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    totp: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (UniqueConstraint('user_id', name='verificationstatus_user_unique'),)

    __pk_abbrev__ = 'vst'
    __read_domain__ = VerificationStatusRead
    __create_domain__ = VerificationStatusCreate


class DispatchJob(BaseModel[DispatchJobRead, DispatchJobCreate], HasUser):
    channel: Mapped[str] = mapped_column(String(length=20), nullable=False)
    destination: Mapped[str] = mapped_column(String(length=320), nullable=False)
    code: Mapped[str] = mapped_column(String(length=12), nullable=False)
    # pending -> processing -> completed | failed, never backwards
    status: Mapped[str] = mapped_column(String(length=20), index=True, nullable=False)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    claimed_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime, nullable=True)

    __pk_abbrev__ = 'djob'
    __read_domain__ = DispatchJobRead
    __create_domain__ = DispatchJobCreate
