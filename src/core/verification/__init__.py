from src.core.verification.aggregator import VerificationAggregator
from src.core.verification.constants import ChannelEnum, DeliveryStatusEnum, DispatchStatusEnum, VerifyOutcome
from src.core.verification.credential import CredentialService
from src.core.verification.dispatch import DispatchQueue
from src.core.verification.lockout import LockoutGuard, LockoutPolicy
from src.core.verification.otp_store import OtpStore
from src.core.verification.reaper import Reaper
from src.core.verification.service import VerificationService
from src.core.verification.totp_engine import TotpEngine

__all__ = [
    'ChannelEnum',
    'CredentialService',
    'DeliveryStatusEnum',
    'DispatchQueue',
    'DispatchStatusEnum',
    'LockoutGuard',
    'LockoutPolicy',
    'OtpStore',
    'Reaper',
    'TotpEngine',
    'VerificationAggregator',
    'VerificationService',
    'VerifyOutcome',
]
