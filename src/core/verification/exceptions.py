from fastapi import status

from src.common.exceptions import InternalException
from src.core.verification.constants import VerifyOutcome


class VerificationException(InternalException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Verification failed.'
    default_code = 'verification_failed'


class VerificationNotFound(VerificationException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'No active code found. Please request a new code.'
    default_code = 'not_found'


class VerificationExpired(VerificationException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Code has expired. Please request a new code.'
    default_code = 'expired'


class VerificationAttemptsExceeded(VerificationException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Too many incorrect attempts. Please request a new code.'
    default_code = 'attempts_exceeded'


class VerificationMismatch(VerificationException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Invalid code.'
    default_code = 'mismatch'


class ChannelUnavailable(VerificationException):
    """
    Missing destination for the channel, or totp not enrolled / enabled
    """

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Channel is not available for this user.'
    default_code = 'channel_unavailable'


class ContactConflict(VerificationException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Contact already belongs to another user.'
    default_code = 'contact_conflict'


class VerificationLocked(VerificationException):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_detail = 'Too many failed attempts. Please try again later.'
    default_code = 'locked'

    def __init__(self, remaining_seconds: int, message: str | None = None):
        self.remaining_seconds = remaining_seconds
        super().__init__(
            message=message or f'Too many failed attempts. Try again in {remaining_seconds} seconds.',
            context={'remaining_seconds': remaining_seconds},
        )

    def response_headers(self) -> dict[str, str]:
        return {'Retry-After': str(self.remaining_seconds)}


class DeliveryFailed(VerificationException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'Code could not be delivered. Please try again.'
    default_code = 'delivery_failed'


class CredentialInvalid(InternalException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Credential invalid.'
    default_code = 'credential_invalid'


class CredentialExpired(CredentialInvalid):
    default_detail = 'Credential expired.'
    default_code = 'credential_expired'


OUTCOME_EXCEPTIONS = {
    VerifyOutcome.EXPIRED: VerificationExpired,
    VerifyOutcome.ATTEMPTS_EXCEEDED: VerificationAttemptsExceeded,
    VerifyOutcome.MISMATCH: VerificationMismatch,
    VerifyOutcome.NOT_FOUND: VerificationNotFound,
}
