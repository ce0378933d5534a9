from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import AliasChoices, EmailStr, Field

from src import settings
from src.common import context
from src.common.domain import BaseDomain
from src.common.exceptions import APIException
from src.common.nanoid import NanoIdType
from src.common.rate_limit import FixedWindowRateLimiter
from src.common.request import get_client_ip_address
from src.core.verification.constants import ChannelEnum, WorkflowActionEnum
from src.core.verification.credential import CredentialService
from src.core.verification.domains import (
    ChannelInfo,
    CodeRequest,
    CodeRequestResult,
    CredentialClaims,
    TotpSetup,
    UserSummary,
    VerificationResult,
)
from src.core.verification.service import VerificationService

router = APIRouter()

CODE_PATTERN = r'^\d{6}$'
PHONE_PATTERN = r'^\+?[1-9]\d{6,14}$'

bearer_scheme = HTTPBearer(auto_error=False)


class GenerateOtpPayload(BaseDomain):
    channel: ChannelEnum
    user_id: NanoIdType | None = None
    name: str | None = Field(default=None, max_length=200)
    phone_number: str | None = Field(default=None, pattern=PHONE_PATTERN)
    email: EmailStr | None = None


class VerifyOtpPayload(BaseDomain):
    user_id: NanoIdType
    channel: ChannelEnum
    # The UI sends "otp", workflow callers send "code"
    otp: str = Field(pattern=CODE_PATTERN, validation_alias=AliasChoices('otp', 'code'))


class TotpSetupPayload(BaseDomain):
    user_id: NanoIdType


class TotpCodePayload(BaseDomain):
    user_id: NanoIdType
    code: str = Field(pattern=CODE_PATTERN)


class TotpToggleResponse(BaseDomain):
    success: bool


class ChannelsResponse(BaseDomain):
    channels: list[ChannelInfo]


class WorkflowPayload(BaseDomain):
    action: str
    user_id: NanoIdType | None = None
    channel: ChannelEnum | None = None
    name: str | None = None
    phone_number: str | None = Field(default=None, pattern=PHONE_PATTERN)
    email: EmailStr | None = None


def get_rate_limiter(request: Request) -> FixedWindowRateLimiter:
    return request.app.state.rate_limiter


def enforce_rate_limit(request: Request, rate_limiter: FixedWindowRateLimiter, user_id: str | None = None) -> None:
    checks = [(f'ip:{get_client_ip_address(request)}', settings.RATE_LIMIT_SETTINGS['PER_IP'])]
    if user_id:
        checks.append((f'user:{user_id}', settings.RATE_LIMIT_SETTINGS['PER_USER']))

    for key, limit in checks:
        info = rate_limiter.check(key, limit)
        if not info.allowed:
            raise APIException(
                code=status.HTTP_429_TOO_MANY_REQUESTS,
                message='Too many requests. Please slow down.',
                error_type='rate_limited',
                headers={'Retry-After': str(info.retry_after)},
            )


@router.post('/generate-otp', response_model=CodeRequestResult)
def generate_otp(
    request: Request,
    payload: GenerateOtpPayload,
    rate_limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
    verification_service: VerificationService = Depends(VerificationService.factory),
) -> CodeRequestResult:
    enforce_rate_limit(request, rate_limiter, user_id=payload.user_id)
    result = verification_service.request_code(
        CodeRequest(
            channel=payload.channel,
            user_id=payload.user_id,
            name=payload.name,
            phone_number=payload.phone_number,
            email=payload.email,
        )
    )
    context.set_user(context.AppContextUserType.USER, result.user_id)
    return result


@router.post('/verify-otp', response_model=VerificationResult)
def verify_otp(
    request: Request,
    payload: VerifyOtpPayload,
    rate_limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
    verification_service: VerificationService = Depends(VerificationService.factory),
) -> VerificationResult:
    enforce_rate_limit(request, rate_limiter, user_id=payload.user_id)
    context.set_user(context.AppContextUserType.USER, payload.user_id)
    return verification_service.verify_code(
        user_id=payload.user_id,
        submitted_code=payload.otp,
        channel=payload.channel,
    )


@router.post('/totp/setup', response_model=TotpSetup)
def setup_totp(
    payload: TotpSetupPayload,
    verification_service: VerificationService = Depends(VerificationService.factory),
) -> TotpSetup:
    """
    Idempotent, an enrolled user gets their existing secret back
    """
    return verification_service.setup_totp(payload.user_id)


@router.post('/totp/enable', response_model=TotpToggleResponse)
def enable_totp(
    payload: TotpCodePayload,
    verification_service: VerificationService = Depends(VerificationService.factory),
) -> TotpToggleResponse:
    if not verification_service.enable_totp(payload.user_id, payload.code):
        raise APIException(
            code=status.HTTP_401_UNAUTHORIZED, message='Invalid verification code', error_type='invalid_totp_code'
        )
    return TotpToggleResponse(success=True)


@router.post('/totp/disable', response_model=TotpToggleResponse)
def disable_totp(
    payload: TotpCodePayload,
    verification_service: VerificationService = Depends(VerificationService.factory),
) -> TotpToggleResponse:
    """
    Possession of the authenticator must be proven to turn it off
    """
    if not verification_service.disable_totp(payload.user_id, payload.code):
        raise APIException(
            code=status.HTTP_401_UNAUTHORIZED, message='Invalid verification code', error_type='invalid_totp_code'
        )
    return TotpToggleResponse(success=True)


@router.get('/channels', response_model=ChannelsResponse)
def list_channels(
    verification_service: VerificationService = Depends(VerificationService.factory),
) -> ChannelsResponse:
    return ChannelsResponse(channels=verification_service.list_channels())


@router.get('/users/{user_id}', response_model=UserSummary)
def get_user(
    user_id: NanoIdType,
    verification_service: VerificationService = Depends(VerificationService.factory),
) -> UserSummary:
    return verification_service.get_user_summary(user_id)


@router.get('/session', response_model=CredentialClaims)
def get_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    credential_service: CredentialService = Depends(CredentialService.factory),
) -> CredentialClaims:
    return credential_service.decode(credentials.credentials if credentials else None)


@router.post('/webhook/workflow')
def workflow_webhook(
    request: Request,
    payload: WorkflowPayload,
    rate_limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
    verification_service: VerificationService = Depends(VerificationService.factory),
) -> dict[str, Any]:
    """
    Entry point for workflow automation callers
    """
    context.set_user(context.AppContextUserType.WORKFLOW, payload.user_id)
    context.set_breadcrumb(f'workflow:{payload.action}')
    if payload.action == WorkflowActionEnum.INITIATE_VERIFICATION:
        if payload.channel is None:
            raise APIException(message='channel is required', error_type='channel_required')
        enforce_rate_limit(request, rate_limiter, user_id=payload.user_id)
        result = verification_service.request_code(
            CodeRequest(
                channel=payload.channel,
                user_id=payload.user_id,
                name=payload.name,
                phone_number=payload.phone_number,
                email=payload.email,
            )
        )
        return {'success': True, **result.model_dump(by_alias=True, mode='json')}

    if payload.action == WorkflowActionEnum.CHECK_VERIFICATION_STATUS:
        if not payload.user_id:
            raise APIException(message='userId is required', error_type='user_id_required')
        summary = verification_service.get_user_summary(payload.user_id)
        return {'success': True, **summary.model_dump(by_alias=True, mode='json')}

    raise APIException(
        message=f'Unknown action {payload.action}. Expected one of {WorkflowActionEnum.list_all()}',
        error_type='unknown_action',
    )
