from fastapi import APIRouter

from src import settings
from src.common.domain import BaseDomain

router = APIRouter()


class VersionRead(BaseDomain):
    version: str
    environment: str
    dispatch_mode: str


@router.get('/api', response_model=VersionRead)
def get_app_version() -> VersionRead:
    # Resolving the version shells out to git, only pay for it when asked
    from src.version import VERSION

    return VersionRead(
        version=VERSION,
        environment=settings.ENVIRONMENT,
        dispatch_mode=settings.DISPATCH_SETTINGS['MODE'],
    )
