from fastapi import APIRouter, Response, status
from fastapi.responses import PlainTextResponse
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from src.network.database.session import db

router = APIRouter()


@router.get('/api', response_class=PlainTextResponse)
def api_health_check() -> str:
    """
    Liveness probe for load balancers and deploy scripts, keep it free of I/O
    """
    return '🔐 Codes are flowing 🔐'


@router.get('/database', response_class=PlainTextResponse)
def database_health_check(response: Response) -> str:
    try:
        db.session.execute(text('SELECT 1'))
    except SQLAlchemyError as exc:
        logger.error(f'database health check failed: {exc}')
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return '❌ database unavailable'

    return '✅ database ok'
