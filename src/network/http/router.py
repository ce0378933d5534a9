from fastapi import APIRouter

from src.core.verification.router import router as verification_router
from src.platform.router import api_router as platform_router

api_router = APIRouter()
api_router.include_router(platform_router)
api_router.include_router(verification_router)
