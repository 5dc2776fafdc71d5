from fastapi import APIRouter

from .redemptions import router as redemptions_router
from .subscriptions import router as subscriptions_router

api_router = APIRouter()
api_router.include_router(
    redemptions_router
)  # prefix는 router 파일 내부에서 정의되어 있음 (/access-codes)
api_router.include_router(
    subscriptions_router, prefix="/subscriptions", tags=["subscriptions"]
)
