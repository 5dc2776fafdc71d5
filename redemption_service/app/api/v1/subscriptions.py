from __future__ import annotations

from fastapi import APIRouter, Depends

from ..schemas.subscriptions import SubscriptionStatusResponse
from ...services.subscriptions_service import (
    SubscriptionsService,
    get_subscriptions_service,
)


router = APIRouter()


@router.get(
    "/{user_id}",
    response_model=SubscriptionStatusResponse,
    summary="유저 구독 상태 조회",
)
def get_subscription_status(
    user_id: str,
    service: SubscriptionsService = Depends(get_subscriptions_service),
) -> SubscriptionStatusResponse:
    """구독 도큐먼트가 없으면 subscription=null, isActive=false 를 돌려준다."""

    view = service.get_status(user_id)
    return SubscriptionStatusResponse.from_domain(view)
