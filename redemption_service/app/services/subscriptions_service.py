from __future__ import annotations

from fastapi import Depends

from ..clock import Clock
from ..models.subscription import SubscriptionStatusView
from ..repositories.interfaces import SubscriptionRepositoryInterface
from .redemption_service import get_clock, get_subscription_repository


class SubscriptionsService:
    """구독 상태 조회 서비스. 모바일 앱이 프리미엄 접근 여부를 판단할 때 쓴다."""

    def __init__(self, repo: SubscriptionRepositoryInterface, clock: Clock) -> None:
        self._repo = repo
        self._clock = clock

    def get_status(self, user_id: str) -> SubscriptionStatusView:
        subscription = self._repo.find_by_user(user_id)
        is_active = (
            subscription is not None and subscription.is_active_at(self._clock.now())
        )
        return SubscriptionStatusView(
            user_id=user_id,
            subscription=subscription,
            is_active=is_active,
        )


def get_subscriptions_service(
    repo: SubscriptionRepositoryInterface = Depends(get_subscription_repository),
    clock: Clock = Depends(get_clock),
) -> SubscriptionsService:
    """FastAPI DI용 SubscriptionsService 팩토리."""

    return SubscriptionsService(repo=repo, clock=clock)
