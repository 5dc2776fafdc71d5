"""구독 도메인 모델.

유저당 하나의 구독 도큐먼트를 가정하며(userId 유니크 인덱스로 보장), 코드 교환 시
endDate 를 max(now, endDate) + durationDays 로 연장한다.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel, Field


class SubscriptionStatus(StrEnum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"


class Subscription(BaseModel):
    id: str | None = None
    user_id: str
    status: SubscriptionStatus
    start_date: datetime
    end_date: datetime
    plan_id: str | None = None
    plan_name: str | None = None
    auto_renew: bool = False
    applied_code_ids: list[str] = Field(default_factory=list)
    version: int = 0  # 낙관적 동시성 제어용. 기존 도큐먼트에는 없으므로 0 으로 읽는다.
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_active_at(self, now: datetime) -> bool:
        """EXPIRED 상태가 아니고 endDate 가 아직 지나지 않았으면 유효하다."""

        if self.status == SubscriptionStatus.EXPIRED:
            return False
        return self.end_date > now


class SubscriptionStatusView(BaseModel):
    """유저 구독 상태 조회 결과. 구독 도큐먼트가 없으면 subscription 은 None."""

    user_id: str
    subscription: Subscription | None
    is_active: bool


def compute_extended_end_date(
    current_end: datetime | None, now: datetime, duration_days: int
) -> datetime:
    """연장 기준일은 기존 endDate 가 미래일 때만 그것을, 아니면 now 를 쓴다."""

    base = current_end if current_end is not None and current_end > now else now
    return base + timedelta(days=duration_days)
