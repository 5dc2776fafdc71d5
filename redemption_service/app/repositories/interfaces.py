from __future__ import annotations

from datetime import datetime
from typing import Protocol

from ..models.access_code import AccessCode
from ..models.subscription import Subscription


class AccessCodeRepositoryInterface(Protocol):
    """AccessCodeRepository가 따라야 할 최소한의 계약.

    - 모든 상태 전환은 단일 도큐먼트에 대한 조건부 원자 업데이트여야 한다.
    - claim 은 isUsed=false 인 코드를 정확히 한 호출자에게만 넘겨준다.
    """

    def claim(
        self, code: str, user_id: str, now: datetime
    ) -> AccessCode | None:  # pragma: no cover - Protocol
        """미사용 코드를 user_id 소유로 전환한다. 이미 사용 중이거나 없으면 None."""
        ...

    def resume_claim(
        self, code: str, user_id: str, now: datetime, stale_before: datetime
    ) -> AccessCode | None:  # pragma: no cover - Protocol
        """같은 유저가 남긴 FAILED claim, 또는 stale_before 이전에 시작된 PENDING claim 을 이어받는다."""
        ...

    def find_by_code(
        self, code: str
    ) -> AccessCode | None:  # pragma: no cover - Protocol
        """상태 변경 없이 코드를 조회한다. claim 실패 사유를 구분할 때만 쓴다."""
        ...

    def mark_applied(
        self, code_id: str, user_id: str, now: datetime
    ) -> bool:  # pragma: no cover - Protocol
        ...

    def release_claim(
        self, code_id: str, user_id: str, now: datetime
    ) -> bool:  # pragma: no cover - Protocol
        """구독 반영 실패 시 claim 을 FAILED 로 돌려 같은 유저의 재시도를 허용한다."""
        ...


class SubscriptionRepositoryInterface(Protocol):
    """SubscriptionRepository가 따라야 할 최소한의 계약.

    - create / save_extension 은 동시 작성자에게 밀리면 ConcurrencyConflictError 를 던진다.
    """

    def find_by_user(
        self, user_id: str
    ) -> Subscription | None:  # pragma: no cover - Protocol
        ...

    def create(
        self, subscription: Subscription
    ) -> Subscription:  # pragma: no cover - Protocol
        ...

    def save_extension(
        self,
        current: Subscription,
        *,
        end_date: datetime,
        code_id: str,
        plan_id: str,
        plan_name: str,
        auto_renew: bool,
        now: datetime,
    ) -> Subscription:  # pragma: no cover - Protocol
        """current.version 이 그대로일 때만 endDate 연장 + ACTIVE 전환을 기록한다."""
        ...
