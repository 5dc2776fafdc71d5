"""접근 코드 교환 서비스.

교차 도큐먼트 트랜잭션 없이 accessCodes / subscriptions 두 컬렉션을 갱신한다.

1. claim: isUsed=false -> true 조건부 업데이트. 동시 요청 중 하나만 통과한다(선형화 지점).
2. 구독 연장: version 기반 낙관적 동시성 제어, 충돌 시 다시 읽고 재시도한다.
   구독 도큐먼트의 appliedCodeIds 에 코드 ID 를 함께 기록하므로 같은 코드가 두 번 반영되지 않는다.
3. claim 을 APPLIED 로 확정한다.

2~3 단계 실패 시 claim 을 FAILED 로 반납해 같은 유저가 같은 코드로 재시도하면
남은 단계를 마저 수행한다. redeem 은 어떤 경우에도 예외를 밖으로 던지지 않는다.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from fastapi import Depends
from pymongo.database import Database

from common.mongo.client import get_database

from ..clock import Clock, SystemClock
from ..config import RedemptionConfig, get_config
from ..exceptions import BadRequestError, ConcurrencyConflictError
from ..models.access_code import AccessCode
from ..models.redemption import (
    MESSAGE_ALREADY_REDEEMED,
    MESSAGE_INVALID_CODE,
    RedemptionErrorKind,
    RedemptionRequest,
    RedemptionResult,
)
from ..models.subscription import (
    Subscription,
    SubscriptionStatus,
    compute_extended_end_date,
)
from ..repositories.access_code_repository import AccessCodeRepository
from ..repositories.interfaces import (
    AccessCodeRepositoryInterface,
    SubscriptionRepositoryInterface,
)
from ..repositories.subscription_repository import SubscriptionRepository
from .request_parser import build_redemption_request


logger = logging.getLogger(__name__)


def resolve_duration_days(raw: Any, default: int) -> int:
    """durationDays 원본 값을 정수 일수로 변환한다.

    값이 없거나, 숫자가 아니거나, 0 이하이면 교환을 막지 않고 기본값을 쓴다.
    """

    if raw is None or isinstance(raw, bool):
        return default
    try:
        value = int(float(raw)) if isinstance(raw, (str, float)) else int(raw)
    except (TypeError, ValueError, OverflowError):
        return default
    return value if value > 0 else default


def code_hint(code: str) -> str:
    """로그용 코드 표시. 코드 전체는 이용권이므로 끝 4자리만 남긴다."""

    if len(code) <= 4:
        return "***"
    return f"***{code[-4:]}"


class RedemptionService:
    """접근 코드 교환 비즈니스 로직.

    - Repository 인터페이스에만 의존하고, Mongo 세부 구현은 알지 않는다.
    - 프로세스 내 상태를 갖지 않으며, 모든 상호 배제는 저장소의 조건부 쓰기로 표현한다.
    """

    def __init__(
        self,
        code_repo: AccessCodeRepositoryInterface,
        subscription_repo: SubscriptionRepositoryInterface,
        config: RedemptionConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._code_repo = code_repo
        self._subscription_repo = subscription_repo
        self._config = config or RedemptionConfig()
        self._clock = clock or SystemClock()

    def redeem(self, code: Any, user_id: Any) -> RedemptionResult:
        try:
            request = build_redemption_request(code, user_id)
        except BadRequestError as exc:
            logger.info(
                "rejected redemption request",
                extra={"error_kind": RedemptionErrorKind.BAD_REQUEST.value},
            )
            return RedemptionResult.failure(RedemptionErrorKind.BAD_REQUEST, str(exc))
        return self.redeem_request(request)

    def redeem_request(self, request: RedemptionRequest) -> RedemptionResult:
        now = self._clock.now()
        log_extra: dict[str, object] = {
            "user_id": request.user_id,
            "code_hint": code_hint(request.code),
        }
        logger.info("redeeming access code", extra=log_extra)

        claim: AccessCode | None = None
        try:
            claim = self._claim(request, now)
            if claim is None:
                message = self._rejection_message(request)
                logger.info(
                    "access code invalid or already used",
                    extra={
                        **log_extra,
                        "error_kind": RedemptionErrorKind.INVALID_CODE.value,
                    },
                )
                return RedemptionResult.failure(
                    RedemptionErrorKind.INVALID_CODE, message
                )

            days = resolve_duration_days(
                claim.duration_days, self._config.default_duration_days
            )
            self._apply_extension(request.user_id, claim, days, now, log_extra)

            if not self._code_repo.mark_applied(str(claim.id), request.user_id, now):
                # 클레임 이후 도큐먼트가 외부에서 바뀐 경우. 구독 반영은 이미 끝났다.
                logger.warning("claimed access code could not be marked applied", extra=log_extra)
        except Exception as exc:  # noqa: BLE001
            if claim is not None:
                self._release_claim(claim, request.user_id, now, log_extra)
            logger.exception(
                "access code redemption failed",
                extra={**log_extra, "error_kind": RedemptionErrorKind.SYSTEM_ERROR.value},
            )
            return RedemptionResult.failure(
                RedemptionErrorKind.SYSTEM_ERROR, str(exc) or type(exc).__name__
            )

        logger.info(
            "access code redeemed", extra={**log_extra, "duration_days": days}
        )
        return RedemptionResult.ok(days)

    def _claim(self, request: RedemptionRequest, now: datetime) -> AccessCode | None:
        claim = self._code_repo.claim(request.code, request.user_id, now)
        if claim is not None:
            return claim

        # 같은 유저가 부분 실패 후 재시도한 경우 남은 단계를 이어서 처리한다.
        stale_before = now - timedelta(seconds=self._config.claim_lease_seconds)
        claim = self._code_repo.resume_claim(
            request.code, request.user_id, now, stale_before
        )
        if claim is not None:
            logger.info(
                "resuming unfinished claim",
                extra={"user_id": request.user_id, "code_hint": code_hint(request.code)},
            )
        return claim

    def _rejection_message(self, request: RedemptionRequest) -> str:
        # 이미 이 유저 소유인 코드(응답을 못 받은 뒤 재전송 등)는 다른 안내 문구를 준다.
        # 결과는 여전히 실패이며 구독은 건드리지 않는다.
        existing = self._code_repo.find_by_code(request.code)
        if existing is not None and existing.used_by_user_id == request.user_id:
            return MESSAGE_ALREADY_REDEEMED
        return MESSAGE_INVALID_CODE

    def _apply_extension(
        self,
        user_id: str,
        claim: AccessCode,
        days: int,
        now: datetime,
        log_extra: dict[str, object],
    ) -> None:
        code_id = str(claim.id)
        plan = self._config.plan
        max_attempts = self._config.max_apply_attempts

        for attempt in range(1, max_attempts + 1):
            current = self._subscription_repo.find_by_user(user_id)
            if current is not None and code_id in current.applied_code_ids:
                logger.info(
                    "extension for this code already applied",
                    extra={**log_extra, "attempt": attempt},
                )
                return

            try:
                if current is None:
                    self._subscription_repo.create(
                        Subscription(
                            user_id=user_id,
                            status=SubscriptionStatus.ACTIVE,
                            start_date=now,
                            end_date=compute_extended_end_date(None, now, days),
                            plan_id=plan.id,
                            plan_name=plan.name,
                            auto_renew=plan.auto_renew,
                            applied_code_ids=[code_id],
                            version=1,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                else:
                    self._subscription_repo.save_extension(
                        current,
                        end_date=compute_extended_end_date(current.end_date, now, days),
                        code_id=code_id,
                        plan_id=plan.id,
                        plan_name=plan.name,
                        auto_renew=plan.auto_renew,
                        now=now,
                    )
                return
            except ConcurrencyConflictError:
                logger.warning(
                    "subscription write conflicted, retrying",
                    extra={**log_extra, "attempt": attempt},
                )

        raise ConcurrencyConflictError(
            f"could not extend subscription for user {user_id} after {max_attempts} attempts"
        )

    def _release_claim(
        self,
        claim: AccessCode,
        user_id: str,
        now: datetime,
        log_extra: dict[str, object],
    ) -> None:
        try:
            self._code_repo.release_claim(str(claim.id), user_id, now)
        except Exception:  # noqa: BLE001
            # 반납에 실패해도 claim lease 가 지나면 같은 유저가 이어받을 수 있다.
            logger.exception("failed to release access code claim", extra=log_extra)


def get_access_code_repository(
    db: Database = Depends(get_database),
) -> AccessCodeRepositoryInterface:
    """FastAPI DI용 AccessCodeRepository 팩토리."""

    return AccessCodeRepository(db, get_config().redemption.access_codes_collection)


def get_subscription_repository(
    db: Database = Depends(get_database),
) -> SubscriptionRepositoryInterface:
    """FastAPI DI용 SubscriptionRepository 팩토리."""

    return SubscriptionRepository(db, get_config().redemption.subscriptions_collection)


def get_clock() -> Clock:
    return SystemClock()


def get_redemption_service(
    code_repo: AccessCodeRepositoryInterface = Depends(get_access_code_repository),
    subscription_repo: SubscriptionRepositoryInterface = Depends(
        get_subscription_repository
    ),
    clock: Clock = Depends(get_clock),
) -> RedemptionService:
    """FastAPI DI용 RedemptionService 팩토리."""

    return RedemptionService(
        code_repo=code_repo,
        subscription_repo=subscription_repo,
        config=get_config().redemption,
        clock=clock,
    )
