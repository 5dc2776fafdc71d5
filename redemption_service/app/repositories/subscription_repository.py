"""구독 레포지토리 구현체.

version 필드를 이용한 낙관적 동시성 제어로 연장을 기록한다. 같은 유저의 동시 교환이
같은 endDate 를 읽고 서로를 덮어쓰지 못하도록, 읽은 version 과 일치할 때만 쓴다.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pymongo import ASCENDING, DESCENDING, IndexModel, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from common.mongo.client import ensure_indexes_once
from common.mongo.types import from_object_id, to_object_id

from .documents.subscription_document import SubscriptionDocument
from .interfaces import SubscriptionRepositoryInterface
from ..exceptions import ConcurrencyConflictError
from ..models.subscription import Subscription, SubscriptionStatus


DEFAULT_COLLECTION_NAME = "subscriptions"


def _version_filter(version: int) -> Any:
    # 이전 구현이 만든 도큐먼트에는 version 필드가 없다. null 매칭은 필드 부재도 포함한다.
    if version == 0:
        return {"$in": [None, 0]}
    return version


class SubscriptionRepository(SubscriptionRepositoryInterface):
    """subscriptions 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(
        self, database: Database, collection_name: str = DEFAULT_COLLECTION_NAME
    ) -> None:
        self._db = database
        self._col = database[collection_name]
        ensure_indexes_once(
            self._col,
            [
                IndexModel(
                    [("userId", ASCENDING)],
                    name="uniq_subscriptions_user_id",
                    unique=True,
                ),
            ],
        )

    def find_by_user(self, user_id: str) -> Subscription | None:
        # 유니크 인덱스 이전 데이터에 중복이 남아 있다면 가장 늦게 끝나는 구독을 쓴다.
        raw = self._col.find_one({"userId": user_id}, sort=[("endDate", DESCENDING)])
        if raw is None:
            return None
        return SubscriptionDocument.model_validate(raw).to_domain()

    def create(self, subscription: Subscription) -> Subscription:
        payload = SubscriptionDocument.from_domain(subscription).to_mongo_record()
        try:
            result = self._col.insert_one(payload)
        except DuplicateKeyError as exc:
            raise ConcurrencyConflictError(
                f"subscription for user {subscription.user_id} was created concurrently"
            ) from exc
        return subscription.model_copy(update={"id": from_object_id(result.inserted_id)})

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
    ) -> Subscription:
        raw = self._col.find_one_and_update(
            {
                "_id": to_object_id(current.id),
                "version": _version_filter(current.version),
            },
            {
                "$set": {
                    "endDate": end_date,
                    "status": SubscriptionStatus.ACTIVE.value,
                    "subscriptionId": plan_id,
                    "subscriptionName": plan_name,
                    "autoRenew": auto_renew,
                    "updatedAt": now,
                },
                "$addToSet": {"appliedCodeIds": code_id},
                "$inc": {"version": 1},
            },
            return_document=ReturnDocument.AFTER,
        )
        if raw is None:
            raise ConcurrencyConflictError(
                f"subscription {current.id} changed since version {current.version}"
            )
        return SubscriptionDocument.model_validate(raw).to_domain()
