"""구독 MongoDB 도큐먼트."""

from __future__ import annotations

from typing import Optional

from pydantic import Field

from common.mongo.types import BaseDocument, MongoDateTime, from_object_id

from ...models.subscription import Subscription, SubscriptionStatus


class SubscriptionDocument(BaseDocument):
    """MongoDB subscriptions 컬렉션 도큐먼트 모델."""

    user_id: str = Field(alias="userId")
    status: SubscriptionStatus
    start_date: MongoDateTime = Field(alias="startDate")
    end_date: MongoDateTime = Field(alias="endDate")
    plan_id: Optional[str] = Field(default=None, alias="subscriptionId")
    plan_name: Optional[str] = Field(default=None, alias="subscriptionName")
    auto_renew: bool = Field(default=False, alias="autoRenew")
    applied_code_ids: list[str] = Field(default_factory=list, alias="appliedCodeIds")
    version: int = 0

    @classmethod
    def from_domain(cls, subscription: Subscription) -> "SubscriptionDocument":
        # 도메인 모델은 alias 가 없으므로 필드 이름으로 채운다(populate_by_name).
        return cls.model_validate(subscription.model_dump(exclude={"id"}))

    def to_domain(self) -> Subscription:
        return Subscription(
            id=from_object_id(self.id),
            user_id=self.user_id,
            status=self.status,
            start_date=self.start_date,
            end_date=self.end_date,
            plan_id=self.plan_id,
            plan_name=self.plan_name,
            auto_renew=self.auto_renew,
            applied_code_ids=list(self.applied_code_ids),
            version=self.version,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
