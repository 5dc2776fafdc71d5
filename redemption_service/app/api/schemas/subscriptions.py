from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from common.types.datetime import UtcDateTime

from ...models.subscription import Subscription, SubscriptionStatusView


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SubscriptionResponse(_CamelModel):
    id: str | None
    user_id: str
    status: str
    start_date: UtcDateTime
    end_date: UtcDateTime
    subscription_id: str | None
    subscription_name: str | None
    auto_renew: bool

    @classmethod
    def from_domain(cls, subscription: Subscription) -> "SubscriptionResponse":
        return cls(
            id=subscription.id,
            user_id=subscription.user_id,
            status=subscription.status.value,
            start_date=subscription.start_date,
            end_date=subscription.end_date,
            subscription_id=subscription.plan_id,
            subscription_name=subscription.plan_name,
            auto_renew=subscription.auto_renew,
        )


class SubscriptionStatusResponse(_CamelModel):
    user_id: str
    subscription: SubscriptionResponse | None
    is_active: bool

    @classmethod
    def from_domain(cls, view: SubscriptionStatusView) -> "SubscriptionStatusResponse":
        return cls(
            user_id=view.user_id,
            subscription=(
                SubscriptionResponse.from_domain(view.subscription)
                if view.subscription is not None
                else None
            ),
            is_active=view.is_active,
        )
