"""접근 코드 MongoDB 도큐먼트.

필드 이름은 모바일 클라이언트/관리자 도구와 공유하는 camelCase 를 그대로 쓴다.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import Field

from common.mongo.types import BaseDocument, MongoDateTime, from_object_id

from ...models.access_code import AccessCode, ClaimStatus


class AccessCodeDocument(BaseDocument):
    """MongoDB accessCodes 컬렉션 도큐먼트 모델."""

    code: str
    duration_days: Any = Field(default=None, alias="durationDays")
    is_used: bool = Field(default=False, alias="isUsed")
    used_by_user_id: Optional[str] = Field(default=None, alias="usedByUserId")
    used_at: Optional[MongoDateTime] = Field(default=None, alias="usedAt")
    claim_status: Optional[ClaimStatus] = Field(default=None, alias="claimStatus")
    claimed_at: Optional[MongoDateTime] = Field(default=None, alias="claimedAt")
    applied_at: Optional[MongoDateTime] = Field(default=None, alias="appliedAt")

    def to_domain(self) -> AccessCode:
        return AccessCode(
            id=from_object_id(self.id),
            code=self.code,
            duration_days=self.duration_days,
            is_used=self.is_used,
            used_by_user_id=self.used_by_user_id,
            used_at=self.used_at,
            claim_status=self.claim_status,
            claimed_at=self.claimed_at,
            applied_at=self.applied_at,
        )
