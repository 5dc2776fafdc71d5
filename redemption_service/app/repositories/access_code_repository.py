"""접근 코드 레포지토리 구현체.

claim/resume/release/applied 전환은 모두 find_one_and_update / update_one 의
필터 조건으로 표현한다. MongoDB 는 단일 도큐먼트 업데이트를 원자적으로 처리하므로
같은 코드에 대한 동시 claim 중 정확히 하나만 매칭된다.
"""

from __future__ import annotations

from datetime import datetime

from pymongo import ASCENDING, IndexModel, ReturnDocument
from pymongo.database import Database

from common.mongo.client import ensure_indexes_once
from common.mongo.types import to_object_id

from .documents.access_code_document import AccessCodeDocument
from .interfaces import AccessCodeRepositoryInterface
from ..models.access_code import AccessCode, ClaimStatus


DEFAULT_COLLECTION_NAME = "accessCodes"


class AccessCodeRepository(AccessCodeRepositoryInterface):
    """accessCodes 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(
        self, database: Database, collection_name: str = DEFAULT_COLLECTION_NAME
    ) -> None:
        self._db = database
        self._col = database[collection_name]
        ensure_indexes_once(
            self._col,
            [
                IndexModel(
                    [("code", ASCENDING), ("isUsed", ASCENDING)],
                    name="idx_code_is_used",
                ),
            ],
        )

    def claim(self, code: str, user_id: str, now: datetime) -> AccessCode | None:
        raw = self._col.find_one_and_update(
            {"code": code, "isUsed": False},
            {
                "$set": {
                    "isUsed": True,
                    "usedByUserId": user_id,
                    "usedAt": now,
                    "claimStatus": ClaimStatus.PENDING.value,
                    "claimedAt": now,
                    "updatedAt": now,
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        if raw is None:
            return None
        return AccessCodeDocument.model_validate(raw).to_domain()

    def resume_claim(
        self, code: str, user_id: str, now: datetime, stale_before: datetime
    ) -> AccessCode | None:
        # 1) 실패로 반납된 claim  2) 진행 중이던 호출이 lease 안에 끝나지 않은 claim
        filters = (
            {
                "code": code,
                "usedByUserId": user_id,
                "claimStatus": ClaimStatus.FAILED.value,
            },
            {
                "code": code,
                "usedByUserId": user_id,
                "claimStatus": ClaimStatus.PENDING.value,
                "claimedAt": {"$lt": stale_before},
            },
        )
        for flt in filters:
            raw = self._col.find_one_and_update(
                flt,
                {
                    "$set": {
                        "claimStatus": ClaimStatus.PENDING.value,
                        "claimedAt": now,
                        "updatedAt": now,
                    }
                },
                return_document=ReturnDocument.AFTER,
            )
            if raw is not None:
                return AccessCodeDocument.model_validate(raw).to_domain()
        return None

    def find_by_code(self, code: str) -> AccessCode | None:
        raw = self._col.find_one({"code": code})
        if raw is None:
            return None
        return AccessCodeDocument.model_validate(raw).to_domain()

    def mark_applied(self, code_id: str, user_id: str, now: datetime) -> bool:
        result = self._col.update_one(
            {"_id": to_object_id(code_id), "usedByUserId": user_id},
            {
                "$set": {
                    "claimStatus": ClaimStatus.APPLIED.value,
                    "appliedAt": now,
                    "updatedAt": now,
                }
            },
        )
        return result.matched_count == 1

    def release_claim(self, code_id: str, user_id: str, now: datetime) -> bool:
        # APPLIED 로 이미 확정된 claim 은 되돌리지 않는다.
        result = self._col.update_one(
            {
                "_id": to_object_id(code_id),
                "usedByUserId": user_id,
                "claimStatus": ClaimStatus.PENDING.value,
            },
            {
                "$set": {
                    "claimStatus": ClaimStatus.FAILED.value,
                    "updatedAt": now,
                }
            },
        )
        return result.modified_count == 1
