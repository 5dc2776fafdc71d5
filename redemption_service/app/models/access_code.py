"""접근 코드 도메인 모델.

코드는 외부(관리자 도구)에서 생성되고, 이 서비스는 isUsed 를 false -> true 로
단 한 번 전환(claim)한다. claim 이후 구독 연장이 확정되면 APPLIED 로 표시한다.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel


class ClaimStatus(StrEnum):
    PENDING = "PENDING"  # claim 완료, 구독 반영 진행 중
    FAILED = "FAILED"  # 구독 반영 실패, 같은 유저가 재시도로 이어받을 수 있음
    APPLIED = "APPLIED"  # 구독 반영 완료


class AccessCode(BaseModel):
    id: str | None = None
    code: str
    duration_days: Any = None  # 원본 값 그대로. 정수 변환은 서비스에서 한다.
    is_used: bool = False
    used_by_user_id: str | None = None
    used_at: datetime | None = None
    claim_status: ClaimStatus | None = None
    claimed_at: datetime | None = None
    applied_at: datetime | None = None


def normalize_code(value: Any) -> str:
    """코드 비교 정책: 문자열화 + 앞뒤 공백 제거 + 대문자."""

    if value is None:
        return ""
    return str(value).strip().upper()
