"""코드 교환 요청/결과 도메인 모델."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel


MESSAGE_MISSING_FIELDS = "Missing code or userId"
MESSAGE_INVALID_JSON = "Invalid JSON payload"
MESSAGE_INVALID_CODE = "Code invalid or already used"
MESSAGE_ALREADY_REDEEMED = "Code already redeemed on this account"
MESSAGE_UNKNOWN_ERROR = "Unexpected error while redeeming code"


class RedemptionErrorKind(StrEnum):
    BAD_REQUEST = "BAD_REQUEST"  # 입력 오류, 재시도 의미 없음
    INVALID_CODE = "INVALID_CODE"  # 없는 코드 / 이미 사용된 코드 (비즈니스 실패)
    SYSTEM_ERROR = "SYSTEM_ERROR"  # 저장소 오류, 같은 요청으로 재시도 가능


class RedemptionRequest(BaseModel):
    """정규화가 끝난 교환 요청. 생성은 request_parser 를 통해서만 한다."""

    code: str
    user_id: str


class RedemptionResult(BaseModel):
    success: bool
    duration_days: int | None = None
    message: str | None = None
    error_kind: RedemptionErrorKind | None = None

    @classmethod
    def ok(cls, duration_days: int) -> "RedemptionResult":
        return cls(success=True, duration_days=duration_days)

    @classmethod
    def failure(cls, kind: RedemptionErrorKind, message: str) -> "RedemptionResult":
        # 클라이언트가 message 를 그대로 띄우므로 빈 문자열은 허용하지 않는다.
        return cls(
            success=False,
            error_kind=kind,
            message=message.strip() or MESSAGE_UNKNOWN_ERROR,
        )
