from __future__ import annotations

from fastapi import status
from pydantic import BaseModel, ConfigDict, Field

from ...models.redemption import RedemptionErrorKind, RedemptionResult


# 비즈니스 실패(없는 코드/사용된 코드)는 200 + success:false. 클라이언트는 success 로 분기한다.
STATUS_BY_ERROR_KIND: dict[RedemptionErrorKind, int] = {
    RedemptionErrorKind.BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
    RedemptionErrorKind.INVALID_CODE: status.HTTP_200_OK,
    RedemptionErrorKind.SYSTEM_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class RedeemAccessCodeRequest(BaseModel):
    """OpenAPI 문서용 요청 스키마. 실제 파싱은 request_parser 가 원본 바디로 한다."""

    code: str
    user_id: str = Field(alias="userId")


class RedeemAccessCodeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    duration_days: int | None = Field(default=None, alias="durationDays")
    message: str | None = None

    @classmethod
    def from_result(cls, result: RedemptionResult) -> "RedeemAccessCodeResponse":
        return cls(
            success=result.success,
            duration_days=result.duration_days if result.success else None,
            message=None if result.success else result.message,
        )

    def to_body(self) -> dict[str, object]:
        return self.model_dump(by_alias=True, exclude_none=True)


def status_code_for(result: RedemptionResult) -> int:
    if result.success or result.error_kind is None:
        return status.HTTP_200_OK
    return STATUS_BY_ERROR_KIND[result.error_kind]
