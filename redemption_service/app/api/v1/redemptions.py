"""접근 코드 교환 API 라우터.

모바일 클라이언트가 호출하는 유일한 쓰기 엔드포인트. userId 의 인증은 Gateway 가
이미 끝낸 상태로 들어온다고 가정한다.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from ..schemas.redemptions import (
    RedeemAccessCodeRequest,
    RedeemAccessCodeResponse,
    status_code_for,
)
from ...exceptions import BadRequestError
from ...models.redemption import RedemptionErrorKind, RedemptionRequest
from ...services.redemption_service import RedemptionService, get_redemption_service
from ...services.request_parser import parse_redemption_body


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/access-codes", tags=["access_codes"])


async def read_redemption_request(request: Request) -> RedemptionRequest:
    """원본 바디를 RedemptionRequest 로 파싱한다. 실패 시 BadRequestError -> 400."""

    raw_body = await request.body()
    try:
        return parse_redemption_body(raw_body)
    except BadRequestError:
        logger.info(
            "rejected redemption request body",
            extra={"error_kind": RedemptionErrorKind.BAD_REQUEST.value},
        )
        raise


@router.post(
    "/redeem",
    response_model=RedeemAccessCodeResponse,
    response_model_exclude_none=True,
    summary="접근 코드 교환",
    openapi_extra={
        "requestBody": {
            "content": {
                "application/json": {
                    "schema": RedeemAccessCodeRequest.model_json_schema(by_alias=True)
                }
            },
            "required": True,
        }
    },
)
async def redeem_access_code(
    # 의존성은 선언 순서대로 풀린다. 바디 검증이 서비스(Mongo 연결)보다 먼저여야 한다.
    redemption_request: Annotated[
        RedemptionRequest, Depends(read_redemption_request)
    ],
    service: Annotated[RedemptionService, Depends(get_redemption_service)],
) -> JSONResponse:
    """바디는 JSON 객체 또는 JSON 문자열로 감싼 객체 모두 허용한다."""

    # pymongo 는 동기 드라이버이므로 이벤트 루프를 막지 않도록 스레드풀에서 실행한다.
    result = await run_in_threadpool(service.redeem_request, redemption_request)

    return JSONResponse(
        status_code=status_code_for(result),
        content=RedeemAccessCodeResponse.from_result(result).to_body(),
    )
