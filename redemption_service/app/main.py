from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.logger import setup_logger
from common.middleware.request_trace import RequestTraceMiddleware
from common.mongo.client import close_client

from .api.health import router as health_router
from .api.v1 import api_router
from .api.schemas.redemptions import RedeemAccessCodeResponse, status_code_for
from .exceptions import BadRequestError
from .models.redemption import (
    MESSAGE_UNKNOWN_ERROR,
    RedemptionErrorKind,
    RedemptionResult,
)


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - framework hook
    try:
        yield
    finally:
        close_client()


async def handle_bad_request(request: Request, exc: BadRequestError) -> JSONResponse:
    """바디 파싱/검증 실패. 저장소 의존성이 풀리기 전에 400 으로 끝난다."""

    result = RedemptionResult.failure(RedemptionErrorKind.BAD_REQUEST, str(exc))
    return JSONResponse(
        status_code=status_code_for(result),
        content=RedeemAccessCodeResponse.from_result(result).to_body(),
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    """라우터 밖(DI 등)에서 새어 나온 예외도 클라이언트가 읽을 수 있는 형태로 돌려준다."""

    logger.exception("unhandled error on %s", request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": str(exc) or MESSAGE_UNKNOWN_ERROR},
    )


def create_app() -> FastAPI:
    setup_logger(name="redemption-service")
    app = FastAPI(
        title="Study Corner Redemption Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    # 공통 Request/Span ID 로그 미들웨어
    app.add_middleware(RequestTraceMiddleware)
    app.add_exception_handler(BadRequestError, handle_bad_request)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(health_router, tags=["health"])
    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


def main() -> None:
    import uvicorn

    port = int(os.getenv("REDEMPTION_SERVICE_PORT", "8003"))
    uvicorn.run(
        "redemption_service.app.main:app",
        host="0.0.0.0",
        port=port,
        reload=False,
        access_log=False,
    )


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
