import json
import logging
import re
import time
import uuid
from typing import Any
from urllib.parse import parse_qs

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response


REQUEST_ID_HEADER = "X-Request-Id"
SPAN_ID_HEADER = "X-Span-Id"

# 노이즈를 줄이기 위해 로그에서 제외할 엔드포인트 경로 목록
IGNORED_LOG_PATHS: set[str] = {"/health"}

# 로그에 원문으로 남기면 안 되는 바디 필드 (접근 코드는 그 자체가 이용권이다)
SENSITIVE_BODY_FIELDS: frozenset[str] = frozenset({"code"})

MAX_LOGGED_BODY_LENGTH = 1024
REDACTED = "***"

_SENSITIVE_PATTERN = re.compile(
    r'("(?:%s)"\s*:\s*)("(?:[^"\\]|\\.)*"|[^,}\s]+)'
    % "|".join(re.escape(field) for field in sorted(SENSITIVE_BODY_FIELDS))
)


def redact_body(text: str) -> str:
    """로그용 바디 문자열에서 민감 필드 값을 가린다.

    - JSON 객체(또는 JSON 문자열로 한 번 더 감싼 객체)는 파싱해서 필드 단위로 가린다.
    - 파싱이 안 되는 바디는 정규식으로 `"code": ...` 패턴만 가린다.
    """

    try:
        parsed: Any = json.loads(text)
        if isinstance(parsed, str):
            parsed = json.loads(parsed)
    except ValueError:
        return _SENSITIVE_PATTERN.sub(rf'\1"{REDACTED}"', text)

    if not isinstance(parsed, dict):
        return text

    masked = {
        key: (REDACTED if key in SENSITIVE_BODY_FIELDS else value)
        for key, value in parsed.items()
    }
    return json.dumps(masked, ensure_ascii=False, default=str)


class RequestTraceMiddleware(BaseHTTPMiddleware):
    """공통 Request/Span ID 로그 미들웨어.

    - 들어오는 요청에서 X-Request-Id, X-Span-Id 를 읽고, 없으면 request_id만 새로 생성한다.
    - request.state 에 request_id, span_id 를 저장한다.
    - 응답 헤더에 동일한 값을 설정한다.
    - 요청 바디는 민감 필드를 가린 뒤 1KB 까지만 로그에 남긴다.
    """

    def __init__(self, app, logger: logging.Logger | None = None) -> None:  # type: ignore[override]
        super().__init__(app)
        self._logger = logger or logging.getLogger("request_trace")

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id, span_id = self._extract_trace_ids(request)

        request.state.request_id = request_id
        request.state.span_id = span_id
        request.state.request_body = await self._read_body_snippet(request)

        should_log = request.url.path not in IGNORED_LOG_PATHS
        start = time.monotonic()

        try:
            response = await call_next(request)
        except Exception:
            if should_log:
                self._logger.exception(
                    "request failed",
                    extra=self._build_log_extra(
                        request,
                        request_id,
                        span_id,
                        duration=time.monotonic() - start,
                    ),
                )
            raise

        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
        response.headers.setdefault(SPAN_ID_HEADER, span_id)

        if should_log:
            self._logger.info(
                "completed request",
                extra=self._build_log_extra(
                    request,
                    request_id,
                    span_id,
                    status=response.status_code,
                    duration=time.monotonic() - start,
                ),
            )

        return response

    async def _read_body_snippet(self, request: Request) -> str | None:
        if request.method not in {"POST", "PUT", "PATCH", "DELETE"}:
            return None
        try:
            body_bytes = await request.body()
        except Exception:  # noqa: BLE001
            return None
        if not body_bytes:
            return None

        text = redact_body(body_bytes.decode("utf-8", errors="replace"))
        return text[:MAX_LOGGED_BODY_LENGTH]

    def _extract_trace_ids(self, request: Request) -> tuple[str, str]:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        span_id = request.headers.get(SPAN_ID_HEADER) or "0"
        return request_id, span_id

    def _build_log_extra(
        self,
        request: Request,
        request_id: str,
        span_id: str,
        status: int | None = None,
        duration: float | None = None,
    ) -> dict[str, object]:
        extra: dict[str, object] = {
            "request_id": request_id,
            "span_id": span_id,
            "method": request.method,
            "path": request.url.path,
        }

        query = request.url.query
        if query:
            parsed = parse_qs(query, keep_blank_values=True)
            if parsed:
                extra["query_params"] = {
                    key: values[0] if len(values) == 1 else values
                    for key, values in parsed.items()
                }

        body = getattr(request.state, "request_body", None)
        if body:
            extra["body"] = body

        if status is not None:
            extra["status"] = status

        if duration is not None:
            extra["duration"] = f"{duration * 1000:.3f}ms"

        return extra
