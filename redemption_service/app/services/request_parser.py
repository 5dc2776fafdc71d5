"""코드 교환 요청 바디 파싱/검증.

모바일 클라이언트는 `functions.createExecution(id, JSON.stringify({...}))` 처럼
바디를 JSON 문자열로 한 번 더 감싸 보내기도 하므로 두 형태를 모두 받는다.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from ..exceptions import BadRequestError
from ..models.access_code import normalize_code
from ..models.redemption import (
    MESSAGE_INVALID_JSON,
    MESSAGE_MISSING_FIELDS,
    RedemptionRequest,
)


# 객체 -> JSON 문자열 -> (한 번 더 문자열화된) JSON 문자열 까지만 푼다.
MAX_DECODE_DEPTH = 2


def _as_text(value: Any) -> str:
    # bool 은 int 의 하위 타입이지만 코드/유저 ID 로 취급하지 않는다.
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return ""
    return str(value)


def build_redemption_request(code: Any, user_id: Any) -> RedemptionRequest:
    """필드 존재 여부를 확인하고 정규화된 요청을 만든다. 저장소는 건드리지 않는다."""

    normalized_code = normalize_code(_as_text(code))
    normalized_user_id = _as_text(user_id).strip()
    if not normalized_code or not normalized_user_id:
        raise BadRequestError(MESSAGE_MISSING_FIELDS)
    return RedemptionRequest(code=normalized_code, user_id=normalized_user_id)


def parse_redemption_body(raw: Any) -> RedemptionRequest:
    """원본 바디(bytes / str / dict)를 RedemptionRequest 로 변환한다."""

    data = raw
    if isinstance(data, (bytes, bytearray)):
        try:
            data = bytes(data).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise BadRequestError(MESSAGE_INVALID_JSON) from exc

    for _ in range(MAX_DECODE_DEPTH):
        if not isinstance(data, str):
            break
        try:
            data = json.loads(data)
        except ValueError as exc:
            raise BadRequestError(MESSAGE_INVALID_JSON) from exc

    if not isinstance(data, Mapping):
        raise BadRequestError(MESSAGE_INVALID_JSON)

    return build_redemption_request(data.get("code"), data.get("userId"))
