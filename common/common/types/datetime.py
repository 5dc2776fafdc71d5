from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from pydantic.functional_serializers import PlainSerializer


def serialize_datetime_to_utc_iso8601(value: datetime) -> str:
    """모든 datetime을 UTC 기준 ISO8601 문자열로 직렬화한다.

    모바일 클라이언트는 `new Date(endDate)` 로 파싱하므로 밀리초 + "Z" 형태를 맞춘다.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


UtcDateTime = Annotated[
    datetime,
    PlainSerializer(
        serialize_datetime_to_utc_iso8601,
        return_type=str,
        when_used="json",
    ),
]
