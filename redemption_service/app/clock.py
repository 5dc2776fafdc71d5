from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    """현재 시각 공급자. 만료 경계 테스트를 위해 서비스에 주입한다."""

    def now(self) -> datetime:  # pragma: no cover - Protocol
        ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)
