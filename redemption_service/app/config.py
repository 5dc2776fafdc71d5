from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


DEFAULT_CONFIG_FILE_NAME = "config.yaml"

DEFAULT_DURATION_DAYS = 30
DEFAULT_MAX_APPLY_ATTEMPTS = 5
DEFAULT_CLAIM_LEASE_SECONDS = 60


@dataclass(slots=True)
class PlanConfig:
    """구독 도큐먼트에 함께 기록하는 플랜 메타데이터."""

    id: str = "PREMIUM_ACCESS"
    name: str = "Premium Nurse Learning Corner"
    auto_renew: bool = False


@dataclass(slots=True)
class RedemptionConfig:
    default_duration_days: int = DEFAULT_DURATION_DAYS
    max_apply_attempts: int = DEFAULT_MAX_APPLY_ATTEMPTS
    claim_lease_seconds: int = DEFAULT_CLAIM_LEASE_SECONDS
    access_codes_collection: str = "accessCodes"
    subscriptions_collection: str = "subscriptions"
    plan: PlanConfig = field(default_factory=PlanConfig)


@dataclass(slots=True)
class AppConfig:
    """redemption-service 전체 설정 루트.

    - Mongo 접속 정보와 로그 레벨은 환경 변수(common.mongo.config, common.logger)에서 읽는다.
    - 코드 교환 정책은 config.yaml 의 redemption 섹션에서 읽는다.
    """

    redemption: RedemptionConfig


def _find_config_path() -> Path | None:
    """현재 작업 디렉토리 기준으로 상위로 올라가며 config.yaml 을 찾는다.

    파일이 없으면 None 을 반환하고 기본값으로 동작한다.
    """

    current = Path.cwd()
    for directory in (current, *current.parents):
        candidate = directory / DEFAULT_CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def _positive_int(section: dict[str, Any], key: str, default: int, path: Path) -> int:
    raw = section.get(key, default)
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:  # noqa: TRY003
        raise RuntimeError(f"invalid redemption.{key} in {path}: {raw!r}") from exc
    if value <= 0:
        raise RuntimeError(f"redemption.{key} must be positive in {path}: {raw!r}")
    return value


def _non_blank(section: dict[str, Any], key: str, default: str) -> str:
    return str(section.get(key) or default).strip() or default


def parse_redemption_config(data: dict[str, Any], path: Path) -> RedemptionConfig:
    section = data.get("redemption") or {}
    if not isinstance(section, dict):
        raise RuntimeError(f"redemption section must be a mapping in {path}")

    defaults = RedemptionConfig()
    plan_raw = section.get("plan") or {}
    if not isinstance(plan_raw, dict):
        raise RuntimeError(f"redemption.plan must be a mapping in {path}")

    plan = PlanConfig(
        id=_non_blank(plan_raw, "id", defaults.plan.id),
        name=_non_blank(plan_raw, "name", defaults.plan.name),
        auto_renew=bool(plan_raw.get("auto_renew", defaults.plan.auto_renew)),
    )

    return RedemptionConfig(
        default_duration_days=_positive_int(
            section, "default_duration_days", defaults.default_duration_days, path
        ),
        max_apply_attempts=_positive_int(
            section, "max_apply_attempts", defaults.max_apply_attempts, path
        ),
        claim_lease_seconds=_positive_int(
            section, "claim_lease_seconds", defaults.claim_lease_seconds, path
        ),
        access_codes_collection=_non_blank(
            section, "access_codes_collection", defaults.access_codes_collection
        ),
        subscriptions_collection=_non_blank(
            section, "subscriptions_collection", defaults.subscriptions_collection
        ),
        plan=plan,
    )


def load_config(path: Path | None = None) -> AppConfig:
    """redemption-service 설정을 로드하여 AppConfig 로 반환한다."""

    path = path or _find_config_path()
    if path is None:
        return AppConfig(redemption=RedemptionConfig())

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise RuntimeError(f"{path} must contain a mapping at the top level")

    return AppConfig(redemption=parse_redemption_config(data, path))


_config: AppConfig | None = None


def get_config() -> AppConfig:
    """프로세스 단위로 한 번만 읽어서 재사용한다."""

    global _config
    if _config is None:
        _config = load_config()
    return _config
