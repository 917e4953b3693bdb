"""Runtime settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from nexus_engine.exceptions import NexusEngineError

# Nexus rules are evaluated for US jurisdictions only.
COUNTRY_CODE = "US"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise NexusEngineError(f"{name} must be an integer, got {raw!r}") from None
    if value < 0:
        raise NexusEngineError(f"{name} must not be negative, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    log_level: str = "WARNING"
    thresholds_file: Optional[str] = None
    cache_ttl_seconds: int = 0
    reports_dir: str = "reports"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env

        level = env.get("NEXUS_LOG_LEVEL", "WARNING").strip().upper()
        if level not in _LOG_LEVELS:
            raise NexusEngineError(f"NEXUS_LOG_LEVEL is not a log level: {level!r}")

        return cls(
            log_level=level,
            thresholds_file=env.get("NEXUS_THRESHOLDS_FILE") or None,
            cache_ttl_seconds=_int_setting(env, "NEXUS_CACHE_TTL_SECONDS", 0),
            reports_dir=env.get("NEXUS_REPORTS_DIR") or "reports",
        )
