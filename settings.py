from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_BIN_HEIGHT_ENV = "BIN_HEIGHT_CM"
_HISTORY_CAPACITY_ENV = "HISTORY_CAPACITY"
_RETENTION_DAYS_ENV = "SERIES_RETENTION_DAYS"
_READING_LOG_PATH_ENV = "READING_LOG_PATH"
_WARNING_THRESHOLD_ENV = "WARNING_THRESHOLD_PCT"
_PICKUP_HORIZON_ENV = "PICKUP_HORIZON_HOURS"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    bin_height_cm: float
    history_capacity: int
    retention_days: float
    reading_log_path: Optional[str]
    warning_threshold_pct: float
    pickup_horizon_hours: float
    log_level: str


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        bin_height_cm=_read_positive_float(_BIN_HEIGHT_ENV, 30.0),
        history_capacity=_read_positive_int(_HISTORY_CAPACITY_ENV, 200),
        retention_days=_read_positive_float(_RETENTION_DAYS_ENV, 30.0),
        reading_log_path=_read_optional_env(_READING_LOG_PATH_ENV, "./tmp/readings.jsonl"),
        warning_threshold_pct=_read_positive_float(_WARNING_THRESHOLD_ENV, 90.0),
        pickup_horizon_hours=_read_positive_float(_PICKUP_HORIZON_ENV, 48.0),
        log_level=_read_log_level("INFO"),
    )
