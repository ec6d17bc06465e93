"""Payload normalization for bin devices.

Devices in the field send several payload dialects: dual-compartment sensors
with nested per-compartment objects, older single-compartment sensors with
flat fields, and vision classifiers with loosely typed fields. Everything in
this module is total: unrecognized or malformed input degrades to ``None``
fields instead of raising.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from models.events import (
    ClassificationEvent,
    CompartmentReading,
    CompartmentReadings,
    EventSource,
    SensorEvent,
)

RECYCLE_ALIASES = ("recycle", "recyclable", "blue", "comp1")
GENERAL_ALIASES = ("general", "non-recyclable", "nonrecycle", "trash", "black", "comp2")
DISTANCE_KEYS = ("ultrasonic", "distance", "dist")
RECYCLABLE_TOKENS = ("yes", "no", "contaminated")
CLASSIFICATION_KEYS = ("label", "recyclable", "override")

_NON_NUMERIC = re.compile(r"[^0-9.+\-eE]")

SensorDialect = Callable[[Mapping[str, Any]], Optional[CompartmentReadings]]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def num_or_null(value: Any) -> Optional[float]:
    """Coerce a device value to a finite float, tolerating unit suffixes."""

    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        cleaned = _NON_NUMERIC.sub("", value)
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def safe_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _first_finite(source: Mapping[str, Any], keys: tuple[str, ...]) -> Optional[float]:
    for key in keys:
        number = num_or_null(source.get(key))
        if number is not None:
            return number
    return None


def _resolve_compartment(raw: Mapping[str, Any], aliases: tuple[str, ...]) -> Optional[Mapping[str, Any]]:
    for alias in aliases:
        candidate = raw.get(alias)
        if isinstance(candidate, Mapping):
            return candidate
    return None


def _read_compartment(source: Mapping[str, Any]) -> CompartmentReading:
    return CompartmentReading(
        ultrasonic=_first_finite(source, DISTANCE_KEYS),
        weight=num_or_null(source.get("weight")),
    )


def parse_dual_compartment(raw: Mapping[str, Any]) -> Optional[CompartmentReadings]:
    """Nested ``{"recycle": {...}, "general": {...}}`` payloads and their aliases."""

    recycle_src = _resolve_compartment(raw, RECYCLE_ALIASES)
    general_src = _resolve_compartment(raw, GENERAL_ALIASES)
    if recycle_src is None and general_src is None:
        return None
    return CompartmentReadings(
        recycle=_read_compartment(recycle_src) if recycle_src is not None else None,
        general=_read_compartment(general_src) if general_src is not None else None,
    )


def parse_legacy_flat(raw: Mapping[str, Any]) -> Optional[CompartmentReadings]:
    """Single-compartment devices report flat fields; they map onto ``recycle``."""

    reading = _read_compartment(raw)
    if reading.ultrasonic is None and reading.weight is None:
        return None
    return CompartmentReadings(recycle=reading)


SENSOR_DIALECTS: tuple[tuple[str, SensorDialect], ...] = (
    ("dual-compartment", parse_dual_compartment),
    ("legacy-flat", parse_legacy_flat),
)


def normalize_sensors(raw: Any) -> CompartmentReadings:
    if not isinstance(raw, Mapping):
        return CompartmentReadings()
    for _name, dialect in SENSOR_DIALECTS:
        readings = dialect(raw)
        if readings is not None:
            return readings
    return CompartmentReadings()


def flat_distance(raw: Any) -> Optional[float]:
    if not isinstance(raw, Mapping):
        return None
    return _first_finite(raw, DISTANCE_KEYS)


def resolve_distance(readings: CompartmentReadings, raw: Any = None) -> Optional[float]:
    """Pick the distance that drives the time series for one reading.

    Priority: recycle ultrasonic, general ultrasonic, then flat legacy fields
    on the raw payload.
    """

    if readings.recycle is not None and readings.recycle.ultrasonic is not None:
        return readings.recycle.ultrasonic
    if readings.general is not None and readings.general.ultrasonic is not None:
        return readings.general.ultrasonic
    return flat_distance(raw)


def normalize_recyclable(value: Any) -> Optional[str]:
    if value is None:
        return None
    token = str(value).strip().lower()
    return token if token in RECYCLABLE_TOKENS else None


def normalize_override(value: Any) -> int:
    if value is True:
        return 1
    number = num_or_null(value)
    return 1 if number else 0


def _timestamp_or_now(value: Any) -> str:
    return safe_str(value) or utc_now_iso()


def is_classification_payload(raw: Any) -> bool:
    if not isinstance(raw, Mapping):
        return False
    return any(key in raw for key in CLASSIFICATION_KEYS)


def sensor_source(raw: Mapping[str, Any]) -> Any:
    sensors = raw.get("sensors")
    return sensors if isinstance(sensors, Mapping) else raw


def normalize_sensor_event(source: EventSource, raw: Any) -> SensorEvent:
    payload = raw if isinstance(raw, Mapping) else {}
    return SensorEvent(
        source=source,
        bin_id=safe_str(payload.get("bin_id")),
        timestamp=_timestamp_or_now(payload.get("timestamp")),
        sensors=normalize_sensors(sensor_source(payload)),
    )


def normalize_classification(source: EventSource, raw: Any) -> ClassificationEvent:
    payload = raw if isinstance(raw, Mapping) else {}
    time_ms = num_or_null(payload.get("time_ms"))
    if time_ms is not None and time_ms < 0:
        time_ms = None
    sensors = normalize_sensors(payload.get("sensors"))
    return ClassificationEvent(
        source=source,
        bin_id=safe_str(payload.get("bin_id")),
        label=safe_str(payload.get("label")),
        confidence=num_or_null(payload.get("confidence")),
        time_ms=time_ms,
        timestamp=_timestamp_or_now(payload.get("timestamp")),
        recyclable=normalize_recyclable(payload.get("recyclable")),
        override=normalize_override(payload.get("override")),
        sensors=None if sensors.is_empty() else sensors,
    )


def normalize_payload(
    raw: Any,
    source: EventSource = EventSource.http_update,
) -> SensorEvent | ClassificationEvent:
    if is_classification_payload(raw):
        return normalize_classification(source, raw)
    return normalize_sensor_event(source, raw)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware UTC datetime, or ``None``."""

    if isinstance(value, datetime):
        parsed = value
    else:
        candidate = safe_str(value)
        if candidate is None:
            return None
        if candidate.endswith("Z"):
            candidate = candidate[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
