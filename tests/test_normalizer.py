from __future__ import annotations

import pytest

from models.events import EventSource
from services.normalizer import (
    is_classification_payload,
    normalize_classification,
    normalize_payload,
    normalize_sensors,
    num_or_null,
    parse_timestamp,
    resolve_distance,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (12, 12.0),
        (12.5, 12.5),
        ("12.3cm", 12.3),
        (" -4 ", -4.0),
        ("1e2", 100.0),
        ("cm", None),
        ("", None),
        (None, None),
        (True, None),
        (float("nan"), None),
        (float("inf"), None),
        ({"value": 1}, None),
    ],
)
def test_num_or_null(raw, expected) -> None:
    assert num_or_null(raw) == expected


def test_nested_dual_compartment_payload() -> None:
    readings = normalize_sensors(
        {"recycle": {"ultrasonic": "18cm", "weight": 1.2}, "general": {"distance": 25}}
    )

    assert readings.recycle is not None
    assert readings.recycle.ultrasonic == 18.0
    assert readings.recycle.weight == 1.2
    assert readings.general is not None
    assert readings.general.ultrasonic == 25.0
    assert readings.general.weight is None


@pytest.mark.parametrize("alias", ["recycle", "recyclable", "blue", "comp1"])
def test_recycle_aliases(alias: str) -> None:
    readings = normalize_sensors({alias: {"dist": 7}})

    assert readings.recycle is not None
    assert readings.recycle.ultrasonic == 7.0
    assert readings.general is None


@pytest.mark.parametrize("alias", ["general", "trash", "black", "comp2", "non-recyclable"])
def test_general_aliases(alias: str) -> None:
    readings = normalize_sensors({alias: {"ultrasonic": 9}})

    assert readings.general is not None
    assert readings.general.ultrasonic == 9.0
    assert readings.recycle is None


def test_distance_key_falls_through_to_first_finite_value() -> None:
    readings = normalize_sensors({"recycle": {"ultrasonic": "n/a", "distance": None, "dist": "11"}})

    assert readings.recycle is not None
    assert readings.recycle.ultrasonic == 11.0


def test_non_object_alias_does_not_resolve_compartment() -> None:
    readings = normalize_sensors({"recyclable": "yes", "ultrasonic": 14})

    assert readings.recycle is not None
    assert readings.recycle.ultrasonic == 14.0


def test_legacy_flat_payload_maps_onto_recycle() -> None:
    readings = normalize_sensors({"distance": "20", "weight": 3})

    assert readings.recycle is not None
    assert readings.recycle.ultrasonic == 20.0
    assert readings.recycle.weight == 3.0
    assert readings.general is None


def test_flat_fields_ignored_when_compartment_resolves() -> None:
    readings = normalize_sensors({"general": {"weight": 2}, "ultrasonic": 5})

    assert readings.recycle is None
    assert readings.general is not None
    assert readings.general.ultrasonic is None


def test_unrecognized_payload_yields_empty_readings() -> None:
    assert normalize_sensors({"temperature": 21}).is_empty()
    assert normalize_sensors("garbage").is_empty()
    assert normalize_sensors(None).is_empty()


def test_resolve_distance_priority() -> None:
    both = normalize_sensors({"recycle": {"ultrasonic": 4}, "general": {"ultrasonic": 8}})
    general_only = normalize_sensors({"recycle": {"weight": 1}, "general": {"ultrasonic": 8}})
    neither = normalize_sensors({"recycle": {"weight": 1}})

    assert resolve_distance(both) == 4.0
    assert resolve_distance(general_only) == 8.0
    assert resolve_distance(neither, {"recycle": {"weight": 1}, "dist": "6"}) == 6.0
    assert resolve_distance(neither) is None


def test_classification_normalization() -> None:
    event = normalize_classification(
        EventSource.http_update,
        {
            "label": " plastic ",
            "recyclable": " YES ",
            "confidence": "0.92",
            "time_ms": 41,
            "bin_id": 7,
        },
    )

    assert event.kind == "classification"
    assert event.label == "plastic"
    assert event.recyclable == "yes"
    assert event.confidence == 0.92
    assert event.time_ms == 41.0
    assert event.bin_id == "7"
    assert event.override == 0
    assert event.sensors is None
    assert event.timestamp


@pytest.mark.parametrize("value", ["maybe", "", "  ", None, 1])
def test_unrecognized_recyclable_is_unset(value) -> None:
    event = normalize_classification(EventSource.http_update, {"label": "can", "recyclable": value})

    assert event.recyclable is None


def test_classification_degrades_invalid_fields() -> None:
    event = normalize_classification(
        EventSource.ws_vision,
        {"confidence": "high", "time_ms": -5, "override": "nope", "sensors": {"blue": {"ultrasonic": 3}}},
    )

    assert event.label is None
    assert event.confidence is None
    assert event.time_ms is None
    assert event.override == 0
    assert event.sensors is not None
    assert event.sensors.recycle.ultrasonic == 3.0  # type: ignore[union-attr]


@pytest.mark.parametrize(("value", "expected"), [(1, 1), ("1", 1), (True, 1), (0, 0), ("0", 0), (None, 0)])
def test_override_flag(value, expected: int) -> None:
    event = normalize_classification(EventSource.http_update, {"override": value})

    assert event.override == expected


def test_payload_dialect_detection() -> None:
    assert is_classification_payload({"label": "x"})
    assert is_classification_payload({"override": 0})
    assert not is_classification_payload({"sensors": {}})

    sensor_event = normalize_payload({"bin_id": "BIN-9", "sensors": {"comp1": {"ultrasonic": 3}}})
    assert sensor_event.kind == "sensors"
    assert sensor_event.bin_id == "BIN-9"
    assert sensor_event.source is EventSource.http_update


def test_supplied_timestamp_is_kept_verbatim() -> None:
    event = normalize_payload({"timestamp": "yesterday", "ultrasonic": 4})

    assert event.timestamp == "yesterday"


def test_parse_timestamp() -> None:
    parsed = parse_timestamp("2024-03-01T10:00:00Z")

    assert parsed is not None
    assert parsed.utcoffset().total_seconds() == 0  # type: ignore[union-attr]
    assert parsed.hour == 10
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(None) is None
