"""Unit tests for the company dashboard aggregation."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from models.events import (
    ClassificationEvent,
    CompartmentReading,
    CompartmentReadings,
    EventSource,
    FillState,
    SensorEvent,
)
from services.aggregator import UNKNOWN_BIN_ID, Aggregator

NOW = datetime(2024, 6, 5, 12, 0, tzinfo=timezone.utc)


def _sensor(bin_id: Optional[str], distance: float, timestamp: str, general: bool = False) -> SensorEvent:
    reading = CompartmentReading(ultrasonic=distance)
    sensors = CompartmentReadings(general=reading) if general else CompartmentReadings(recycle=reading)
    return SensorEvent(source=EventSource.http_update, bin_id=bin_id, timestamp=timestamp, sensors=sensors)


def _classification(label: Optional[str], recyclable: Optional[str], timestamp: str = "2024-06-03T09:00:00Z") -> ClassificationEvent:
    return ClassificationEvent(
        source=EventSource.ws_vision,
        bin_id="BIN-1",
        label=label,
        recyclable=recyclable,
        timestamp=timestamp,
    )


def test_summarize_empty_history_returns_defaults() -> None:
    summary = Aggregator(bin_height_cm=30).summarize([], NOW)

    assert summary.bins == 0
    assert summary.recycling_rate == 0.0
    assert summary.contamination_rate == 0.0
    assert summary.collections_per_day == 0.0
    assert summary.time_to_full_days is None
    assert summary.mix == {}
    assert summary.mis_sorts_by_weekday == [0] * 7


def test_fill_pct_prefers_recycle_then_general() -> None:
    aggregator = Aggregator(bin_height_cm=30)

    assert aggregator.fill_pct(_sensor("BIN-1", 5, "2024-06-01T00:00:00Z")) == 83
    assert aggregator.fill_pct(_sensor("BIN-1", 15, "2024-06-01T00:00:00Z", general=True)) == 50
    assert aggregator.fill_pct(_classification("can", "yes")) is None


def test_latest_per_bin_uses_timestamps() -> None:
    newer = _sensor("BIN-1", 10, "2024-06-02T00:00:00Z")
    older = _sensor("BIN-1", 20, "2024-06-01T00:00:00Z")
    garbled = _sensor("BIN-1", 25, "yesterday-ish")
    anonymous = _sensor(None, 5, "2024-06-01T00:00:00Z")

    latest = Aggregator(bin_height_cm=30).latest_per_bin([newer, older, garbled, anonymous])

    assert latest["BIN-1"] is newer
    assert latest[UNKNOWN_BIN_ID] is anonymous


def test_bin_statuses_report_contamination() -> None:
    events = [
        _sensor("BIN-2", 3, "2024-06-01T08:00:00Z"),
        _classification("bottle", "contaminated"),
    ]

    rows = Aggregator(bin_height_cm=30).bin_statuses(events)

    assert [row.bin_id for row in rows] == ["BIN-1", "BIN-2"]
    assert rows[0].deposit == "bottle"
    assert rows[0].contamination == "bottle"
    assert rows[0].state is FillState.unknown
    assert rows[1].fill_pct == 90
    assert rows[1].colour == "red"
    assert rows[1].contamination is None


def test_summarize_rates_mix_and_weekdays() -> None:
    labels = ["can"] * 4 + ["paper"] * 3 + ["glass"] * 2 + ["foil", "cup"]
    events = [_classification(label, "yes") for label in labels]
    # 2024-06-03 is a Monday, 2024-06-02 a Sunday
    events.append(_classification("can", "no", "2024-06-03T10:00:00Z"))
    events.append(_classification("cup", "contaminated", "2024-06-02T10:00:00Z"))

    summary = Aggregator(bin_height_cm=30).summarize(events, NOW)

    assert summary.recycling_rate == round(11 / 13, 3)
    assert summary.contamination_rate == round(1 / 13, 3)
    assert summary.mix == {"can": 5, "paper": 3, "glass": 2, "Other": 3}
    assert summary.mis_sorts_by_weekday == [1, 1, 0, 0, 0, 0, 0]
    assert summary.bins == 1


def test_collections_per_day_counts_full_to_empty_drops() -> None:
    events = [
        _sensor("BIN-1", 1.5, "2024-06-01T00:00:00Z"),
        _sensor("BIN-1", 27, "2024-06-01T12:00:00Z"),
        _sensor("BIN-1", 1.5, "2024-06-02T00:00:00Z"),
        # emptied too late to count as a collection
        _sensor("BIN-1", 27, "2024-06-04T00:00:00Z"),
    ]

    assert Aggregator(bin_height_cm=30).collections_per_day(events, NOW) == round(1 / 3, 1)


def test_time_to_full_is_median_of_rising_bins() -> None:
    events = [
        _sensor("BIN-1", 24, "2024-06-01T00:00:00Z"),
        _sensor("BIN-1", 12, "2024-06-03T00:00:00Z"),
        _sensor("BIN-2", 15, "2024-06-01T00:00:00Z"),
        _sensor("BIN-2", 15, "2024-06-02T00:00:00Z"),
        _sensor("BIN-3", 20, "2024-06-02T00:00:00Z"),
    ]

    assert Aggregator(bin_height_cm=30).time_to_full_days(events, NOW) == 2.0
