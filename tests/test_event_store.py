"""Unit tests for the bounded event history."""

from __future__ import annotations

from typing import List

import pytest

from datastore.event_store import EventStore
from models.events import ClassificationEvent, EventSource, SensorEvent


def _sensor(index: int) -> SensorEvent:
    return SensorEvent(
        id=f"evt-{index}",
        source=EventSource.http_update,
        bin_id="BIN-001",
        timestamp=f"2024-01-01T00:{index % 60:02d}:00Z",
    )


def _classification(index: int, label: str = "plastic") -> ClassificationEvent:
    return ClassificationEvent(
        id=f"cls-{index}",
        source=EventSource.ws_vision,
        label=label,
        timestamp="2024-01-01T00:00:00Z",
    )


def test_record_assigns_id_and_sets_last_result() -> None:
    store = EventStore(capacity=5)
    event = SensorEvent(source=EventSource.http_update, timestamp="2024-01-01T00:00:00Z")

    stored = store.record(event)

    assert stored.id
    assert store.last_result is stored
    assert store.history() == [stored]


def test_capacity_plus_one_evicts_only_the_first_entry() -> None:
    capacity = 200
    store = EventStore(capacity=capacity)
    events = [_sensor(index) for index in range(capacity + 1)]

    for event in events:
        store.record(event)

    history = store.history()
    assert len(history) == capacity
    assert events[0] not in history
    assert [event.id for event in history] == [event.id for event in events[1:]]


def test_eviction_follows_insertion_order_not_timestamps() -> None:
    store = EventStore(capacity=2)
    late = SensorEvent(id="late", source=EventSource.http_update, timestamp="2030-01-01T00:00:00Z")
    early = SensorEvent(id="early", source=EventSource.http_update, timestamp="2000-01-01T00:00:00Z")

    store.record(late)
    store.record(early)
    store.record(_sensor(1))

    assert [event.id for event in store.history()] == ["early", "evt-1"]


def test_broadcast_is_notified_for_every_record() -> None:
    received: List[str] = []
    store = EventStore(capacity=3, broadcast=lambda event: received.append(event.id))

    store.record(_sensor(1))
    store.record(_classification(2))

    assert received == ["evt-1", "cls-2"]


def test_remove_last_result_falls_back_to_tail() -> None:
    store = EventStore(capacity=5)
    first, second = _sensor(1), _sensor(2)
    store.record(first)
    store.record(second)

    removed = store.remove_by_id("evt-2")

    assert removed is second
    assert store.last_result is first


def test_remove_other_entry_keeps_last_result() -> None:
    store = EventStore(capacity=5)
    first, second = _sensor(1), _sensor(2)
    store.record(first)
    store.record(second)

    store.remove_by_id("evt-1")

    assert store.last_result is second
    assert store.history() == [second]


def test_remove_only_entry_clears_last_result() -> None:
    store = EventStore(capacity=5)
    store.record(_sensor(1))

    store.remove_by_id("evt-1")

    assert store.last_result is None
    assert len(store) == 0


def test_remove_unknown_id_is_noop() -> None:
    store = EventStore(capacity=5)
    event = store.record(_sensor(1))

    assert store.remove_by_id("missing") is None
    assert store.last_result is event
    assert store.history() == [event]


def test_remove_deletes_first_match_only() -> None:
    store = EventStore(capacity=5)
    store.record(_sensor(1))
    duplicate = _sensor(1)
    store.record(duplicate)

    store.remove_by_id("evt-1")

    assert store.history() == [duplicate]
    assert store.history()[0] is duplicate


def test_filter_classifications_newest_first_with_limit() -> None:
    store = EventStore(capacity=50)
    for index in range(30):
        store.record(_classification(index) if index % 2 else _sensor(index))

    items = store.filter_classifications(limit=3)

    assert [item.id for item in items] == ["cls-29", "cls-27", "cls-25"]
    assert len(store.filter_classifications()) == 15
    assert len(store.filter_classifications(limit=0)) == 15
    assert len(store.filter_classifications(limit=-4)) == 1


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError):
        EventStore(capacity=0)
