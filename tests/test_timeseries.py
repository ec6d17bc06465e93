from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

from datastore.timeseries import UNKNOWN_BIN_ID, TimeSeriesStore
from storage.reading_log import ReadingLog

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _iso(moment: datetime) -> str:
    return moment.isoformat().replace("+00:00", "Z")


def _store(**kwargs) -> TimeSeriesStore:
    return TimeSeriesStore(clock=lambda: NOW, **kwargs)


def test_append_and_window() -> None:
    store = _store()
    store.append_reading("BIN-1", 20.0, _iso(NOW - timedelta(hours=5)))
    store.append_reading("BIN-1", 18.0, _iso(NOW - timedelta(hours=1)))
    store.append_reading("BIN-2", 10.0, _iso(NOW))

    window = store.get_window("BIN-1", 2)

    assert [point.distance_cm for point in window] == [18.0]
    assert len(store.get_window("BIN-1", 24)) == 2
    assert store.get_window("missing", 24) == []
    assert store.bins() == ["BIN-1", "BIN-2"]


def test_window_does_not_mutate_series() -> None:
    store = _store()
    store.append_reading("BIN-1", 20.0, _iso(NOW - timedelta(hours=5)))

    store.get_window("BIN-1", 1)

    assert len(store.series("BIN-1")) == 1


def test_append_preserves_insertion_order_without_sorting() -> None:
    store = _store()
    store.append_reading("BIN-1", 1.0, _iso(NOW - timedelta(hours=1)))
    store.append_reading("BIN-1", 2.0, _iso(NOW - timedelta(hours=3)))

    assert [point.distance_cm for point in store.series("BIN-1")] == [1.0, 2.0]


def test_unparsable_timestamp_defaults_to_now() -> None:
    store = _store()

    point = store.append_reading(None, 12.0, "not-a-timestamp")

    assert point.bin_id == UNKNOWN_BIN_ID
    assert point.t == int(NOW.timestamp() * 1000)


def test_retention_trims_only_the_expired_prefix() -> None:
    store = _store()
    old = [NOW - timedelta(days=40), NOW - timedelta(days=35), NOW - timedelta(days=31)]
    for index, moment in enumerate(old):
        store.append_reading("BIN-1", float(index), _iso(moment), persist=False)

    store.append_reading("BIN-1", 9.0, _iso(NOW - timedelta(days=1)))

    assert [point.distance_cm for point in store.series("BIN-1")] == [9.0]


def test_retention_stops_at_first_fresh_point() -> None:
    store = _store()
    store.append_reading("BIN-1", 1.0, _iso(NOW - timedelta(days=45)))
    store.append_reading("BIN-1", 2.0, _iso(NOW - timedelta(days=2)))
    store.append_reading("BIN-1", 3.0, _iso(NOW - timedelta(days=60)))

    # the stale point after a fresh one stays until everything before it expires
    assert [point.distance_cm for point in store.series("BIN-1")] == [2.0, 3.0]


def test_append_persists_one_line_per_reading(tmp_path: Path) -> None:
    log_path = tmp_path / "readings.jsonl"
    store = _store(reading_log=ReadingLog(log_path))

    store.append_reading("BIN-1", 12.5, "2024-06-01T10:00:00Z")
    store.append_reading("BIN-2", 8.0, "2024-06-01T11:00:00+00:00")

    lines = log_path.read_text().splitlines()
    assert len(lines) == 2
    assert json.loads(lines[0]) == {
        "id": "BIN-1",
        "distance_cm": 12.5,
        "timestamp": "2024-06-01T10:00:00Z",
    }


def test_replay_reconstructs_identical_state(tmp_path: Path) -> None:
    log_path = tmp_path / "readings.jsonl"
    original = _store(reading_log=ReadingLog(log_path))
    for hours in (30, 20, 10):
        original.append_reading("BIN-1", float(hours), _iso(NOW - timedelta(hours=hours)))
    original.append_reading("BIN-2", 3.0, _iso(NOW))

    replayed = _store(reading_log=ReadingLog(log_path))
    count = replayed.replay()

    assert count == 4
    for bin_id in ("BIN-1", "BIN-2"):
        assert replayed.series(bin_id) == original.series(bin_id)
    assert len(log_path.read_text().splitlines()) == 4


def test_replay_skips_malformed_lines(tmp_path: Path) -> None:
    log_path = tmp_path / "readings.jsonl"
    log_path.write_text(
        "\n".join(
            [
                json.dumps({"id": "BIN-1", "distance_cm": 10, "timestamp": _iso(NOW)}),
                "{not json",
                json.dumps({"id": "BIN-1", "timestamp": _iso(NOW)}),
                json.dumps([1, 2, 3]),
                "",
                json.dumps({"id": "BIN-1", "distance_cm": 7.5, "timestamp": _iso(NOW)}),
            ]
        )
    )
    store = _store(reading_log=ReadingLog(log_path))

    assert store.replay() == 2
    assert [point.distance_cm for point in store.series("BIN-1")] == [10.0, 7.5]


def test_replay_without_log_file_is_empty(tmp_path: Path) -> None:
    store = _store(reading_log=ReadingLog(tmp_path / "missing" / "readings.jsonl"))

    assert store.replay() == 0
    assert store.bins() == []


def test_replay_survives_undecodable_bytes(tmp_path: Path) -> None:
    log_path = tmp_path / "readings.jsonl"
    record = json.dumps({"id": "BIN-1", "distance_cm": 10, "timestamp": _iso(NOW)})
    log_path.write_bytes(record.encode("utf-8") + b"\n\xff\xfe garbage\n")
    store = _store(reading_log=ReadingLog(log_path))

    assert store.replay() == 1
    assert [point.distance_cm for point in store.series("BIN-1")] == [10.0]
