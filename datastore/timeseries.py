from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from threading import RLock
from typing import Callable, Dict, List, Optional

from models.records import TimeSeriesPoint
from services.normalizer import parse_timestamp
from storage.reading_log import ReadingLog, ReadingRecord

logger = logging.getLogger(__name__)

UNKNOWN_BIN_ID = "bin-unknown"

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


class TimeSeriesStore:
    """Per-bin distance samples, kept in arrival order and trimmed by age.

    Samples are never re-sorted: a bin's series is ordered by when readings
    were appended, and retention trimming only removes an expired prefix.
    """

    def __init__(
        self,
        retention_days: float = 30.0,
        reading_log: Optional[ReadingLog] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.retention = timedelta(days=retention_days)
        self.reading_log = reading_log
        self._clock = clock or _utcnow
        self._series: Dict[str, List[TimeSeriesPoint]] = {}
        self._lock = RLock()

    def now(self) -> datetime:
        return self._clock()

    def append_reading(
        self,
        bin_id: Optional[str],
        distance_cm: float,
        timestamp: object = None,
        persist: bool = True,
    ) -> TimeSeriesPoint:
        """Append one sample; unparsable timestamps fall back to the current time."""

        key = bin_id or UNKNOWN_BIN_ID
        now = self._clock()
        observed = parse_timestamp(timestamp) or now
        point = TimeSeriesPoint(bin_id=key, t=_to_ms(observed), distance_cm=float(distance_cm))

        with self._lock:
            if persist and self.reading_log is not None:
                self.reading_log.append(
                    ReadingRecord(
                        id=key,
                        distance_cm=point.distance_cm,
                        timestamp=observed.isoformat().replace("+00:00", "Z"),
                    )
                )
            series = self._series.setdefault(key, [])
            series.append(point)
            self._trim(series, now)
        return point

    def get_window(self, bin_id: str, hours: float) -> List[TimeSeriesPoint]:
        cutoff = _to_ms(self._clock() - timedelta(hours=hours))
        with self._lock:
            series = self._series.get(bin_id, [])
            return [point for point in series if point.t >= cutoff]

    def series(self, bin_id: str) -> List[TimeSeriesPoint]:
        with self._lock:
            return list(self._series.get(bin_id, []))

    def bins(self) -> List[str]:
        with self._lock:
            return sorted(self._series)

    def replay(self) -> int:
        """Rebuild in-memory series from the reading log. Returns the sample count."""

        if self.reading_log is None:
            return 0
        count = 0
        for record in self.reading_log.replay():
            self.append_reading(record.id, record.distance_cm, record.timestamp, persist=False)
            count += 1
        logger.info(
            "Replayed %d samples from reading log",
            count,
            extra={"path": str(self.reading_log.path)},
        )
        return count

    def _trim(self, series: List[TimeSeriesPoint], now: datetime) -> None:
        cutoff = _to_ms(now - self.retention)
        expired = 0
        for point in series:
            if point.t >= cutoff:
                break
            expired += 1
        if expired:
            del series[:expired]

