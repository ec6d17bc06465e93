"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(slots=True)
class TimeSeriesPoint:
    """A single distance sample for one bin."""

    bin_id: str
    t: int
    distance_cm: float

    @property
    def observed_at(self) -> datetime:
        return datetime.fromtimestamp(self.t / 1000, tz=timezone.utc)


@dataclass(slots=True)
class PercentSample:
    """A fill-percent sample positioned in epoch milliseconds."""

    t: int
    percent: float
