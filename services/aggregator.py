"""Aggregation logic for the company dashboard."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from datastore.timeseries import UNKNOWN_BIN_ID
from models.events import ClassificationEvent, FillState, SensorEvent
from services.forecast import fill_state, state_colour
from services.normalizer import parse_timestamp
from services.trend import percent_full, round_half_up

Event = SensorEvent | ClassificationEvent

MIX_TOP_N = 4
MS_PER_DAY = 86_400_000


@dataclass
class BinStatus:
    """Latest known status of one bin."""

    bin_id: str
    fill_pct: Optional[int]
    state: FillState
    colour: str
    deposit: Optional[str]
    contamination: Optional[str]
    timestamp: str


@dataclass
class CompanySummary:
    """KPIs computed over the event history."""

    recycling_rate: float = 0.0
    contamination_rate: float = 0.0
    collections_per_day: float = 0.0
    time_to_full_days: Optional[float] = None
    mix: Dict[str, int] = field(default_factory=dict)
    mis_sorts_by_weekday: List[int] = field(default_factory=lambda: [0] * 7)
    bins: int = 0


def _event_time(event: Event, default: datetime) -> datetime:
    return parse_timestamp(event.timestamp) or default


def _is_classification(event: Event) -> bool:
    return event.kind == "classification"


def _round_fraction(value: float) -> float:
    return round_half_up(value * 1000) / 1000


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def __init__(self, bin_height_cm: float) -> None:
        self.bin_height_cm = bin_height_cm

    def fill_pct(self, event: Event) -> Optional[int]:
        sensors = event.sensors
        if sensors is None:
            return None
        distance = None
        if sensors.recycle is not None and sensors.recycle.ultrasonic is not None:
            distance = sensors.recycle.ultrasonic
        elif sensors.general is not None and sensors.general.ultrasonic is not None:
            distance = sensors.general.ultrasonic
        return percent_full(distance, self.bin_height_cm)

    def latest_per_bin(self, events: Iterable[Event]) -> Dict[str, Event]:
        latest: Dict[str, Event] = {}
        latest_at: Dict[str, Optional[datetime]] = {}
        for event in events:
            key = event.bin_id or UNKNOWN_BIN_ID
            observed = parse_timestamp(event.timestamp)
            if key not in latest:
                latest[key] = event
                latest_at[key] = observed
                continue
            current = latest_at[key]
            if observed is not None and (current is None or observed > current):
                latest[key] = event
                latest_at[key] = observed
        return latest

    def bin_statuses(self, events: Iterable[Event]) -> List[BinStatus]:
        rows: List[BinStatus] = []
        for bin_id, event in self.latest_per_bin(events).items():
            pct = self.fill_pct(event)
            state = fill_state(pct)
            label = getattr(event, "label", None)
            recyclable = getattr(event, "recyclable", None)
            if recyclable == "contaminated":
                contamination = label or "Contaminated"
            elif recyclable == "no":
                contamination = label
            else:
                contamination = None
            rows.append(
                BinStatus(
                    bin_id=bin_id,
                    fill_pct=pct,
                    state=state,
                    colour=state_colour(state),
                    deposit=label,
                    contamination=contamination,
                    timestamp=event.timestamp,
                )
            )
        return sorted(rows, key=lambda row: row.bin_id)

    def summarize(self, events: Sequence[Event], now: Optional[datetime] = None) -> CompanySummary:
        now = now or datetime.now(timezone.utc)
        summary = CompanySummary()
        summary.bins = len(self.latest_per_bin(events))

        classifications = [event for event in events if _is_classification(event)]
        total = len(classifications) or 1
        recycled = sum(1 for event in classifications if event.recyclable == "yes")
        contaminated = sum(1 for event in classifications if event.recyclable == "contaminated")
        summary.recycling_rate = _round_fraction(recycled / total)
        summary.contamination_rate = _round_fraction(contaminated / total)

        mix = Counter(event.label or "Other" for event in classifications)
        top = dict(mix.most_common(MIX_TOP_N - 1))
        others = sum(count for label, count in mix.items() if label not in top)
        if others:
            top["Other"] = top.get("Other", 0) + others
        summary.mix = top

        for event in classifications:
            if event.recyclable != "yes":
                weekday = (_event_time(event, now).weekday() + 1) % 7
                summary.mis_sorts_by_weekday[weekday] += 1

        summary.collections_per_day = self.collections_per_day(events, now)
        summary.time_to_full_days = self.time_to_full_days(events, now)
        return summary

    def _per_bin_chronological(self, events: Iterable[Event], now: datetime) -> Dict[str, List[Event]]:
        grouped: Dict[str, List[Event]] = {}
        for event in events:
            grouped.setdefault(event.bin_id or UNKNOWN_BIN_ID, []).append(event)
        for items in grouped.values():
            items.sort(key=lambda event: _event_time(event, now))
        return grouped

    def collections_per_day(self, events: Sequence[Event], now: datetime) -> float:
        """Count full-to-empty drops (>= 90% then <= 20% within 1.5 days) per day of history."""

        count = 0
        for items in self._per_bin_chronological(events, now).values():
            last_high: Optional[datetime] = None
            for event in items:
                pct = self.fill_pct(event)
                if pct is None:
                    continue
                observed = _event_time(event, now)
                if pct >= 90:
                    last_high = observed
                if last_high is not None and pct <= 20:
                    if (observed - last_high).total_seconds() / 86400 <= 1.5:
                        count += 1
                    last_high = None

        times = [_event_time(event, now) for event in events]
        span_days = 1.0
        if times:
            span_days = max(1.0, (max(times) - min(times)).total_seconds() / 86400)
        return max(0.0, round_half_up(count / span_days * 10) / 10)

    def time_to_full_days(self, events: Sequence[Event], now: datetime) -> Optional[float]:
        """Median days-to-full across bins, from each bin's first-to-last fill slope."""

        estimates: List[float] = []
        for items in self._per_bin_chronological(events, now).values():
            points: List[tuple[float, int]] = []
            for event in items:
                pct = self.fill_pct(event)
                if pct is not None:
                    points.append((_event_time(event, now).timestamp() * 1000 / MS_PER_DAY, pct))
            if len(points) < 2:
                continue
            (first_t, first_y), (last_t, last_y) = points[0], points[-1]
            elapsed = last_t - first_t
            if elapsed <= 0:
                continue
            slope_per_day = (last_y - first_y) / elapsed
            remaining = 100 - last_y
            if slope_per_day <= 0 or remaining <= 0:
                continue
            estimates.append(remaining / slope_per_day)

        if not estimates:
            return None
        estimates.sort()
        return round_half_up(estimates[len(estimates) // 2] * 10) / 10
