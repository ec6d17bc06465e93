"""Fill status, threshold ETAs and pickup ranking."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence

from models.events import FillState
from models.records import PercentSample
from services.trend import (
    MS_PER_HOUR,
    TrendMethod,
    clamp,
    linear_regression,
    moving_average_slope,
    project_moving_average,
    within_lookback,
)

OK_BELOW_PCT = 70
FULL_FROM_PCT = 90
WARNING_THRESHOLD_PCT = 90.0
FULL_THRESHOLD_PCT = 100.0

STATE_COLOURS = {
    FillState.unknown: "grey",
    FillState.ok: "green",
    FillState.getting_full: "orange",
    FillState.full: "red",
}


def fill_state(percent: Optional[float]) -> FillState:
    """Status for the current percent. No hysteresis: every reading re-evaluates."""

    if percent is None:
        return FillState.unknown
    if percent < OK_BELOW_PCT:
        return FillState.ok
    if percent < FULL_FROM_PCT:
        return FillState.getting_full
    return FillState.full


def state_colour(state: FillState) -> str:
    return STATE_COLOURS.get(state, "grey")


def eta_hours(current: Optional[float], slope_per_hr: Optional[float], threshold: float) -> Optional[float]:
    """Hours until ``current`` reaches ``threshold`` at a constant positive slope."""

    if current is None or slope_per_hr is None:
        return None
    if slope_per_hr <= 0 or current >= threshold:
        return None
    return (threshold - current) / slope_per_hr


def eta_at(
    now: datetime,
    current: Optional[float],
    slope_per_hr: Optional[float],
    threshold: float,
) -> Optional[datetime]:
    hours = eta_hours(current, slope_per_hr, threshold)
    if hours is None:
        return None
    try:
        return now + timedelta(hours=hours)
    except OverflowError:
        # slopes near zero put the ETA past the last representable datetime
        return None


@dataclass(frozen=True)
class ProjectedPoint:
    t: int
    percent_full: float

    @property
    def timestamp(self) -> datetime:
        return datetime.fromtimestamp(self.t / 1000, tz=timezone.utc)


@dataclass
class Forecast:
    bin_id: str
    method: TrendMethod
    current_percent: Optional[float]
    slope_per_hr: Optional[float]
    eta_warning: Optional[datetime]
    eta_full: Optional[datetime]
    points: List[ProjectedPoint] = field(default_factory=list)

    @property
    def state(self) -> FillState:
        return fill_state(self.current_percent)


def _to_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def build_forecast(
    bin_id: str,
    samples: Sequence[PercentSample],
    now: datetime,
    hours: int,
    method: TrendMethod = TrendMethod.regression,
    warning_threshold: float = WARNING_THRESHOLD_PCT,
) -> Forecast:
    """Project a bin's fill level ``hours`` ahead from its recent samples."""

    now_ms = _to_ms(now)
    recent = within_lookback(samples, now_ms)
    current = recent[-1].percent if recent else None
    steps = range(1, max(0, hours) + 1)

    slope: Optional[float] = None
    points: List[ProjectedPoint] = []
    if method is TrendMethod.moving_average:
        values = [sample.percent for sample in recent]
        slope = moving_average_slope(values)
        projected = project_moving_average(values, hours)
        points = [
            ProjectedPoint(t=now_ms + step * MS_PER_HOUR, percent_full=value)
            for step, value in zip(steps, projected)
        ]
    else:
        fit = linear_regression(recent)
        if fit is not None:
            slope = fit.slope
            points = [
                ProjectedPoint(
                    t=now_ms + step * MS_PER_HOUR,
                    percent_full=clamp(fit.value_at(now_ms + step * MS_PER_HOUR), 0.0, 100.0),
                )
                for step in steps
            ]

    return Forecast(
        bin_id=bin_id,
        method=method,
        current_percent=current,
        slope_per_hr=slope,
        eta_warning=eta_at(now, current, slope, warning_threshold),
        eta_full=eta_at(now, current, slope, FULL_THRESHOLD_PCT),
        points=points,
    )


@dataclass(frozen=True)
class PickupCandidate:
    rank: int
    forecast: Forecast
    hours_to_full: float


def rank_pickups(
    forecasts: Iterable[Forecast],
    now: datetime,
    horizon_hours: Optional[float] = None,
) -> List[PickupCandidate]:
    """Order bins by soonest full-ETA.

    Bins without a full-ETA cannot be scheduled and are left out rather than
    ranked last. With ``horizon_hours`` set, ETAs beyond it are left out too.
    """

    schedulable = [forecast for forecast in forecasts if forecast.eta_full is not None]
    if horizon_hours is not None:
        deadline = now + timedelta(hours=horizon_hours)
        schedulable = [forecast for forecast in schedulable if forecast.eta_full <= deadline]
    schedulable.sort(key=lambda forecast: (forecast.eta_full, forecast.bin_id))
    return [
        PickupCandidate(
            rank=rank,
            forecast=forecast,
            hours_to_full=(forecast.eta_full - now).total_seconds() / 3600,
        )
        for rank, forecast in enumerate(schedulable, 1)
    ]
