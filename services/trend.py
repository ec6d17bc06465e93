"""Fill-level conversions and trend estimation."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from models.records import PercentSample

MS_PER_HOUR = 3_600_000
MOVING_AVERAGE_WINDOW = 5
DEFAULT_SLOPE_PER_HOUR = 0.5
REGRESSION_LOOKBACK_HOURS = 7 * 24


class TrendMethod(str, Enum):
    """Named trend strategies; they use different tuning and are kept separate."""

    regression = "regression"
    moving_average = "moving_average"


@dataclass(frozen=True)
class RegressionFit:
    """``percent = intercept + slope * hours_since(origin_ms)``."""

    slope: float
    intercept: float
    origin_ms: int

    def value_at(self, t_ms: int) -> float:
        return self.intercept + self.slope * ((t_ms - self.origin_ms) / MS_PER_HOUR)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percent_full(distance_cm: Optional[float], height_cm: float) -> Optional[int]:
    """Convert an ultrasonic distance to a 0..100 fill percent.

    ``height_cm`` is the distance the sensor reads for an empty bin.
    """

    if distance_cm is None or height_cm <= 0:
        return None
    distance = clamp(distance_cm, 0.0, height_cm)
    return round_half_up(100 * (1 - distance / height_cm))


def distance_from_percent(percent: float, height_cm: float) -> float:
    return height_cm * (1 - clamp(percent, 0.0, 100.0) / 100)


def moving_average(values: Sequence[float], window: int = MOVING_AVERAGE_WINDOW) -> List[float]:
    """Trailing average; the first ``window - 1`` entries average what is available."""

    averages: List[float] = []
    running = 0.0
    for index, value in enumerate(values):
        running += value
        if index >= window:
            running -= values[index - window]
        averages.append(running / min(index + 1, window))
    return averages


def moving_average_slope(
    values: Sequence[float], window: int = MOVING_AVERAGE_WINDOW
) -> Optional[float]:
    """Percent per hour, assuming hourly samples. ``None`` below two samples.

    Compares the last two trailing windows of equal size, shrinking the window
    to ``len(values) - 1`` for short series.
    """

    if len(values) < 2:
        return None
    size = min(window, len(values) - 1)
    latest = sum(values[-size:]) / size
    previous = sum(values[-size - 1 : -1]) / size
    return latest - previous


def project_moving_average(
    values: Sequence[float],
    hours: int,
    window: int = MOVING_AVERAGE_WINDOW,
    default_slope: float = DEFAULT_SLOPE_PER_HOUR,
) -> List[float]:
    if not values:
        return []
    slope = moving_average_slope(values, window)
    step = default_slope if slope is None else slope
    projected: List[float] = []
    level = float(values[-1])
    for _ in range(max(0, hours)):
        level = clamp(level + step, 0.0, 100.0)
        projected.append(level)
    return projected


def within_lookback(
    samples: Sequence[PercentSample],
    now_ms: int,
    lookback_hours: float = REGRESSION_LOOKBACK_HOURS,
) -> List[PercentSample]:
    cutoff = now_ms - lookback_hours * MS_PER_HOUR
    return [sample for sample in samples if sample.t >= cutoff]


def linear_regression(samples: Sequence[PercentSample]) -> Optional[RegressionFit]:
    """Ordinary least squares of percent against hours since the first sample.

    Returns ``None`` when fewer than two samples are given or every sample
    shares the same timestamp.
    """

    if len(samples) < 2:
        return None
    origin = samples[0].t
    xs = [(sample.t - origin) / MS_PER_HOUR for sample in samples]
    ys = [sample.percent for sample in samples]
    count = len(samples)
    mean_x = sum(xs) / count
    mean_y = sum(ys) / count
    sxx = sum((x - mean_x) ** 2 for x in xs)
    if sxx == 0:
        return None
    sxy = sum((x - mean_x) * (y - mean_y) for x, y in zip(xs, ys))
    slope = sxy / sxx
    return RegressionFit(slope=slope, intercept=mean_y - slope * mean_x, origin_ms=origin)
