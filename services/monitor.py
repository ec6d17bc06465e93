"""Orchestration of ingestion, history, time series and forecasts."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional

from app.schemas import (
    AcknowledgeResponse,
    BinStatusItem,
    CommandMessage,
    ForecastPoint,
    Kpis,
    PickupItem,
    PickupResponse,
    PredictionResponse,
    SeriesPoint,
    SeriesResponse,
    SummaryResponse,
)
from datastore.event_store import EventStore
from datastore.timeseries import TimeSeriesStore
from models.events import ClassificationEvent, EventSource, SensorEvent, dump_event
from models.records import PercentSample
from services.aggregator import Aggregator
from services.broadcast import COMMAND_CHANNEL, Broadcaster
from services.export import render_csv
from services.forecast import (
    Forecast,
    WARNING_THRESHOLD_PCT,
    build_forecast,
    fill_state,
    rank_pickups,
    state_colour,
)
from services.normalizer import (
    normalize_classification,
    normalize_payload,
    normalize_sensor_event,
    resolve_distance,
    safe_str,
    sensor_source,
    utc_now_iso,
)
from services.trend import REGRESSION_LOOKBACK_HOURS, TrendMethod, percent_full
from settings import get_settings
from storage.reading_log import build_default_log

logger = logging.getLogger(__name__)

Event = SensorEvent | ClassificationEvent


class MonitorService:
    """Coordinates normalization, event history, time series and forecasting."""

    def __init__(
        self,
        store: EventStore,
        timeseries: TimeSeriesStore,
        broadcaster: Broadcaster,
        aggregator: Aggregator,
        bin_height_cm: float = 30.0,
        warning_threshold: float = WARNING_THRESHOLD_PCT,
        pickup_horizon_hours: float = 48.0,
    ) -> None:
        self.store = store
        self.timeseries = timeseries
        self.broadcaster = broadcaster
        self.aggregator = aggregator
        self.bin_height_cm = bin_height_cm
        self.warning_threshold = warning_threshold
        self.pickup_horizon_hours = pickup_horizon_hours

    # -- ingestion -----------------------------------------------------

    def ingest(self, raw: Any, source: EventSource = EventSource.http_update) -> Event:
        """Normalize any inbound payload, store it and feed the time series."""
        return self._accept(normalize_payload(raw, source), raw)

    def ingest_sensors(self, raw: Any, source: EventSource = EventSource.ws_sensors) -> Event:
        return self._accept(normalize_sensor_event(source, raw), raw)

    def ingest_classification(self, raw: Any, source: EventSource = EventSource.ws_vision) -> Event:
        return self._accept(normalize_classification(source, raw), raw)

    def _accept(self, event: Event, raw: Any) -> Event:
        distance = self._resolve_distance(event, raw)
        if isinstance(event, SensorEvent):
            event.percent_full = percent_full(distance, self.bin_height_cm)
            event.state = fill_state(event.percent_full)
            event.colour = state_colour(event.state)

        self.store.record(event)
        logger.info(
            "Recorded event",
            extra={
                "event_id": event.id,
                "bin_id": event.bin_id,
                "source": event.source.value,
                "kind": event.kind,
            },
        )

        if distance is not None:
            self.timeseries.append_reading(event.bin_id, distance, event.timestamp)
            logger.debug(
                "Appended distance sample",
                extra={"bin_id": event.bin_id, "distance_cm": distance},
            )
        return event

    @staticmethod
    def _resolve_distance(event: Event, raw: Any) -> Optional[float]:
        if event.sensors is None:
            return None
        payload = raw if isinstance(raw, Mapping) else {}
        if isinstance(event, SensorEvent):
            flat = sensor_source(payload)
        else:
            flat = payload.get("sensors")
        return resolve_distance(event.sensors, flat)

    # -- history -------------------------------------------------------

    def snapshot(self) -> tuple[Optional[Event], List[Event]]:
        return self.store.snapshot()

    def filter_classifications(self, limit: Optional[int] = None) -> List[Event]:
        return self.store.filter_classifications(limit)

    def acknowledge(self, event_id: Optional[str]) -> AcknowledgeResponse:
        """Remove an event from history. Unknown ids succeed without changes."""
        candidate = safe_str(event_id)
        if candidate is None:
            raise ValueError("Missing id")
        removed = self.store.remove_by_id(candidate)
        logger.info(
            "Acknowledged event",
            extra={"event_id": candidate, "reason": "removed" if removed else "not found"},
        )
        return AcknowledgeResponse(removed=candidate, found=removed is not None)

    def export_csv(self) -> str:
        return render_csv(self.store.history())

    # -- device commands ----------------------------------------------

    def send_command(self, action: Optional[str], payload: Optional[Dict[str, Any]] = None) -> CommandMessage:
        name = safe_str(action)
        if name is None:
            raise ValueError("Missing action")
        command = CommandMessage(action=name, payload=payload or None, ts=int(time.time() * 1000))
        delivered = self.broadcaster.publish(COMMAND_CHANNEL, command.model_dump())
        logger.info("Dispatched command to %d subscribers", delivered, extra={"action": name})
        return command

    def override(self, raw: Optional[Mapping[str, Any]] = None) -> ClassificationEvent:
        """Force a non-recyclable override regardless of what the caller sent."""
        body = dict(raw or {})
        body.update(
            recyclable="no",
            override=1,
            timestamp=safe_str(body.get("timestamp")) or utc_now_iso(),
        )
        event = normalize_classification(EventSource.web_override, body)
        self._accept(event, body)
        self.send_command("override", dump_event(event))
        return event

    # -- time series and forecasts -------------------------------------

    def query(self, bin_id: str, hours: float) -> SeriesResponse:
        points = [
            SeriesPoint(
                t=point.t,
                timestamp=point.observed_at,
                distance_cm=point.distance_cm,
                percent_full=percent_full(point.distance_cm, self.bin_height_cm),
            )
            for point in self.timeseries.get_window(bin_id, hours)
        ]
        return SeriesResponse(bin_id=bin_id, hours=hours, points=points)

    def _samples(self, bin_id: str) -> List[PercentSample]:
        samples: List[PercentSample] = []
        for point in self.timeseries.get_window(bin_id, REGRESSION_LOOKBACK_HOURS):
            pct = percent_full(point.distance_cm, self.bin_height_cm)
            if pct is not None:
                samples.append(PercentSample(t=point.t, percent=float(pct)))
        return samples

    def forecast(
        self,
        bin_id: str,
        hours: int = 24,
        method: TrendMethod = TrendMethod.regression,
        now: Optional[datetime] = None,
    ) -> Forecast:
        return build_forecast(
            bin_id,
            self._samples(bin_id),
            now or self.timeseries.now(),
            hours,
            method=method,
            warning_threshold=self.warning_threshold,
        )

    def predict(
        self,
        bin_id: str,
        hours: int = 24,
        method: TrendMethod = TrendMethod.regression,
    ) -> PredictionResponse:
        forecast = self.forecast(bin_id, hours, method)
        return PredictionResponse(
            bin_id=bin_id,
            method=forecast.method,
            current_percent=forecast.current_percent,
            state=forecast.state,
            slope_per_hr=forecast.slope_per_hr,
            eta90=forecast.eta_warning,
            eta100=forecast.eta_full,
            points=[
                ForecastPoint(t=point.t, timestamp=point.timestamp, percent_full=point.percent_full)
                for point in forecast.points
            ],
        )

    def rank_pickups(
        self,
        horizon_hours: Optional[float] = None,
        method: TrendMethod = TrendMethod.regression,
    ) -> PickupResponse:
        horizon = self.pickup_horizon_hours if horizon_hours is None else horizon_hours
        now = self.timeseries.now()
        forecasts = [
            self.forecast(bin_id, 0, method, now=now) for bin_id in self.timeseries.bins()
        ]
        items = [
            PickupItem(
                rank=candidate.rank,
                bin_id=candidate.forecast.bin_id,
                current_percent=candidate.forecast.current_percent,
                state=candidate.forecast.state,
                slope_per_hr=candidate.forecast.slope_per_hr,
                eta90=candidate.forecast.eta_warning,
                eta100=candidate.forecast.eta_full,
                hours_to_full=candidate.hours_to_full,
            )
            for candidate in rank_pickups(forecasts, now, horizon)
        ]
        return PickupResponse(horizon_hours=horizon, items=items)

    # -- company dashboard ---------------------------------------------

    def bin_statuses(self) -> List[BinStatusItem]:
        return [
            BinStatusItem(
                bin_id=row.bin_id,
                fill_pct=row.fill_pct,
                state=row.state,
                colour=row.colour,
                deposit=row.deposit,
                contamination=row.contamination,
                timestamp=row.timestamp,
            )
            for row in self.aggregator.bin_statuses(self.store.history())
        ]

    def summary(self) -> SummaryResponse:
        result = self.aggregator.summarize(self.store.history(), self.timeseries.now())
        return SummaryResponse(
            kpis=Kpis(
                recycling_rate=result.recycling_rate,
                contamination_rate=result.contamination_rate,
                collections_per_day=result.collections_per_day,
                time_to_full_days=result.time_to_full_days,
            ),
            mix=result.mix,
            mis_sorts_by_weekday=result.mis_sorts_by_weekday,
            bins=result.bins,
        )

    def replay_log(self) -> int:
        return self.timeseries.replay()


@lru_cache
def build_default_monitor() -> MonitorService:
    """Factory that wires the monitor with settings-driven stores."""
    settings = get_settings()
    broadcaster = Broadcaster()
    store = EventStore(capacity=settings.history_capacity, broadcast=broadcaster.publish_event)
    monitor = MonitorService(
        store=store,
        timeseries=TimeSeriesStore(
            retention_days=settings.retention_days,
            reading_log=build_default_log(),
        ),
        broadcaster=broadcaster,
        aggregator=Aggregator(bin_height_cm=settings.bin_height_cm),
        bin_height_cm=settings.bin_height_cm,
        warning_threshold=settings.warning_threshold_pct,
        pickup_horizon_hours=settings.pickup_horizon_hours,
    )
    monitor.replay_log()
    return monitor
