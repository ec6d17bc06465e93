"""Canonical event models produced by the payload normalizer."""

from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field


class EventSource(str, Enum):
    """Channels an event can arrive through."""

    http_update = "http-update"
    ws_sensors = "ws-sensors"
    ws_vision = "ws-vision"
    web_override = "web-override"


class FillState(str, Enum):
    """Per-bin fill status, derived from the current fill percent."""

    unknown = "unknown"
    ok = "ok"
    getting_full = "getting_full"
    full = "full"


Recyclable = Literal["yes", "no", "contaminated"]


class CompartmentReading(BaseModel):
    ultrasonic: Optional[float] = None
    weight: Optional[float] = None


class CompartmentReadings(BaseModel):
    """Readings for the recyclable and general compartments of a bin."""

    recycle: Optional[CompartmentReading] = None
    general: Optional[CompartmentReading] = None

    def is_empty(self) -> bool:
        return self.recycle is None and self.general is None


class SensorEvent(BaseModel):
    """Distance and weight telemetry from a bin device."""

    id: Optional[str] = None
    source: EventSource
    kind: Literal["sensors"] = "sensors"
    bin_id: Optional[str] = None
    timestamp: str
    sensors: CompartmentReadings = Field(default_factory=CompartmentReadings)
    percent_full: Optional[int] = None
    state: FillState = FillState.unknown
    colour: str = "grey"


class ClassificationEvent(BaseModel):
    """Vision classification of a deposited item."""

    id: Optional[str] = None
    source: EventSource
    kind: Literal["classification"] = "classification"
    bin_id: Optional[str] = None
    label: Optional[str] = None
    confidence: Optional[float] = None
    time_ms: Optional[float] = Field(default=None, ge=0)
    timestamp: str
    recyclable: Optional[Recyclable] = None
    override: Literal[0, 1] = 0
    sensors: Optional[CompartmentReadings] = None


def dump_event(event: SensorEvent | ClassificationEvent) -> dict:
    """Serialize an event the way it is broadcast, with absent fields dropped."""

    return event.model_dump(mode="json", exclude_none=True)
