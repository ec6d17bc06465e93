"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from models.events import FillState
from services.trend import TrendMethod


class IngestResponse(BaseModel):
    ok: bool = True
    event: Dict[str, Any] = Field(..., description="The normalized event as stored.")


class HistoryResponse(BaseModel):
    last_result: Optional[Dict[str, Any]] = None
    history: List[Dict[str, Any]] = Field(default_factory=list)


class ClassificationHistory(BaseModel):
    items: List[Dict[str, Any]] = Field(default_factory=list)


class CommandMessage(BaseModel):
    """Command forwarded to devices on the command channel."""

    action: str
    payload: Optional[Dict[str, Any]] = None
    ts: int = Field(..., description="Epoch milliseconds when the command was issued.")


class CommandResponse(BaseModel):
    ok: bool = True
    sent: str


class OverrideResponse(BaseModel):
    ok: bool = True
    event: Dict[str, Any]


class AcknowledgeRequest(BaseModel):
    id: Optional[str] = None


class AcknowledgeResponse(BaseModel):
    ok: bool = True
    removed: str
    found: bool


class SeriesPoint(BaseModel):
    t: int = Field(..., description="Epoch milliseconds.")
    timestamp: datetime
    distance_cm: float
    percent_full: Optional[int] = None


class SeriesResponse(BaseModel):
    bin_id: str
    hours: float
    points: List[SeriesPoint] = Field(default_factory=list)


class ForecastPoint(BaseModel):
    t: int
    timestamp: datetime
    percent_full: float = Field(..., ge=0, le=100)


class PredictionResponse(BaseModel):
    """Trend forecast for one bin. Undetermined trends leave slope and ETAs unset."""

    bin_id: str
    method: TrendMethod
    current_percent: Optional[float] = None
    state: FillState = FillState.unknown
    slope_per_hr: Optional[float] = None
    eta90: Optional[datetime] = None
    eta100: Optional[datetime] = None
    points: List[ForecastPoint] = Field(default_factory=list)


class PickupItem(BaseModel):
    rank: int = Field(..., ge=1)
    bin_id: str
    current_percent: Optional[float] = None
    state: FillState
    slope_per_hr: float
    eta90: Optional[datetime] = None
    eta100: datetime
    hours_to_full: float = Field(..., ge=0)


class PickupResponse(BaseModel):
    horizon_hours: float
    items: List[PickupItem] = Field(default_factory=list)


class BinStatusItem(BaseModel):
    bin_id: str
    fill_pct: Optional[int] = None
    state: FillState
    colour: str
    deposit: Optional[str] = None
    contamination: Optional[str] = None
    timestamp: str


class BinStatusResponse(BaseModel):
    items: List[BinStatusItem] = Field(default_factory=list)


class Kpis(BaseModel):
    recycling_rate: float = Field(..., ge=0, le=1)
    contamination_rate: float = Field(..., ge=0, le=1)
    collections_per_day: float = Field(..., ge=0)
    time_to_full_days: Optional[float] = None


class SummaryResponse(BaseModel):
    kpis: Kpis
    mix: Dict[str, int] = Field(default_factory=dict)
    mis_sorts_by_weekday: List[int] = Field(..., min_length=7, max_length=7)
    bins: int = Field(..., ge=0)
