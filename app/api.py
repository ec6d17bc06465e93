"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import Response

from app.schemas import (
    AcknowledgeRequest,
    AcknowledgeResponse,
    BinStatusResponse,
    ClassificationHistory,
    CommandResponse,
    HistoryResponse,
    IngestResponse,
    OverrideResponse,
    PickupResponse,
    PredictionResponse,
    SeriesResponse,
    SummaryResponse,
)
from models.events import dump_event
from services.monitor import MonitorService, build_default_monitor
from services.trend import TrendMethod

router = APIRouter()


def get_monitor() -> MonitorService:
    return build_default_monitor()


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return {}


@router.post(
    "/update",
    response_model=IngestResponse,
    summary="Ingest a sensor or classification payload from a device.",
)
async def update(
    request: Request,
    monitor: MonitorService = Depends(get_monitor),
) -> IngestResponse:
    payload = await _read_json(request)
    event = monitor.ingest(payload)
    return IngestResponse(event=dump_event(event))


@router.get(
    "/data",
    response_model=HistoryResponse,
    summary="Last result and the bounded event history.",
)
async def data(monitor: MonitorService = Depends(get_monitor)) -> HistoryResponse:
    last, history = monitor.snapshot()
    return HistoryResponse(
        last_result=dump_event(last) if last is not None else None,
        history=[dump_event(event) for event in history],
    )


@router.get(
    "/history/classifications",
    response_model=ClassificationHistory,
    summary="Most recent classification events, newest first.",
)
async def classification_history(
    limit: Optional[int] = Query(None, description="Number of items (clamped to 1..200, default 20)."),
    monitor: MonitorService = Depends(get_monitor),
) -> ClassificationHistory:
    items = monitor.filter_classifications(limit)
    return ClassificationHistory(items=[dump_event(event) for event in items])


@router.post(
    "/cmd/{action}",
    response_model=CommandResponse,
    summary="Forward a command to connected devices.",
)
async def command(
    action: str,
    request: Request,
    monitor: MonitorService = Depends(get_monitor),
) -> CommandResponse:
    body = await _read_json(request)
    payload = body if isinstance(body, dict) and body else None
    try:
        sent = monitor.send_command(action, payload)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return CommandResponse(sent=sent.action)


@router.post(
    "/override",
    response_model=OverrideResponse,
    summary="Mark a deposit as non-recyclable and notify devices.",
)
async def override(
    request: Request,
    monitor: MonitorService = Depends(get_monitor),
) -> OverrideResponse:
    body = await _read_json(request)
    event = monitor.override(body if isinstance(body, dict) else None)
    return OverrideResponse(event=dump_event(event))


@router.post(
    "/ack",
    response_model=AcknowledgeResponse,
    summary="Remove an event from history by id.",
)
async def acknowledge(
    body: AcknowledgeRequest,
    monitor: MonitorService = Depends(get_monitor),
) -> AcknowledgeResponse:
    try:
        return monitor.acknowledge(body.id)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc


@router.get(
    "/series/{bin_id}",
    response_model=SeriesResponse,
    summary="Distance samples for a bin within the last N hours.",
)
async def series(
    bin_id: str,
    hours: float = Query(24.0, gt=0),
    monitor: MonitorService = Depends(get_monitor),
) -> SeriesResponse:
    return monitor.query(bin_id, hours)


@router.get(
    "/predict/{bin_id}",
    response_model=PredictionResponse,
    summary="Fill-level forecast and threshold ETAs for a bin.",
)
async def predict(
    bin_id: str,
    hours: int = Query(24, ge=0, le=24 * 30),
    method: TrendMethod = Query(TrendMethod.regression),
    monitor: MonitorService = Depends(get_monitor),
) -> PredictionResponse:
    return monitor.predict(bin_id, hours, method)


@router.get(
    "/pickups",
    response_model=PickupResponse,
    summary="Bins ordered by soonest projected full time.",
)
async def pickups(
    horizon_hours: Optional[float] = Query(None, gt=0),
    method: TrendMethod = Query(TrendMethod.regression),
    monitor: MonitorService = Depends(get_monitor),
) -> PickupResponse:
    return monitor.rank_pickups(horizon_hours, method)


@router.get(
    "/export.csv",
    summary="Event history as CSV.",
    response_class=Response,
)
async def export_csv(monitor: MonitorService = Depends(get_monitor)) -> Response:
    return Response(
        content=monitor.export_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="smart-bin-history.csv"'},
    )


@router.get(
    "/api/company/bins",
    response_model=BinStatusResponse,
    summary="Latest status per bin.",
)
async def company_bins(monitor: MonitorService = Depends(get_monitor)) -> BinStatusResponse:
    return BinStatusResponse(items=monitor.bin_statuses())


@router.get(
    "/api/company/summary",
    response_model=SummaryResponse,
    summary="Recycling KPIs and fill analytics.",
)
async def company_summary(monitor: MonitorService = Depends(get_monitor)) -> SummaryResponse:
    return monitor.summary()


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "Smart bin telemetry API. See /health for service status."}
