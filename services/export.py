"""CSV export of the event history."""

from __future__ import annotations

import csv
import io
from enum import Enum
from typing import Any, Iterable, List

from models.events import ClassificationEvent, SensorEvent

CSV_COLUMNS = (
    "source",
    "kind",
    "bin_id",
    "label",
    "confidence",
    "time_ms",
    "timestamp",
    "recyclable",
    "override",
    "id",
    "recycle_ultrasonic",
    "general_ultrasonic",
    "weight",
)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _row(event: SensorEvent | ClassificationEvent) -> List[str]:
    sensors = event.sensors
    recycle = sensors.recycle if sensors is not None else None
    general = sensors.general if sensors is not None else None
    weight = None
    if recycle is not None and recycle.weight is not None:
        weight = recycle.weight
    elif general is not None:
        weight = general.weight
    values = {
        "source": event.source,
        "kind": event.kind,
        "bin_id": event.bin_id,
        "label": getattr(event, "label", None),
        "confidence": getattr(event, "confidence", None),
        "time_ms": getattr(event, "time_ms", None),
        "timestamp": event.timestamp,
        "recyclable": getattr(event, "recyclable", None),
        "override": getattr(event, "override", None),
        "id": event.id,
        "recycle_ultrasonic": recycle.ultrasonic if recycle is not None else None,
        "general_ultrasonic": general.ultrasonic if general is not None else None,
        "weight": weight,
    }
    return [_cell(values[column]) for column in CSV_COLUMNS]


def render_csv(events: Iterable[SensorEvent | ClassificationEvent]) -> str:
    """Every value quoted, embedded quotes doubled, missing values empty."""

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for event in events:
        writer.writerow(_row(event))
    return buffer.getvalue()
