"""WebSocket channel shared by dashboards and bin devices.

Every connection receives ``pi:update`` messages. A device announces itself
with ``pi:hello`` and from then on also receives ``pi:cmd`` messages.
Devices push telemetry as ``pi:sensors`` and ``pi:vision`` messages.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, List

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from app.api import get_monitor
from models.events import dump_event
from services.broadcast import COMMAND_CHANNEL, UPDATE_CHANNEL
from services.monitor import MonitorService

logger = logging.getLogger(__name__)

router = APIRouter()


async def _drain(websocket: WebSocket, queue: "asyncio.Queue[Dict[str, Any]]") -> None:
    while True:
        message = await queue.get()
        await websocket.send_json(message)


def _forwarder(
    loop: asyncio.AbstractEventLoop,
    queue: "asyncio.Queue[Dict[str, Any]]",
    message_type: str,
) -> Callable[[Dict[str, Any]], None]:
    def forward(data: Dict[str, Any]) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, {"type": message_type, "data": data})

    return forward


@router.websocket("/ws")
async def events_socket(
    websocket: WebSocket,
    monitor: MonitorService = Depends(get_monitor),
) -> None:
    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()
    unsubscribers: List[Callable[[], None]] = [
        monitor.broadcaster.subscribe(UPDATE_CHANNEL, _forwarder(loop, queue, UPDATE_CHANNEL))
    ]

    last = monitor.store.last_result
    if last is not None:
        await websocket.send_json({"type": UPDATE_CHANNEL, "data": dump_event(last)})

    sender = asyncio.create_task(_drain(websocket, queue))
    joined = False
    try:
        while True:
            text = await websocket.receive_text()
            try:
                message = json.loads(text)
            except json.JSONDecodeError:
                logger.warning("Ignoring non-JSON socket message", extra={"reason": text[:64]})
                continue
            if not isinstance(message, dict):
                continue

            message_type = message.get("type")
            data = message.get("data") or {}
            if message_type == "pi:hello":
                if not joined:
                    unsubscribers.append(
                        monitor.broadcaster.subscribe(
                            COMMAND_CHANNEL, _forwarder(loop, queue, COMMAND_CHANNEL)
                        )
                    )
                    joined = True
                logger.info("Device joined command channel", extra={"source": str(data)[:64]})
                queue.put_nowait({"type": "server:ack", "ok": True})
            elif message_type == "pi:sensors":
                monitor.ingest_sensors(data)
            elif message_type == "pi:vision":
                monitor.ingest_classification(data)
            else:
                logger.debug("Ignoring unknown socket message", extra={"reason": message_type})
    except WebSocketDisconnect:
        pass
    finally:
        for unsubscribe in unsubscribers:
            unsubscribe()
        sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)
