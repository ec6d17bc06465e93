from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from settings import get_settings

logger = logging.getLogger(__name__)


class ReadingRecord(BaseModel):
    """One line of the append-only reading log. ``id`` is the bin identifier."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    distance_cm: float = Field(..., allow_inf_nan=False)
    timestamp: str


class ReadingLog:
    """Append-only JSON-lines log of accepted distance readings."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = path
        self._lock = Lock()
        if path:
            path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, record: ReadingRecord) -> None:
        if not self.path:
            return
        line = json.dumps(record.model_dump(mode="json"), separators=(",", ":"))
        with self._lock:
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")

    def replay(self) -> Iterator[ReadingRecord]:
        """Yield every well-formed record in write order, skipping bad lines."""

        if not self.path or not self.path.exists():
            return

        with self._lock:
            try:
                lines = self.path.read_bytes().splitlines()
            except OSError as exc:
                logger.warning(
                    "Reading log could not be read",
                    extra={"path": str(self.path), "reason": str(exc)},
                )
                return

        for line_number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                record = ReadingRecord.model_validate(json.loads(line.decode("utf-8")))
            except (UnicodeDecodeError, json.JSONDecodeError, ValidationError):
                logger.debug(
                    "Skipping malformed reading log line",
                    extra={"path": str(self.path), "line_number": line_number},
                )
                continue
            yield record


@lru_cache
def build_default_log(path: Optional[str] = None) -> ReadingLog:
    settings = get_settings()
    log_path = settings.reading_log_path if path is None else path
    return ReadingLog(path=Path(log_path) if log_path else None)
