from __future__ import annotations

import logging
import time
from logging.config import dictConfig
from typing import Any, Dict, Iterable, Sequence

from settings import get_settings

CONTEXT_KEYS = (
    "event_id",
    "bin_id",
    "source",
    "kind",
    "action",
    "line_number",
    "reason",
    "distance_cm",
    "path",
)

# uvicorn installs its own handlers; route them through ours instead.
_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

_configured = False


def context_suffix(record: logging.LogRecord, keys: Iterable[str]) -> str:
    """Render ``key=value`` pairs for the ``extra`` fields present on ``record``."""
    pairs = []
    for key in keys:
        value = getattr(record, key, None)
        if value is None:
            continue
        if isinstance(value, float):
            value = f"{value:g}"
        pairs.append(f"{key}={value}")
    return " ".join(pairs)


class ContextualFormatter(logging.Formatter):
    """UTC timestamps with bin and event context appended after the message."""

    converter = time.gmtime

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        extra_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self._keys: Sequence[str] = tuple(extra_keys or CONTEXT_KEYS)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        suffix = context_suffix(record, self._keys)
        return f"{message} | {suffix}" if suffix else message


def _logging_dict(level: str | int) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "contextual": {
                "()": "logging_config.ContextualFormatter",
                "fmt": "%(asctime)sZ | %(levelname)s | %(name)s | %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S",
                "extra_keys": list(CONTEXT_KEYS),
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "contextual",
            }
        },
        "loggers": {
            name: {"handlers": ["console"], "level": level, "propagate": False}
            for name in _SERVER_LOGGERS
        },
        "root": {"handlers": ["console"], "level": level},
    }


def configure_logging(level: str | int | None = None, force: bool = False) -> None:
    """Install the console handler once per process; ``force`` reapplies it."""
    global _configured
    if _configured and not force:
        return

    dictConfig(_logging_dict(level if level is not None else get_settings().log_level))
    _configured = True
