"""Loguru setup for the gateway process."""

from __future__ import annotations

import json
import sys
from typing import Any

from loguru import logger

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def _json_sink(message: Any) -> None:
    record = message.record
    payload: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": record["module"],
        "function": record["function"],
        "line": record["line"],
    }
    if record["exception"] is not None:
        exc_type, exc_value, _traceback = record["exception"]
        payload["exception"] = {
            "type": exc_type.__name__ if exc_type else None,
            "value": str(exc_value) if exc_value else None,
        }
    payload.update(record["extra"])
    sys.stderr.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")


def setup_logging(*, level: str = "INFO", json_format: bool = False) -> None:
    """Replace loguru's default handler with a console or JSON sink.

    Args:
        level: Minimum level name (DEBUG, INFO, ...).
        json_format: Emit one JSON object per line instead of the colored console format.
    """
    logger.remove()
    if json_format:
        logger.add(_json_sink, level=level)
    else:
        logger.add(sys.stderr, format=_CONSOLE_FORMAT, level=level, colorize=True)
