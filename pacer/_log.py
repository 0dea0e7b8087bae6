"""Centralized logging for the pacer service."""

from __future__ import annotations

import logging
import sys
import threading

_lock = threading.Lock()
_setup_done = False


class _Formatter(logging.Formatter):
    """Format log records as ``time level [component] message``."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        record = logging.makeLogRecord(record.__dict__)
        name = record.name
        if name.startswith("pacer."):
            name = name[len("pacer.") :]
        record.msg = f"[{name}] {record.msg}"
        return super().format(record)


def setup_logging(level: str | int = "INFO") -> None:
    """Configure the ``pacer`` root logger (idempotent).

    Attaches a single ``StreamHandler(sys.stderr)`` and sets
    ``propagate = False`` so messages don't bubble to the root logger.
    A later call only adjusts the level.
    """
    global _setup_done
    logger = logging.getLogger("pacer")
    with _lock:
        logger.setLevel(level.upper() if isinstance(level, str) else level)
        if _setup_done:
            return
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(_Formatter())
        logger.addHandler(handler)
        logger.propagate = False
        _setup_done = True


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(f"pacer.{name}")``."""
    return logging.getLogger(f"pacer.{name}")
