"""Logging for the import pipeline.

Pipeline modules log through ``get_logger("finance_pipeline.<module>")`` and
stay silent when embedded in another program. The CLI turns output on once per
process with :func:`configure_logging`; import summaries, flagged rows and
storage failures then appear on stderr as ``event:key; k=v`` lines.

``FINANCE_PIPELINE_LOG_LEVEL`` (``DEBUG`` shows per-file parse and write
details) applies when no level is passed explicitly.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_ROOT = "finance_pipeline"
_LEVEL_ENV = "FINANCE_PIPELINE_LOG_LEVEL"
_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_configured = False


def _level_from_name(value: str) -> int | None:
    name = value.strip().upper()
    if name.isdigit():
        return int(name)
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else None


def _resolve_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if level is None:
        level = os.getenv(_LEVEL_ENV) or ""
    return _level_from_name(level) or logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Send pipeline log records to ``stream``; later calls are no-ops.

    ``level`` accepts a number or a name such as ``"debug"``; unknown names
    fall back to INFO.
    """

    global _configured
    if _configured:
        return

    root = logging.getLogger(_ROOT)
    for h in list(root.handlers):
        if isinstance(h, logging.NullHandler):
            root.removeHandler(h)

    resolved = _resolve_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _FORMAT))
    root.setLevel(resolved)
    root.addHandler(handler)
    # Records stop here so a host application's root handler does not repeat them
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Logger for a pipeline module, muted until :func:`configure_logging`."""

    root = logging.getLogger(_ROOT)
    if not _configured and not root.handlers:
        root.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
