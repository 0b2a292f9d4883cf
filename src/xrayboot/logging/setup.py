"""Structured logging configuration for xrayboot.

Provides JSON and text formatters, a stage-context filter that injects
the current bootstrap stage and domain into every log record, and a
one-call ``configure_logging`` function driven by config settings.
"""

from __future__ import annotations

import contextlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from xrayboot.core.types import LogFormat

if TYPE_CHECKING:
    from collections.abc import Generator
    from contextvars import Token

    from xrayboot.config.settings import LoggingSettings

_current_stage: ContextVar[str] = ContextVar("xrayboot_stage", default="-")
_current_domain: ContextVar[str | None] = ContextVar("xrayboot_domain", default=None)

# Record attribute -> context variable supplying it
_CONTEXT_VARS: dict[str, ContextVar] = {"stage": _current_stage, "domain": _current_domain}

# Attributes that are part of the standard LogRecord; everything
# else is considered "extra" and gets included in structured output.
_STANDARD_ATTRS = frozenset(
    {
        "args",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
        # Our own well-known context attributes (handled explicitly):
        "stage",
        "domain",
    }
)


# ---------------------------------------------------------------------------
# Stage context
# ---------------------------------------------------------------------------


@contextlib.contextmanager
def stage_context(stage: str) -> Generator[None, None, None]:
    """Tag every record logged inside the block with *stage*."""
    token = _current_stage.set(str(stage))
    try:
        yield
    finally:
        _current_stage.reset(token)


def set_log_domain(domain: str | None) -> Token[str | None]:
    """Tag every following record with *domain*.

    Returns the token that :func:`reset_log_domain` takes to restore the
    previous value.
    """
    return _current_domain.set(domain)


def reset_log_domain(token: Token[str | None]) -> None:
    _current_domain.reset(token)


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """JSON-lines formatter for machine-collected container logs.

    Every record becomes a single JSON object on one line containing
    the standard fields plus any *extra* attributes passed by the
    caller or injected by filters.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        data: dict = {
            "timestamp": datetime.fromtimestamp(
                record.created,
                tz=UTC,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
        }

        for attr in _CONTEXT_VARS:
            value = getattr(record, attr, None)
            if value is not None:
                data[attr] = value

        # Caller-supplied extra fields
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                data.setdefault(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            data["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for ``docker logs``."""

    _FMT = "%(asctime)s %(levelname)-8s [%(stage)s] %(name)s: %(message)s"

    def __init__(self) -> None:
        super().__init__(fmt=self._FMT, datefmt="%Y-%m-%d %H:%M:%S")


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class StageContextFilter(logging.Filter):
    """Inject the bootstrap stage and domain into every log record.

    Falls back to ``"-"`` for the stage and ``None`` for the domain
    outside a :func:`stage_context` block.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        for attr, var in _CONTEXT_VARS.items():
            if not hasattr(record, attr):
                setattr(record, attr, var.get())
        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Configure the ``xrayboot`` logger hierarchy from settings.

    Replaces any bootstrap handlers with properly formatted output on
    stderr.  Returns the root ``xrayboot`` logger.
    """
    level = getattr(logging, settings.level.upper(), logging.INFO)

    root = logging.getLogger("xrayboot")
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    formatter: logging.Formatter
    formatter = StructuredFormatter() if settings.format == LogFormat.JSON else TextFormatter()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.addFilter(StageContextFilter())
    root.addHandler(console)

    return root
