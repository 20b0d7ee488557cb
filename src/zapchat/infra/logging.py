"""Root logger setup for the bot.

Two output styles, picked by ``LoggingConfig.json_output``:

* JSON lines (``python-json-logger``) for the webhook server.
* uvicorn's coloured formatter for local runs and the console REPL.

Every record carries ``conversation_id`` (the chat being handled, set
with ``conversation_context``) plus the OTEL ``trace_id`` / ``span_id``
of the active span, empty strings when there is none.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TextIO

from opentelemetry import trace

from zapchat.configs.system import LoggingConfig

_conversation_id: ContextVar[str] = ContextVar("conversation_id", default="")

_CONTEXT_FIELDS = ("conversation_id", "trace_id", "span_id")
_JSON_FORMAT = " ".join(
    f"%({name})s"
    for name in ("asctime", "levelname", "name", "message", *_CONTEXT_FIELDS)
)
_JSON_RENAMES = {"asctime": "timestamp", "levelname": "level", "name": "logger"}
_DEV_FORMAT = "%(levelprefix)s %(asctime)s [%(conversation_id)s] %(name)s  %(message)s"
_DEV_DATEFMT = "%H:%M:%S"

_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")
_QUIET_LOGGERS = ("httpx", "httpcore", "opentelemetry", "langsmith", "openai")


@contextmanager
def conversation_context(conversation_id: str) -> Iterator[None]:
    """Tag log records emitted inside the block with *conversation_id*."""
    token = _conversation_id.set(conversation_id)
    try:
        yield
    finally:
        _conversation_id.reset(token)


class _ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.conversation_id = _conversation_id.get()  # type: ignore[attr-defined]
        ctx = trace.get_current_span().get_span_context()
        valid = bool(ctx and ctx.is_valid)
        record.trace_id = format(ctx.trace_id, "032x") if valid else ""  # type: ignore[attr-defined]
        record.span_id = format(ctx.span_id, "016x") if valid else ""  # type: ignore[attr-defined]
        return True


def _formatter(json_output: bool) -> logging.Formatter:
    if json_output:
        from pythonjsonlogger.json import JsonFormatter

        return JsonFormatter(
            fmt=_JSON_FORMAT,
            rename_fields=_JSON_RENAMES,
            defaults={name: "" for name in _CONTEXT_FIELDS},
        )

    from uvicorn.logging import DefaultFormatter

    return DefaultFormatter(fmt=_DEV_FORMAT, datefmt=_DEV_DATEFMT, use_colors=True)


def setup_logging(
    config: LoggingConfig | None = None, stream: TextIO | None = None
) -> None:
    """Configure the root logger; call once at startup.

    *stream* defaults to stdout. The console REPL passes stderr so log
    lines do not interleave with the chat.
    """
    config = config or LoggingConfig()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.addFilter(_ContextFilter())
    handler.setFormatter(_formatter(config.json_output))

    root = logging.getLogger()
    root.setLevel(config.level.upper())
    root.handlers = [handler]

    for name in _UVICORN_LOGGERS:
        uvi = logging.getLogger(name)
        uvi.handlers = [handler]
        uvi.propagate = False

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
