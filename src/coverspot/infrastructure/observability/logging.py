"""Logging setup: python-json-logger output, request correlation ids, per-job cover context.

Hey future me - two context variables ride along with every log record:

    correlation_id    set per HTTP request by CorrelationIdMiddleware (X-Correlation-ID)
    cover_identifier  set per background job by cover_job_context() in the worker

Both are contextvars, so concurrent requests and the N worker loops never see each other's
values. LogContextFilter copies them onto the record; both formatters read them from there.
"""

import contextvars
import logging
import sys
import traceback
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from types import TracebackType
from typing import Any

from pythonjsonlogger import jsonlogger

correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)
cover_identifier_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "cover_identifier", default=""
)

# Libraries that log a line per request or per decoded image
_QUIET_LOGGERS = ("httpx", "httpcore", "hpack", "h2", "PIL", "asyncio")

_TEXT_FORMAT = (
    "%(asctime)s │ %(levelname)-7s │ %(name)s:%(lineno)d │ %(cover_prefix)s%(message)s"
)
_JSON_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"


def get_correlation_id() -> str:
    """Current correlation id ("" outside a request or job)."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set the correlation id for the current context.

    Args:
        correlation_id: Id to use. None generates a fresh UUID4.

    Returns:
        The id that is now active
    """
    value = correlation_id or str(uuid.uuid4())
    correlation_id_var.set(value)
    return value


@contextmanager
def cover_job_context(identifier: str | None) -> Iterator[str]:
    """Tag every log line inside the block with the identifier being resolved.

    Also gives the job its own correlation id so one resolution can be followed
    through fetch_helper, the provider adapters and the storage adapter.
    """
    job_id = f"cover-{uuid.uuid4().hex[:12]}"
    id_token = cover_identifier_var.set(identifier or "")
    cid_token = correlation_id_var.set(job_id)
    try:
        yield job_id
    finally:
        correlation_id_var.reset(cid_token)
        cover_identifier_var.reset(id_token)


class LogContextFilter(logging.Filter):
    """Copies correlation id and cover identifier onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get()
        identifier = cover_identifier_var.get()
        record.cover_identifier = identifier
        record.cover_prefix = f"[{identifier}] " if identifier else ""
        return True


def _exception_chain(error: BaseException) -> list[BaseException]:
    chain: list[BaseException] = []
    current: BaseException | None = error
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    chain.reverse()
    return chain


def _own_frames(tb: TracebackType | None) -> list[traceback.FrameSummary]:
    if tb is None:
        return []
    return [
        frame
        for frame in traceback.extract_tb(tb)
        if "coverspot" in frame.filename and "/site-packages/" not in frame.filename
    ]


class CompactExceptionFormatter(logging.Formatter):
    """Text formatter that prints exception chains root cause first.

    Library frames are dropped, a failed provider call reads like:

        12:00:01 │ WARNING │ coverspot...fetch_helper:131 │ [9780441172719] Google Books ...
        ╰─► ConnectError: All connection attempts failed
            google_books_cover_provider.py:97 in fetch
              response = await client.get(url, params=params)
    """

    def format(self, record: logging.LogRecord) -> str:
        # Records that bypassed the filter (other handlers, tests) still format
        if not hasattr(record, "cover_prefix"):
            record.cover_prefix = ""
        return super().format(record)

    def formatException(self, ei: Any) -> str:
        error = ei[1]
        if error is None:
            return ""
        out: list[str] = []
        for exc in _exception_chain(error):
            out.append(f"╰─► {type(exc).__name__}: {exc}")
            for frame in _own_frames(exc.__traceback__):
                out.append(f"    {Path(frame.filename).name}:{frame.lineno} in {frame.name}")
                if frame.line:
                    out.append(f"      {frame.line.strip()}")
        return "\n".join(out)


class CustomJsonFormatter(jsonlogger.JsonFormatter):  # type: ignore[name-defined,misc]
    """One JSON object per line, with the cover context as top level keys."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record.update(
            timestamp=self.formatTime(record, self.datefmt),
            level=record.levelname,
            logger=record.name,
            line=record.lineno,
        )
        # Filter bookkeeping, not payload
        log_record.pop("cover_prefix", None)
        for key in ("correlation_id", "cover_identifier"):
            value = getattr(record, key, "")
            if value:
                log_record[key] = value
            else:
                log_record.pop(key, None)
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)


def configure_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    app_name: str = "coverspot",
) -> None:
    """Install a single stdout handler on the root logger.

    Safe to call again (tests, reload): existing root handlers are replaced.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_format: JSON lines instead of the compact text format
        app_name: Included in the startup record
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(LogContextFilter())
    if json_format:
        handler.setFormatter(CustomJsonFormatter(_JSON_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    else:
        handler.setFormatter(CompactExceptionFormatter(fmt=_TEXT_FORMAT, datefmt="%H:%M:%S"))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={"app_name": app_name, "log_level": log_level, "json_format": json_format},
    )
