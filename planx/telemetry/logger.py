# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Trace-correlated structured logging.

CorrelatedLogger writes records through a standard library logger. When the
context passed to a call carries a trace identity, trace_id and span_id are
appended as the last fields of the record. The identity is read from the
context as it is at call time, so a record emitted after its span closed
still carries that span's ids.

The logger never needs the tracing subsystem: identities are read through
the OpenTelemetry API only, and span events are skipped when no recording
span is present.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import json_log_formatter
from opentelemetry import trace
from opentelemetry.context import Context

from planx.errors import PlanxError
from planx.telemetry.context.attributes import LogFields
from planx.telemetry.context.propagation import TraceIdentity, trace_identity
from planx.telemetry.context.span import clean_attributes

logger = logging.getLogger(__name__)

# LogRecord attributes that are not user fields
RESERVED_ATTRS = frozenset(json_log_formatter.BUILTIN_ATTRS) | {"taskName", "message", "asctime"}

CONSOLE_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)-5s %(message)s"
CONSOLE_DATE_FORMAT = "%H:%M:%S"


def record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Return the user fields of a record, in the order they were added."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in RESERVED_ATTRS
    }


class CorrelatedJSONFormatter(json_log_formatter.JSONFormatter):
    """Compact JSON lines: time, level, service, logger, message, then fields."""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def extra_from_record(self, record: logging.LogRecord) -> dict:
        return record_fields(record)

    def json_record(self, message: str, extra: dict, record: logging.LogRecord) -> dict:
        payload = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc),
            "level": record.levelname.lower(),
            LogFields.SERVICE: self.service_name,
            "logger": record.name,
            "message": message,
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        # Trace fields were added last to extra, keep them last
        payload.update(extra)
        return payload


class ConsoleFormatter(logging.Formatter):
    """Human-readable lines with trailing key=value fields."""

    def __init__(self, service_name: str):
        super().__init__(CONSOLE_FORMAT, datefmt=CONSOLE_DATE_FORMAT)
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        pairs = [f"{LogFields.SERVICE}={self.service_name}"]
        pairs.extend(f"{key}={value}" for key, value in record_fields(record).items())
        head, sep, tail = line.partition("\n")
        return f"{head} {' '.join(pairs)}{sep}{tail}"


def _safe_key(key: str) -> str:
    # LogRecord refuses extra keys that shadow its own attributes
    return f"field.{key}" if key in RESERVED_ATTRS else key


class CorrelatedLogger:
    """
    Logs with trace correlation.

    Usage:
        ```python
        log = telemetry.log
        ctx, span = telemetry.spans.start_source_read_span(ctx, "t1", "s1", 100)
        log.info(ctx, "batch read", stage="source", records=100)
        ```

    Args:
        logger_resolver: Returns the logger to write to. Called on every log
            call so the logger configured at initialization is picked up.
        identity_resolver: Reads the trace identity from a context. Defaults
            to the OpenTelemetry span carried by the context.
    """

    def __init__(
        self,
        logger_resolver: Callable[[], logging.Logger],
        identity_resolver: Callable[
            [Optional[Context]], Optional[TraceIdentity]
        ] = trace_identity,
    ):
        self._logger_resolver = logger_resolver
        self._identity_resolver = identity_resolver

    def log_at(
        self,
        level: int,
        ctx: Optional[Context],
        message: str,
        error: Optional[BaseException] = None,
        **fields: Any,
    ) -> None:
        """
        Emit a record at level with the given fields.

        Args:
            level: A logging level number
            ctx: Context whose trace identity is appended, if any
            message: Log message
            error: Optional error whose message and type are added as fields
            **fields: Additional structured fields
        """
        try:
            target = self._logger_resolver()
            if not target.isEnabledFor(level):
                return

            extra: Dict[str, Any] = {_safe_key(k): v for k, v in fields.items()}
            if error is not None:
                extra[LogFields.ERROR] = str(error)
                extra[LogFields.ERROR_TYPE] = type(error).__name__
                if isinstance(error, PlanxError) and error.__traceback__ is None:
                    extra["stack"] = error.stack_trace()

            identity = self._identity_resolver(ctx)
            if identity is not None:
                extra[LogFields.TRACE_ID] = identity.trace_id
                extra[LogFields.SPAN_ID] = identity.span_id

            exc_info = None
            if error is not None and error.__traceback__ is not None:
                exc_info = (type(error), error, error.__traceback__)

            target.log(level, message, extra=extra, exc_info=exc_info)
        except Exception as e:
            logger.debug(f"Failed to emit log record: {e}")

    def debug(self, ctx: Optional[Context], message: str, **fields: Any) -> None:
        self.log_at(logging.DEBUG, ctx, message, **fields)

    def info(self, ctx: Optional[Context], message: str, **fields: Any) -> None:
        self.log_at(logging.INFO, ctx, message, **fields)

    def warning(self, ctx: Optional[Context], message: str, **fields: Any) -> None:
        self.log_at(logging.WARNING, ctx, message, **fields)

    def error(
        self,
        ctx: Optional[Context],
        message: str,
        error: Optional[BaseException] = None,
        **fields: Any,
    ) -> None:
        self.log_at(logging.ERROR, ctx, message, error=error, **fields)


def add_span_event(
    ctx: Optional[Context], message: str, attributes: Optional[Dict[str, Any]] = None
) -> None:
    """
    Add a message as a timeline event on the span carried by ctx.

    This is a trace-native hint alongside the log record, not a replacement
    for it. Skipped when ctx has no recording span.
    """
    if ctx is None:
        return

    span = trace.get_current_span(ctx)
    if not span.is_recording():
        return

    try:
        span.add_event(message, clean_attributes(attributes))
    except Exception as e:
        logger.debug(f"Failed to add span event: {e}")
