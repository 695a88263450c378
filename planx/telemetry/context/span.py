# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Span lifecycle utilities for pipeline events.

Spans are started against an explicit context and return the child context
that carries the new trace identity. Each well-known pipeline event has a
constructor with a fixed attribute schema so every stage emits comparable
telemetry regardless of which plugin drives it.

A span that is never closed is never exported. Close it with close_span()
or use SpanScope, which closes on exit.
"""

import logging
from typing import Any, Callable, Dict, Optional, Tuple

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import Span, Status, StatusCode, Tracer

from planx.errors import PlanxError
from planx.telemetry.context.attributes import SpanAttributes
from planx.telemetry.context.events import SpanNames
from planx.telemetry.context.propagation import background

logger = logging.getLogger(__name__)


def clean_attributes(attributes: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop None values and stringify values OpenTelemetry cannot store."""
    cleaned: Dict[str, Any] = {}
    if not attributes:
        return cleaned
    for key, value in attributes.items():
        if value is None:
            continue
        # Convert value to string if not a primitive type
        if isinstance(value, (str, int, float, bool)):
            cleaned[key] = value
        else:
            cleaned[key] = str(value)
    return cleaned


def span_from_context(ctx: Optional[Context]) -> Optional[Span]:
    """
    Get the span carried by a context.

    Returns:
        Optional[Span]: The span, or None if ctx carries no valid span
    """
    if ctx is None:
        return None
    span = trace.get_current_span(ctx)
    if not span.get_span_context().is_valid:
        return None
    return span


def record_span_error(span: Optional[Span], err: Optional[BaseException]) -> None:
    """
    Mark a span as failed and attach the error.

    The error message, type and stack are recorded as an exception event.
    Errors created but never raised keep the stack where they were created.
    The span is not closed.

    Args:
        span: The span to mark
        err: The error to attach
    """
    if span is None or err is None or not span.is_recording():
        return

    try:
        exception_attributes = None
        if isinstance(err, PlanxError) and err.__traceback__ is None:
            exception_attributes = {"exception.stacktrace": err.stack_trace()}
        span.record_exception(err, attributes=exception_attributes)
        span.set_attributes(
            {
                SpanAttributes.ERROR_TYPE: type(err).__name__,
                SpanAttributes.ERROR_MESSAGE: str(err)[:500],
            }
        )
        span.set_status(Status(StatusCode.ERROR, description=str(err)))
    except Exception as e:
        logger.debug(f"Failed to record span error: {e}")


def close_span(span: Optional[Span]) -> None:
    """
    Close a span, freezing its end time.

    A span with no recorded error is closed with status OK. Closing an
    already closed span does nothing.
    """
    if span is None or not span.is_recording():
        return

    try:
        status = getattr(span, "status", None)
        if status is not None and status.status_code is StatusCode.UNSET:
            span.set_status(Status(StatusCode.OK))
        span.end()
    except Exception as e:
        logger.debug(f"Failed to close span: {e}")


class PipelineSpans:
    """
    Starts spans for pipeline events.

    Args:
        tracer_resolver: Returns the tracer to start spans with. It is called
            on every start so a tracer initialized later is picked up.
    """

    def __init__(self, tracer_resolver: Callable[[], Tracer]):
        self._tracer_resolver = tracer_resolver

    def start_span(
        self,
        ctx: Optional[Context],
        name: str,
        attributes: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Context, Span]:
        """
        Start a span as a child of the span carried by ctx.

        If ctx carries a trace identity the new span joins that trace with a
        new span id. Otherwise a new root trace is started.

        Args:
            ctx: Parent context (None means background())
            name: Span name
            attributes: Optional span attributes

        Returns:
            Tuple[Context, Span]: The child context and the started span
        """
        parent = background() if ctx is None else ctx
        try:
            span = self._tracer_resolver().start_span(
                name,
                context=parent,
                attributes=clean_attributes(attributes),
            )
        except Exception as e:
            logger.debug(f"Failed to start span {name}: {e}")
            return parent, trace.INVALID_SPAN
        return trace.set_span_in_context(span, parent), span

    def start_source_read_span(
        self, ctx: Optional[Context], tenant_id: str, session_id: str, batch_size: int
    ) -> Tuple[Context, Span]:
        """Start a source.read span."""
        return self.start_span(
            ctx,
            SpanNames.SOURCE_READ,
            {
                SpanAttributes.TENANT_ID: tenant_id,
                SpanAttributes.SESSION_ID: session_id,
                SpanAttributes.BATCH_SIZE: batch_size,
            },
        )

    def start_processor_span(
        self, ctx: Optional[Context], processor: str, session_id: str, batch_size: int
    ) -> Tuple[Context, Span]:
        """Start a processor.process span."""
        return self.start_span(
            ctx,
            SpanNames.PROCESSOR_PROCESS,
            {
                SpanAttributes.PROCESSOR: processor,
                SpanAttributes.SESSION_ID: session_id,
                SpanAttributes.BATCH_SIZE: batch_size,
            },
        )

    def start_sink_write_span(
        self, ctx: Optional[Context], sink: str, session_id: str, batch_size: int
    ) -> Tuple[Context, Span]:
        """Start a sink.write span."""
        return self.start_span(
            ctx,
            SpanNames.SINK_WRITE,
            {
                SpanAttributes.SINK: sink,
                SpanAttributes.SESSION_ID: session_id,
                SpanAttributes.BATCH_SIZE: batch_size,
            },
        )

    def start_route_span(
        self, ctx: Optional[Context], from_stage: str, to_stage: str
    ) -> Tuple[Context, Span]:
        """Start an engine.route span."""
        return self.start_span(
            ctx,
            SpanNames.ENGINE_ROUTE,
            {SpanAttributes.FROM: from_stage, SpanAttributes.TO: to_stage},
        )

    def scope(
        self,
        ctx: Optional[Context],
        name: str,
        attributes: Optional[Dict[str, Any]] = None,
    ):
        """Start a span and wrap it in a SpanScope that closes it on exit."""
        # Imported here, manager imports this module
        from planx.telemetry.context.manager import SpanScope

        return SpanScope(*self.start_span(ctx, name, attributes))
