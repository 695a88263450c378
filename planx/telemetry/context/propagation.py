# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Trace identity and context propagation utilities.

The trace identity always rides inside an explicit OpenTelemetry Context
value that callers pass by parameter. Nothing here reads or attaches the
ambient context. Carriers use the W3C Trace Context and Baggage headers,
so any peer speaking the same standard can continue the trace.
"""

import logging
from dataclasses import dataclass
from typing import MutableMapping, Optional

from opentelemetry import baggage, trace
from opentelemetry.baggage.propagation import W3CBaggagePropagator
from opentelemetry.context import Context
from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.trace import (
    NonRecordingSpan,
    SpanContext,
    TraceFlags,
    format_span_id,
    format_trace_id,
)
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

logger = logging.getLogger(__name__)

# Carrier keys
TRACE_PARENT_HEADER = "traceparent"
TRACE_STATE_HEADER = "tracestate"
BAGGAGE_HEADER = "baggage"

# Stateless, safe to share between threads
PROPAGATOR = CompositePropagator(
    [TraceContextTextMapPropagator(), W3CBaggagePropagator()]
)


@dataclass(frozen=True)
class TraceIdentity:
    """The (trace id, span id) pair of a span, as lowercase hex strings."""

    trace_id: str
    span_id: str


def background() -> Context:
    """Return an empty context carrying no trace identity."""
    return Context()


def trace_identity(ctx: Optional[Context]) -> Optional[TraceIdentity]:
    """
    Get the trace identity carried by a context.

    Args:
        ctx: The context to inspect

    Returns:
        Optional[TraceIdentity]: The identity, or None if ctx has no valid span
    """
    if ctx is None:
        return None
    span_context = trace.get_current_span(ctx).get_span_context()
    if not span_context.is_valid:
        return None
    return TraceIdentity(
        trace_id=format_trace_id(span_context.trace_id),
        span_id=format_span_id(span_context.span_id),
    )


def trace_id(ctx: Optional[Context]) -> str:
    """Return the trace id carried by ctx, or an empty string."""
    identity = trace_identity(ctx)
    return identity.trace_id if identity else ""


def span_id(ctx: Optional[Context]) -> str:
    """Return the span id carried by ctx, or an empty string."""
    identity = trace_identity(ctx)
    return identity.span_id if identity else ""


def inject(ctx: Optional[Context], carrier: MutableMapping[str, str]) -> None:
    """
    Write the trace identity and baggage of ctx into a carrier.

    Existing carrier keys other than the propagation headers are left
    untouched. A context without identity writes nothing.

    Args:
        ctx: The context holding the identity
        carrier: Flat string mapping, e.g. a batch envelope's context map
    """
    if ctx is None:
        return
    try:
        PROPAGATOR.inject(carrier, context=ctx)
    except Exception as e:
        logger.debug(f"Failed to inject trace context: {e}")


def extract(
    ctx: Optional[Context], carrier: Optional[MutableMapping[str, str]]
) -> Context:
    """
    Read a trace identity from a carrier into a derived context.

    Missing, unrecognized or malformed keys never raise: the input context
    is returned as is.

    Args:
        ctx: The context to derive from (None means background())
        carrier: Flat string mapping received from a peer

    Returns:
        Context: ctx with the remote identity and baggage attached
    """
    base = background() if ctx is None else ctx
    if not carrier:
        return base
    try:
        return PROPAGATOR.extract(carrier, context=base)
    except Exception as e:
        logger.debug(f"Failed to extract trace context: {e}")
        return base


def context_with_trace(
    ctx: Optional[Context], trace_id_hex: str, span_id_hex: str
) -> Context:
    """
    Attach a remote trace identity given as hex strings.

    Prefer extract() with a carrier. This is for callers that only stored
    the raw ids. Invalid ids leave the context unchanged.
    """
    base = background() if ctx is None else ctx
    try:
        span_context = SpanContext(
            trace_id=int(trace_id_hex, 16),
            span_id=int(span_id_hex, 16),
            is_remote=True,
            trace_flags=TraceFlags(TraceFlags.SAMPLED),
        )
    except (TypeError, ValueError):
        logger.debug(f"Ignoring invalid trace identity {trace_id_hex}/{span_id_hex}")
        return base

    if not span_context.is_valid:
        return base
    return trace.set_span_in_context(NonRecordingSpan(span_context), base)


def set_baggage(ctx: Optional[Context], key: str, value: str) -> Context:
    """Return a context with a baggage entry added."""
    base = background() if ctx is None else ctx
    return baggage.set_baggage(key, value, context=base)


def get_baggage(ctx: Optional[Context], key: str) -> Optional[str]:
    """Return a baggage entry carried by ctx."""
    if ctx is None:
        return None
    value = baggage.get_baggage(key, context=ctx)
    return None if value is None else str(value)
