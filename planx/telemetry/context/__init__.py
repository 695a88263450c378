# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Trace identity, propagation and span utilities.

Provides the explicit-context trace identity, carrier propagation across
process boundaries and fixed-schema spans for pipeline events.
"""

# Attribute keys
from planx.telemetry.context.attributes import LogFields, MetricAttributes, SpanAttributes
# Span and instrument names
from planx.telemetry.context.events import MetricNames, SpanNames
# Scoped spans
from planx.telemetry.context.manager import SpanScope
# Trace identity and propagation
from planx.telemetry.context.propagation import (
    BAGGAGE_HEADER,
    PROPAGATOR,
    TRACE_PARENT_HEADER,
    TRACE_STATE_HEADER,
    TraceIdentity,
    background,
    context_with_trace,
    extract,
    get_baggage,
    inject,
    set_baggage,
    span_id,
    trace_id,
    trace_identity,
)
# Span lifecycle
from planx.telemetry.context.span import (
    PipelineSpans,
    close_span,
    record_span_error,
    span_from_context,
)

__all__ = [
    # Attributes
    "SpanAttributes",
    "MetricAttributes",
    "LogFields",
    # Names
    "SpanNames",
    "MetricNames",
    # Identity
    "TraceIdentity",
    "background",
    "trace_identity",
    "trace_id",
    "span_id",
    "context_with_trace",
    # Propagation
    "inject",
    "extract",
    "set_baggage",
    "get_baggage",
    "PROPAGATOR",
    "TRACE_PARENT_HEADER",
    "TRACE_STATE_HEADER",
    "BAGGAGE_HEADER",
    # Spans
    "PipelineSpans",
    "SpanScope",
    "span_from_context",
    "record_span_error",
    "close_span",
]
