# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
OpenTelemetry correlation layer for the Planx pipeline engine.

Unifies tracing, metrics and structured logging under one trace identity
carried by an explicit context, so a batch moving through source, processor
and sink stages can be followed end to end across processes.

Directory Structure:
    telemetry/
    ├── __init__.py          # Public API exports (this file)
    ├── core.py              # Telemetry, provider slots and one-shot init
    ├── config.py            # Configuration from environment or files
    ├── providers.py         # TracerProvider, MeterProvider and log setup
    ├── logger.py            # Trace-correlated structured logging
    ├── metrics.py           # Pipeline instruments
    └── context/
        ├── __init__.py      # Context utilities exports
        ├── attributes.py    # Span, metric and log field keys
        ├── events.py        # Span and instrument names
        ├── manager.py       # SpanScope
        ├── span.py          # Span lifecycle and pipeline span helpers
        └── propagation.py   # Trace identity and carrier propagation

Usage:
    from planx.telemetry import Telemetry, TelemetryConfig, background
    from planx.telemetry import inject, extract, close_span, record_span_error
    from planx.telemetry.context import SpanScope, SpanNames
"""

# Configuration
from planx.telemetry.config import (
    LoggingConfig,
    MetricsConfig,
    TelemetryConfig,
    TracingConfig,
    validate_endpoint,
)

# Context, identity and spans
from planx.telemetry.context import (
    PipelineSpans,
    SpanScope,
    TraceIdentity,
    background,
    close_span,
    context_with_trace,
    extract,
    inject,
    record_span_error,
    span_from_context,
    span_id,
    trace_id,
    trace_identity,
)

# Lifecycle
from planx.telemetry.core import InitGate, SlotState, Subsystem, Telemetry

# Logging
from planx.telemetry.logger import CorrelatedLogger, add_span_event

# Metrics
from planx.telemetry.metrics import PipelineMetrics

__all__ = [
    # Lifecycle
    "Telemetry",
    "Subsystem",
    "SlotState",
    "InitGate",
    # Config
    "TelemetryConfig",
    "TracingConfig",
    "MetricsConfig",
    "LoggingConfig",
    "validate_endpoint",
    # Identity and propagation
    "TraceIdentity",
    "background",
    "trace_identity",
    "trace_id",
    "span_id",
    "context_with_trace",
    "inject",
    "extract",
    # Spans
    "PipelineSpans",
    "SpanScope",
    "span_from_context",
    "record_span_error",
    "close_span",
    # Logging
    "CorrelatedLogger",
    "add_span_event",
    # Metrics
    "PipelineMetrics",
]
