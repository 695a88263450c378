# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Standardized span and instrument names for the pipeline.
"""


class SpanNames:
    """Span names for the well-known pipeline events."""

    SOURCE_READ = "source.read"
    PROCESSOR_PROCESS = "processor.process"
    SINK_WRITE = "sink.write"
    ENGINE_ROUTE = "engine.route"


class MetricNames:
    """Instrument names registered by PipelineMetrics."""

    # Counters
    BATCHES_SENT = "planx.batches.sent"
    BATCHES_RECEIVED = "planx.batches.received"
    RECORDS_SENT = "planx.records.sent"
    RECORDS_RECEIVED = "planx.records.received"
    ERRORS_TOTAL = "planx.errors.total"

    # Histograms
    STAGE_LATENCY = "planx.stage.latency"
    ACK_LATENCY = "planx.ack.latency"

    # Up/down gauges
    WINDOW_BACKLOG = "planx.window.backlog"
    SESSIONS_ACTIVE = "planx.sessions.active"
    BATCHES_INFLIGHT = "planx.batches.inflight"
