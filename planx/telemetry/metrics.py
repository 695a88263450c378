# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Pipeline metrics.

PipelineMetrics registers every pipeline instrument once against a meter.
Without a meter it binds to no-op instruments, which is the state before
the metrics subsystem is ready: every recorder is then a silent no-op.
Telemetry rebinds its instance once the meter provider is ready.

Only coarse dimensions (tenant, stage, plugin type, error type) are accepted
as attributes so instrument cardinality stays stable under load.
"""

import logging
from typing import Dict, Optional

from opentelemetry.context import Context
from opentelemetry.metrics import Meter, NoOpMeter

from planx.telemetry.context.attributes import MetricAttributes
from planx.telemetry.context.events import MetricNames

logger = logging.getLogger(__name__)

METER_NAME = "planx"


def _batch_attributes(tenant_id: str, stage: str, plugin_type: str) -> Dict[str, str]:
    return {
        MetricAttributes.TENANT_ID: tenant_id,
        MetricAttributes.STAGE: stage,
        MetricAttributes.PLUGIN_TYPE: plugin_type,
    }


class PipelineMetrics:
    """
    Typed recorders for pipeline throughput, latency and backlog.

    Recorders never raise. The optional ctx argument is passed to the
    instruments for exemplar correlation.

    The same instance stays valid for its whole life: bind() swaps the
    instruments underneath, so handles taken before the metrics subsystem
    was ready record to the live instruments afterwards.
    """

    def __init__(self, meter: Optional[Meter] = None):
        self.bind(meter)

    def bind(self, meter: Optional[Meter]) -> None:
        """Create every instrument on meter, or on a no-op meter if None."""
        enabled = meter is not None
        meter = meter if enabled else NoOpMeter(METER_NAME)

        # Counters
        self.batches_sent = meter.create_counter(
            MetricNames.BATCHES_SENT, description="Total batches sent"
        )
        self.batches_received = meter.create_counter(
            MetricNames.BATCHES_RECEIVED, description="Total batches received"
        )
        self.records_sent = meter.create_counter(
            MetricNames.RECORDS_SENT, description="Total records sent"
        )
        self.records_received = meter.create_counter(
            MetricNames.RECORDS_RECEIVED, description="Total records received"
        )
        self.errors_total = meter.create_counter(
            MetricNames.ERRORS_TOTAL, description="Total errors"
        )

        # Histograms
        self.stage_latency = meter.create_histogram(
            MetricNames.STAGE_LATENCY,
            unit="ms",
            description="Stage processing latency in milliseconds",
        )
        self.ack_latency = meter.create_histogram(
            MetricNames.ACK_LATENCY,
            unit="ms",
            description="ACK latency in milliseconds",
        )

        # Gauges
        self.window_backlog = meter.create_up_down_counter(
            MetricNames.WINDOW_BACKLOG,
            description="Window backlog (in-flight batches)",
        )
        self.sessions_active = meter.create_up_down_counter(
            MetricNames.SESSIONS_ACTIVE, description="Active sessions"
        )
        self.in_flight_batches = meter.create_up_down_counter(
            MetricNames.BATCHES_INFLIGHT, description="In-flight batches"
        )
        self.enabled = enabled

    def record_batch_sent(
        self,
        ctx: Optional[Context],
        tenant_id: str,
        stage: str,
        plugin_type: str,
        record_count: int,
    ) -> None:
        """Count one batch and its records as sent."""
        try:
            attributes = _batch_attributes(tenant_id, stage, plugin_type)
            self.batches_sent.add(1, attributes, context=ctx)
            self.records_sent.add(record_count, attributes, context=ctx)
        except Exception as e:
            logger.debug(f"Failed to record batch sent: {e}")

    def record_batch_received(
        self,
        ctx: Optional[Context],
        tenant_id: str,
        stage: str,
        plugin_type: str,
        record_count: int,
    ) -> None:
        """Count one batch and its records as received."""
        try:
            attributes = _batch_attributes(tenant_id, stage, plugin_type)
            self.batches_received.add(1, attributes, context=ctx)
            self.records_received.add(record_count, attributes, context=ctx)
        except Exception as e:
            logger.debug(f"Failed to record batch received: {e}")

    def record_stage_latency(
        self, ctx: Optional[Context], stage: str, latency_ms: float
    ) -> None:
        try:
            self.stage_latency.record(
                latency_ms, {MetricAttributes.STAGE: stage}, context=ctx
            )
        except Exception as e:
            logger.debug(f"Failed to record stage latency: {e}")

    def record_ack_latency(self, ctx: Optional[Context], latency_ms: float) -> None:
        try:
            self.ack_latency.record(latency_ms, context=ctx)
        except Exception as e:
            logger.debug(f"Failed to record ack latency: {e}")

    def record_error(
        self, ctx: Optional[Context], tenant_id: str, stage: str, error_type: str
    ) -> None:
        """Count an error by tenant, stage and error type."""
        try:
            self.errors_total.add(
                1,
                {
                    MetricAttributes.TENANT_ID: tenant_id,
                    MetricAttributes.STAGE: stage,
                    MetricAttributes.ERROR_TYPE: error_type,
                },
                context=ctx,
            )
        except Exception as e:
            logger.debug(f"Failed to record error: {e}")

    def update_window_backlog(
        self, ctx: Optional[Context], stage: str, delta: int
    ) -> None:
        try:
            self.window_backlog.add(delta, {MetricAttributes.STAGE: stage}, context=ctx)
        except Exception as e:
            logger.debug(f"Failed to update window backlog: {e}")

    def update_sessions_active(
        self, ctx: Optional[Context], plugin_type: str, delta: int
    ) -> None:
        try:
            self.sessions_active.add(
                delta, {MetricAttributes.PLUGIN_TYPE: plugin_type}, context=ctx
            )
        except Exception as e:
            logger.debug(f"Failed to update active sessions: {e}")

    def update_in_flight_batches(self, ctx: Optional[Context], delta: int) -> None:
        try:
            self.in_flight_batches.add(delta, context=ctx)
        except Exception as e:
            logger.debug(f"Failed to update in-flight batches: {e}")
