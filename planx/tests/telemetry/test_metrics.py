# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

import pytest

from planx.telemetry import PipelineMetrics, background
from planx.telemetry.context import MetricNames


def batch_key(name, tenant_id, stage, plugin_type):
    return (
        name,
        (("plugin_type", plugin_type), ("stage", stage), ("tenant_id", tenant_id)),
    )


@pytest.fixture
def pipeline_metrics(telemetry):
    telemetry.init_metrics()
    return telemetry.metrics


@pytest.mark.unit
class TestPipelineMetrics:
    """Test the pipeline instruments"""

    def test_batch_counters(self, pipeline_metrics, metric_points):
        """Test sent and received batches are counted per dimension"""
        ctx = background()

        pipeline_metrics.record_batch_sent(ctx, "t1", "source", "mysql", 100)
        pipeline_metrics.record_batch_received(ctx, "t1", "sink", "http", 100)

        points = metric_points()
        assert points[batch_key(MetricNames.BATCHES_SENT, "t1", "source", "mysql")] == 1
        assert points[batch_key(MetricNames.RECORDS_SENT, "t1", "source", "mysql")] == 100
        assert points[batch_key(MetricNames.BATCHES_RECEIVED, "t1", "sink", "http")] == 1
        assert points[batch_key(MetricNames.RECORDS_RECEIVED, "t1", "sink", "http")] == 100
        # Only the recorded dimension combinations exist
        assert batch_key(MetricNames.BATCHES_SENT, "t1", "sink", "http") not in points
        assert batch_key(MetricNames.BATCHES_RECEIVED, "t1", "source", "mysql") not in points

    def test_counters_accumulate(self, pipeline_metrics, metric_points):
        """Test repeated batches add up"""
        for _ in range(3):
            pipeline_metrics.record_batch_sent(None, "t2", "processor", "filter", 10)

        points = metric_points()
        assert points[batch_key(MetricNames.BATCHES_SENT, "t2", "processor", "filter")] == 3
        assert points[batch_key(MetricNames.RECORDS_SENT, "t2", "processor", "filter")] == 30

    def test_errors_total(self, pipeline_metrics, metric_points):
        """Test errors are counted by tenant, stage and error type"""
        pipeline_metrics.record_error(None, "t1", "sink", "TransportError")
        pipeline_metrics.record_error(None, "t1", "sink", "TransportError")

        key = (
            MetricNames.ERRORS_TOTAL,
            (("error_type", "TransportError"), ("stage", "sink"), ("tenant_id", "t1")),
        )
        assert metric_points()[key] == 2

    def test_latency_histograms(self, pipeline_metrics, metric_points):
        """Test latency samples are recorded"""
        pipeline_metrics.record_stage_latency(None, "sink", 12.5)
        pipeline_metrics.record_stage_latency(None, "sink", 7.0)
        pipeline_metrics.record_ack_latency(None, 3.0)

        points = metric_points()
        assert points[(MetricNames.STAGE_LATENCY, (("stage", "sink"),))] == 2
        assert points[(MetricNames.ACK_LATENCY, ())] == 1

    def test_up_down_counters(self, pipeline_metrics, metric_points):
        """Test gauges move both ways"""
        pipeline_metrics.update_window_backlog(None, "source", 5)
        pipeline_metrics.update_window_backlog(None, "source", -2)
        pipeline_metrics.update_sessions_active(None, "mysql", 1)
        pipeline_metrics.update_in_flight_batches(None, 4)
        pipeline_metrics.update_in_flight_batches(None, -4)

        points = metric_points()
        assert points[(MetricNames.WINDOW_BACKLOG, (("stage", "source"),))] == 3
        assert points[(MetricNames.SESSIONS_ACTIVE, (("plugin_type", "mysql"),))] == 1
        assert points[(MetricNames.BATCHES_INFLIGHT, ())] == 0

    def test_recording_with_span_context(self, telemetry, pipeline_metrics, metric_points):
        """Test recorders accept a context carrying a span"""
        ctx, span = telemetry.spans.start_source_read_span(background(), "t1", "s1", 8)

        pipeline_metrics.record_batch_sent(ctx, "t1", "source", "kafka", 8)
        span.end()

        assert metric_points()[batch_key(MetricNames.RECORDS_SENT, "t1", "source", "kafka")] == 8


@pytest.mark.unit
class TestNoOpMetrics:
    """Test recorders without a meter"""

    def test_noop_recorders(self):
        """Test every recorder is a silent no-op"""
        noop = PipelineMetrics()

        assert noop.enabled is False
        noop.record_batch_sent(None, "t1", "source", "mysql", 1)
        noop.record_batch_received(None, "t1", "sink", "http", 1)
        noop.record_stage_latency(None, "sink", 1.0)
        noop.record_ack_latency(None, 1.0)
        noop.record_error(None, "t1", "sink", "StreamError")
        noop.update_window_backlog(None, "source", 1)
        noop.update_sessions_active(None, "mysql", 1)
        noop.update_in_flight_batches(None, 1)

    def test_recorded_before_init_is_lost(self, telemetry, metric_points):
        """Test records made before metrics are ready are not exported"""
        telemetry.metrics.record_batch_sent(None, "t1", "source", "mysql", 100)
        telemetry.init_metrics()
        telemetry.metrics.record_batch_sent(None, "t1", "source", "mysql", 50)

        points = metric_points()
        assert points[batch_key(MetricNames.RECORDS_SENT, "t1", "source", "mysql")] == 50
        assert points[batch_key(MetricNames.BATCHES_SENT, "t1", "source", "mysql")] == 1

    def test_handle_taken_before_init(self, telemetry, metric_points):
        """Test a handle taken before init records once metrics are ready"""
        handle = telemetry.metrics
        telemetry.init_metrics()

        handle.record_batch_sent(None, "t1", "source", "mysql", 100)

        assert handle is telemetry.metrics
        assert handle.enabled is True
        assert metric_points()[batch_key(MetricNames.RECORDS_SENT, "t1", "source", "mysql")] == 100

    def test_handle_disabled_after_shutdown(self, telemetry):
        """Test the handle falls back to no-op instruments after shutdown"""
        handle = telemetry.metrics
        telemetry.init_metrics()

        telemetry.shutdown()

        assert handle.enabled is False
        handle.record_batch_sent(None, "t1", "source", "mysql", 1)
