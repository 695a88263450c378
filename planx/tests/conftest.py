# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

import io
import json
import uuid

import pytest
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from planx.telemetry import (
    LoggingConfig,
    MetricsConfig,
    Telemetry,
    TelemetryConfig,
    TracingConfig,
)


@pytest.fixture
def span_exporter():
    """In-memory span exporter"""
    return InMemorySpanExporter()


@pytest.fixture
def metric_reader():
    """In-memory metric reader"""
    return InMemoryMetricReader()


@pytest.fixture
def log_output():
    """Stream receiving application log records"""
    return io.StringIO()


@pytest.fixture
def telemetry_config(span_exporter, metric_reader, log_output):
    """Configuration routing every subsystem to in-memory sinks"""
    return TelemetryConfig(
        tracing=TracingConfig(service_name="planx-test", exporter=span_exporter),
        metrics=MetricsConfig(service_name="planx-test", reader=metric_reader),
        logging=LoggingConfig(
            service_name="planx-test",
            level="debug",
            output=log_output,
            # Unique logger per test, loggers are process-wide
            logger_name=f"planx.test.{uuid.uuid4().hex}",
        ),
    )


@pytest.fixture
def telemetry(telemetry_config):
    """Telemetry instance that does not touch the OpenTelemetry globals"""
    instance = Telemetry(telemetry_config, register_global=False)
    yield instance
    instance.shutdown()


@pytest.fixture
def read_logs(log_output):
    """Return a function parsing the JSON log lines written so far"""

    def _read():
        return [
            json.loads(line) for line in log_output.getvalue().splitlines() if line.strip()
        ]

    return _read


@pytest.fixture
def metric_points(metric_reader):
    """
    Return a function collecting metric points as {(name, attributes): value}.

    Sums and gauges map to their value, histograms to their count.
    """

    def _collect():
        points = {}
        data = metric_reader.get_metrics_data()
        if data is None:
            return points
        for resource_metrics in data.resource_metrics:
            for scope_metrics in resource_metrics.scope_metrics:
                for metric in scope_metrics.metrics:
                    for point in metric.data.data_points:
                        attributes = tuple(sorted(dict(point.attributes or {}).items()))
                        value = getattr(point, "value", None)
                        points[(metric.name, attributes)] = (
                            point.count if value is None else value
                        )
        return points

    return _collect
