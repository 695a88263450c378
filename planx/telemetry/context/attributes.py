# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Standard span and metric attribute keys for Planx.

These keys are read by downstream telemetry consumers. Do not rename them.
"""


class SpanAttributes:
    """Attribute keys set on pipeline spans."""

    TENANT_ID = "tenant_id"
    SESSION_ID = "session_id"
    BATCH_SIZE = "batch_size"

    # Processor and sink identity
    PROCESSOR = "processor"
    SINK = "sink"

    # Routing
    FROM = "from"
    TO = "to"

    # Error attributes
    ERROR_TYPE = "error.type"
    ERROR_MESSAGE = "error.message"


class MetricAttributes:
    """
    Attribute keys accepted by pipeline metrics.

    Only coarse dimensions are allowed, never per-record identifiers.
    """

    TENANT_ID = "tenant_id"
    STAGE = "stage"
    PLUGIN_TYPE = "plugin_type"
    ERROR_TYPE = "error_type"


class LogFields:
    """Field names appended to correlated log records."""

    SERVICE = "service"
    TRACE_ID = "trace_id"
    SPAN_ID = "span_id"
    ERROR = "error"
    ERROR_TYPE = "error_type"
