# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
OpenTelemetry provider construction module.

Builds the TracerProvider, MeterProvider and log pipeline for one
subsystem each. An OTLP exporter is used when an endpoint is configured,
otherwise telemetry goes to stdout. A builder either returns a fully
configured provider or raises ConfigError; nothing is registered globally
before construction succeeded.
"""

import logging
import sys
from dataclasses import dataclass, field
from typing import List, Optional

from opentelemetry import metrics, trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.propagate import set_global_textmap
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider as SDKMeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider as SDKTracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.trace.sampling import ParentBasedTraceIdRatio

from planx.errors import ConfigError
from planx.telemetry.config import (
    LoggingConfig,
    MetricsConfig,
    TracingConfig,
    validate_endpoint,
)
from planx.telemetry.context.propagation import PROPAGATOR
from planx.telemetry.logger import ConsoleFormatter, CorrelatedJSONFormatter

logger = logging.getLogger(__name__)

# Timeout for a single OTLP export call, in seconds
EXPORT_TIMEOUT_SECONDS = 5


def build_resource(service_name: str, service_version: str) -> Resource:
    """Create the resource describing this service."""
    return Resource.create(
        {
            SERVICE_NAME: service_name,
            SERVICE_VERSION: service_version,
        }
    )


def build_tracer_provider(
    config: TracingConfig, register_global: bool = True
) -> SDKTracerProvider:
    """
    Build and optionally register a TracerProvider.

    The BatchSpanProcessor is configured with fail-safe settings so that an
    unreachable collector drops spans instead of blocking the pipeline.

    Args:
        config: Tracing configuration
        register_global: Register the provider and the W3C propagator as the
            OpenTelemetry globals

    Returns:
        SDKTracerProvider: The configured provider

    Raises:
        ConfigError: If the endpoint is malformed or the exporter cannot be built
    """
    if not 0.0 <= config.sampler_ratio <= 1.0:
        raise ConfigError(f"sampler ratio must be within [0, 1], got {config.sampler_ratio}")

    if config.exporter is None and config.endpoint:
        endpoint = validate_endpoint(config.endpoint)

    try:
        resource = build_resource(config.service_name, config.service_version)

        if config.exporter is not None:
            exporter = config.exporter
        elif config.endpoint:
            exporter = OTLPSpanExporter(
                endpoint=f"{endpoint}/v1/traces",
                timeout=EXPORT_TIMEOUT_SECONDS,
            )
        else:
            exporter = ConsoleSpanExporter(out=sys.stdout)

        tracer_provider = SDKTracerProvider(
            resource=resource,
            sampler=ParentBasedTraceIdRatio(config.sampler_ratio),
        )
        # Drop spans when the queue is full, time out exports quickly
        tracer_provider.add_span_processor(
            BatchSpanProcessor(
                exporter,
                max_queue_size=2048,
                schedule_delay_millis=5000,
                max_export_batch_size=512,
                export_timeout_millis=10000,
            )
        )
    except Exception as e:
        raise ConfigError("failed to initialize tracing", cause=e) from e

    if register_global:
        set_global_textmap(PROPAGATOR)
        trace.set_tracer_provider(tracer_provider)

    logger.debug(
        f"TracerProvider initialized for {config.service_name}, "
        f"endpoint: {config.endpoint or 'stdout'}, sampler_ratio: {config.sampler_ratio}"
    )
    return tracer_provider


def build_meter_provider(
    config: MetricsConfig, register_global: bool = True
) -> SDKMeterProvider:
    """
    Build and optionally register a MeterProvider.

    Metrics are exported by a periodic reader every interval_seconds.

    Args:
        config: Metrics configuration
        register_global: Register the provider as the OpenTelemetry global

    Returns:
        SDKMeterProvider: The configured provider

    Raises:
        ConfigError: If the endpoint or interval is invalid or the exporter
            cannot be built
    """
    if config.interval_seconds <= 0:
        raise ConfigError(f"metrics interval must be positive, got {config.interval_seconds}")

    if config.reader is None and config.endpoint:
        endpoint = validate_endpoint(config.endpoint)

    try:
        resource = build_resource(config.service_name, config.service_version)

        if config.reader is not None:
            reader = config.reader
        else:
            if config.endpoint:
                exporter = OTLPMetricExporter(
                    endpoint=endpoint,
                    insecure=endpoint.startswith("http://"),
                    timeout=EXPORT_TIMEOUT_SECONDS,
                )
            else:
                exporter = ConsoleMetricExporter(out=sys.stdout)
            reader = PeriodicExportingMetricReader(
                exporter,
                export_interval_millis=config.interval_seconds * 1000,
                export_timeout_millis=10000,
            )

        meter_provider = SDKMeterProvider(resource=resource, metric_readers=[reader])
    except Exception as e:
        raise ConfigError("failed to initialize metrics", cause=e) from e

    if register_global:
        metrics.set_meter_provider(meter_provider)

    logger.debug(
        f"MeterProvider initialized for {config.service_name}, "
        f"endpoint: {config.endpoint or 'stdout'}, interval: {config.interval_seconds}s"
    )
    return meter_provider


@dataclass
class LogProvider:
    """
    The configured application logger and its optional OTLP log pipeline.

    Exposes the same flush and shutdown calls as the SDK providers.
    """

    logger: logging.Logger
    logger_provider: Optional[LoggerProvider] = None
    handlers: List[logging.Handler] = field(default_factory=list)

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        for handler in self.handlers:
            handler.flush()
        if self.logger_provider is not None:
            return self.logger_provider.force_flush(timeout_millis)
        return True

    def shutdown(self) -> None:
        if self.logger_provider is not None:
            self.logger_provider.shutdown()
        for handler in self.handlers:
            self.logger.removeHandler(handler)
            handler.close()
        self.logger.addHandler(logging.NullHandler())


def _output_handler(config: LoggingConfig) -> logging.Handler:
    output = config.output
    if output is None or output == "stdout":
        return logging.StreamHandler(sys.stdout)
    if output == "stderr":
        return logging.StreamHandler(sys.stderr)
    if isinstance(output, str):
        return logging.FileHandler(output, encoding="utf-8")
    return logging.StreamHandler(output)


def build_log_provider(config: LoggingConfig, register_global: bool = True) -> LogProvider:
    """
    Configure the application logger.

    Records are written to the configured output as compact JSON, or as
    human-readable lines when pretty is set. With an endpoint, records are
    also exported over OTLP through a LoggingHandler.

    Args:
        config: Logging configuration
        register_global: Register the OTLP LoggerProvider as the global one

    Returns:
        LogProvider: The configured logger and its pipeline

    Raises:
        ConfigError: If the output cannot be opened, the endpoint is
            malformed or the exporter cannot be built
    """
    if config.exporter is None and config.endpoint:
        endpoint = validate_endpoint(config.endpoint)

    handlers: List[logging.Handler] = []
    logger_provider = None
    try:
        output_handler = _output_handler(config)
        if config.pretty:
            output_handler.setFormatter(ConsoleFormatter(config.service_name))
        else:
            output_handler.setFormatter(CorrelatedJSONFormatter(config.service_name))
        handlers.append(output_handler)

        if config.exporter is not None or config.endpoint:
            exporter = config.exporter or OTLPLogExporter(
                endpoint=f"{endpoint}/v1/logs",
                timeout=EXPORT_TIMEOUT_SECONDS,
            )
            logger_provider = LoggerProvider(
                resource=build_resource(config.service_name, config.service_version)
            )
            logger_provider.add_log_record_processor(BatchLogRecordProcessor(exporter))
            handlers.append(
                LoggingHandler(level=logging.NOTSET, logger_provider=logger_provider)
            )
    except Exception as e:
        for handler in handlers:
            handler.close()
        raise ConfigError("failed to initialize logging", cause=e) from e

    app_logger = logging.getLogger(config.logger_name)
    app_logger.handlers.clear()
    for handler in handlers:
        app_logger.addHandler(handler)
    app_logger.setLevel(config.level_number())
    app_logger.propagate = False

    if register_global and logger_provider is not None:
        set_logger_provider(logger_provider)

    logger.debug(
        f"Logging initialized for {config.service_name}, level: {config.level}, "
        f"pretty: {config.pretty}, endpoint: {config.endpoint or 'none'}"
    )
    return LogProvider(
        logger=app_logger, logger_provider=logger_provider, handlers=handlers
    )


def degraded_logger(logger_name: str) -> logging.Logger:
    """Return a logger that discards every record."""
    app_logger = logging.getLogger(logger_name)
    app_logger.handlers.clear()
    app_logger.addHandler(logging.NullHandler())
    app_logger.propagate = False
    return app_logger
