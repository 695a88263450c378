# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Telemetry configuration module.

Holds the per-subsystem configuration for tracing, metrics and logging, and
loads it from environment variables or from a YAML/JSON file.

Environment Variables:
    OTEL_SERVICE_NAME: Service name for all subsystems (default: planx)
    OTEL_EXPORTER_OTLP_ENDPOINT: OTLP endpoint, empty means stdout (default: empty)
    OTEL_TRACES_SAMPLER_ARG: Sampling ratio 0.0-1.0 (default: 1.0)
    PLANX_METRICS_INTERVAL: Metric export interval in seconds (default: 10)
    PLANX_LOG_LEVEL: debug, info, warn or error (default: info)
    PLANX_LOG_PRETTY: Human-readable log output (default: false)
    PLANX_LOG_OUTPUT: stdout, stderr or a file path (default: stdout)
"""

import logging
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional, TextIO, Union
from urllib.parse import urlparse

from planx.errors import ConfigError
from planx.utils.config_loader import load_config_file

DEFAULT_SERVICE_NAME = "planx"
DEFAULT_SERVICE_VERSION = "1.0.0"
DEFAULT_METRICS_INTERVAL_SECONDS = 10.0
DEFAULT_LOG_LEVEL = "info"
DEFAULT_SHUTDOWN_TIMEOUT_MILLIS = 5000

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass
class TracingConfig:
    """Tracing configuration. An empty endpoint selects the stdout exporter."""

    service_name: str = DEFAULT_SERVICE_NAME
    service_version: str = DEFAULT_SERVICE_VERSION
    endpoint: str = ""
    sampler_ratio: float = 1.0
    shutdown_timeout_millis: int = DEFAULT_SHUTDOWN_TIMEOUT_MILLIS
    # Custom SpanExporter, takes precedence over endpoint
    exporter: Optional[Any] = field(default=None, compare=False)


@dataclass
class MetricsConfig:
    """Metrics configuration. An empty endpoint selects the stdout exporter."""

    service_name: str = DEFAULT_SERVICE_NAME
    service_version: str = DEFAULT_SERVICE_VERSION
    endpoint: str = ""
    interval_seconds: float = DEFAULT_METRICS_INTERVAL_SECONDS
    shutdown_timeout_millis: int = DEFAULT_SHUTDOWN_TIMEOUT_MILLIS
    # Custom MetricReader, takes precedence over endpoint and interval
    reader: Optional[Any] = field(default=None, compare=False)


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Records are always written to output. When an endpoint is configured they
    are also exported over OTLP.
    """

    service_name: str = DEFAULT_SERVICE_NAME
    service_version: str = DEFAULT_SERVICE_VERSION
    endpoint: str = ""
    level: str = DEFAULT_LOG_LEVEL
    pretty: bool = False
    output: Union[str, TextIO] = field(default="stdout", compare=False)
    logger_name: str = DEFAULT_SERVICE_NAME
    shutdown_timeout_millis: int = DEFAULT_SHUTDOWN_TIMEOUT_MILLIS
    # Custom LogExporter for the OTLP bridge, takes precedence over endpoint
    exporter: Optional[Any] = field(default=None, compare=False)

    def level_number(self) -> int:
        """Resolve level to a logging level number, falling back to INFO."""
        return LOG_LEVELS.get(str(self.level).lower(), logging.INFO)


@dataclass
class TelemetryConfig:
    """Configuration for all three telemetry subsystems."""

    tracing: TracingConfig = field(default_factory=TracingConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def for_service(cls, service_name: str, endpoint: str = "") -> "TelemetryConfig":
        """Build a configuration sharing service name and endpoint across subsystems."""
        return cls(
            tracing=TracingConfig(service_name=service_name, endpoint=endpoint),
            metrics=MetricsConfig(service_name=service_name, endpoint=endpoint),
            logging=LoggingConfig(service_name=service_name, endpoint=endpoint),
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "TelemetryConfig":
        """
        Load configuration from environment variables.

        Args:
            environ: Optional mapping to read instead of os.environ

        Returns:
            TelemetryConfig: Configuration for all subsystems

        Raises:
            ConfigError: If a numeric variable cannot be parsed
        """
        env = os.environ if environ is None else environ

        service_name = env.get("OTEL_SERVICE_NAME", DEFAULT_SERVICE_NAME)
        endpoint = env.get("OTEL_EXPORTER_OTLP_ENDPOINT", "")

        config = cls.for_service(service_name, endpoint)
        config.tracing.sampler_ratio = _to_float(
            "OTEL_TRACES_SAMPLER_ARG", env.get("OTEL_TRACES_SAMPLER_ARG", "1.0")
        )
        config.metrics.interval_seconds = _to_float(
            "PLANX_METRICS_INTERVAL",
            env.get("PLANX_METRICS_INTERVAL", str(DEFAULT_METRICS_INTERVAL_SECONDS)),
        )
        config.logging.level = env.get("PLANX_LOG_LEVEL", DEFAULT_LOG_LEVEL)
        config.logging.pretty = env.get("PLANX_LOG_PRETTY", "false").lower() == "true"
        config.logging.output = env.get("PLANX_LOG_OUTPUT", "stdout")
        return config

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TelemetryConfig":
        """
        Build configuration from a parsed configuration document.

        Top level service_name and endpoint apply to every subsystem. The
        tracing, metrics and logging sections override them per subsystem.
        Unknown keys are ignored.
        """
        if not isinstance(data, Mapping):
            raise ConfigError("telemetry configuration must be a mapping")

        shared: Dict[str, Any] = {
            key: data[key]
            for key in ("service_name", "service_version", "endpoint")
            if key in data
        }

        def section(name: str, config_cls):
            values = dict(shared)
            overrides = data.get(name) or {}
            if not isinstance(overrides, Mapping):
                raise ConfigError(f"telemetry section '{name}' must be a mapping")
            values.update(overrides)
            known = {f.name for f in fields(config_cls)}
            return config_cls(**{k: v for k, v in values.items() if k in known})

        return cls(
            tracing=section("tracing", TracingConfig),
            metrics=section("metrics", MetricsConfig),
            logging=section("logging", LoggingConfig),
        )

    @classmethod
    def from_file(cls, path: str) -> "TelemetryConfig":
        """Load configuration from a YAML or JSON file."""
        data = load_config_file(path)
        if isinstance(data, Mapping) and isinstance(data.get("telemetry"), Mapping):
            data = data["telemetry"]
        return cls.from_mapping(data)


def _to_float(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got '{value}'", cause=e) from e


def validate_endpoint(endpoint: str) -> str:
    """
    Normalize and validate an OTLP endpoint.

    Accepts "host:port" or a full http(s) URL. A bare host:port is treated as
    plain http.

    Args:
        endpoint: The configured endpoint

    Returns:
        str: The endpoint as an http(s) URL without trailing slash

    Raises:
        ConfigError: If the endpoint has no host, an invalid port or an
            unsupported scheme
    """
    raw = endpoint.strip()
    url = raw if "://" in raw else f"http://{raw}"
    parsed = urlparse(url)

    if parsed.scheme not in ("http", "https"):
        raise ConfigError(f"unsupported endpoint scheme '{parsed.scheme}' in '{endpoint}'")
    if not parsed.hostname:
        raise ConfigError(f"endpoint '{endpoint}' has no host")
    try:
        parsed.port
    except ValueError as e:
        raise ConfigError(f"endpoint '{endpoint}' has an invalid port", cause=e) from e

    return url.rstrip("/")

