# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

import io
import logging
from unittest.mock import MagicMock

import pytest
from opentelemetry.sdk.metrics import MeterProvider as SDKMeterProvider
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION
from opentelemetry.sdk.trace import TracerProvider as SDKTracerProvider

from planx.errors import ConfigError
from planx.telemetry import LoggingConfig, MetricsConfig, TracingConfig, providers


@pytest.fixture
def fake_exporters(monkeypatch):
    """Replace exporter classes with mocks recording their arguments"""
    fakes = {}
    for name in (
        "OTLPSpanExporter",
        "ConsoleSpanExporter",
        "OTLPMetricExporter",
        "ConsoleMetricExporter",
        "OTLPLogExporter",
    ):
        fake = MagicMock(name=name)
        monkeypatch.setattr(providers, name, fake)
        fakes[name] = fake
    return fakes


@pytest.mark.unit
class TestBuildTracerProvider:
    """Test build_tracer_provider"""

    def test_otlp_endpoint(self, fake_exporters):
        """Test a host:port endpoint selects the OTLP/HTTP exporter"""
        provider = providers.build_tracer_provider(
            TracingConfig(service_name="engine", endpoint="collector:4318"),
            register_global=False,
        )

        fake_exporters["OTLPSpanExporter"].assert_called_once_with(
            endpoint="http://collector:4318/v1/traces",
            timeout=providers.EXPORT_TIMEOUT_SECONDS,
        )
        fake_exporters["ConsoleSpanExporter"].assert_not_called()
        assert isinstance(provider, SDKTracerProvider)
        assert provider.resource.attributes[SERVICE_NAME] == "engine"
        assert provider.resource.attributes[SERVICE_VERSION] == "1.0.0"
        provider.shutdown()

    def test_stdout_without_endpoint(self, fake_exporters):
        """Test an empty endpoint selects the console exporter"""
        provider = providers.build_tracer_provider(TracingConfig(), register_global=False)

        fake_exporters["ConsoleSpanExporter"].assert_called_once()
        fake_exporters["OTLPSpanExporter"].assert_not_called()
        provider.shutdown()

    @pytest.mark.parametrize(
        "endpoint", ["ftp://collector:4318", "http://:4318", "collector:port"]
    )
    def test_malformed_endpoint(self, fake_exporters, endpoint):
        """Test a malformed endpoint is rejected before building anything"""
        with pytest.raises(ConfigError):
            providers.build_tracer_provider(
                TracingConfig(endpoint=endpoint), register_global=False
            )

        fake_exporters["OTLPSpanExporter"].assert_not_called()

    @pytest.mark.parametrize("ratio", [-0.1, 1.5])
    def test_invalid_sampler_ratio(self, ratio):
        """Test the sampling ratio must be within [0, 1]"""
        with pytest.raises(ConfigError):
            providers.build_tracer_provider(
                TracingConfig(sampler_ratio=ratio), register_global=False
            )

    def test_exporter_failure(self, fake_exporters):
        """Test exporter construction errors become ConfigError"""
        fake_exporters["OTLPSpanExporter"].side_effect = RuntimeError("no grpc")

        with pytest.raises(ConfigError) as exc_info:
            providers.build_tracer_provider(
                TracingConfig(endpoint="collector:4318"), register_global=False
            )

        assert isinstance(exc_info.value.cause, RuntimeError)


@pytest.mark.unit
class TestBuildMeterProvider:
    """Test build_meter_provider"""

    def test_otlp_endpoint(self, fake_exporters, monkeypatch):
        """Test the OTLP metric exporter and the periodic reader interval"""
        reader = MagicMock(name="PeriodicExportingMetricReader")
        monkeypatch.setattr(providers, "PeriodicExportingMetricReader", reader)
        monkeypatch.setattr(providers, "SDKMeterProvider", MagicMock(name="MeterProvider"))

        providers.build_meter_provider(
            MetricsConfig(endpoint="collector:4317", interval_seconds=2),
            register_global=False,
        )

        fake_exporters["OTLPMetricExporter"].assert_called_once_with(
            endpoint="http://collector:4317",
            insecure=True,
            timeout=providers.EXPORT_TIMEOUT_SECONDS,
        )
        assert reader.call_args.kwargs["export_interval_millis"] == 2000

    def test_custom_reader(self, metric_reader):
        """Test a configured reader is used as is"""
        provider = providers.build_meter_provider(
            MetricsConfig(reader=metric_reader), register_global=False
        )

        assert isinstance(provider, SDKMeterProvider)
        provider.shutdown()

    @pytest.mark.parametrize("interval", [0, -5])
    def test_invalid_interval(self, interval):
        """Test the export interval must be positive"""
        with pytest.raises(ConfigError):
            providers.build_meter_provider(
                MetricsConfig(interval_seconds=interval), register_global=False
            )


@pytest.mark.unit
class TestBuildLogProvider:
    """Test build_log_provider"""

    def test_configures_logger(self):
        """Test the application logger gets one handler and the level"""
        stream = io.StringIO()
        config = LoggingConfig(
            level="error", output=stream, logger_name="planx.test.providers.configure"
        )

        log_provider = providers.build_log_provider(config, register_global=False)

        assert log_provider.logger.name == "planx.test.providers.configure"
        assert log_provider.logger.level == logging.ERROR
        assert log_provider.logger.propagate is False
        assert log_provider.logger.handlers == log_provider.handlers
        assert log_provider.logger_provider is None
        log_provider.shutdown()
        assert isinstance(log_provider.logger.handlers[-1], logging.NullHandler)

    def test_unknown_level_falls_back_to_info(self):
        """Test an unknown level name resolves to INFO"""
        assert LoggingConfig(level="verbose").level_number() == logging.INFO
        assert LoggingConfig(level="WARN").level_number() == logging.WARNING

    def test_otlp_bridge(self, fake_exporters):
        """Test an endpoint adds the OTLP log handler"""
        config = LoggingConfig(
            endpoint="https://collector:4318",
            output=io.StringIO(),
            logger_name="planx.test.providers.otlp",
        )

        log_provider = providers.build_log_provider(config, register_global=False)

        fake_exporters["OTLPLogExporter"].assert_called_once_with(
            endpoint="https://collector:4318/v1/logs",
            timeout=providers.EXPORT_TIMEOUT_SECONDS,
        )
        assert log_provider.logger_provider is not None
        assert len(log_provider.handlers) == 2
        log_provider.shutdown()

    def test_unopenable_output(self, tmp_path):
        """Test an output path that cannot be opened raises ConfigError"""
        config = LoggingConfig(
            output=str(tmp_path / "missing" / "planx.log"),
            logger_name="planx.test.providers.missing",
        )

        with pytest.raises(ConfigError):
            providers.build_log_provider(config, register_global=False)

    def test_degraded_logger(self):
        """Test the degraded logger discards records"""
        degraded = providers.degraded_logger("planx.test.providers.degraded")

        assert degraded.propagate is False
        assert all(isinstance(h, logging.NullHandler) for h in degraded.handlers)
