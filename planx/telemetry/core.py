# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Telemetry lifecycle.

Telemetry is the process-wide state object created by the application
entry point and passed to every consumer. It owns one ProviderSlot per
subsystem (tracing, metrics, logging). Each slot initializes at most once:
the first caller runs the setup, concurrent callers block until it
finishes, and every caller observes the same outcome.

get() initializes a subsystem with the default configuration if nothing
did before. This keeps every subsystem usable without explicit setup, but
an explicit init() that runs after such an implicit one cannot apply its
configuration anymore. That case is logged as a warning; call init()
early in the entry point to avoid it.
"""

import enum
import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Generic, Optional, TypeVar

from opentelemetry import metrics, trace
from opentelemetry.metrics import Meter
from opentelemetry.trace import Tracer

from planx.errors import ConfigError
from planx.telemetry import providers
from planx.telemetry.config import (
    LoggingConfig,
    MetricsConfig,
    TelemetryConfig,
    TracingConfig,
)
from planx.telemetry.context.span import PipelineSpans
from planx.telemetry.logger import CorrelatedLogger
from planx.telemetry.metrics import METER_NAME, PipelineMetrics

logger = logging.getLogger(__name__)

T = TypeVar("T")

INSTRUMENTATION_NAME = "planx"


class Subsystem(str, enum.Enum):
    TRACING = "tracing"
    METRICS = "metrics"
    LOGGING = "logging"


class SlotState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"  # Degraded, the subsystem runs as a no-op
    SHUT_DOWN = "shut_down"


class InitGate(Generic[T]):
    """
    One-shot initialization primitive.

    The first call to run() executes setup and resolves a future with its
    result or exception. Concurrent callers wait on the same future. Later
    callers get the stored outcome without running setup again.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._future: Optional[Future] = None

    @property
    def started(self) -> bool:
        return self._future is not None

    def run(self, setup: Callable[[], T]) -> T:
        """
        Run setup once and return its result.

        Raises:
            Exception: Whatever the first setup raised, on every call. If
                setup was interrupted (KeyboardInterrupt, SystemExit), the
                first caller gets the interruption and later callers a
                ConfigError.
        """
        with self._lock:
            owner = self._future is None
            if owner:
                self._future = Future()
                self._future.set_running_or_notify_cancel()
            future = self._future

        if owner:
            try:
                future.set_result(setup())
            except Exception as e:
                future.set_exception(e)
            except BaseException as e:
                # Resolve anyway, waiting callers must not block forever
                future.set_exception(ConfigError("initialization interrupted", cause=e))
                raise

        return future.result()

    def peek(self) -> Optional[Future]:
        """Return the resolved future, or None while unresolved."""
        future = self._future
        if future is not None and future.done():
            return future
        return None


class ProviderSlot(Generic[T]):
    """
    Lifecycle of one telemetry subsystem's provider.

    Args:
        subsystem: Which subsystem this slot manages
        builder: Builds the provider from a config, raising ConfigError
        default_config: Used when get() runs before init()
        fallback: Returns the no-op provider used while degraded
    """

    def __init__(
        self,
        subsystem: Subsystem,
        builder: Callable[[Any], T],
        default_config: Any,
        fallback: Callable[[], Any],
    ):
        self.subsystem = subsystem
        self._builder = builder
        self._default_config = default_config
        self._fallback = fallback
        self._gate: InitGate[T] = InitGate()
        self._applied_config: Any = None
        self._shutdown_lock = threading.Lock()
        self._shut_down = False
        self._on_ready: list = []

    def on_ready(self, callback: Callable[[T], None]) -> None:
        """Register a callback run once with the provider after setup succeeds."""
        self._on_ready.append(callback)

    def _setup(self, config: Any) -> T:
        self._applied_config = config
        provider = self._builder(config)
        for callback in self._on_ready:
            callback(provider)
        logger.debug(f"{self.subsystem.value} initialized")
        return provider

    def init(self, config: Any = None) -> T:
        """
        Initialize the subsystem once.

        Args:
            config: Subsystem configuration, or None for the default one

        Returns:
            The provider

        Raises:
            ConfigError: If setup failed, now or on the first attempt, or the
                subsystem was shut down
        """
        explicit = config is not None
        config = config if explicit else self._default_config
        if self._shut_down:
            raise ConfigError(f"{self.subsystem.value} was shut down")

        already_started = self._gate.started
        try:
            provider = self._gate.run(lambda: self._setup(config))
        except ConfigError:
            raise
        except Exception as e:
            raise ConfigError(f"failed to initialize {self.subsystem.value}", cause=e) from e

        # Gate sealed by a concurrent shutdown
        if provider is None:
            raise ConfigError(f"{self.subsystem.value} was shut down")

        if already_started and explicit and config != self._applied_config:
            logger.warning(
                f"{self.subsystem.value} was already initialized, "
                f"ignoring the new configuration"
            )
        return provider

    def get(self) -> Any:
        """
        Return the provider, initializing with the default config if needed.

        Never raises: a failed or shut down subsystem returns the no-op
        fallback.
        """
        if self._shut_down:
            return self._fallback()

        future = self._gate.peek()
        if future is None:
            try:
                provider = self._gate.run(lambda: self._setup(self._default_config))
            except Exception as e:
                logger.debug(f"{self.subsystem.value} unavailable, using no-op: {e}")
                return self._fallback()
        elif future.exception() is not None:
            return self._fallback()
        else:
            provider = future.result()
        return self._fallback() if provider is None else provider

    @property
    def state(self) -> SlotState:
        if self._shut_down:
            return SlotState.SHUT_DOWN
        if not self._gate.started:
            return SlotState.UNINITIALIZED
        future = self._gate.peek()
        if future is None:
            return SlotState.INITIALIZING
        if future.exception() is not None:
            return SlotState.FAILED
        return SlotState.READY

    def error(self) -> Optional[BaseException]:
        """Return the stored initialization error, if any."""
        future = self._gate.peek()
        return future.exception() if future is not None else None

    def shutdown(self) -> None:
        """
        Flush and release the provider. Idempotent.

        Blocks up to the configured shutdown timeout while flushing. A slot
        that was never initialized or failed has nothing to release. The
        slot stays a no-op afterwards: it is never initialized again.
        """
        with self._shutdown_lock:
            if self._shut_down:
                return
            self._shut_down = True

        # Seal the gate so no setup starts later, waiting for one in progress
        try:
            provider = self._gate.run(lambda: None)
        except Exception:
            # Setup failed, nothing to release
            return
        if provider is None:
            return

        timeout_millis = getattr(self._applied_config, "shutdown_timeout_millis", 5000)
        try:
            provider.force_flush(timeout_millis)
            provider.shutdown()
            logger.debug(f"{self.subsystem.value} shutdown completed")
        except Exception as e:
            logger.error(f"Error during {self.subsystem.value} shutdown: {e}")


class Telemetry:
    """
    Owner of the tracing, metrics and logging providers of a process.

    Usage:
        ```python
        telemetry = Telemetry(TelemetryConfig.from_env())
        telemetry.init_all()

        ctx, span = telemetry.spans.start_source_read_span(background(), "t1", "s1", 100)
        telemetry.log.info(ctx, "read batch", records=100)
        telemetry.metrics.record_batch_sent(ctx, "t1", "source", "mysql", 100)
        close_span(span)

        telemetry.shutdown()
        ```

    Args:
        config: Default configuration for every subsystem. Explicit init()
            calls may pass another one.
        register_global: Register initialized providers as the OpenTelemetry
            globals.
    """

    def __init__(
        self, config: Optional[TelemetryConfig] = None, register_global: bool = True
    ):
        self.config = config or TelemetryConfig()
        self.register_global = register_global

        self._tracing: ProviderSlot = ProviderSlot(
            Subsystem.TRACING,
            lambda cfg: providers.build_tracer_provider(cfg, self.register_global),
            self.config.tracing,
            trace.NoOpTracerProvider,
        )
        self._metrics: ProviderSlot = ProviderSlot(
            Subsystem.METRICS,
            lambda cfg: providers.build_meter_provider(cfg, self.register_global),
            self.config.metrics,
            metrics.NoOpMeterProvider,
        )
        self._logging: ProviderSlot = ProviderSlot(
            Subsystem.LOGGING,
            lambda cfg: providers.build_log_provider(cfg, self.register_global),
            self.config.logging,
            lambda: providers.LogProvider(
                logger=providers.degraded_logger(self.config.logging.logger_name)
            ),
        )
        self._slots = {
            Subsystem.TRACING: self._tracing,
            Subsystem.METRICS: self._metrics,
            Subsystem.LOGGING: self._logging,
        }

        # Stable handle, bound to live instruments once metrics are ready
        self.metrics = PipelineMetrics()
        self._metrics.on_ready(self._register_instruments)

        self.spans = PipelineSpans(self.tracer)
        self.log = CorrelatedLogger(self.logger)

    def _register_instruments(self, meter_provider) -> None:
        self.metrics.bind(meter_provider.get_meter(METER_NAME))

    def _slot(self, subsystem) -> ProviderSlot:
        return self._slots[Subsystem(subsystem)]

    def init(self, subsystem, config: Any = None) -> Any:
        """
        Initialize one subsystem. Only the first call runs the setup.

        Args:
            subsystem: A Subsystem or its name
            config: Subsystem config, or None for the default one

        Returns:
            The subsystem provider

        Raises:
            ConfigError: If setup failed, now or on the first attempt. The
                subsystem then stays a no-op.
        """
        return self._slot(subsystem).init(config)

    def init_tracing(self, config: Optional[TracingConfig] = None):
        return self.init(Subsystem.TRACING, config)

    def init_metrics(self, config: Optional[MetricsConfig] = None):
        return self.init(Subsystem.METRICS, config)

    def init_logging(self, config: Optional[LoggingConfig] = None):
        return self.init(Subsystem.LOGGING, config)

    def init_all(self) -> None:
        """
        Initialize every subsystem with the default configuration.

        Each subsystem is attempted even if another failed. The first error
        is raised afterwards.
        """
        first_error: Optional[ConfigError] = None
        for subsystem in Subsystem:
            try:
                self.init(subsystem)
            except ConfigError as e:
                logger.error(f"Failed to initialize {subsystem.value}: {e}")
                first_error = first_error or e
        if first_error is not None:
            raise first_error

    def get(self, subsystem) -> Any:
        """Return a subsystem provider, initializing it with defaults if needed."""
        return self._slot(subsystem).get()

    def state(self, subsystem) -> SlotState:
        return self._slot(subsystem).state

    def is_ready(self, subsystem) -> bool:
        return self.state(subsystem) is SlotState.READY

    def error(self, subsystem) -> Optional[BaseException]:
        """Return the stored initialization error of a subsystem, if any."""
        return self._slot(subsystem).error()

    def tracer_provider(self):
        return self._tracing.get()

    def meter_provider(self):
        return self._metrics.get()

    def tracer(self) -> Tracer:
        return self.tracer_provider().get_tracer(INSTRUMENTATION_NAME)

    def meter(self) -> Meter:
        return self.meter_provider().get_meter(METER_NAME)

    def logger(self) -> logging.Logger:
        """Return the application logger, initializing logging if needed."""
        return self._logging.get().logger

    def shutdown(self, subsystem=None) -> None:
        """
        Flush and release providers. Idempotent.

        Args:
            subsystem: The subsystem to shut down, or None for all of them
        """
        if subsystem is None:
            # Logging last so shutdown failures of the others are still written
            slots = [self._tracing, self._metrics, self._logging]
        else:
            slots = [self._slot(subsystem)]

        for slot in slots:
            slot.shutdown()
            if slot is self._metrics:
                self.metrics.bind(None)
