"""OTel provider setup for rxstream.

Providers are built and returned, never installed globally; callers hand
them to a :class:`~rxstream.ws.connection.StreamConnection` explicitly.
:func:`get_default_providers` backs ``debug=True`` connections that were
given no logger provider.
"""

import threading

from opentelemetry.sdk._logs import LoggerProvider, LogRecordProcessor
from opentelemetry.sdk._logs.export import (
    BatchLogRecordProcessor,
    LogRecordExporter,
    SimpleLogRecordProcessor,
)
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    MetricExporter,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter

from .exporters import ConsoleLogRecordExporter


def _resource(service_name: str, service_version: str) -> Resource:
    attributes = {"service.name": service_name}
    if service_version:
        attributes["service.version"] = service_version
    return Resource.create(attributes)


def _log_processor(exporter: LogRecordExporter, batch: bool) -> LogRecordProcessor:
    # console output wants records immediately, network exporters want batches
    if batch:
        return BatchLogRecordProcessor(exporter)
    return SimpleLogRecordProcessor(exporter)


def configure_telemetry(
    service_name: str = "rxstream",
    service_version: str = "",
    span_exporter: SpanExporter | None = None,
    log_exporter: LogRecordExporter | None = None,
    batch_logs: bool = True,
) -> tuple[TracerProvider, LoggerProvider]:
    """Build a tracer provider and a logger provider sharing one resource.

    Args:
        service_name: ``service.name`` resource attribute.
        service_version: ``service.version`` resource attribute, omitted if empty.
        span_exporter: Receives finished spans (batched) when given.
        log_exporter: Receives log records when given.
        batch_logs: Batch log records; pass False for console exporters.

    Example:
        >>> tracer_provider, logger_provider = configure_telemetry(
        ...     log_exporter=ConsoleLogRecordExporter(format="json"),
        ...     batch_logs=False,
        ... )
        >>> conn = StreamConnection(
        ...     "wss://stream.local", "u1", "t1",
        ...     tracer_provider=tracer_provider,
        ...     logger_provider=logger_provider,
        ... )
    """
    resource = _resource(service_name, service_version)

    tracer_provider = TracerProvider(resource=resource)
    if span_exporter is not None:
        tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))

    logger_provider = LoggerProvider(resource=resource)
    if log_exporter is not None:
        logger_provider.add_log_record_processor(_log_processor(log_exporter, batch_logs))

    return tracer_provider, logger_provider


def configure_metrics(
    service_name: str = "rxstream",
    service_version: str = "",
    metric_exporter: MetricExporter | None = None,
    export_interval_ms: int = 10_000,
) -> MeterProvider:
    """Build a :class:`MeterProvider` exporting every ``export_interval_ms``.

    Metrics go to ``ConsoleMetricExporter`` unless ``metric_exporter`` is given.
    """
    reader = PeriodicExportingMetricReader(
        metric_exporter or ConsoleMetricExporter(),
        export_interval_millis=export_interval_ms,
    )
    return MeterProvider(
        resource=_resource(service_name, service_version), metric_readers=[reader]
    )


class _DefaultProviders:
    """Console providers created on first use and shared afterwards."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._providers: tuple[TracerProvider, LoggerProvider] | None = None

    def get(self, service_name: str) -> tuple[TracerProvider, LoggerProvider]:
        # connections on different threads may ask at the same time
        with self._lock:
            if self._providers is None:
                self._providers = configure_telemetry(
                    service_name=service_name,
                    log_exporter=ConsoleLogRecordExporter(),
                    batch_logs=False,
                )
            return self._providers


_defaults = _DefaultProviders()


def get_default_providers(
    service_name: str = "rxstream",
) -> tuple[TracerProvider, LoggerProvider]:
    """Return the shared console providers (stderr, unbatched).

    ``service_name`` only matters on the first call.
    """
    return _defaults.get(service_name)
