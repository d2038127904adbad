"""OpenTelemetry configuration helpers for rxstream components.

This package provides OTel provider configuration, a structured logger
wrapper, a console log-record exporter, and connection metrics.
"""

from .config import (
    configure_metrics,
    configure_telemetry,
    get_default_providers,
)
from .exporters import LOG_FORMAT, ConsoleLogRecordExporter
from .logger import (
    LogContext,
    OTelLogger,
    format_log_record,
    format_log_record_json,
)
from .metrics import ConnectionMetrics, MetricsHelper

__all__ = [
    # config
    "configure_telemetry",
    "configure_metrics",
    "get_default_providers",
    # logger
    "OTelLogger",
    "LogContext",
    "format_log_record",
    "format_log_record_json",
    # exporters
    "ConsoleLogRecordExporter",
    "LOG_FORMAT",
    # metrics
    "MetricsHelper",
    "ConnectionMetrics",
]
