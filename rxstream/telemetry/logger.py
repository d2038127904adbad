"""Structured OTel logging for rxstream components.

:class:`LogContext` carries the dimensions every record of a component
shares (service, component, endpoint, connection). :class:`OTelLogger`
stamps them onto records written through an OTel ``Logger``. The two
formatters render records for :class:`~rxstream.telemetry.exporters.ConsoleLogRecordExporter`.
"""

import json
import time
from dataclasses import dataclass, fields, replace
from datetime import UTC, datetime

from opentelemetry._logs import LogRecord, SeverityNumber

# LogContext field -> OTel attribute key
_CONTEXT_KEYS = {
    "service": "service.name",
    "component": "component.name",
    "endpoint": "server.address",
    "connection_id": "connection.id",
}

# level name -> (severity number, severity text)
_LEVELS = {
    "DEBUG": (SeverityNumber.DEBUG, "DEBUG"),
    "INFO": (SeverityNumber.INFO, "INFO"),
    "WARN": (SeverityNumber.WARN, "WARN"),
    "ERROR": (SeverityNumber.ERROR, "ERROR"),
}


@dataclass(frozen=True)
class LogContext:
    """Dimensions attached to every record of one logger."""

    service: str = ""
    component: str = ""
    endpoint: str = ""
    connection_id: str = ""

    def as_attributes(self) -> dict[str, str]:
        """OTel attributes for the non-empty fields."""
        return {
            _CONTEXT_KEYS[f.name]: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name)
        }

    def child(self, **overrides: str) -> "LogContext":
        return replace(self, **overrides)


def _timestamp(record: LogRecord) -> datetime:
    return datetime.fromtimestamp((record.timestamp or 0) / 1e9, tz=UTC)


def format_log_record(record: LogRecord) -> str:
    """Render ``record`` as one console line.

    ``2026-02-03T10:30:00Z [INFO] [trace:span] connection/u1 Source\\t: 'body'``;
    the trace part and the dimensions appear only when present.
    """
    attrs = record.attributes or {}
    line = f"{_timestamp(record):%Y-%m-%dT%H:%M:%SZ} [{record.severity_text}]"
    if record.trace_id and record.span_id:
        trace_id = f"{record.trace_id:032x}"
        span_id = f"{record.span_id:016x}"
        line += f" [{trace_id[:8]}:{span_id[:8]}]"
    dims = [str(attrs[k]) for k in ("component.name", "connection.id") if attrs.get(k)]
    if dims:
        line += " " + "/".join(dims)
    return f"{line} {attrs.get('log.source', 'Unknown')}\t: {record.body!r}\n"


def format_log_record_json(record: LogRecord) -> str:
    """Render ``record`` as one JSON object per line."""
    data = {
        "timestamp": _timestamp(record).isoformat(),
        "severity_text": record.severity_text,
        "severity_number": (
            record.severity_number.value if record.severity_number else None
        ),
        "body": record.body,
        "attributes": dict(record.attributes or {}),
    }
    if record.trace_id:
        data["trace_id"] = f"{record.trace_id:032x}"
    if record.span_id:
        data["span_id"] = f"{record.span_id:016x}"
    return json.dumps(data, default=str) + "\n"


class OTelLogger:
    """Writes records with a fixed source and context to an OTel ``Logger``.

    Args:
        logger: Logger obtained from ``LoggerProvider.get_logger()``.
        source: Value of the ``log.source`` attribute.
        context: Dimensions added to every record.
        min_severity: Records below this severity are not emitted.

    Example:
        >>> log = OTelLogger(
        ...     logger_provider.get_logger("rxstream"),
        ...     source="StreamConnection",
        ...     context=LogContext(component="connection", connection_id="u1"),
        ...     min_severity=SeverityNumber.INFO,
        ... )
        >>> log.info("Register ok")
        >>> log.debug("not emitted")
    """

    def __init__(
        self,
        logger,
        source: str,
        context: LogContext | None = None,
        min_severity: SeverityNumber | None = None,
    ):
        self._logger = logger
        self._source = source
        self._context = context or LogContext()
        self._min_severity = min_severity

    @property
    def source(self) -> str:
        return self._source

    def is_enabled_for(self, severity: SeverityNumber) -> bool:
        return self._min_severity is None or severity.value >= self._min_severity.value

    def log(self, level: str, message: str, **attrs) -> None:
        """Emit at ``level`` (DEBUG, INFO, WARN or ERROR; unknown means INFO)."""
        severity, text = _LEVELS.get(level, _LEVELS["INFO"])
        if not self.is_enabled_for(severity):
            return
        self._logger.emit(
            LogRecord(
                timestamp=time.time_ns(),
                body=message,
                severity_text=text,
                severity_number=severity,
                attributes={
                    "log.source": self._source,
                    **self._context.as_attributes(),
                    **attrs,
                },
            )
        )

    def debug(self, message: str, **attrs) -> None:
        self.log("DEBUG", message, **attrs)

    def info(self, message: str, **attrs) -> None:
        self.log("INFO", message, **attrs)

    def warning(self, message: str, **attrs) -> None:
        self.log("WARN", message, **attrs)

    def error(self, message: str, **attrs) -> None:
        self.log("ERROR", message, **attrs)

    def with_context(self, source: str | None = None, **overrides: str) -> "OTelLogger":
        """Same logger with another source and/or refined context."""
        return OTelLogger(
            self._logger,
            source=source or self._source,
            context=self._context.child(**overrides),
            min_severity=self._min_severity,
        )
