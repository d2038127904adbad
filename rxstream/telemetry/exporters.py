"""Console log-record exporter."""

import sys
from collections.abc import Sequence
from typing import Literal, TextIO

from opentelemetry.sdk._logs import ReadableLogRecord
from opentelemetry.sdk._logs.export import LogRecordExporter, LogRecordExportResult

from .logger import format_log_record, format_log_record_json

LOG_FORMAT = Literal["text", "json"]

_FORMATTERS = {
    "text": format_log_record,
    "json": format_log_record_json,
}


class ConsoleLogRecordExporter(LogRecordExporter):
    """Writes one line per record, by default to stderr.

    ``format="text"`` gives lines such as::

        2026-02-03T10:30:00Z [INFO] connection/u1 StreamConnection:wss://x\t: 'Register ok'

    ``format="json"`` gives one JSON object per line.
    """

    def __init__(self, format: LOG_FORMAT = "text", stream: TextIO | None = None):
        if format not in _FORMATTERS:
            raise ValueError(f"Unsupported log format '{format}'.")
        self._formatter = _FORMATTERS[format]
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        # resolved late so a redirected sys.stderr is honored
        return self._stream if self._stream is not None else sys.stderr

    def export(self, batch: Sequence[ReadableLogRecord]) -> LogRecordExportResult:
        stream = self.stream
        try:
            stream.writelines(self._formatter(item.log_record) for item in batch)
            stream.flush()
        except (OSError, ValueError):
            return LogRecordExportResult.FAILURE
        return LogRecordExportResult.SUCCESS

    def shutdown(self) -> None:
        pass

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        self.stream.flush()
        return True
