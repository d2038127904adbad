"""Shared OTel logging mixin for streaming components."""

from opentelemetry._logs import LoggerProvider, SeverityNumber

from ..telemetry import LogContext, OTelLogger, get_default_providers


def build_logger(
    logger_provider: LoggerProvider | None,
    source: str,
    context: LogContext,
    debug: bool = False,
) -> OTelLogger | None:
    """Create the logger a component writes through.

    Without a provider the component stays silent unless ``debug`` is set, in
    which case the console providers from :func:`get_default_providers` are
    used. DEBUG records are only kept in debug mode.
    """
    if logger_provider is None:
        if not debug:
            return None
        _, logger_provider = get_default_providers()
    return OTelLogger(
        logger_provider.get_logger(f"rxstream.{source}"),
        source=source,
        context=context,
        min_severity=None if debug else SeverityNumber.INFO,
    )


class OTelLoggingMixin:
    """Mixin providing _log() for streaming components with OTel integration."""

    _logger: OTelLogger | None

    def _log(self, body: str, level: str = "INFO", **attrs) -> None:
        """Emit a log record via the OTel logger if configured."""
        if self._logger is not None:
            self._logger.log(level, body, **attrs)
