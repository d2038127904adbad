"""OTel metrics for a streaming connection.

Provides :class:`MetricsHelper`, a convenience wrapper around an OTel
``Meter``, and :class:`ConnectionMetrics`, the fixed set of counters a
:class:`~rxstream.ws.connection.StreamConnection` reports.
"""

from opentelemetry.metrics import Counter, Meter, MeterProvider


class MetricsHelper:
    """Convenience wrapper around an OTel ``Meter``.

    Args:
        meter_provider: The :class:`MeterProvider` to obtain a meter from.
        instrumentation_name: Identifies the instrumentation library.
    """

    def __init__(self, meter_provider: MeterProvider, instrumentation_name: str):
        self._meter: Meter = meter_provider.get_meter(instrumentation_name)

    def counter(
        self,
        name: str,
        description: str = "",
        unit: str = "1",
    ) -> Counter:
        """Create (or retrieve) a monotonic counter instrument."""
        return self._meter.create_counter(name, description=description, unit=unit)


class ConnectionMetrics:
    """Counters emitted by one connection.

    Every method is a no-op when the connection was built without a meter
    provider.
    """

    def __init__(self, meter_provider: MeterProvider | None, endpoint: str):
        self._attrs = {"server.address": endpoint}
        self._reconnects: Counter | None = None
        self._dropped: Counter | None = None
        self._inbound: Counter | None = None
        if meter_provider is None:
            return
        helper = MetricsHelper(meter_provider, "rxstream.connection")
        self._reconnects = helper.counter(
            "rxstream.reconnects",
            description="Reconnect timers armed after an abnormal close",
        )
        self._dropped = helper.counter(
            "rxstream.messages.dropped",
            description="Outbound messages dropped while not connected",
        )
        self._inbound = helper.counter(
            "rxstream.messages.inbound",
            description="Inbound envelopes routed to the delegate",
        )

    def reconnect_scheduled(self) -> None:
        if self._reconnects is not None:
            self._reconnects.add(1, self._attrs)

    def message_dropped(self, reason: str) -> None:
        if self._dropped is not None:
            self._dropped.add(1, {**self._attrs, "reason": reason})

    def message_routed(self, channel: str) -> None:
        if self._inbound is not None:
            self._inbound.add(1, {**self._attrs, "channel": channel})
