"""Long-lived streaming session with registration handshake and auto-reconnect.

Provides :class:`StreamConnection`, the controller that owns one transport,
registers the client once the transport opens, reconnects after unexpected
closes, and routes inbound envelopes to a weakly held
:class:`ConnectionDelegate`.
"""

import asyncio
import threading
import weakref
from collections.abc import Callable, Mapping
from contextlib import nullcontext
from typing import Any, Literal, Protocol

from opentelemetry._logs import LoggerProvider
from opentelemetry.metrics import MeterProvider
from opentelemetry.trace import Tracer, TracerProvider
from reactivex import Observable
from reactivex.subject import BehaviorSubject

from ..config import Environment, StreamSettings
from ..mechanism import InvalidBaseURL, InvalidUserID, InvalidUserToken
from ..telemetry import ConnectionMetrics, LogContext
from ..utils import get_full_error_info, get_short_error_info
from ._otel_mixin import OTelLoggingMixin, build_logger
from .datatypes import Channel, Envelope, EnvelopeCodec, TransportOptions, codec_factory
from .state import (
    ArmReconnectTimer,
    ArmRegistrationTimer,
    Connect,
    ConnectivityChanged,
    Disconnect,
    Effect,
    ReleaseTransport,
    SendRegistration,
    SessionState,
    SessionStateMachine,
)
from .transport import MANUAL, Abnormal, CloseReason, Transport, TransportListener
from .websocket import WebSocketTransport


class ConnectionDelegate(Protocol):
    """Receiver of connection notifications.

    Only ``on_connectivity_changed`` is required; ``on_message(payload)`` and
    ``on_aggregation(payload)`` are called when the delegate defines them.
    """

    def on_connectivity_changed(self, connected: bool) -> None: ...


TransportFactory = Callable[[TransportListener, str, TransportOptions], Transport]


class StreamConnection(OTelLoggingMixin):
    """A persistent, self-healing session with a streaming server.

    Key Features
    ------------
    * **Registration handshake** -- once the transport opens, a
      ``clientRegister`` envelope is written and the session only counts as
      connected after the server answers ``registerOk``.
    * **Auto-reconnect** -- any close not requested through :meth:`stop` or
      :meth:`dispose` arms a single reconnect timer; further closes while it
      is pending do not arm another.
    * **Single execution context** -- transport callbacks, timers and public
      calls are all serialized onto one asyncio event loop, so state is only
      ever mutated from that loop.
    * **Fire-and-forget send** -- messages are dropped, not queued, while the
      session is not connected.
    * **Observable state** -- :attr:`connection_state` replays the current
      :class:`SessionState` and then every change, and completes on dispose.

    Parameters
    ----------
    base_url : str
        Endpoint URL. ``wss``/``https`` schemes enable TLS.
    user_id, user_token : str
        Identity and credential sent in the registration envelope.
    debug : bool
        Keep DEBUG logs; falls back to console logging when no
        ``logger_provider`` is given.
    delegate : ConnectionDelegate | None
        Initial delegate, held weakly.
    loop : asyncio.AbstractEventLoop | None
        Loop to run on. If None, a private loop is started on a daemon thread
        and stopped by :meth:`dispose`.
    transport_factory : TransportFactory | None
        Builds the transport; defaults to :class:`WebSocketTransport` on the
        connection's loop.
    codec : EnvelopeCodec | Literal["json"]
        Envelope codec instance, or a name resolved by :func:`codec_factory`.
    path, force_websockets, extra_headers
        Forwarded to :class:`TransportOptions`.
    registration_timeout, reconnect_delay : float
        Handshake deadline and reconnect delay in seconds.
    name : str | None
        Log source name; defaults to ``"StreamConnection:{base_url}"``.

    Raises
    ------
    InvalidBaseURL, InvalidUserID, InvalidUserToken
        The matching argument is empty.
    """

    def __init__(
        self,
        base_url: str,
        user_id: str,
        user_token: str,
        debug: bool = False,
        *,
        delegate: ConnectionDelegate | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        transport_factory: TransportFactory | None = None,
        codec: EnvelopeCodec | Literal["json"] = "json",
        path: str = "/engine.io",
        force_websockets: bool = False,
        extra_headers: Mapping[str, str] | None = None,
        registration_timeout: float = 5.0,
        reconnect_delay: float = 5.0,
        name: str | None = None,
        tracer_provider: TracerProvider | None = None,
        logger_provider: LoggerProvider | None = None,
        meter_provider: MeterProvider | None = None,
    ):
        if not base_url or not base_url.strip():
            raise InvalidBaseURL()
        if not user_id:
            raise InvalidUserID()
        if not user_token:
            raise InvalidUserToken()

        self.base_url = base_url.strip()
        self.user_id = user_id
        self.user_token = user_token
        self.debug = debug
        self.registration_timeout = registration_timeout
        self.reconnect_delay = reconnect_delay
        self.options = TransportOptions.for_url(
            self.base_url,
            path=path,
            log=True,
            force_websockets=force_websockets,
            extra_headers=extra_headers,
        )

        self._name = name if name else f"StreamConnection:{self.base_url}"

        # OTel instrumentation
        self._tracer: Tracer | None = (
            tracer_provider.get_tracer(f"rxstream.{self._name}")
            if tracer_provider
            else None
        )
        self._logger = build_logger(
            logger_provider,
            self._name,
            LogContext(
                service="rxstream",
                component="connection",
                endpoint=self.base_url,
                connection_id=user_id,
            ),
            debug=debug,
        )
        self._metrics = ConnectionMetrics(meter_provider, self.base_url)

        self._codec: EnvelopeCodec = (
            codec_factory(codec) if isinstance(codec, str) else codec
        )
        self._transport_factory: TransportFactory = (
            transport_factory if transport_factory else self._websocket_transport
        )

        self._machine = SessionStateMachine()
        self._transport: Transport | None = None
        self._registration_timer: asyncio.TimerHandle | None = None
        self._reconnect_timer: asyncio.TimerHandle | None = None
        self._state_subject: BehaviorSubject[SessionState] = BehaviorSubject(
            self._machine.state
        )
        self._delegate_ref: weakref.ref | None = None
        self._disposing = False

        # Private asyncio loop running in a background thread unless injected
        self._thread: threading.Thread | None = None
        if loop is None:
            self._loop = asyncio.new_event_loop()
            self._start_loop_thread()
        else:
            self._loop = loop

        if delegate is not None:
            self.delegate = delegate

    # ---------------- alternative constructors ---------------- #

    @classmethod
    def for_environment(
        cls,
        env: Environment = Environment.PROD,
        user_id: str = "",
        user_token: str = "",
        debug: bool = False,
        **kwargs: Any,
    ) -> "StreamConnection":
        """Create a connection to the endpoint configured for ``env``."""
        return cls(env.base_url, user_id, user_token, debug, **kwargs)

    @classmethod
    def from_settings(cls, settings: StreamSettings, **kwargs: Any) -> "StreamConnection":
        """Create a connection from :class:`StreamSettings`."""
        return cls(
            settings.base_url,
            settings.user_id,
            settings.user_token,
            settings.debug,
            path=settings.path,
            force_websockets=settings.force_websockets,
            registration_timeout=settings.registration_timeout,
            reconnect_delay=settings.reconnect_delay,
            **kwargs,
        )

    # ---------------- observable state ---------------- #

    @property
    def state(self) -> SessionState:
        return self._machine.state

    @property
    def connected(self) -> bool:
        """True once the server acknowledged the registration."""
        return self._machine.connected

    @property
    def reconnect_in_flight(self) -> bool:
        return self._machine.reconnect_in_flight

    @property
    def transport(self) -> Transport | None:
        return self._transport

    @property
    def delegate(self) -> ConnectionDelegate | None:
        """The delegate, or None once it has been garbage-collected."""
        if self._delegate_ref is None:
            return None
        return self._delegate_ref()

    @delegate.setter
    def delegate(self, delegate: ConnectionDelegate | None) -> None:
        """Hold ``delegate`` weakly and tell it the current connectivity."""
        self._delegate_ref = weakref.ref(delegate) if delegate is not None else None
        if delegate is not None:
            self._call(self._announce_connectivity)

    @property
    def connection_state(self) -> Observable[SessionState]:
        """Session states, starting with the current one; completes on dispose."""
        return self._state_subject

    # ---------------- public operations ---------------- #

    def start(self) -> None:
        """Open the transport and begin the handshake. Ignored unless idle."""
        self._call(self._start)

    def stop(self) -> None:
        """Close the transport without reconnecting."""
        self._call(self._stop)

    def send(self, message: Envelope | Mapping[str, Any]) -> None:
        """Send ``message`` if the session is connected; drop it otherwise."""
        self._call(self._send, message)

    def dispose(self) -> None:
        """Disconnect for good, cancel timers and stop the private loop."""
        if self._disposing:
            return
        self._disposing = True

        if self._thread is None:
            self._call(self._dispose)
            return

        if threading.current_thread() is self._thread:
            self._loop.create_task(self._shutdown())
            return

        try:
            future = asyncio.run_coroutine_threadsafe(self._shutdown(), self._loop)
            future.result(timeout=3.0)
        except Exception as e:
            self._log(f"Shutdown did not complete: {get_short_error_info(e)}", "WARN")
        self._thread.join(timeout=3.0)

    def __enter__(self) -> "StreamConnection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()

    # ---------------- TransportListener ---------------- #

    def handle_open(self, reason: str) -> None:
        self._call(self._opened, reason)

    def handle_close(self, reason: CloseReason) -> None:
        self._call(self._closed, reason)

    def handle_error(self, reason: str) -> None:
        self._call(self._errored, reason)

    def handle_message(self, raw: str) -> None:
        self._call(self._received, raw)

    def handle_binary(self, data: bytes) -> None:
        self._call(self._received_binary, data)

    # ---------------- loop-side handlers ---------------- #

    def _start(self) -> None:
        if self._machine.state is not SessionState.IDLE:
            self._log(
                f"start() ignored in state {self._machine.state.value}", "DEBUG"
            )
            return
        self._transition(self._machine.start)

    def _stop(self) -> None:
        if self._transport is None:
            # no handle to report the close, e.g. after a failed connect
            if self._machine.state in (
                SessionState.CONNECTING,
                SessionState.RECONNECTING,
            ):
                self._transition(self._machine.transport_closed, MANUAL)
            return
        self._transition(self._machine.stop)

    def _send(self, message: Envelope | Mapping[str, Any]) -> None:
        transport = self._transport
        if transport is None or not transport.connected or not self._machine.connected:
            self._metrics.message_dropped("not_connected")
            self._log("Not connected, message dropped.", "DEBUG")
            return
        try:
            raw = self._codec.encode(message)
        except (TypeError, ValueError) as e:
            self._metrics.message_dropped("encode")
            self._log(f"Unencodable message dropped: {get_short_error_info(e)}", "DEBUG")
            return
        transport.send(raw)

    def _opened(self, reason: str) -> None:
        self._log(f"Transport open reason: {reason}", "DEBUG")
        self._transition(self._machine.transport_opened)

    def _closed(self, reason: CloseReason) -> None:
        self._log(f"Transport close reason: {reason}", "DEBUG")
        self._transition(self._machine.transport_closed, reason)

    def _errored(self, reason: str) -> None:
        # errors never drive a transition; the close that follows does
        self._log(f"Transport error: {reason}", "DEBUG")

    def _received_binary(self, data: bytes) -> None:
        self._log(f"Binary frame ignored ({len(data)} bytes)", "DEBUG")

    def _received(self, raw: str) -> None:
        try:
            envelope = self._codec.decode(raw)
        except ValueError as e:
            self._log(f"Ignored inbound frame: {get_short_error_info(e)}", "DEBUG")
            return

        channel = Channel.lookup(envelope.channel)
        if channel is Channel.REGISTER_OK:
            self._log("Register ok", "INFO")
            self._transition(self._machine.registration_acknowledged)
        elif channel is Channel.REGISTER_FAIL:
            self._log("Register fail", "WARN")
            self._transition(self._machine.registration_rejected)
        elif channel is Channel.SERVER_MESSAGE:
            self._route("on_message", envelope)
        elif channel is Channel.SERVER_AGGREGATION:
            self._route("on_aggregation", envelope)
        else:
            self._log(f"Ignored channel '{envelope.channel}'", "DEBUG")

    def _route(self, handler_name: str, envelope: Envelope) -> None:
        if not isinstance(envelope.payload, Mapping):
            self._log(f"Ignored {envelope.channel} without a mapping payload", "DEBUG")
            return
        self._metrics.message_routed(envelope.channel)
        delegate = self.delegate
        handler = getattr(delegate, handler_name, None) if delegate is not None else None
        if handler is not None:
            self._invoke(handler, dict(envelope.payload))

    def _registration_expired(self, attempt: int) -> None:
        self._registration_timer = None
        effects = self._machine.registration_timed_out(attempt)
        if effects:
            self._log(
                f"Registration not acknowledged within {self.registration_timeout}s,"
                " restarting.",
                "WARN",
            )
        self._apply(effects)

    def _reconnect_due(self) -> None:
        self._reconnect_timer = None
        self._transition(self._machine.reconnect_due)

    def _announce_connectivity(self) -> None:
        self._notify_connectivity(self._machine.connected)

    def _dispose(self) -> None:
        for timer in (self._registration_timer, self._reconnect_timer):
            if timer is not None:
                timer.cancel()
        self._registration_timer = None
        self._reconnect_timer = None
        self._transition(self._machine.dispose)
        self._state_subject.on_completed()

    # ---------------- transitions & effects ---------------- #

    def _transition(self, step: Callable[..., list[Effect]], *args: Any) -> None:
        old = self._machine.state
        effects = step(*args)
        new = self._machine.state
        if new is not old:
            self._log(f"Session state: {old.value} -> {new.value}", "DEBUG")
            self._invoke(self._state_subject.on_next, new)
        self._apply(effects)

    def _apply(self, effects: list[Effect]) -> None:
        for effect in effects:
            if isinstance(effect, Connect):
                self._connect_transport()
            elif isinstance(effect, SendRegistration):
                self._register_client()
            elif isinstance(effect, ArmRegistrationTimer):
                self._arm_registration_timer(effect.attempt)
            elif isinstance(effect, ArmReconnectTimer):
                self._arm_reconnect_timer()
            elif isinstance(effect, Disconnect):
                if self._transport is not None:
                    self._transport.disconnect(effect.reason)
            elif isinstance(effect, ReleaseTransport):
                self._transport = None
            elif isinstance(effect, ConnectivityChanged):
                self._log(
                    "Connected" if effect.connected else "Disconnected",
                    "INFO",
                )
                self._notify_connectivity(effect.connected)

    def _connect_transport(self) -> None:
        try:
            if self._transport is None:
                self._transport = self._transport_factory(
                    self, self.base_url, self.options
                )
            self._transport.connect()
        except Exception as e:
            self._log(
                f"Transport failed to connect:\n{get_full_error_info(e)}", "ERROR"
            )
            self._call(self._closed, Abnormal(get_short_error_info(e)))

    def _register_client(self) -> None:
        transport = self._transport
        if transport is None:
            return
        message = Envelope(
            Channel.CLIENT_REGISTER.value,
            {"userId": self.user_id, "userToken": self.user_token},
        )
        try:
            raw = self._codec.encode(message)
        except (TypeError, ValueError) as e:
            self._log(
                f"Registration could not be encoded: {get_short_error_info(e)}",
                "ERROR",
            )
            return
        span = (
            self._tracer.start_as_current_span(
                "register_client", attributes={"rxstream.user_id": self.user_id}
            )
            if self._tracer
            else nullcontext()
        )
        with span:
            transport.send(raw)
        self._log(f"write {Channel.CLIENT_REGISTER.value}", "DEBUG")

    def _arm_registration_timer(self, attempt: int) -> None:
        if self._registration_timer is not None:
            self._registration_timer.cancel()
        self._registration_timer = self._loop.call_later(
            self.registration_timeout, self._registration_expired, attempt
        )

    def _arm_reconnect_timer(self) -> None:
        self._metrics.reconnect_scheduled()
        self._log(f"Reconnecting in {self.reconnect_delay}s", "INFO")
        self._reconnect_timer = self._loop.call_later(
            self.reconnect_delay, self._reconnect_due
        )

    def _notify_connectivity(self, connected: bool) -> None:
        delegate = self.delegate
        if delegate is None:
            return
        self._invoke(delegate.on_connectivity_changed, connected)

    def _invoke(self, callback: Callable[..., Any], *args: Any) -> None:
        try:
            callback(*args)
        except Exception as e:
            self._log(f"Callback raised:\n{get_full_error_info(e)}", "ERROR")

    # ---------------- threaded event loop plumbing ---------------- #

    def _call(self, callback: Callable[..., Any], *args: Any) -> None:
        try:
            self._loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            # loop already closed by dispose()
            self._log("Event loop closed, call dropped.", "DEBUG")

    def _websocket_transport(
        self, listener: TransportListener, base_url: str, options: TransportOptions
    ) -> Transport:
        return WebSocketTransport(
            listener, base_url, options, loop=self._loop, logger=self._logger
        )

    async def _shutdown(self) -> None:
        transport = self._transport
        try:
            self._dispose()
            if transport is not None:
                await transport.aclose()

            current = asyncio.current_task()
            for task in asyncio.all_tasks(self._loop):
                if task is not current:
                    task.cancel()

            # Give tasks a moment to clean up
            await asyncio.sleep(0.1)
        finally:
            asyncio.get_running_loop().stop()

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_forever()
        finally:
            self._loop.close()

    def _start_loop_thread(self) -> None:
        self._thread = threading.Thread(
            target=self._run_loop, name=f"{self._name}-loop", daemon=True
        )
        self._thread.start()
