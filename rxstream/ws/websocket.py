"""WebSocket implementation of :class:`~rxstream.ws.transport.Transport`.

Runs on an asyncio event loop supplied by the owner. At most one session
task exists at a time; a session covers one connect, the receive loop, and
exactly one ``handle_close`` report.
"""

import asyncio
from urllib.parse import urlsplit, urlunsplit

import websockets
from websockets import ClientConnection

from ..mechanism import StreamException
from ..telemetry import LogContext, OTelLogger
from ..utils import get_short_error_info
from ._otel_mixin import OTelLoggingMixin
from .datatypes import TransportOptions
from .transport import Abnormal, CloseReason, Transport, TransportListener


def build_ws_url(base_url: str, options: TransportOptions) -> str:
    """Return the websocket URL for ``base_url`` and ``options``.

    The scheme follows ``options.secure``; ``options.path`` replaces the
    path of the base URL unless it is empty.
    """
    parts = urlsplit(base_url)
    scheme = "wss" if options.secure else "ws"
    path = options.path or parts.path or "/"
    if not path.startswith("/"):
        path = "/" + path
    return urlunsplit((scheme, parts.netloc, path, parts.query, ""))


class WebSocketTransport(Transport, OTelLoggingMixin):
    """A websocket channel driven by the ``websockets`` client.

    Parameters
    ----------
    listener : TransportListener
        Receives open/close/error/message events. Events are reported from
        the transport's loop.
    base_url : str
        Endpoint, e.g. ``"wss://stream.example.org"``.
    options : TransportOptions
        Request path, TLS flag and logging preference.
    loop : asyncio.AbstractEventLoop
        Loop every socket operation runs on. Public methods are safe to call
        from other threads.
    ping_interval, ping_timeout : float | None
        Forwarded to :pyfunc:`websockets.connect` for heartbeat management.
    open_timeout : float
        Upper bound for the opening handshake.
    logger : OTelLogger | None
        Parent logger; the transport derives a child with its own source.
    """

    def __init__(
        self,
        listener: TransportListener,
        base_url: str,
        options: TransportOptions,
        loop: asyncio.AbstractEventLoop,
        ping_interval: float | None = 30.0,
        ping_timeout: float | None = 30.0,
        open_timeout: float = 10.0,
        logger: OTelLogger | None = None,
    ):
        self._listener = listener
        self._options = options
        self._loop = loop
        self.url = build_ws_url(base_url, options)
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self.open_timeout = open_timeout

        self._name = f"WebSocketTransport:{self.url}"
        if logger is not None and options.log:
            self._logger = logger.with_context(source=self._name)
        else:
            self._logger = None

        self.ws: ClientConnection | None = None
        self._session: asyncio.Task | None = None
        self._requested_reason: CloseReason | None = None

        if not options.force_websockets:
            self._log(
                "Polling transport is not available, using websocket only.", "DEBUG"
            )

    @property
    def connected(self) -> bool:
        return self.ws is not None

    # ---------------- thread-safe entry points ---------------- #

    def connect(self) -> None:
        self._loop.call_soon_threadsafe(self._start_session)

    def disconnect(self, reason: CloseReason) -> None:
        self._loop.call_soon_threadsafe(self._disconnect, reason)

    def send(self, raw: str) -> None:
        self._loop.call_soon_threadsafe(self._send, raw)

    async def aclose(self) -> None:
        """Close the socket (1s budget) and cancel the session task."""
        ws = self.ws
        if ws is not None:
            try:
                await asyncio.wait_for(ws.close(), timeout=1.0)
            except (TimeoutError, websockets.exceptions.WebSocketException, OSError):
                pass
        session = self._session
        if session is not None and not session.done():
            session.cancel()
            await asyncio.gather(session, return_exceptions=True)

    # ---------------- loop-side implementation ---------------- #

    def _start_session(self) -> None:
        if self._session is not None and not self._session.done():
            self._log("Session already running, connect ignored.", "DEBUG")
            return
        self._requested_reason = None
        self._session = self._loop.create_task(self._run_session())

    def _disconnect(self, reason: CloseReason) -> None:
        session = self._session
        if session is None or session.done():
            # nothing open: report the close right away
            self._listener.handle_close(reason)
            return
        self._requested_reason = reason
        if self.ws is None:
            session.cancel()
        else:
            self._loop.create_task(self._close_socket(self.ws))

    def _send(self, raw: str) -> None:
        ws = self.ws
        if ws is None:
            self._log("Send while closed, frame dropped.", "DEBUG")
            return
        self._loop.create_task(self._write(ws, raw))

    async def _write(self, ws: ClientConnection, raw: str) -> None:
        try:
            await ws.send(raw)
        except (websockets.exceptions.ConnectionClosed, OSError) as e:
            self._log(f"Failed to send to {self.url}: {get_short_error_info(e)}", "WARN")

    async def _close_socket(self, ws: ClientConnection) -> None:
        try:
            await ws.close()
        except (websockets.exceptions.WebSocketException, OSError) as e:
            self._log(f"Error while closing {self.url}: {get_short_error_info(e)}", "DEBUG")

    async def _run_session(self) -> None:
        detail = "connection closed"
        try:
            self._log(f"Connecting to {self.url}", "INFO")
            try:
                ws = await asyncio.wait_for(
                    websockets.connect(
                        self.url,
                        ping_interval=self.ping_interval,
                        ping_timeout=self.ping_timeout,
                        additional_headers=self._options.extra_headers or None,
                        max_size=None,
                    ),
                    self.open_timeout,
                )
            except (TimeoutError, OSError, websockets.exceptions.WebSocketException) as e:
                error = StreamException(e, source=self._name, note="connect")
                detail = get_short_error_info(e)
                self._listener.handle_error(str(error))
                return

            self.ws = ws
            self._log(f"Connected to {self.url}", "INFO")
            self._listener.handle_open("Connect")
            detail = await self._receive(ws)

        except asyncio.CancelledError:
            detail = "session cancelled"
            raise

        finally:
            self.ws = None
            reason = self._requested_reason or Abnormal(detail)
            self._requested_reason = None
            self._log(f"Closed {self.url}: {reason}", "INFO")
            self._listener.handle_close(reason)

    async def _receive(self, ws: ClientConnection) -> str:
        """Forward frames until the socket ends; return why it ended."""
        while True:
            try:
                data = await ws.recv()
            except websockets.ConnectionClosedOK:
                return "closed by peer"
            except websockets.ConnectionClosedError as e:
                self._listener.handle_error(get_short_error_info(e))
                return get_short_error_info(e)
            except OSError as e:
                self._listener.handle_error(get_short_error_info(e))
                return get_short_error_info(e)

            if isinstance(data, bytes):
                self._listener.handle_binary(data)
            else:
                self._listener.handle_message(data)
