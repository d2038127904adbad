"""Shared test fixtures for rxstream tests."""

import itertools
import json
from collections import deque

import pytest

from rxstream import StreamConnection
from rxstream.ws import Transport


class ManualTimer:
    """Handle returned by :meth:`ManualLoop.call_later`."""

    def __init__(self, when, seq, callback, args):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class ManualLoop:
    """Virtual-time stand-in for the connection's event loop.

    ``call_soon_threadsafe`` callbacks run on :meth:`run_pending`;
    ``call_later`` timers run when :meth:`advance` moves the clock past them.
    """

    def __init__(self):
        self.now = 0.0
        self._ready = deque()
        self._timers = []
        self._seq = itertools.count()

    def call_soon_threadsafe(self, callback, *args):
        self._ready.append((callback, args))

    def call_later(self, delay, callback, *args):
        timer = ManualTimer(self.now + delay, next(self._seq), callback, args)
        self._timers.append(timer)
        return timer

    @property
    def pending_timers(self):
        return [t for t in self._timers if not t.cancelled and not t.fired]

    def run_pending(self):
        while self._ready:
            callback, args = self._ready.popleft()
            callback(*args)

    def advance(self, seconds):
        target = self.now + seconds
        self.run_pending()
        while True:
            due = sorted(
                (t for t in self.pending_timers if t.when <= target),
                key=lambda t: (t.when, t.seq),
            )
            if not due:
                break
            timer = due[0]
            self.now = timer.when
            timer.fired = True
            timer.callback(*timer.args)
            self.run_pending()
        self.now = target


class FakeTransport(Transport):
    """Transport double recording every call.

    ``disconnect`` reports the close straight back, like a real transport
    does once the socket is gone.
    """

    def __init__(self, listener, base_url, options):
        self.listener = listener
        self.base_url = base_url
        self.options = options
        self.sent = []
        self.connect_calls = 0
        self.disconnect_calls = []
        self._connected = False

    @property
    def connected(self):
        return self._connected

    def connect(self):
        self.connect_calls += 1

    def disconnect(self, reason):
        self.disconnect_calls.append(reason)
        self.emit_close(reason)

    def send(self, raw):
        self.sent.append(raw)

    # -- helpers driving the listener --

    def emit_open(self):
        self._connected = True
        self.listener.handle_open("Connect")

    def emit_close(self, reason):
        self._connected = False
        self.listener.handle_close(reason)

    def emit_error(self, reason):
        self.listener.handle_error(reason)

    def emit_message(self, message):
        raw = message if isinstance(message, str) else json.dumps(message)
        self.listener.handle_message(raw)

    def emit_binary(self, data):
        self.listener.handle_binary(data)

    @property
    def sent_envelopes(self):
        return [json.loads(raw) for raw in self.sent]


class RecordingDelegate:
    """Delegate recording notifications and the state seen while notified."""

    def __init__(self, connection=None):
        self.connection = connection
        self.connectivity = []
        self.observed = []
        self.messages = []
        self.aggregations = []

    def on_connectivity_changed(self, connected):
        self.connectivity.append(connected)
        if self.connection is not None:
            self.observed.append(self.connection.connected)

    def on_message(self, payload):
        self.messages.append(payload)

    def on_aggregation(self, payload):
        self.aggregations.append(payload)


@pytest.fixture
def loop():
    return ManualLoop()


@pytest.fixture
def transports():
    return []


@pytest.fixture
def transport_factory(transports):
    """Factory building FakeTransport handles, collected in ``transports``."""

    def factory(listener, base_url, options):
        transport = FakeTransport(listener, base_url, options)
        transports.append(transport)
        return transport

    return factory


@pytest.fixture
def make_connection(loop, transport_factory):
    """Build connections on the manual loop with FakeTransport handles."""

    def _make(base_url="wss://x.test", user_id="u1", user_token="t1", **kwargs):
        kwargs.setdefault("loop", loop)
        kwargs.setdefault("transport_factory", transport_factory)
        return StreamConnection(base_url, user_id, user_token, **kwargs)

    return _make


@pytest.fixture
def connection(make_connection):
    return make_connection()


@pytest.fixture
def delegate(connection, loop):
    """Delegate attached to ``connection`` with the initial announcement drained."""
    recorder = RecordingDelegate(connection)
    connection.delegate = recorder
    loop.run_pending()
    recorder.connectivity.clear()
    recorder.observed.clear()
    return recorder


@pytest.fixture
def registered(connection, delegate, loop, transports):
    """A connection that went through open + registerOk."""
    connection.start()
    loop.run_pending()
    transports[0].emit_open()
    transports[0].emit_message({"channel": "registerOk"})
    loop.run_pending()
    return connection
