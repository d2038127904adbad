"""Streaming session package: transport seam, codec, state machine, controller."""

from ._otel_mixin import OTelLoggingMixin
from .connection import ConnectionDelegate, StreamConnection, TransportFactory
from .datatypes import (
    Channel,
    Envelope,
    EnvelopeCodec,
    JSONEnvelopeCodec,
    TransportOptions,
    codec_factory,
)
from .state import SessionState, SessionStateMachine
from .transport import (
    MANUAL,
    RESTART,
    Abnormal,
    CloseReason,
    ManualDisconnect,
    Restart,
    Transport,
    TransportListener,
)
from .websocket import WebSocketTransport, build_ws_url

__all__ = [
    # datatypes
    "Channel",
    "Envelope",
    "EnvelopeCodec",
    "JSONEnvelopeCodec",
    "TransportOptions",
    "codec_factory",
    # mixin
    "OTelLoggingMixin",
    # transport
    "CloseReason",
    "ManualDisconnect",
    "Restart",
    "Abnormal",
    "MANUAL",
    "RESTART",
    "Transport",
    "TransportListener",
    "WebSocketTransport",
    "build_ws_url",
    # state
    "SessionState",
    "SessionStateMachine",
    # connection
    "ConnectionDelegate",
    "StreamConnection",
    "TransportFactory",
]
