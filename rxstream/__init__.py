"""Convenience exports for the :mod:`rxstream` package."""

from .config import Environment, StreamSettings, load_settings_from_env  # noqa: F401
from .mechanism import (  # noqa: F401
    InvalidBaseURL,
    InvalidUserID,
    InvalidUserToken,
    StreamConfigError,
    StreamException,
)
from .ws import (  # noqa: F401
    Abnormal,
    Channel,
    CloseReason,
    ConnectionDelegate,
    Envelope,
    EnvelopeCodec,
    JSONEnvelopeCodec,
    ManualDisconnect,
    Restart,
    SessionState,
    StreamConnection,
    Transport,
    TransportListener,
    TransportOptions,
    WebSocketTransport,
)

__version__ = "0.1.0"

__all__ = [
    "StreamException",
    "StreamConfigError",
    "InvalidBaseURL",
    "InvalidUserID",
    "InvalidUserToken",

    # config
    "Environment",
    "StreamSettings",
    "load_settings_from_env",

    # connection
    "StreamConnection",
    "ConnectionDelegate",
    "SessionState",

    # transport
    "Transport",
    "TransportListener",
    "TransportOptions",
    "WebSocketTransport",
    "CloseReason",
    "ManualDisconnect",
    "Restart",
    "Abnormal",

    # envelopes
    "Channel",
    "Envelope",
    "EnvelopeCodec",
    "JSONEnvelopeCodec",
]
