"""Envelope types, codecs and transport options.

Provides the ``Channel`` tags understood by the streaming server, the
``Envelope`` unit exchanged over the transport, the abstract
``EnvelopeCodec`` with its JSON implementation, the ``TransportOptions``
handed to a transport at connect time, and the ``codec_factory`` helper.
"""

import json
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal
from urllib.parse import urlsplit


class Channel(str, Enum):
    """Channel tags carried in every envelope."""

    CLIENT_REGISTER = "clientRegister"
    REGISTER_OK = "registerOk"
    REGISTER_FAIL = "registerFail"
    SERVER_MESSAGE = "serverMessage"
    SERVER_AGGREGATION = "serverAggregation"

    @classmethod
    def lookup(cls, tag: str) -> "Channel | None":
        """Return the channel for ``tag``, or None for an unknown tag."""
        try:
            return cls(tag)
        except ValueError:
            return None


@dataclass(frozen=True)
class Envelope:
    """A ``{channel, payload}`` unit exchanged with the server."""

    channel: str
    payload: Any = None

    def as_dict(self) -> dict[str, Any]:
        message: dict[str, Any] = {"channel": self.channel}
        if self.payload is not None:
            message["payload"] = self.payload
        return message


@dataclass(frozen=True)
class TransportOptions:
    """Options handed to a transport at connect time.

    Attributes:
        path: Request path appended to the endpoint.
        log: Whether the transport should log its own activity.
        force_websockets: Skip any polling phase and speak websocket only.
        secure: Use an encrypted connection.
        extra_headers: Headers added to the opening handshake request.
    """

    path: str = "/engine.io"
    log: bool = True
    force_websockets: bool = False
    secure: bool = False
    extra_headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def for_url(
        cls,
        base_url: str,
        path: str = "/engine.io",
        log: bool = True,
        force_websockets: bool = False,
        extra_headers: Mapping[str, str] | None = None,
    ) -> "TransportOptions":
        """Build options for ``base_url``, deriving ``secure`` from its scheme."""
        scheme = urlsplit(base_url).scheme.lower()
        return cls(
            path=path,
            log=log,
            force_websockets=force_websockets,
            secure=scheme in ("wss", "https"),
            extra_headers=dict(extra_headers or {}),
        )


class EnvelopeCodec(ABC):
    @abstractmethod
    def encode(self, message: Envelope | Mapping[str, Any]) -> str:
        """Serialize an outbound message.

        Raises TypeError or ValueError when the message cannot be serialized.
        """
        ...

    @abstractmethod
    def decode(self, raw: str | bytes) -> Envelope:
        """Parse an inbound frame.

        Raises ValueError when the frame is not a well-formed envelope.
        """
        ...


class JSONEnvelopeCodec(EnvelopeCodec):
    """Envelopes as JSON objects: ``{"channel": str, "payload": ...}``."""

    def encode(self, message: Envelope | Mapping[str, Any]) -> str:
        if isinstance(message, Envelope):
            message = message.as_dict()
        if not isinstance(message, Mapping):
            raise TypeError(
                f"JSONEnvelopeCodec expects an Envelope or a mapping, got {type(message)}"
            )
        # allow_nan=False keeps the output valid JSON for strict servers
        return json.dumps(dict(message), allow_nan=False, separators=(",", ":"))

    def decode(self, raw: str | bytes) -> Envelope:
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValueError(f"Undecodable frame: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Envelope must be a JSON object, got {type(data).__name__}")
        channel = data.get("channel")
        if not isinstance(channel, str):
            raise ValueError("Envelope has no string 'channel' field")
        return Envelope(channel=channel, payload=data.get("payload"))


def codec_factory(codec: Literal["json"]) -> EnvelopeCodec:
    """Create an EnvelopeCodec instance based on the codec parameter."""
    if codec == "json":
        return JSONEnvelopeCodec()
    else:
        raise ValueError(f"Unsupported codec '{codec}'.")
