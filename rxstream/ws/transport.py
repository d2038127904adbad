"""Transport seam between the connection controller and the wire.

A :class:`Transport` is an opaque duplex channel. It reports its lifecycle to
a :class:`TransportListener`; every close carries a :data:`CloseReason` so
the listener can tell a requested close from an unexpected one.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Protocol, Union


@dataclass(frozen=True)
class ManualDisconnect:
    """Close requested by the owner; never followed by a reconnect."""

    def __str__(self) -> str:
        return "Manually Disconnected"


@dataclass(frozen=True)
class Restart:
    """Close requested because the registration was not acknowledged in time."""

    def __str__(self) -> str:
        return "Restart"


@dataclass(frozen=True)
class Abnormal:
    """Any close the owner did not ask for."""

    detail: str = ""

    def __str__(self) -> str:
        return f"Abnormal: {self.detail}" if self.detail else "Abnormal"


CloseReason = Union[ManualDisconnect, Restart, Abnormal]

MANUAL = ManualDisconnect()
RESTART = Restart()


def is_manual(reason: CloseReason) -> bool:
    return isinstance(reason, ManualDisconnect)


class TransportListener(Protocol):
    """Receiver of transport events.

    Implementations may be called from any thread.
    """

    def handle_open(self, reason: str) -> None: ...

    def handle_close(self, reason: CloseReason) -> None: ...

    def handle_error(self, reason: str) -> None: ...

    def handle_message(self, raw: str) -> None: ...

    def handle_binary(self, data: bytes) -> None: ...


class Transport(ABC):
    """Duplex channel owned by exactly one connection."""

    @property
    @abstractmethod
    def connected(self) -> bool:
        """True while the underlying channel is open."""
        ...

    @abstractmethod
    def connect(self) -> None:
        """Open the channel; the listener gets ``handle_open`` on success."""
        ...

    @abstractmethod
    def disconnect(self, reason: CloseReason) -> None:
        """Close the channel; the listener gets ``handle_close(reason)``."""
        ...

    @abstractmethod
    def send(self, raw: str) -> None:
        """Write one text frame. Best effort."""
        ...

    async def aclose(self) -> None:
        """Release resources during shutdown. No listener callbacks are required."""
        return None
