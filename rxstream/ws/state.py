"""Session state machine for a streaming connection.

:class:`SessionStateMachine` holds the session state and the reconnect guard
and performs no I/O. Every transition method returns the list of effects the
owner has to carry out, in order.

State flow::

    IDLE -> CONNECTING -> AWAITING_REGISTRATION -> CONNECTED
      ^         ^                  |                   |
      |         |                  v                   v
      |         +------------ RECONNECTING <-----------+   (abnormal close)
      +---------------------------------------------------- (manual close)

    any state -> CLOSED   (dispose, terminal)
"""

from dataclasses import dataclass
from enum import Enum

from .transport import MANUAL, RESTART, CloseReason, is_manual


class SessionState(Enum):
    """Observable states of a streaming session."""

    IDLE = "idle"
    CONNECTING = "connecting"
    AWAITING_REGISTRATION = "awaiting_registration"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"  # terminal state after dispose


# ---------------- effects ---------------- #


@dataclass(frozen=True)
class Connect:
    """Create the transport if needed and issue ``connect()``."""


@dataclass(frozen=True)
class SendRegistration:
    """Write the ``clientRegister`` envelope."""


@dataclass(frozen=True)
class ArmRegistrationTimer:
    """Start the registration timeout for the given open attempt."""

    attempt: int


@dataclass(frozen=True)
class ArmReconnectTimer:
    """Start the single pending reconnect timer."""


@dataclass(frozen=True)
class Disconnect:
    """Issue ``disconnect(reason)`` on the transport."""

    reason: CloseReason


@dataclass(frozen=True)
class ReleaseTransport:
    """Drop the transport handle."""


@dataclass(frozen=True)
class ConnectivityChanged:
    """Tell the delegate the registered/unregistered status flipped."""

    connected: bool


Effect = (
    Connect
    | SendRegistration
    | ArmRegistrationTimer
    | ArmReconnectTimer
    | Disconnect
    | ReleaseTransport
    | ConnectivityChanged
)

_LIVE_STATES = (
    SessionState.CONNECTING,
    SessionState.AWAITING_REGISTRATION,
    SessionState.CONNECTED,
    SessionState.RECONNECTING,
)


class SessionStateMachine:
    """Pure transition logic for the registration handshake and reconnects.

    ``reconnect_in_flight`` is true from the moment a reconnect timer is
    armed until it fires; while it is set no second timer is requested.
    ``attempt`` counts transport opens so a stale registration timeout can
    be told apart from the current one.
    """

    def __init__(self) -> None:
        self.state = SessionState.IDLE
        self.reconnect_in_flight = False
        self.attempt = 0

    @property
    def connected(self) -> bool:
        return self.state is SessionState.CONNECTED

    # ---------------- owner requests ---------------- #

    def start(self) -> list[Effect]:
        if self.state is not SessionState.IDLE:
            return []
        self.state = SessionState.CONNECTING
        return [Connect()]

    def stop(self) -> list[Effect]:
        if self.state in (SessionState.IDLE, SessionState.CLOSED):
            return []
        return [Disconnect(MANUAL)]

    def dispose(self) -> list[Effect]:
        if self.state is SessionState.CLOSED:
            return []
        was_connected = self.connected
        self.state = SessionState.CLOSED
        effects: list[Effect] = [Disconnect(MANUAL), ReleaseTransport()]
        if was_connected:
            effects.append(ConnectivityChanged(False))
        return effects

    # ---------------- transport events ---------------- #

    def transport_opened(self) -> list[Effect]:
        if self.state is not SessionState.CONNECTING:
            return []
        self.attempt += 1
        self.state = SessionState.AWAITING_REGISTRATION
        return [SendRegistration(), ArmRegistrationTimer(self.attempt)]

    def transport_closed(self, reason: CloseReason) -> list[Effect]:
        if self.state not in _LIVE_STATES:
            return []
        effects: list[Effect] = []
        if self.connected:
            effects.append(ConnectivityChanged(False))
        if is_manual(reason):
            self.state = SessionState.IDLE
            effects.append(ReleaseTransport())
            return effects
        self.state = SessionState.RECONNECTING
        if not self.reconnect_in_flight:
            self.reconnect_in_flight = True
            effects.append(ArmReconnectTimer())
        return effects

    # ---------------- handshake ---------------- #

    def registration_acknowledged(self) -> list[Effect]:
        if self.state is not SessionState.AWAITING_REGISTRATION:
            return []
        self.state = SessionState.CONNECTED
        return [ConnectivityChanged(True)]

    def registration_rejected(self) -> list[Effect]:
        if self.state is not SessionState.AWAITING_REGISTRATION:
            return []
        return [Disconnect(MANUAL)]

    # ---------------- timers ---------------- #

    def registration_timed_out(self, attempt: int) -> list[Effect]:
        if self.state is not SessionState.AWAITING_REGISTRATION:
            return []
        if attempt != self.attempt:
            return []
        return [Disconnect(RESTART)]

    def reconnect_due(self) -> list[Effect]:
        self.reconnect_in_flight = False
        if self.state is not SessionState.RECONNECTING:
            return []
        self.state = SessionState.CONNECTING
        return [Connect()]
