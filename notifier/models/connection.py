"""Connection state and the typed events a transport session can emit."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, TypeAlias


class ConnectionPhase(StrEnum):
    DISCONNECTED = "disconnected"
    AWAITING_PAIRING = "awaiting_pairing"
    CONNECTED = "connected"


class DisconnectReason(StrEnum):
    LOGGED_OUT = "logged_out"
    CONNECTION_CLOSED = "connection_closed"
    CONNECTION_LOST = "connection_lost"
    CONNECTION_REPLACED = "connection_replaced"
    TIMED_OUT = "timed_out"
    RESTART_REQUIRED = "restart_required"
    UNKNOWN = "unknown"

    @property
    def is_transient(self) -> bool:
        return self in TRANSIENT_REASONS


TRANSIENT_REASONS = frozenset({
    DisconnectReason.CONNECTION_CLOSED,
    DisconnectReason.CONNECTION_LOST,
    DisconnectReason.CONNECTION_REPLACED,
    DisconnectReason.TIMED_OUT,
    DisconnectReason.RESTART_REQUIRED,
})


@dataclass(frozen=True)
class PairingChallenge:
    payload: str


@dataclass(frozen=True)
class Authenticated:
    account_id: str = ""
    display_name: str = ""


@dataclass(frozen=True)
class Closed:
    reason: DisconnectReason
    status_code: int | None = None


@dataclass(frozen=True)
class CredentialsUpdated:
    credentials: dict[str, Any]


@dataclass(frozen=True)
class IncomingMessage:
    chat_id: str
    sender: str
    text: str
    from_me: bool = False

    @property
    def is_group(self) -> bool:
        return self.chat_id.endswith("@g.us")

    @property
    def is_broadcast(self) -> bool:
        return self.chat_id == "status@broadcast"


TransportEvent: TypeAlias = (
    PairingChallenge | Authenticated | Closed | CredentialsUpdated | IncomingMessage
)


@dataclass(frozen=True)
class ConnectionSnapshot:
    phase: ConnectionPhase
    generation: int
    pairing_attempts: int
    reconnect_attempts: int
    ever_authenticated: bool
    pairing_payload: str | None = None
    account_id: str | None = None
    display_name: str | None = None
    connected_at: str | None = None
    messages_received: int = 0
    messages_sent: int = 0
    send_failures: int = 0

    @property
    def connected(self) -> bool:
        return self.phase == ConnectionPhase.CONNECTED
