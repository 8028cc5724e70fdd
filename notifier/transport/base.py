"""Transport session interfaces.

A Transport opens sessions; a session reports lifecycle and inbound messages
by calling the ``emit`` callback it was opened with, and accepts outbound text.
"""

from collections.abc import Callable
from typing import Any, Protocol

from notifier.models.connection import TransportEvent

EmitFn = Callable[[TransportEvent], None]


class TransportError(Exception):
    """Raised when the transport cannot open a session or deliver a message."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransportSession(Protocol):
    def pump(self) -> None:
        """Collect pending lifecycle/message events and emit them."""
        ...

    def send_text(self, jid: str, text: str) -> None: ...

    def logout(self) -> None: ...

    def close(self) -> None: ...


class Transport(Protocol):
    def open(self, credentials: dict[str, Any] | None, emit: EmitFn) -> TransportSession: ...
