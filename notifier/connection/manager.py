"""Connection manager: owns the single outbound transport session.

Transport callbacks never touch state directly. They are queued, tagged with
the generation of the start() call that opened the session, and applied one
at a time by pump() on the daemon thread. Anything from an older generation,
including reconnect timers scheduled before a newer start(), is ignored.
"""

import logging
import queue
from collections.abc import Callable
from typing import Any, Protocol

from notifier.config.schema import ConnectionConfig, TransportConfig
from notifier.connection.backoff import reconnect_delay
from notifier.models.common import utc_now_iso
from notifier.models.connection import (
    Authenticated,
    Closed,
    ConnectionPhase,
    ConnectionSnapshot,
    CredentialsUpdated,
    DisconnectReason,
    IncomingMessage,
    PairingChallenge,
    TransportEvent,
)
from notifier.models.dispatch import SendResult, SendStatus
from notifier.scheduler import TimerHandle, TimerQueue
from notifier.transport.addressing import to_jid
from notifier.transport.base import EmitFn, Transport, TransportSession

logger = logging.getLogger(__name__)


class CredentialStore(Protocol):
    def load(self) -> dict[str, Any] | None: ...

    def save(self, credentials: dict[str, Any]) -> None: ...

    def clear(self) -> None: ...


class ConnectionManager:
    def __init__(
        self,
        transport: Transport,
        credentials: CredentialStore,
        timers: TimerQueue,
        config: ConnectionConfig | None = None,
        transport_config: TransportConfig | None = None,
        on_message: Callable[[IncomingMessage], object] | None = None,
    ):
        self.transport = transport
        self.credentials = credentials
        self.timers = timers
        self.config = config or ConnectionConfig()
        self.transport_config = transport_config or TransportConfig()
        self.on_message = on_message

        self._inbox: queue.SimpleQueue[tuple[int, TransportEvent]] = queue.SimpleQueue()
        self._session: TransportSession | None = None
        self._pumping = False
        self._retry_timer: TimerHandle | None = None
        self._stopped = True

        self._generation = 0
        self._phase = ConnectionPhase.DISCONNECTED
        self._pairing_attempts = 0
        self._reconnect_attempts = 0
        self._ever_authenticated = False
        self._pairing_payload: str | None = None
        self._account_id: str | None = None
        self._display_name: str | None = None
        self._connected_at: str | None = None

        self._messages_received = 0
        self._messages_sent = 0
        self._send_failures = 0

    # --- Observability ---

    @property
    def state(self) -> ConnectionSnapshot:
        return ConnectionSnapshot(
            phase=self._phase,
            generation=self._generation,
            pairing_attempts=self._pairing_attempts,
            reconnect_attempts=self._reconnect_attempts,
            ever_authenticated=self._ever_authenticated,
            pairing_payload=self._pairing_payload,
            account_id=self._account_id,
            display_name=self._display_name,
            connected_at=self._connected_at,
            messages_received=self._messages_received,
            messages_sent=self._messages_sent,
            send_failures=self._send_failures,
        )

    @property
    def phase(self) -> ConnectionPhase:
        return self._phase

    @property
    def is_connected(self) -> bool:
        return self._phase == ConnectionPhase.CONNECTED

    @property
    def pairing_challenge(self) -> str | None:
        if self._phase != ConnectionPhase.AWAITING_PAIRING:
            return None
        return self._pairing_payload

    @property
    def generation(self) -> int:
        return self._generation

    # --- Lifecycle ---

    def start(self) -> None:
        """Open a fresh session, tearing down whatever was there before."""
        self._stopped = False
        self._cancel_retry()
        self._generation += 1
        generation = self._generation
        self._teardown()
        self._set_disconnected()

        stored = self._load_credentials()
        if stored:
            self._ever_authenticated = True
        else:
            self._ever_authenticated = False
            self._pairing_attempts = 0

        logger.info(
            "Starting session (generation %d, %s)",
            generation, "stored credentials" if stored else "pairing required",
        )
        try:
            self._session = self.transport.open(stored, self._emitter(generation))
            self._pumping = True
        except Exception as e:
            logger.error("Could not open transport session: %s", e)
            self._inbox.put((generation, Closed(reason=DisconnectReason.CONNECTION_LOST)))

    def stop(self) -> None:
        """Close the session and cancel pending reconnects. Credentials are kept."""
        self._stopped = True
        self._cancel_retry()
        self._generation += 1
        self._teardown()
        self._set_disconnected()
        logger.info("Connection manager stopped")

    def restart(self, delay: float | None = None) -> None:
        """Drop the current session and start again after a short delay."""
        self._stopped = False
        self._cancel_retry()
        self._generation += 1
        self._teardown()
        self._set_disconnected()
        self._schedule_restart(self.config.restart_delay_seconds if delay is None else delay)

    def reset_session(self) -> None:
        """Log out, discard stored credentials and re-pair from scratch."""
        session = self._session
        if session is not None:
            try:
                session.logout()
            except Exception as e:
                logger.warning("Logout failed: %s", e)
        self._stopped = False
        self._cancel_retry()
        self._generation += 1
        self._teardown()
        self._set_disconnected()
        self._clear_credentials()
        self._reset_counters()
        logger.info("Session reset, new pairing will be requested")
        self._schedule_restart(self.config.logout_retry_seconds)

    # --- Event processing ---

    def pump(self) -> int:
        """Poll the live session and apply queued events. Returns events handled."""
        session = self._session
        if session is not None and self._pumping:
            try:
                session.pump()
            except Exception as e:
                logger.warning("Transport session failed: %s", e)
                self._pumping = False
                self._inbox.put(
                    (self._generation, Closed(reason=DisconnectReason.CONNECTION_LOST))
                )
        return self.process_pending()

    def process_pending(self) -> int:
        handled = 0
        while True:
            try:
                generation, event = self._inbox.get_nowait()
            except queue.Empty:
                return handled
            self.handle_event(generation, event)
            handled += 1

    def handle_event(self, generation: int, event: TransportEvent) -> None:
        if generation != self._generation or self._stopped:
            logger.debug(
                "Ignoring %s from generation %d (current %d)",
                type(event).__name__, generation, self._generation,
            )
            return

        if isinstance(event, PairingChallenge):
            self._on_pairing(event)
        elif isinstance(event, Authenticated):
            self._on_authenticated(event)
        elif isinstance(event, Closed):
            self._on_closed(event)
        elif isinstance(event, CredentialsUpdated):
            self._save_credentials(event.credentials)
        elif isinstance(event, IncomingMessage):
            self._on_message(event)

    def _on_pairing(self, event: PairingChallenge) -> None:
        self._pairing_attempts += 1
        self._phase = ConnectionPhase.AWAITING_PAIRING
        self._pairing_payload = event.payload
        logger.info("Pairing challenge #%d issued, waiting for scan", self._pairing_attempts)

    def _on_authenticated(self, event: Authenticated) -> None:
        self._phase = ConnectionPhase.CONNECTED
        self._reconnect_attempts = 0
        self._ever_authenticated = True
        self._pairing_payload = None
        self._account_id = event.account_id or None
        self._display_name = event.display_name or None
        self._connected_at = utc_now_iso()
        logger.info("Connected as %s (%s)", self._display_name, self._account_id)

    def _on_closed(self, event: Closed) -> None:
        reason = event.reason
        self._set_disconnected()
        logger.info(
            "Connection closed: reason=%s code=%s authenticated=%s pairings=%d",
            reason.value, event.status_code, self._ever_authenticated, self._pairing_attempts,
        )

        if reason == DisconnectReason.LOGGED_OUT:
            logger.warning("Session logged out remotely, clearing credentials")
            self._pumping = False
            self._clear_credentials()
            self._reset_counters()
            self._schedule_restart(self.config.logout_retry_seconds)
            return

        if reason.is_transient or self._ever_authenticated:
            self._pumping = False
            self._reconnect_attempts += 1
            limit = self.config.max_reconnect_attempts
            if self._reconnect_attempts > limit:
                logger.error("Reached %d reconnect attempts, starting a new cycle", limit)
                self._reconnect_attempts = 1
                self._pairing_attempts = 0
            delay = reconnect_delay(self._reconnect_attempts, self.config.reconnect_base_seconds)
            logger.info(
                "Reconnecting in %.1fs (attempt %d/%d)",
                delay, self._reconnect_attempts, limit,
            )
            self._schedule_restart(delay)
            return

        if self._pairing_attempts == 0:
            # Handshake still in progress; the session stays pumped for its challenge
            logger.info("Closed during initial handshake, waiting for pairing challenge")
            return

        self._pumping = False
        logger.info("Reconnecting in %.1fs", self.config.fallback_retry_seconds)
        self._schedule_restart(self.config.fallback_retry_seconds)

    def _on_message(self, event: IncomingMessage) -> None:
        self._messages_received += 1
        if self.on_message is None:
            return
        try:
            self.on_message(event)
        except Exception:
            logger.exception("Incoming message handler failed for %s", event.chat_id)

    # --- Sending ---

    def deliver(self, recipient: str, text: str) -> SendResult:
        """Attempt one send. Never raises; the result says what happened."""
        session = self._session
        if session is None or self._phase != ConnectionPhase.CONNECTED:
            logger.warning("Not connected, message to %s not sent", recipient)
            self._send_failures += 1
            return SendResult(recipient, SendStatus.NOT_CONNECTED, "not connected")

        jid = to_jid(
            recipient,
            self.transport_config.country_code,
            self.transport_config.strip_mobile_ninth_digit,
        )
        if jid is None:
            logger.warning("Invalid recipient %r", recipient)
            self._send_failures += 1
            return SendResult(recipient, SendStatus.INVALID_RECIPIENT, "invalid phone number")

        try:
            session.send_text(jid, text)
        except Exception as e:
            logger.error("Send to %s failed: %s", jid, e)
            self._send_failures += 1
            return SendResult(recipient, SendStatus.FAILED, str(e))

        self._messages_sent += 1
        logger.info("Message sent to %s", jid)
        return SendResult(recipient, SendStatus.SENT)

    def send(self, recipient: str, text: str) -> bool:
        return self.deliver(recipient, text).ok

    # --- Internals ---

    def _emitter(self, generation: int) -> EmitFn:
        def emit(event: TransportEvent) -> None:
            self._inbox.put((generation, event))

        return emit

    def _schedule_restart(self, delay: float) -> None:
        self._cancel_retry()
        self._retry_timer = self.timers.call_later(
            delay, self._restart_if_current, self._generation
        )

    def _restart_if_current(self, generation: int) -> None:
        if generation != self._generation or self._stopped:
            logger.debug("Dropping stale reconnect timer (generation %d)", generation)
            return
        self._retry_timer = None
        self.start()

    def _cancel_retry(self) -> None:
        if self._retry_timer is not None:
            self._retry_timer.cancel()
            self._retry_timer = None

    def _teardown(self) -> None:
        session, self._session = self._session, None
        self._pumping = False
        if session is None:
            return
        try:
            session.close()
        except Exception as e:
            logger.warning("Error closing previous session: %s", e)

    def _set_disconnected(self) -> None:
        self._phase = ConnectionPhase.DISCONNECTED
        self._pairing_payload = None
        self._account_id = None
        self._display_name = None
        self._connected_at = None

    def _reset_counters(self) -> None:
        self._pairing_attempts = 0
        self._reconnect_attempts = 0
        self._ever_authenticated = False

    def _load_credentials(self) -> dict[str, Any] | None:
        try:
            return self.credentials.load()
        except Exception:
            logger.exception("Could not load stored credentials")
            return None

    def _save_credentials(self, credentials: dict[str, Any]) -> None:
        try:
            self.credentials.save(credentials)
        except Exception:
            logger.exception("Could not persist updated credentials")

    def _clear_credentials(self) -> None:
        try:
            self.credentials.clear()
        except Exception:
            logger.exception("Could not clear stored credentials")
