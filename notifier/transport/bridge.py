"""HTTP client for the messaging bridge sidecar.

The bridge owns the actual messaging socket and exposes it over a small REST
surface scoped by session id:

    POST /sessions/{id}/connect      {"credentials": {...} | null}
    GET  /sessions/{id}/events?after=<seq>
    POST /sessions/{id}/messages     {"jid": "...", "text": "..."}
    POST /sessions/{id}/logout
    POST /sessions/{id}/disconnect

Events come back as ``{"seq": n, "type": "qr" | "open" | "close" | "creds" | "message", ...}``.
The connect reply may carry ``{"seq": n}``, the last event already in the
bridge's log; polling starts after it so events from an earlier connection
are not replayed.
"""

import logging
from typing import Any

import httpx

from notifier.models.connection import (
    Authenticated,
    Closed,
    CredentialsUpdated,
    DisconnectReason,
    IncomingMessage,
    PairingChallenge,
    TransportEvent,
)
from notifier.transport.addressing import jid_to_phone
from notifier.transport.base import EmitFn, TransportError

logger = logging.getLogger(__name__)

DEFAULT_BRIDGE_URL = "http://127.0.0.1:3017"

# Close codes reported by the messaging library behind the bridge.
STATUS_CODE_REASONS: dict[int, DisconnectReason] = {
    401: DisconnectReason.LOGGED_OUT,
    408: DisconnectReason.TIMED_OUT,
    428: DisconnectReason.CONNECTION_CLOSED,
    440: DisconnectReason.CONNECTION_REPLACED,
    503: DisconnectReason.CONNECTION_LOST,
    515: DisconnectReason.RESTART_REQUIRED,
}


def reason_from_status_code(code: int | None) -> DisconnectReason:
    if code is None:
        return DisconnectReason.UNKNOWN
    return STATUS_CODE_REASONS.get(code, DisconnectReason.UNKNOWN)


def parse_event(data: dict[str, Any]) -> TransportEvent | None:
    """Translate one bridge event payload into a typed transport event."""
    kind = data.get("type")
    if kind == "qr":
        return PairingChallenge(payload=str(data.get("qr", "")))
    if kind == "open":
        user = data.get("user") or {}
        return Authenticated(
            account_id=jid_to_phone(str(user.get("id", ""))),
            display_name=str(user.get("name") or ""),
        )
    if kind == "close":
        code = data.get("status_code")
        code = int(code) if isinstance(code, (int, str)) and str(code).isdigit() else None
        return Closed(reason=reason_from_status_code(code), status_code=code)
    if kind == "creds":
        return CredentialsUpdated(credentials=dict(data.get("credentials") or {}))
    if kind == "message":
        chat_id = str(data.get("chat_id", ""))
        return IncomingMessage(
            chat_id=chat_id,
            sender=str(data.get("sender") or jid_to_phone(chat_id)),
            text=str(data.get("text") or ""),
            from_me=bool(data.get("from_me", False)),
        )
    logger.debug("Ignoring unknown bridge event type=%r", kind)
    return None


class BridgeSession:
    def __init__(self, transport: "BridgeTransport", emit: EmitFn, start_seq: int = 0):
        self.transport = transport
        self.emit = emit
        self._last_seq = start_seq
        self._closed = False

    def pump(self) -> None:
        if self._closed:
            return
        result = self.transport._request("GET", "/events", params={"after": self._last_seq})
        for data in result.get("events", []) if isinstance(result, dict) else []:
            seq = data.get("seq")
            if isinstance(seq, int):
                if seq <= self._last_seq:
                    continue
                self._last_seq = seq
            event = parse_event(data)
            if event is not None:
                self.emit(event)

    def send_text(self, jid: str, text: str) -> None:
        if self._closed:
            raise TransportError("Session closed")
        self.transport._request("POST", "/messages", {"jid": jid, "text": text})

    def logout(self) -> None:
        if not self._closed:
            self.transport._request("POST", "/logout")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.transport._request("POST", "/disconnect")
        except TransportError as e:
            logger.warning("Bridge disconnect failed: %s", e)


class BridgeTransport:
    """Thin wrapper around the bridge REST API."""

    def __init__(
        self,
        base_url: str = DEFAULT_BRIDGE_URL,
        session_id: str = "default",
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.session_id = session_id
        self.timeout = timeout

    def open(self, credentials: dict[str, Any] | None, emit: EmitFn) -> BridgeSession:
        result = self._request("POST", "/connect", {"credentials": credentials})
        start_seq = result.get("seq") if isinstance(result, dict) else None
        if not isinstance(start_seq, int):
            start_seq = 0
        logger.info(
            "Bridge session %s opened (%s credentials)",
            self.session_id, "stored" if credentials else "no",
        )
        return BridgeSession(self, emit, start_seq)

    def ping(self) -> bool:
        try:
            resp = httpx.get(f"{self.base_url}/health", timeout=10.0)
            return resp.status_code == 200
        except httpx.HTTPError:
            return False

    def _request(
        self,
        method: str,
        endpoint: str,
        data: dict | None = None,
        params: dict | None = None,
    ) -> dict:
        url = f"{self.base_url}/sessions/{self.session_id}{endpoint}"
        try:
            if method == "GET":
                resp = httpx.get(url, params=params, timeout=self.timeout)
            else:
                resp = httpx.request(method, url, json=data, timeout=self.timeout)
            if resp.status_code >= 400:
                body = resp.text
                logger.error("Bridge %d: %s %s -> %s", resp.status_code, method, endpoint, body)
                raise TransportError(f"HTTP {resp.status_code}: {body}", resp.status_code)
            if not resp.content:
                return {}
            return resp.json()
        except ValueError as e:
            raise TransportError(f"Invalid bridge response: {e}") from e
        except httpx.RequestError as e:
            logger.error("Bridge request failed: %s %s -> %s", method, endpoint, e)
            raise TransportError(f"Request failed: {e}") from e
