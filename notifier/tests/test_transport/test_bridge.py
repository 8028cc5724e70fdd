"""Tests for the bridge transport with mocked httpx."""

import json

import httpx
import pytest
import respx

from notifier.models.connection import (
    Authenticated,
    Closed,
    CredentialsUpdated,
    DisconnectReason,
    IncomingMessage,
    PairingChallenge,
)
from notifier.transport.base import TransportError
from notifier.transport.bridge import BridgeTransport, parse_event, reason_from_status_code

BASE = "http://bridge.test"
SESSION = f"{BASE}/sessions/s1"


@pytest.fixture
def bridge() -> BridgeTransport:
    return BridgeTransport(base_url=BASE + "/", session_id="s1", timeout=5.0)


class TestParseEvent:
    def test_qr(self):
        assert parse_event({"type": "qr", "qr": "2@abc"}) == PairingChallenge(payload="2@abc")

    def test_open(self):
        event = parse_event({"type": "open", "user": {"id": "558699990000:12@s.whatsapp.net", "name": "Loja"}})
        assert event == Authenticated(account_id="558699990000", display_name="Loja")

    def test_close_with_code(self):
        event = parse_event({"type": "close", "status_code": 401})
        assert event == Closed(reason=DisconnectReason.LOGGED_OUT, status_code=401)

    def test_close_without_code(self):
        event = parse_event({"type": "close"})
        assert isinstance(event, Closed)
        assert event.reason == DisconnectReason.UNKNOWN

    def test_creds(self):
        event = parse_event({"type": "creds", "credentials": {"noise": "k"}})
        assert event == CredentialsUpdated(credentials={"noise": "k"})

    def test_message(self):
        event = parse_event({
            "type": "message",
            "chat_id": "558699990000@s.whatsapp.net",
            "text": "qual o pix?",
        })
        assert isinstance(event, IncomingMessage)
        assert event.sender == "558699990000"
        assert event.from_me is False

    def test_unknown_type(self):
        assert parse_event({"type": "presence"}) is None


class TestReasonMapping:
    @pytest.mark.parametrize("code,reason", [
        (401, DisconnectReason.LOGGED_OUT),
        (408, DisconnectReason.TIMED_OUT),
        (428, DisconnectReason.CONNECTION_CLOSED),
        (440, DisconnectReason.CONNECTION_REPLACED),
        (515, DisconnectReason.RESTART_REQUIRED),
        (999, DisconnectReason.UNKNOWN),
        (None, DisconnectReason.UNKNOWN),
    ])
    def test_codes(self, code, reason):
        assert reason_from_status_code(code) == reason


class TestBridgeSession:
    @respx.mock
    def test_open_sends_credentials(self, bridge):
        route = respx.post(f"{SESSION}/connect").mock(return_value=httpx.Response(200, json={"ok": True}))
        bridge.open({"me": "x"}, lambda e: None)
        assert json.loads(route.calls.last.request.content) == {"credentials": {"me": "x"}}

    @respx.mock
    def test_pump_emits_new_events_once(self, bridge):
        respx.post(f"{SESSION}/connect").mock(return_value=httpx.Response(200))
        first = {"events": [{"seq": 1, "type": "qr", "qr": "A"}]}
        second = {"events": [
            {"seq": 1, "type": "qr", "qr": "A"},
            {"seq": 2, "type": "open", "user": {"id": "5586@s.whatsapp.net"}},
        ]}
        route = respx.get(f"{SESSION}/events").mock(side_effect=[
            httpx.Response(200, json=first),
            httpx.Response(200, json=second),
        ])
        events = []
        session = bridge.open(None, events.append)
        session.pump()
        session.pump()

        assert [type(e) for e in events] == [PairingChallenge, Authenticated]
        assert route.calls.last.request.url.params["after"] == "1"

    @respx.mock
    def test_pump_starts_after_connect_seq(self, bridge):
        respx.post(f"{SESSION}/connect").mock(return_value=httpx.Response(200, json={"seq": 7}))
        route = respx.get(f"{SESSION}/events").mock(return_value=httpx.Response(200, json={"events": [
            {"seq": 6, "type": "open", "user": {"id": "5586@s.whatsapp.net"}},
            {"seq": 8, "type": "qr", "qr": "B"},
        ]}))
        events = []
        session = bridge.open(None, events.append)
        session.pump()

        assert route.calls.last.request.url.params["after"] == "7"
        assert events == [PairingChallenge(payload="B")]

    @respx.mock
    def test_send_text(self, bridge):
        respx.post(f"{SESSION}/connect").mock(return_value=httpx.Response(200))
        route = respx.post(f"{SESSION}/messages").mock(return_value=httpx.Response(200, json={"id": "m1"}))
        session = bridge.open(None, lambda e: None)
        session.send_text("558699990000@s.whatsapp.net", "oi")
        assert json.loads(route.calls.last.request.content) == {
            "jid": "558699990000@s.whatsapp.net",
            "text": "oi",
        }

    @respx.mock
    def test_send_error_raises(self, bridge):
        respx.post(f"{SESSION}/connect").mock(return_value=httpx.Response(200))
        respx.post(f"{SESSION}/messages").mock(return_value=httpx.Response(500, text="down"))
        session = bridge.open(None, lambda e: None)
        with pytest.raises(TransportError, match="500") as exc:
            session.send_text("x@s.whatsapp.net", "oi")
        assert exc.value.status_code == 500

    @respx.mock
    def test_send_after_close_raises(self, bridge):
        respx.post(f"{SESSION}/connect").mock(return_value=httpx.Response(200))
        respx.post(f"{SESSION}/disconnect").mock(return_value=httpx.Response(200))
        session = bridge.open(None, lambda e: None)
        session.close()
        with pytest.raises(TransportError, match="closed"):
            session.send_text("x@s.whatsapp.net", "oi")

    @respx.mock
    def test_close_swallows_errors(self, bridge):
        respx.post(f"{SESSION}/connect").mock(return_value=httpx.Response(200))
        respx.post(f"{SESSION}/disconnect").mock(side_effect=httpx.ConnectError("refused"))
        session = bridge.open(None, lambda e: None)
        session.close()

    @respx.mock
    def test_connect_error_becomes_transport_error(self, bridge):
        respx.post(f"{SESSION}/connect").mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(TransportError, match="Request failed"):
            bridge.open(None, lambda e: None)


class TestPing:
    @respx.mock
    def test_ok(self, bridge):
        respx.get(f"{BASE}/health").mock(return_value=httpx.Response(200))
        assert bridge.ping() is True

    @respx.mock
    def test_unreachable(self, bridge):
        respx.get(f"{BASE}/health").mock(side_effect=httpx.ConnectError("refused"))
        assert bridge.ping() is False
