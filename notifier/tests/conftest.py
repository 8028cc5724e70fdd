"""Shared test fixtures: in-memory fakes for the transport, sender, order store and clock."""

import sqlite3
from pathlib import Path
from typing import Any

import pytest
import yaml

from notifier.ingest.supabase_client import StoreClientError
from notifier.models.common import parse_timestamp
from notifier.models.dispatch import SendResult, SendStatus
from notifier.storage.database import open_database
from notifier.transport.base import TransportError


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSession:
    def __init__(self, emit):
        self.emit = emit
        self.sent: list[tuple[str, str]] = []
        self.closed = False
        self.logged_out = False
        self.fail_send = False
        self.fail_pump = False
        self.pumps = 0

    def pump(self) -> None:
        self.pumps += 1
        if self.fail_pump:
            raise TransportError("socket gone")

    def send_text(self, jid: str, text: str) -> None:
        if self.fail_send:
            raise TransportError("send rejected", 500)
        self.sent.append((jid, text))

    def logout(self) -> None:
        self.logged_out = True

    def close(self) -> None:
        self.closed = True


class FakeTransport:
    def __init__(self):
        self.sessions: list[FakeSession] = []
        self.opened_with: list[dict | None] = []
        self.fail_open = False

    def open(self, credentials, emit) -> FakeSession:
        self.opened_with.append(credentials)
        if self.fail_open:
            raise TransportError("bridge unreachable")
        session = FakeSession(emit)
        self.sessions.append(session)
        return session

    @property
    def current(self) -> FakeSession:
        return self.sessions[-1]


class MemoryCredentialStore:
    def __init__(self, credentials: dict | None = None):
        self.credentials = credentials
        self.cleared = 0

    def load(self) -> dict | None:
        return self.credentials

    def save(self, credentials: dict) -> None:
        self.credentials = credentials

    def clear(self) -> None:
        self.credentials = None
        self.cleared += 1


class FakeSender:
    """Records every delivery; recipients in ``failing`` get FAILED."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.failing: set[str] = set()

    def deliver(self, recipient: str, text: str) -> SendResult:
        if recipient in self.failing:
            return SendResult(recipient, SendStatus.FAILED, "boom")
        self.sent.append((recipient, text))
        return SendResult(recipient, SendStatus.SENT)

    @property
    def recipients(self) -> list[str]:
        return [r for r, _ in self.sent]


class FakeOrderStore:
    """In-memory stand-in for the Supabase client."""

    def __init__(self):
        self.orders: list[dict[str, Any]] = []
        self.couriers: list[dict[str, Any]] = []
        self.settings: dict[str, Any] = {}
        self.fail = False
        self.calls: list[str] = []

    def _check(self, name: str) -> None:
        self.calls.append(name)
        if self.fail:
            raise StoreClientError("store down", 503)

    def fetch_orders_after(self, cursor: str, limit: int = 10) -> list[dict]:
        self._check("fetch_orders_after")
        after = parse_timestamp(cursor)
        rows = [o for o in self.orders if parse_timestamp(o["created_at"]) > after]
        rows.sort(key=lambda o: parse_timestamp(o["created_at"]))
        return [dict(r) for r in rows[:limit]]

    def latest_order(self) -> dict | None:
        self._check("latest_order")
        if not self.orders:
            return None
        return dict(max(self.orders, key=lambda o: parse_timestamp(o["created_at"])))

    def fetch_orders_updated_after(self, cursor: str, limit: int = 50) -> list[dict]:
        self._check("fetch_orders_updated_after")
        after = parse_timestamp(cursor)
        rows = [
            o for o in self.orders
            if o.get("updated_at") and parse_timestamp(o["updated_at"]) > after
        ]
        rows.sort(key=lambda o: parse_timestamp(o["updated_at"]))
        return [dict(r) for r in rows[:limit]]

    def active_couriers(self) -> list[dict]:
        self._check("active_couriers")
        return [dict(c) for c in self.couriers]

    def get_setting(self, key: str | None = None) -> Any:
        self._check("get_setting")
        return self.settings.get(key or "manual_status")


def make_order(
    order_id: str,
    created_at: str,
    status: str = "pending",
    order_type: str = "pickup",
    phone: str | None = "86999990000",
    **extra: Any,
) -> dict[str, Any]:
    row = {
        "id": order_id,
        "created_at": created_at,
        "status": status,
        "order_type": order_type,
        "customer_phone": phone,
        "customer_name": "Maria",
        "total": 42.5,
    }
    row.update(extra)
    return row


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def cred_store() -> MemoryCredentialStore:
    return MemoryCredentialStore()


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def order_store() -> FakeOrderStore:
    return FakeOrderStore()


@pytest.fixture
def order_factory():
    return make_order


@pytest.fixture
def db(tmp_path: Path) -> sqlite3.Connection:
    conn = open_database(tmp_path / "test.db")
    yield conn
    conn.close()


@pytest.fixture
def config_yaml_path(tmp_path: Path) -> Path:
    """Write a minimal valid config YAML and return its path."""
    data = {
        "polling": {"interval_seconds": 5},
        "dispatch": {"store_number": "86981319596"},
        "payment_keys": [
            {"label": "Aleatória", "value": "key-a", "owner_name": "Rei do Churrasco"},
            {"label": "E-mail", "value": "pix@example.com"},
        ],
    }
    path = tmp_path / "test_config.yaml"
    with open(path, "w") as f:
        yaml.dump(data, f)
    return path
