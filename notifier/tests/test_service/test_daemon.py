"""Tests for the notifier daemon."""

import json
import os
from unittest.mock import patch

import pytest

from notifier.config.schema import DispatchConfig, NotifierConfig
from notifier.daemon import NotifierDaemon, build_components, daemon_status, stop_daemon
from notifier.models.connection import Authenticated, ConnectionPhase
from notifier.scheduler import TimerQueue


@pytest.fixture
def tmp_data(tmp_path, monkeypatch):
    """Redirect PID/state files to temp directory."""
    pid_file = tmp_path / "notifier.pid"
    state_file = tmp_path / "notifier_state.json"
    monkeypatch.setattr("notifier.daemon.PID_FILE", pid_file)
    monkeypatch.setattr("notifier.daemon.PID_DIR", tmp_path)
    monkeypatch.setattr("notifier.daemon.STATE_FILE", state_file)
    monkeypatch.setattr("notifier.daemon.LOG_DIR", tmp_path / "logs")
    return {"pid": pid_file, "state": state_file, "dir": tmp_path}


@pytest.fixture
def config() -> NotifierConfig:
    return NotifierConfig(dispatch=DispatchConfig(store_number="86981319596"))


@pytest.fixture
def components(config, db, transport, order_store, clock):
    order_store.settings["manual_status"] = "open"
    order_store.orders.append({"id": "seed", "created_at": "2026-03-06T20:00:00Z"})
    return build_components(config, db, transport=transport, store=order_store, timers=TimerQueue(clock))


@pytest.fixture
def notifier_daemon(tmp_data, config, components) -> NotifierDaemon:
    d = NotifierDaemon(config, components=components)
    d._schedule()
    components.connection.start()
    return d


class TestBuildComponents:
    def test_wires_reply_handler(self, components):
        assert components.connection.on_message == components.responder.handle

    def test_no_payment_keys(self, components):
        assert components.responder.selector is None

    def test_payment_keys_enable_rotation(self, db, transport, order_store):
        config = NotifierConfig(payment_keys=[{"label": "E-mail", "value": "pix@example.com"}])
        c = build_components(config, db, transport=transport, store=order_store)
        assert c.responder.selector is not None


class TestRunOnce:
    def test_new_order_reaches_customer_and_store(self, notifier_daemon, components, transport, order_store, clock):
        transport.current.emit(Authenticated(display_name="Loja"))
        assert notifier_daemon._run_once() == 0.0
        assert components.connection.is_connected
        assert components.poller.initialized

        order_store.orders.append({
            "id": "o1", "created_at": "2026-03-06T20:05:00Z",
            "customer_phone": "86999990000", "status": "pending",
        })
        clock.advance(NotifierConfig().polling.interval_seconds)
        notifier_daemon._run_once()

        assert components.poller.was_processed("o1")
        assert len(transport.current.sent) == 2

    def test_idle_sleep_bounded_by_next_timer(self, notifier_daemon, config):
        notifier_daemon._run_once()
        wait = notifier_daemon._run_once()
        assert 0 < wait <= config.daemon.idle_sleep_seconds

    def test_reconnect_request(self, notifier_daemon, components, transport):
        transport.current.emit(Authenticated())
        notifier_daemon._run_once()
        notifier_daemon.request_reconnect()
        notifier_daemon._run_once()
        assert transport.sessions[0].closed is True
        assert components.connection.phase == ConnectionPhase.DISCONNECTED

    def test_reset_request(self, notifier_daemon, components, transport):
        transport.current.emit(Authenticated())
        notifier_daemon._run_once()
        notifier_daemon.request_reset()
        notifier_daemon._run_once()
        assert transport.sessions[0].logged_out is True
        assert not components.poller.initialized

    def test_snapshot(self, notifier_daemon):
        notifier_daemon._run_once()
        state = notifier_daemon.snapshot()
        assert state["connection"]["phase"] == "disconnected"
        assert state["store_open"] is True
        assert state["override"] == "open"
        assert state["dispatch"]["orders_notified"] == 0
        assert state["last_tick"]["started_at"]


class TestNotifierDaemon:
    def test_start_writes_state_and_cleans_pid(self, tmp_data, config, components):
        d = NotifierDaemon(config, components=components)
        with patch.object(d, "_loop"), patch.object(d, "_setup_signals"):
            d.start()
        assert tmp_data["state"].exists()
        assert not tmp_data["pid"].exists()
        assert list((tmp_data["dir"] / "logs").glob("notifier_*.log"))

    def test_prevents_duplicate_start(self, tmp_data, config):
        tmp_data["pid"].write_text(str(os.getpid()))
        with pytest.raises(SystemExit):
            NotifierDaemon(config)._check_not_already_running()

    def test_cleans_stale_pid(self, tmp_data, config):
        tmp_data["pid"].write_text("999999999")
        NotifierDaemon(config)._check_not_already_running()
        assert not tmp_data["pid"].exists()

    def test_rotates_logs(self, tmp_data, config, monkeypatch):
        monkeypatch.setattr("notifier.daemon.MAX_LOG_FILES", 2)
        logs = tmp_data["dir"] / "logs"
        logs.mkdir()
        for i in range(4):
            (logs / f"notifier_2026030{i}T000000Z.log").write_text("")
        NotifierDaemon(config)._rotate_logs()
        assert sorted(p.name for p in logs.iterdir()) == [
            "notifier_20260302T000000Z.log",
            "notifier_20260303T000000Z.log",
        ]


class TestStopAndStatus:
    def test_stop_without_pid_file(self, tmp_data):
        assert stop_daemon() == 1

    def test_stop_stale_pid(self, tmp_data):
        tmp_data["pid"].write_text("999999999")
        assert stop_daemon() == 0
        assert not tmp_data["pid"].exists()

    def test_status_without_state(self, tmp_data):
        assert daemon_status() == 1

    def test_status_with_state(self, tmp_data, capsys):
        tmp_data["state"].write_text(json.dumps({
            "pid": os.getpid(),
            "connection": {"phase": "connected", "display_name": "Loja"},
            "store_open": True,
        }))
        assert daemon_status() == 0
        out = capsys.readouterr().out
        assert "running" in out
        assert "connected as Loja" in out

    def test_status_json_prints_state(self, tmp_data, capsys):
        state = {"pid": os.getpid(), "last_tick": {"status": "OK", "dispatched": 1}}
        tmp_data["state"].write_text(json.dumps(state))
        assert daemon_status(as_json=True) == 0
        assert json.loads(capsys.readouterr().out) == state
