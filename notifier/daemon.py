"""Notifier daemon: keeps the messaging session alive and polls for orders.

Everything runs on one thread. Each loop pass pumps the transport, applies
queued connection events and runs due timers (poll tick, state snapshot,
reconnects), then sleeps until the next timer or the idle interval.

Usage:
    python -m notifier run --config ops/configs/default.yaml
    python -m notifier stop
    python -m notifier reconnect       # SIGHUP to the running daemon
    python -m notifier clear-session   # SIGUSR1: logout and pair again
"""

import json
import logging
import os
import signal
import sqlite3
import sys
import time
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path

from notifier.availability.monitor import AvailabilityMonitor
from notifier.availability.schedule import WeeklySchedule
from notifier.config.loader import config_hash
from notifier.config.schema import NotifierConfig
from notifier.connection.manager import ConnectionManager
from notifier.dispatch.dispatcher import NotificationDispatcher
from notifier.ingest.courier_directory import CourierDirectory
from notifier.ingest.order_poller import OrderIngestionPoller
from notifier.ingest.supabase_client import SupabaseClient
from notifier.models.reporting import TickSummary
from notifier.replies.responder import AutoResponder
from notifier.reporting.formatters import format_daemon_state, format_tick_text, tick_to_dict
from notifier.rotation.key_selector import KeyRotationSelector
from notifier.scheduler import TimerQueue
from notifier.storage.credential_repo import SqliteCredentialStore
from notifier.storage.database import open_database
from notifier.transport.base import Transport
from notifier.transport.bridge import BridgeTransport

logger = logging.getLogger(__name__)

PID_DIR = Path("data")
PID_FILE = PID_DIR / "notifier.pid"
STATE_FILE = PID_DIR / "notifier_state.json"
LOG_DIR = Path("logs")
MAX_LOG_FILES = 30  # one file per daemon run


@dataclass
class NotifierComponents:
    timers: TimerQueue
    connection: ConnectionManager
    availability: AvailabilityMonitor
    couriers: CourierDirectory
    dispatcher: NotificationDispatcher
    poller: OrderIngestionPoller
    responder: AutoResponder


def build_components(
    config: NotifierConfig,
    conn: sqlite3.Connection,
    transport: Transport | None = None,
    store: SupabaseClient | None = None,
    timers: TimerQueue | None = None,
) -> NotifierComponents:
    """Wire the notifier together from config."""
    store = store or SupabaseClient(config=config.store)
    transport = transport or BridgeTransport(
        config.transport.bridge_url,
        config.transport.session_id,
        config.transport.timeout_seconds,
    )
    timers = timers or TimerQueue()

    connection = ConnectionManager(
        transport,
        SqliteCredentialStore(conn, config.transport.session_id),
        timers,
        config.connection,
        config.transport,
    )
    schedule = WeeklySchedule.from_config(config.availability)
    availability = AvailabilityMonitor(
        store,
        schedule,
        ttl_seconds=config.availability.override_ttl_seconds,
        override_key=config.store.override_key,
    )
    couriers = CourierDirectory(store, ttl_seconds=config.dispatch.courier_cache_minutes * 60)
    dispatcher = NotificationDispatcher(connection, couriers, config.dispatch)
    poller = OrderIngestionPoller(
        store,
        dispatcher,
        availability,
        config.polling,
        is_connected=lambda: connection.is_connected,
    )
    selector = None
    if config.payment_keys:
        selector = KeyRotationSelector.from_config(config.payment_keys, config.rotation)
    else:
        logger.warning("No payment keys configured, payment replies disabled")
    responder = AutoResponder(
        connection,
        schedule,
        is_open=availability.is_open,
        selector=selector,
        config=config.replies,
        store_name=config.dispatch.store_name,
    )
    connection.on_message = responder.handle

    return NotifierComponents(
        timers=timers,
        connection=connection,
        availability=availability,
        couriers=couriers,
        dispatcher=dispatcher,
        poller=poller,
        responder=responder,
    )


class NotifierDaemon:
    """Runs the notifier loop with signal handling and state snapshots."""

    def __init__(
        self,
        config: NotifierConfig,
        db_path: str = "data/notifier.db",
        components: NotifierComponents | None = None,
    ):
        self.config = config
        self.db_path = db_path
        self.components = components
        self._conn: sqlite3.Connection | None = None
        self._running = False
        self._reconnect_requested = False
        self._reset_requested = False
        self._started_at: str | None = None
        self._log_handler: logging.Handler | None = None
        self._last_tick: TickSummary | None = None

    def start(self) -> None:
        """Start the daemon loop. Blocks until stopped."""
        self._check_not_already_running()
        self._write_pid()
        self._setup_signals()
        self._open_run_log()
        self._running = True
        self._started_at = datetime.now(UTC).isoformat()

        if self.components is None:
            self._conn = open_database(self.db_path)
            self.components = build_components(self.config, self._conn)

        logger.info(
            "Daemon started, pid=%d poll=%ss session=%s config=%s",
            os.getpid(), self.config.polling.interval_seconds, self.config.transport.session_id,
            config_hash(self.config),
        )
        print(f"🔄 Notifier started (pid {os.getpid()}, polling every {self.config.polling.interval_seconds}s)")
        print(f"   Logs: {LOG_DIR}/")
        print("   Stop: python -m notifier stop")

        try:
            self._schedule()
            self.components.connection.start()
            self._loop()
        except KeyboardInterrupt:
            logger.info("Daemon interrupted by keyboard")
        finally:
            self._cleanup()

    def _schedule(self) -> None:
        assert self.components is not None
        timers = self.components.timers
        timers.call_every(self.config.polling.interval_seconds, self._poll, run_now=True)
        timers.call_every(self.config.daemon.state_interval_seconds, self._save_state, run_now=True)

    def _loop(self) -> None:
        while self._running:
            wait = self._run_once()
            if self._running and wait > 0:
                time.sleep(wait)

    def _run_once(self) -> float:
        """One pass of the loop. Returns how long to sleep afterwards."""
        assert self.components is not None
        connection = self.components.connection
        timers = self.components.timers

        if self._reset_requested:
            self._reset_requested = False
            logger.warning("Session reset requested, logging out")
            connection.reset_session()
            self.components.poller.reset()
        if self._reconnect_requested:
            self._reconnect_requested = False
            logger.info("Reconnect requested")
            connection.restart()

        handled = connection.pump()
        timers.run_due()
        if handled:
            return 0.0

        idle = self.config.daemon.idle_sleep_seconds
        next_timer = timers.next_delay()
        return idle if next_timer is None else min(idle, next_timer)

    def _poll(self) -> None:
        assert self.components is not None
        summary = self.components.poller.tick()
        self._last_tick = summary
        logger.debug(format_tick_text(summary))

    def _open_run_log(self) -> None:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
        handler = logging.FileHandler(LOG_DIR / f"notifier_{timestamp}.log")
        handler.setLevel(logging.INFO)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logging.getLogger().addHandler(handler)
        self._log_handler = handler
        self._rotate_logs()

    def _rotate_logs(self) -> None:
        """Keep only the most recent log files."""
        if not LOG_DIR.exists():
            return
        logs = sorted(LOG_DIR.glob("notifier_*.log"))
        if len(logs) > MAX_LOG_FILES:
            for old in logs[: len(logs) - MAX_LOG_FILES]:
                old.unlink(missing_ok=True)

    def _setup_signals(self) -> None:
        """SIGTERM/SIGINT stop, SIGHUP reconnects, SIGUSR1 clears the session."""
        def _stop(signum: int, frame: object) -> None:
            sig_name = signal.Signals(signum).name
            logger.info("Received %s, shutting down gracefully...", sig_name)
            print(f"\n⏹️  Received {sig_name}, stopping...")
            self._running = False

        def _reconnect(signum: int, frame: object) -> None:
            self._reconnect_requested = True

        def _reset(signum: int, frame: object) -> None:
            self._reset_requested = True

        signal.signal(signal.SIGTERM, _stop)
        signal.signal(signal.SIGINT, _stop)
        signal.signal(signal.SIGHUP, _reconnect)
        signal.signal(signal.SIGUSR1, _reset)

    def request_reconnect(self) -> None:
        self._reconnect_requested = True

    def request_reset(self) -> None:
        self._reset_requested = True

    def _check_not_already_running(self) -> None:
        """Prevent duplicate daemons."""
        pid = read_pid()
        if pid is None:
            PID_FILE.unlink(missing_ok=True)
            return
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            PID_FILE.unlink(missing_ok=True)
            return
        except PermissionError:
            print(f"❌ Daemon may be running (pid {pid}), can't verify.")
            sys.exit(1)
        print(f"❌ Daemon already running (pid {pid}). Stop it first:")
        print("   python -m notifier stop")
        sys.exit(1)

    def _write_pid(self) -> None:
        PID_DIR.mkdir(parents=True, exist_ok=True)
        PID_FILE.write_text(str(os.getpid()))

    def snapshot(self) -> dict:
        """Current daemon state as a JSON-ready dict."""
        state: dict = {
            "pid": os.getpid(),
            "started_at": self._started_at,
            "session_id": self.config.transport.session_id,
            "last_update": datetime.now(UTC).isoformat(),
        }
        if self.components is None:
            return state
        c = self.components
        conn_state = asdict(c.connection.state)
        conn_state["phase"] = c.connection.state.phase.value
        state.update({
            "connection": conn_state,
            "store_open": c.availability.is_open(),
            "override": c.availability.override.value,
            "couriers": c.couriers.cached_count,
            "cursor": c.poller.cursor,
            "processed": c.poller.processed_count,
            "dispatch": asdict(c.dispatcher.stats),
            "replies_sent": c.responder.replies_sent,
            "last_tick": tick_to_dict(self._last_tick) if self._last_tick else None,
        })
        return state

    def _save_state(self) -> None:
        """Persist daemon state for status reporting."""
        PID_DIR.mkdir(parents=True, exist_ok=True)
        STATE_FILE.write_text(json.dumps(self.snapshot(), indent=2, default=str))

    def _cleanup(self) -> None:
        if self.components is not None:
            self.components.connection.stop()
            self.components.timers.cancel_all()
        self._save_state()
        PID_FILE.unlink(missing_ok=True)
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        stats = self.components.dispatcher.stats if self.components else None
        logger.info(
            "Daemon stopped, %d orders notified",
            stats.orders_notified if stats else 0,
        )
        print("⏹️  Notifier stopped")
        if self._log_handler is not None:
            logging.getLogger().removeHandler(self._log_handler)
            self._log_handler.close()
            self._log_handler = None


def read_pid() -> int | None:
    if not PID_FILE.exists():
        return None
    try:
        return int(PID_FILE.read_text().strip())
    except ValueError:
        return None


def running_pid() -> int | None:
    """PID of the live daemon, or None."""
    pid = read_pid()
    if pid is None:
        return None
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return None
    except PermissionError:
        return pid
    return pid


def signal_daemon(sig: signal.Signals) -> bool:
    """Send a control signal to the running daemon. Returns False if none is running."""
    pid = running_pid()
    if pid is None:
        return False
    os.kill(pid, sig)
    return True


def stop_daemon() -> int:
    """Stop a running daemon by sending SIGTERM."""
    if not PID_FILE.exists():
        print("No daemon running (no PID file found)")
        return 1

    pid = read_pid()
    if pid is None:
        print("Corrupt PID file, removing")
        PID_FILE.unlink(missing_ok=True)
        return 1

    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        print(f"Daemon not running (stale pid {pid}), cleaning up")
        PID_FILE.unlink(missing_ok=True)
        STATE_FILE.unlink(missing_ok=True)
        return 0

    print(f"Stopping daemon (pid {pid})...")
    os.kill(pid, signal.SIGTERM)

    for _ in range(30):
        time.sleep(1)
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            print("✅ Daemon stopped")
            PID_FILE.unlink(missing_ok=True)
            return 0

    print("⚠️  Daemon didn't stop in 30s, sending SIGKILL")
    os.kill(pid, signal.SIGKILL)
    PID_FILE.unlink(missing_ok=True)
    return 0


def daemon_status(as_json: bool = False) -> int:
    """Print daemon status from the state file."""
    if not STATE_FILE.exists():
        print("No daemon state found")
        if PID_FILE.exists():
            print("  (PID file exists: process running)" if running_pid() else "  (stale PID file found)")
        return 1

    try:
        state = json.loads(STATE_FILE.read_text())
    except ValueError:
        print("Corrupt state file")
        return 1

    if as_json:
        print(json.dumps(state, indent=2))
        return 0

    pid = state.get("pid")
    running = False
    try:
        os.kill(int(pid), 0)
        running = True
    except (ProcessLookupError, ValueError, TypeError):
        pass

    print(format_daemon_state(state, running))
    return 0
