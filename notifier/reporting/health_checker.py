"""Health checker: local DB, order store and messaging bridge reachability."""

import json
import sqlite3
from pathlib import Path
from typing import Protocol

from notifier.models.reporting import HealthStatus


class Pingable(Protocol):
    def ping(self) -> bool: ...


class HealthChecker:
    def __init__(
        self,
        conn: sqlite3.Connection,
        store: Pingable | None = None,
        bridge: Pingable | None = None,
        state_file: Path | None = None,
        is_running=None,
    ):
        self.conn = conn
        self.store = store
        self.bridge = bridge
        self.state_file = state_file
        self.is_running = is_running

    def check(self) -> HealthStatus:
        return HealthStatus(
            db_connected=self._check_db(),
            store_reachable=self.store.ping() if self.store else False,
            bridge_reachable=self.bridge.ping() if self.bridge else False,
            daemon_running=bool(self.is_running()) if self.is_running else False,
            connection_phase=self._connection_phase(),
        )

    def _check_db(self) -> bool:
        try:
            self.conn.execute("SELECT 1")
            return True
        except sqlite3.Error:
            return False

    def _connection_phase(self) -> str:
        if self.state_file is None or not self.state_file.exists():
            return "unknown"
        try:
            state = json.loads(self.state_file.read_text())
        except (OSError, ValueError):
            return "unknown"
        return state.get("connection", {}).get("phase", "unknown")
