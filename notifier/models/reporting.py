"""Reporting and operational health models."""

from dataclasses import dataclass, field
from enum import StrEnum


class TickStatus(StrEnum):
    OK = "OK"
    SKIPPED_BUSY = "SKIPPED_BUSY"
    SKIPPED_CLOSED = "SKIPPED_CLOSED"
    SKIPPED_DISCONNECTED = "SKIPPED_DISCONNECTED"
    NOT_INITIALIZED = "NOT_INITIALIZED"
    FETCH_FAILED = "FETCH_FAILED"


@dataclass
class TickSummary:
    status: TickStatus
    started_at: str
    fetched: int = 0
    dispatched: int = 0
    duplicates: int = 0
    status_changes: int = 0
    cursor: str | None = None
    duration_seconds: float = 0.0
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class HealthStatus:
    db_connected: bool
    store_reachable: bool
    bridge_reachable: bool
    daemon_running: bool
    connection_phase: str
