"""Output formatters for poll ticks, daemon state and health checks."""

from typing import Any

from notifier.models.reporting import HealthStatus, TickSummary


def format_tick_text(s: TickSummary) -> str:
    """One-line tick summary for logging."""
    line = (
        f"Tick {s.status.value}: fetched={s.fetched} dispatched={s.dispatched} "
        f"duplicates={s.duplicates} status_changes={s.status_changes} "
        f"cursor={s.cursor or '-'} ({s.duration_seconds:.2f}s)"
    )
    if s.errors:
        line += f" errors={len(s.errors)}"
    return line


def tick_to_dict(s: TickSummary) -> dict[str, Any]:
    return {
        "status": s.status.value,
        "started_at": s.started_at,
        "fetched": s.fetched,
        "dispatched": s.dispatched,
        "duplicates": s.duplicates,
        "status_changes": s.status_changes,
        "cursor": s.cursor,
        "duration_seconds": s.duration_seconds,
        "errors": list(s.errors),
    }


def format_daemon_state(state: dict[str, Any], running: bool) -> str:
    """Human-readable view of the daemon state file."""
    conn = state.get("connection", {})
    stats = state.get("dispatch", {})
    icon = "🟢" if running else "🔴"
    lines = [
        f"{icon} Daemon {'running' if running else 'stopped'}",
        f"  PID: {state.get('pid', '?')}",
        f"  Started: {state.get('started_at', '?')}",
        f"  Connection: {conn.get('phase', '?')}"
        + (f" as {conn['display_name']}" if conn.get("display_name") else ""),
        f"  Reconnect attempts: {conn.get('reconnect_attempts', 0)} | "
        f"Pairing attempts: {conn.get('pairing_attempts', 0)}",
        f"  Store: {'open' if state.get('store_open') else 'closed'} "
        f"(override {state.get('override', 'unset')})",
        f"  Couriers cached: {state.get('couriers', 0)}",
        f"  Cursor: {state.get('cursor') or '-'}",
        f"  Orders notified: {stats.get('orders_notified', 0)} | "
        f"Sends: {stats.get('sends_ok', 0)} ok, {stats.get('sends_failed', 0)} failed",
        f"  Messages in/out: {conn.get('messages_received', 0)}/{conn.get('messages_sent', 0)}",
        f"  Last update: {state.get('last_update', '?')}",
    ]
    tick = state.get("last_tick")
    if tick:
        lines.append(
            f"  Last tick: {tick.get('status', '?')} at {tick.get('started_at', '?')} "
            f"(dispatched {tick.get('dispatched', 0)}, errors {len(tick.get('errors') or [])})"
        )
    if conn.get("pairing_payload"):
        lines.append("  Pairing code (scan with the phone app):")
        lines.append(f"    {conn['pairing_payload']}")
    return "\n".join(lines)


def format_health_text(h: HealthStatus) -> str:
    def ok(flag: bool) -> str:
        return "OK" if flag else "FAIL"

    return "\n".join([
        f"DB: {ok(h.db_connected)}",
        f"Order store: {ok(h.store_reachable)}",
        f"Bridge: {ok(h.bridge_reachable)}",
        f"Daemon: {'running' if h.daemon_running else 'stopped'}",
        f"Connection: {h.connection_phase}",
    ])
