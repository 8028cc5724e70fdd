"""Initial schema: transport credentials and the operator command log."""

import sqlite3

DDL = [
    # One opaque credential blob per transport session id
    """
    CREATE TABLE IF NOT EXISTS transport_credentials (
        session_id TEXT PRIMARY KEY,
        payload_json TEXT NOT NULL,
        updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,

    # Audit trail for CLI actions (reconnect, clear-session, config set)
    """
    CREATE TABLE IF NOT EXISTS operator_commands (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        command TEXT NOT NULL,
        args TEXT NOT NULL DEFAULT '',
        result TEXT NOT NULL DEFAULT '',
        executed_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    (
        "CREATE INDEX IF NOT EXISTS idx_operator_commands_executed_at "
        "ON operator_commands(executed_at)"
    ),
]


def up(conn: sqlite3.Connection) -> None:
    for stmt in DDL:
        conn.execute(stmt)
    conn.commit()
