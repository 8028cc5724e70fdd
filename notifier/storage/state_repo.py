"""Repository for the operator command audit log."""

import sqlite3


def log_operator_command(
    conn: sqlite3.Connection, command: str, args: str = "", result: str = ""
) -> int:
    """Log an operator command for audit."""
    cursor = conn.execute(
        "INSERT INTO operator_commands (command, args, result) VALUES (?, ?, ?)",
        (command, args, result),
    )
    conn.commit()
    assert cursor.lastrowid is not None
    return cursor.lastrowid


def get_recent_operator_commands(
    conn: sqlite3.Connection, limit: int = 20
) -> list[dict]:
    """Most recent commands first."""
    rows = conn.execute(
        "SELECT * FROM operator_commands ORDER BY id DESC LIMIT ?",
        (limit,),
    ).fetchall()
    return [dict(r) for r in rows]
