"""Transport credential persistence.

The notifier never looks inside the credential payload; it only hands back
whatever the transport last reported.
"""

import json
import logging
import sqlite3
from typing import Any

logger = logging.getLogger(__name__)


def load_credentials(conn: sqlite3.Connection, session_id: str) -> dict[str, Any] | None:
    row = conn.execute(
        "SELECT payload_json FROM transport_credentials WHERE session_id = ?",
        (session_id,),
    ).fetchone()
    if row is None:
        return None
    try:
        payload = json.loads(row[0])
    except (TypeError, ValueError):
        logger.warning("Stored credentials for %s are corrupt, ignoring", session_id)
        return None
    return payload if isinstance(payload, dict) and payload else None


def save_credentials(
    conn: sqlite3.Connection, session_id: str, credentials: dict[str, Any]
) -> None:
    conn.execute(
        "INSERT INTO transport_credentials (session_id, payload_json, updated_at) "
        "VALUES (?, ?, CURRENT_TIMESTAMP) "
        "ON CONFLICT(session_id) DO UPDATE SET "
        "payload_json = excluded.payload_json, updated_at = CURRENT_TIMESTAMP",
        (session_id, json.dumps(credentials)),
    )
    conn.commit()


def delete_credentials(conn: sqlite3.Connection, session_id: str) -> bool:
    """Delete stored credentials. Returns True if a row was removed."""
    cursor = conn.execute(
        "DELETE FROM transport_credentials WHERE session_id = ?", (session_id,)
    )
    conn.commit()
    return cursor.rowcount > 0


class SqliteCredentialStore:
    """Credential store bound to one session id."""

    def __init__(self, conn: sqlite3.Connection, session_id: str):
        self.conn = conn
        self.session_id = session_id

    def load(self) -> dict[str, Any] | None:
        return load_credentials(self.conn, self.session_id)

    def save(self, credentials: dict[str, Any]) -> None:
        save_credentials(self.conn, self.session_id, credentials)

    def clear(self) -> None:
        if delete_credentials(self.conn, self.session_id):
            logger.info("Cleared stored credentials for session %s", self.session_id)
