"""Common types and helpers shared across models."""

import re
from datetime import UTC, datetime
from typing import TypeAlias

Timestamp: TypeAlias = str

_NON_DIGITS = re.compile(r"\D")


def utc_now() -> datetime:
    return datetime.now(UTC)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO timestamp, handling the trailing 'Z' and naive values."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (ValueError, TypeError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def digits_only(value: object) -> str:
    return _NON_DIGITS.sub("", str(value or ""))
