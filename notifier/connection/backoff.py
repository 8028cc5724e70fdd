"""Reconnect delay policy."""


def reconnect_delay(attempt: int, base_seconds: float) -> float:
    """Exponential delay for the given 1-based attempt: base, 2*base, 4*base, ..."""
    return base_seconds * (2 ** max(0, attempt - 1))
