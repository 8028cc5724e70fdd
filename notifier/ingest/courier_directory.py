"""Cached list of active couriers."""

import logging
import time
from collections.abc import Callable
from typing import Protocol

from notifier.ingest.supabase_client import StoreClientError
from notifier.models.order import Courier, normalize_courier

logger = logging.getLogger(__name__)


class CourierSource(Protocol):
    def active_couriers(self) -> list[dict]: ...


class CourierDirectory:
    """Active couriers with a phone, refreshed at most once per TTL.

    A failed refresh keeps serving the previous list and retries on the next call.
    """

    def __init__(
        self,
        source: CourierSource,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._couriers: list[Courier] = []
        self._fetched_at: float | None = None

    def active(self) -> list[Courier]:
        now = self.clock()
        if self._fetched_at is None or now - self._fetched_at >= self.ttl_seconds:
            self._refresh(now)
        return list(self._couriers)

    def invalidate(self) -> None:
        self._fetched_at = None

    @property
    def cached_count(self) -> int:
        return len(self._couriers)

    def _refresh(self, now: float) -> None:
        try:
            rows = self.source.active_couriers()
        except StoreClientError as e:
            logger.warning("Courier refresh failed, keeping %d cached: %s", len(self._couriers), e)
            return
        couriers = [normalize_courier(r) for r in rows]
        self._couriers = [c for c in couriers if c.active and c.phone]
        self._fetched_at = now
        logger.info("Loaded %d active couriers", len(self._couriers))
