"""Order ingestion poller: turns the store's order table into dispatch events.

Each tick reads orders created after a timestamp cursor, oldest first, and
dispatches every id it has not dispatched before. The cursor only moves
forward, so an order at or below it is never fetched again. A small
insertion-ordered set of recent ids guards the boundary where the store
returns the same row twice.
"""

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Protocol

from notifier.config.schema import PollingConfig
from notifier.ingest.supabase_client import StoreClientError
from notifier.models.common import parse_timestamp, utc_now_iso
from notifier.models.dispatch import DispatchEvent, DispatchReport
from notifier.models.order import Order, OrderStatus, normalize_order
from notifier.models.reporting import TickStatus, TickSummary

logger = logging.getLogger(__name__)

STATUS_BATCH_LIMIT = 50


class OrderSource(Protocol):
    def fetch_orders_after(self, cursor: str, limit: int = 10) -> list[dict]: ...

    def latest_order(self) -> dict | None: ...

    def fetch_orders_updated_after(self, cursor: str, limit: int = 50) -> list[dict]: ...


class EventHandler(Protocol):
    def handle(self, event: DispatchEvent) -> DispatchReport: ...


class OpenGate(Protocol):
    def is_open(self) -> bool: ...


class ProcessedSet:
    """Bounded set of order ids; the oldest insertion is evicted first."""

    def __init__(self, cap: int = 500):
        if cap < 1:
            raise ValueError("cap must be at least 1")
        self.cap = cap
        self._ids: OrderedDict[str, None] = OrderedDict()

    def __contains__(self, order_id: object) -> bool:
        return order_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, order_id: str) -> None:
        if order_id in self._ids:
            return
        self._ids[order_id] = None
        while len(self._ids) > self.cap:
            self._ids.popitem(last=False)

    def clear(self) -> None:
        self._ids.clear()


def advance_cursor(current: str | None, candidate: str | None) -> str | None:
    """Return the later of two timestamps; unparseable candidates are ignored."""
    new = parse_timestamp(candidate)
    if new is None:
        return current
    old = parse_timestamp(current)
    if old is None or new > old:
        return candidate
    return current


class OrderIngestionPoller:
    def __init__(
        self,
        source: OrderSource,
        dispatcher: EventHandler,
        availability: OpenGate | None = None,
        config: PollingConfig | None = None,
        is_connected: Callable[[], bool] | None = None,
    ):
        self.source = source
        self.dispatcher = dispatcher
        self.availability = availability
        self.config = config or PollingConfig()
        self.is_connected = is_connected

        self._lock = threading.Lock()
        self._processed = ProcessedSet(self.config.processed_cap)
        self._known_status: OrderedDict[str, OrderStatus] = OrderedDict()
        self._cursor: str | None = None
        self._status_cursor: str | None = None
        self._initialized = False
        self.last_summary: TickSummary | None = None

    @property
    def cursor(self) -> str | None:
        return self._cursor

    @property
    def status_cursor(self) -> str | None:
        return self._status_cursor

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def processed_count(self) -> int:
        return len(self._processed)

    def was_processed(self, order_id: str) -> bool:
        return order_id in self._processed

    def initialize(self) -> bool:
        """Seed the cursor from the newest stored order, or now if there is none."""
        try:
            latest = self.source.latest_order()
        except StoreClientError as e:
            logger.warning("Cannot seed order cursor yet: %s", e)
            return False

        seed = None
        if latest is not None:
            seed = advance_cursor(None, normalize_order(latest).created_at)
        if seed is None:
            seed = utc_now_iso()
        self._cursor = seed
        self._status_cursor = seed
        self._initialized = True
        logger.info("Order cursor seeded at %s", seed)
        return True

    def reset(self) -> None:
        self._processed.clear()
        self._known_status.clear()
        self._cursor = None
        self._status_cursor = None
        self._initialized = False
        self.last_summary = None

    def tick(self) -> TickSummary:
        started = time.monotonic()
        summary = TickSummary(status=TickStatus.OK, started_at=utc_now_iso(), cursor=self._cursor)

        if not self._lock.acquire(blocking=False):
            logger.debug("Previous tick still running, skipping")
            summary.status = TickStatus.SKIPPED_BUSY
            return summary
        try:
            self._run_tick(summary)
        finally:
            self._lock.release()

        summary.cursor = self._cursor
        summary.duration_seconds = round(time.monotonic() - started, 3)
        self.last_summary = summary
        if summary.dispatched or summary.status_changes:
            logger.info(
                "Tick: fetched=%d dispatched=%d duplicates=%d status_changes=%d cursor=%s",
                summary.fetched, summary.dispatched, summary.duplicates,
                summary.status_changes, summary.cursor,
            )
        return summary

    def _run_tick(self, summary: TickSummary) -> None:
        if not self._initialized and not self.initialize():
            summary.status = TickStatus.NOT_INITIALIZED
            return

        if self.availability is not None and not self.availability.is_open():
            summary.status = TickStatus.SKIPPED_CLOSED
            return

        if self.is_connected is not None and not self.is_connected():
            logger.debug("Transport not connected, leaving orders for later")
            summary.status = TickStatus.SKIPPED_DISCONNECTED
            return

        assert self._cursor is not None
        try:
            rows = self.source.fetch_orders_after(self._cursor, self.config.batch_limit)
        except StoreClientError as e:
            logger.warning("Order fetch failed, cursor kept at %s: %s", self._cursor, e)
            summary.status = TickStatus.FETCH_FAILED
            summary.errors.append(str(e))
            return

        summary.fetched = len(rows)
        for row in rows:
            order = normalize_order(row)
            if order.id in self._processed:
                summary.duplicates += 1
                self._cursor = advance_cursor(self._cursor, order.created_at)
                continue
            self._dispatch(DispatchEvent.new(order), summary)
            summary.dispatched += 1
            self._processed.add(order.id)
            self._remember_status(order)
            self._cursor = advance_cursor(self._cursor, order.created_at)

        if self.config.track_status_changes:
            self._status_pass(summary)

    def _status_pass(self, summary: TickSummary) -> None:
        assert self._status_cursor is not None
        try:
            rows = self.source.fetch_orders_updated_after(self._status_cursor, STATUS_BATCH_LIMIT)
        except StoreClientError as e:
            logger.warning("Status fetch failed: %s", e)
            summary.errors.append(str(e))
            return

        for row in rows:
            order = normalize_order(row)
            previous = self._known_status.get(order.id)
            if previous is None:
                self._remember_status(order)
            elif previous != order.status:
                self._dispatch(DispatchEvent.status_changed(order, previous), summary)
                summary.status_changes += 1
                self._remember_status(order)
            self._status_cursor = advance_cursor(self._status_cursor, order.updated_at)

    def _dispatch(self, event: DispatchEvent, summary: TickSummary) -> None:
        # The order is marked processed even if this raises
        try:
            self.dispatcher.handle(event)
        except Exception as e:
            logger.exception("Dispatch of %s %s failed", event.kind, event.order_id)
            summary.errors.append(f"{event.order_id}: {e}")

    def _remember_status(self, order: Order) -> None:
        self._known_status[order.id] = order.status
        self._known_status.move_to_end(order.id)
        while len(self._known_status) > self.config.processed_cap:
            self._known_status.popitem(last=False)
