"""Timer queue run by the daemon loop.

Every timer callback runs on the thread that calls run_due(), so components
scheduled here never run concurrently with each other.
"""

import heapq
import itertools
import logging
import time
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class TimerHandle:
    def __init__(self, when: float, callback: Callable[..., Any], args: tuple, interval: float | None):
        self.when = when
        self.callback = callback
        self.args = args
        self.interval = interval
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class TimerQueue:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._heap: list[tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        handle = TimerHandle(self.clock() + max(0.0, delay), callback, args, None)
        self._push(handle)
        return handle

    def call_every(
        self, interval: float, callback: Callable[..., Any], *args: Any, run_now: bool = False
    ) -> TimerHandle:
        """Schedule a repeating callback. The next run is counted from when the last one ended."""
        first = 0.0 if run_now else interval
        handle = TimerHandle(self.clock() + first, callback, args, interval)
        self._push(handle)
        return handle

    def next_delay(self) -> float | None:
        """Seconds until the next live timer, or None if nothing is scheduled."""
        self._drop_cancelled()
        if not self._heap:
            return None
        return max(0.0, self._heap[0][0] - self.clock())

    def run_due(self) -> int:
        """Run every timer whose deadline has passed. Returns how many ran."""
        ran = 0
        now = self.clock()
        while self._heap and self._heap[0][0] <= now:
            _, _, handle = heapq.heappop(self._heap)
            if handle.cancelled:
                continue
            try:
                handle.callback(*handle.args)
            except Exception:
                logger.exception("Timer callback %r failed", handle.callback)
            ran += 1
            if handle.interval is not None and not handle.cancelled:
                handle.when = self.clock() + handle.interval
                self._push(handle)
        return ran

    def cancel_all(self) -> None:
        for _, _, handle in self._heap:
            handle.cancel()
        self._heap.clear()

    def __len__(self) -> int:
        return sum(1 for _, _, h in self._heap if not h.cancelled)

    def _push(self, handle: TimerHandle) -> None:
        heapq.heappush(self._heap, (handle.when, next(self._seq), handle))

    def _drop_cancelled(self) -> None:
        while self._heap and self._heap[0][2].cancelled:
            heapq.heappop(self._heap)
