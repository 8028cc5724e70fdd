"""Payment key rotation.

Keys are handed out so that overall usage stays balanced and the same
requester does not get the same key twice within the block window.
"""

import logging
import random
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from notifier.config.schema import PaymentKeyConfig, RotationConfig
from notifier.models.common import digits_only, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentKey:
    label: str
    value: str
    owner_name: str = ""


@dataclass(frozen=True)
class SelectionRecord:
    index: int
    timestamp: datetime


class KeyRotationSelector:
    def __init__(
        self,
        keys: Sequence[PaymentKey],
        config: RotationConfig | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        if not keys:
            raise ValueError("KeyRotationSelector needs at least one key")
        self._keys = list(keys)
        self.config = config or RotationConfig()
        self._rng = rng or random.Random()
        self._clock = clock
        self._lock = threading.Lock()
        self._usage = [0] * len(self._keys)
        self._history: dict[str, SelectionRecord] = {}

    @classmethod
    def from_config(
        cls,
        keys: Sequence[PaymentKeyConfig],
        config: RotationConfig | None = None,
        rng: random.Random | None = None,
    ) -> "KeyRotationSelector":
        return cls(
            [PaymentKey(k.label, k.value, k.owner_name) for k in keys],
            config=config,
            rng=rng,
        )

    @property
    def keys(self) -> list[PaymentKey]:
        return list(self._keys)

    @property
    def usage(self) -> list[int]:
        """Times each key has been selected, aligned with ``keys``."""
        with self._lock:
            return list(self._usage)

    @property
    def history_size(self) -> int:
        with self._lock:
            return len(self._history)

    def last_selection(self, requester_id: str) -> SelectionRecord | None:
        with self._lock:
            return self._history.get(digits_only(requester_id))

    def reset(self) -> None:
        with self._lock:
            self._usage = [0] * len(self._keys)
            self._history.clear()

    def select(self, requester_id: str, now: datetime | None = None) -> PaymentKey:
        now = now or self._clock()
        requester = digits_only(requester_id)
        with self._lock:
            self._purge(now)

            candidates = list(range(len(self._keys)))
            last = self._history.get(requester) if requester else None
            if (
                len(self._keys) > 1
                and last is not None
                and 0 <= last.index < len(self._keys)
                and now - last.timestamp < timedelta(hours=self.config.block_hours)
            ):
                candidates = [i for i in candidates if i != last.index]
            if not candidates:
                candidates = list(range(len(self._keys)))

            lowest = min(self._usage[i] for i in candidates)
            least_used = [i for i in candidates if self._usage[i] == lowest]
            index = self._rng.choice(least_used)

            self._usage[index] += 1
            if requester:
                self._history[requester] = SelectionRecord(index=index, timestamp=now)
                self._trim()

        logger.debug("Payment key %d (%s) selected for %s", index, self._keys[index].label, requester)
        return self._keys[index]

    def _purge(self, now: datetime) -> None:
        retention = timedelta(hours=self.config.retention_hours)
        expired = [r for r, rec in self._history.items() if now - rec.timestamp > retention]
        for requester in expired:
            del self._history[requester]
        self._trim()

    def _trim(self) -> None:
        excess = len(self._history) - self.config.history_limit
        if excess > 0:
            oldest = sorted(self._history.items(), key=lambda item: item[1].timestamp)[:excess]
            for requester, _ in oldest:
                del self._history[requester]
