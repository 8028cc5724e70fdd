"""Open/closed decision: manual override from store settings, else the weekly schedule."""

import logging
import time
from collections.abc import Callable
from datetime import datetime
from enum import StrEnum
from typing import Any, Protocol

from notifier.availability.schedule import WeeklySchedule
from notifier.config.schema import AvailabilityConfig
from notifier.ingest.supabase_client import StoreClientError

logger = logging.getLogger(__name__)


class ManualOverride(StrEnum):
    OPEN = "open"
    CLOSED = "closed"
    UNSET = "unset"


OVERRIDE_ALIASES: dict[str, ManualOverride] = {
    "open": ManualOverride.OPEN,
    "aberto": ManualOverride.OPEN,
    "aberta": ManualOverride.OPEN,
    "closed": ManualOverride.CLOSED,
    "fechado": ManualOverride.CLOSED,
    "fechada": ManualOverride.CLOSED,
}


def parse_override(value: Any) -> ManualOverride:
    if not isinstance(value, str):
        return ManualOverride.UNSET
    return OVERRIDE_ALIASES.get(value.strip().lower(), ManualOverride.UNSET)


class SettingsSource(Protocol):
    def get_setting(self, key: str | None = None) -> Any: ...


class AvailabilityMonitor:
    def __init__(
        self,
        settings: SettingsSource | None,
        schedule: Callable[[datetime | None], bool],
        ttl_seconds: float = 300.0,
        override_key: str = "manual_status",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.schedule = schedule
        self.ttl_seconds = ttl_seconds
        self.override_key = override_key
        self.clock = clock
        self._override = ManualOverride.UNSET
        self._fetched_at: float | None = None
        self._last_open: bool | None = None

    @classmethod
    def from_config(
        cls,
        settings: SettingsSource | None,
        config: AvailabilityConfig,
        override_key: str = "manual_status",
    ) -> "AvailabilityMonitor":
        return cls(
            settings,
            WeeklySchedule.from_config(config),
            ttl_seconds=config.override_ttl_seconds,
            override_key=override_key,
        )

    @property
    def override(self) -> ManualOverride:
        if self._fetched_at is None or self.clock() - self._fetched_at >= self.ttl_seconds:
            self.refresh()
        return self._override

    def refresh(self) -> ManualOverride:
        """Re-read the override now. A failed read keeps the cached value."""
        if self.settings is None:
            self._fetched_at = self.clock()
            return self._override
        try:
            value = self.settings.get_setting(self.override_key)
        except StoreClientError as e:
            logger.warning("Could not read store override, using %s: %s", self._override.value, e)
            return self._override

        override = parse_override(value)
        if override != self._override:
            logger.info("Manual override changed: %s -> %s", self._override.value, override.value)
        self._override = override
        self._fetched_at = self.clock()
        return override

    def invalidate(self) -> None:
        self._fetched_at = None

    def is_open(self, now: datetime | None = None) -> bool:
        override = self.override
        if override == ManualOverride.OPEN:
            is_open = True
        elif override == ManualOverride.CLOSED:
            is_open = False
        else:
            is_open = bool(self.schedule(now))

        if is_open != self._last_open:
            logger.info(
                "Store is now %s (%s)",
                "open" if is_open else "closed",
                "schedule" if override == ManualOverride.UNSET else f"override {override.value}",
            )
            self._last_open = is_open
        return is_open
