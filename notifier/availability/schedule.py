"""Weekly opening hours in the store's local timezone."""

from collections.abc import Sequence
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from notifier.config.defaults import DEFAULT_OPENING_HOURS
from notifier.config.schema import AvailabilityConfig, OpeningHours, Weekday
from notifier.models.common import utc_now

WEEKDAYS: list[Weekday] = list(Weekday)  # Monday first, matching datetime.weekday()

DAY_LABELS_PT = {
    Weekday.MONDAY: "Segunda",
    Weekday.TUESDAY: "Terça",
    Weekday.WEDNESDAY: "Quarta",
    Weekday.THURSDAY: "Quinta",
    Weekday.FRIDAY: "Sexta",
    Weekday.SATURDAY: "Sábado",
    Weekday.SUNDAY: "Domingo",
}


def _minutes(clock: str) -> int:
    hours, minutes = clock.split(":")
    return int(hours) * 60 + int(minutes)


class WeeklySchedule:
    """Open/closed by weekday and local time. Days without an entry are closed."""

    def __init__(self, hours: Sequence[OpeningHours], timezone: str = "America/Fortaleza"):
        self.tz = ZoneInfo(timezone)
        self._windows: dict[Weekday, list[tuple[int, int]]] = {day: [] for day in WEEKDAYS}
        for entry in hours:
            self._windows[entry.day].append((_minutes(entry.open), _minutes(entry.close)))
        for windows in self._windows.values():
            windows.sort()

    @classmethod
    def from_config(cls, config: AvailabilityConfig) -> "WeeklySchedule":
        return cls(config.hours or DEFAULT_OPENING_HOURS, config.timezone)

    def local_time(self, now: datetime | None = None) -> datetime:
        now = now or utc_now()
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        return now.astimezone(self.tz)

    def is_open(self, now: datetime | None = None) -> bool:
        local = self.local_time(now)
        day = WEEKDAYS[local.weekday()]
        minute = local.hour * 60 + local.minute
        return any(start <= minute < end for start, end in self._windows[day])

    def __call__(self, now: datetime | None = None) -> bool:
        return self.is_open(now)

    def describe(self) -> list[str]:
        """One pt-BR line per weekday, e.g. 'Sexta: 17:00 às 00:00'."""
        lines = []
        for day in WEEKDAYS:
            windows = self._windows[day]
            if not windows:
                lines.append(f"{DAY_LABELS_PT[day]}: Fechado")
                continue
            spans = ", ".join(f"{_clock(s)} às {_clock(e)}" for s, e in windows)
            lines.append(f"{DAY_LABELS_PT[day]}: {spans}")
        return lines


def _clock(minutes: int) -> str:
    minutes %= 24 * 60
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
