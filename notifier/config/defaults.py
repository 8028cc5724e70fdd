"""Default opening hours: Mon-Thu 17:00-23:00, Fri-Sat 17:00-midnight, Sunday closed."""

from notifier.config.schema import OpeningHours, Weekday

DEFAULT_OPENING_HOURS: list[OpeningHours] = [
    OpeningHours(day=Weekday.MONDAY, open="17:00", close="23:00"),
    OpeningHours(day=Weekday.TUESDAY, open="17:00", close="23:00"),
    OpeningHours(day=Weekday.WEDNESDAY, open="17:00", close="23:00"),
    OpeningHours(day=Weekday.THURSDAY, open="17:00", close="23:00"),
    OpeningHours(day=Weekday.FRIDAY, open="17:00", close="24:00"),
    OpeningHours(day=Weekday.SATURDAY, open="17:00", close="24:00"),
]
