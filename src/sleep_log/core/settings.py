"""User bedtime settings and the target bedtime policy."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta, tzinfo

from sleep_log.classification.features import local_datetime

# ISO weekday numbers (Monday = 1 ... Sunday = 7)
WEEKDAY_NAMES = {
    1: "Mon", 2: "Tue", 3: "Wed", 4: "Thu", 5: "Fri", 6: "Sat", 7: "Sun",
}

OFF_DAY_SHIFT_HOURS = 2


@dataclass(frozen=True)
class UserTime:
    """A time of day."""

    hour: int
    minute: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.hour <= 23 or not 0 <= self.minute <= 59:
            raise ValueError(f"Invalid time of day: {self.hour}:{self.minute}")

    @classmethod
    def parse(cls, value: str) -> UserTime:
        """Parse an ``HH:MM`` string."""
        try:
            hour, minute = value.strip().split(":")
            return cls(int(hour), int(minute))
        except (AttributeError, ValueError):
            raise ValueError(f"Expected HH:MM, got {value!r}") from None

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"

    def display(self) -> str:
        """12-hour clock format, e.g. ``10:00 PM``."""
        am_pm = "AM" if self.hour < 12 else "PM"
        hour = self.hour % 12 or 12
        return f"{hour}:{self.minute:02d} {am_pm}"


@dataclass(frozen=True)
class UserSettings:
    """Bedtime preferences used to compute a session's target bedtime."""

    base_bedtime: UserTime = field(default_factory=lambda: UserTime(22, 0))
    off_days: frozenset[int] = frozenset({6, 7})

    def __post_init__(self) -> None:
        invalid = [d for d in self.off_days if d not in WEEKDAY_NAMES]
        if invalid:
            raise ValueError(f"Off days must be ISO weekdays 1-7, got {sorted(invalid)}")

    def target_hour_for(self, timestamp_millis: int, tz: tzinfo | None = None) -> int:
        """Target bedtime hour for a session starting at ``timestamp_millis``.

        Bedtime shifts later by two hours when the following calendar day
        is an off day.
        """
        next_day = local_datetime(timestamp_millis, tz) + timedelta(days=1)
        hour = self.base_bedtime.hour
        if next_day.isoweekday() in self.off_days:
            return (hour + OFF_DAY_SHIFT_HOURS) % 24
        return hour

    def off_day_names(self) -> str:
        return ", ".join(WEEKDAY_NAMES[d] for d in sorted(self.off_days)) or "none"
