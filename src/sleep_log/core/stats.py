"""Sleep statistics over recent periods."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import tzinfo
from typing import Any

from sleep_log.classification.features import local_datetime, minute_of_day
from sleep_log.classification.schemas import Category, SleepSession
from sleep_log.core.settings import UserTime

DAY_MILLIS = 24 * 3600 * 1000

# Label and window length in days; None covers the whole history
PERIODS: tuple[tuple[str, int | None], ...] = (("7d", 7), ("30d", 30), ("all", None))


@dataclass
class PeriodStats:
    """Sleep totals and averages for one period."""

    period: str
    days: int
    session_count: int
    total_sleep_seconds: int
    consistency_percent: int
    avg_sleep_hours: float
    avg_nap_hours: float
    shortest_sleep_hours: float
    longest_sleep_hours: float
    avg_wake_time: UserTime | None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "period": self.period,
            "days": self.days,
            "session_count": self.session_count,
            "total_sleep_seconds": self.total_sleep_seconds,
            "consistency_percent": self.consistency_percent,
            "avg_sleep_hours": self.avg_sleep_hours,
            "avg_nap_hours": self.avg_nap_hours,
            "shortest_sleep_hours": self.shortest_sleep_hours,
            "longest_sleep_hours": self.longest_sleep_hours,
            "avg_wake_time": str(self.avg_wake_time) if self.avg_wake_time else None,
        }


def _mean_hours(durations: list[int]) -> float:
    return sum(durations) / len(durations) / 3600.0 if durations else 0.0


def period_stats(
    period: str,
    sessions: Sequence[SleepSession],
    days: int,
    target_hours: int,
    tz: tzinfo | None = None,
) -> PeriodStats:
    """Compute stats for sessions already filtered to one period.

    Consistency is total SLEEP time as a whole percentage of
    ``target_hours`` per day over ``days`` days.
    """
    sleeps = [s.duration_seconds for s in sessions if s.category == Category.SLEEP]
    naps = [s.duration_seconds for s in sessions if s.category == Category.NAP]

    total = sum(sleeps)
    target_seconds = target_hours * days * 3600
    consistency = total * 100 // target_seconds if target_seconds > 0 else 0

    wake_minutes = [
        minute_of_day(local_datetime(s.end_time_millis, tz))
        for s in sessions
        if s.category == Category.SLEEP
    ]
    avg_wake = None
    if wake_minutes:
        minutes = sum(wake_minutes) // len(wake_minutes)
        avg_wake = UserTime(minutes // 60, minutes % 60)

    return PeriodStats(
        period=period,
        days=days,
        session_count=len(sessions),
        total_sleep_seconds=total,
        consistency_percent=consistency,
        avg_sleep_hours=_mean_hours(sleeps),
        avg_nap_hours=_mean_hours(naps),
        shortest_sleep_hours=min(sleeps) / 3600.0 if sleeps else 0.0,
        longest_sleep_hours=max(sleeps) / 3600.0 if sleeps else 0.0,
        avg_wake_time=avg_wake,
    )


def sleep_stats(
    sessions: Sequence[SleepSession],
    now_millis: int,
    target_hours: int,
    tz: tzinfo | None = None,
) -> list[PeriodStats]:
    """Stats for the last 7 days, the last 30 days and the whole history.

    A window contains the sessions that started inside it. The whole history
    spans from the earliest session start to now, at least one day.
    """
    results = []
    for label, window_days in PERIODS:
        if window_days is None:
            first = min((s.start_time_millis for s in sessions), default=now_millis)
            days = max((now_millis - first) // DAY_MILLIS, 1)
            selected = list(sessions)
        else:
            days = window_days
            cutoff = now_millis - window_days * DAY_MILLIS
            selected = [s for s in sessions if s.start_time_millis >= cutoff]
        results.append(period_stats(label, selected, days, target_hours, tz))
    return results
