"""Feature extraction from session timestamps.

All calendar features use the local calendar of the observation's start
time (or an explicit ``tz`` for callers that need a fixed zone), never UTC
by default.
"""

from __future__ import annotations

from datetime import datetime, tzinfo
from enum import Enum

from sleep_log.classification.schemas import FeatureVector, Observation
from sleep_log.errors import InvalidObservationError

MINUTES_PER_DAY = 1440


class OffsetUnit(str, Enum):
    """Unit of the start-offset feature, chosen per consumer."""

    MINUTES = "minutes"  # naive Bayes model files
    HOURS = "hours"


def local_datetime(timestamp_millis: int, tz: tzinfo | None = None) -> datetime:
    """Convert epoch milliseconds to a calendar datetime.

    Raises:
        InvalidObservationError: If the timestamp is not an integer or is
            outside the platform's representable range.
    """
    if not isinstance(timestamp_millis, int) or isinstance(timestamp_millis, bool):
        raise InvalidObservationError(f"Timestamp must be integer milliseconds, got {timestamp_millis!r}")
    try:
        return datetime.fromtimestamp(timestamp_millis / 1000, tz)
    except (OverflowError, OSError, ValueError) as e:
        raise InvalidObservationError(f"Timestamp out of range: {timestamp_millis}") from e


def minute_of_day(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def wrapped_offset_hours(minutes_of_day: float, target_hour: int) -> float:
    """Hours from the target bedtime, wrapped into (-12, 12]."""
    offset = (minutes_of_day / 60.0 - target_hour) % 24
    if offset > 12:
        offset -= 24
    return offset


def start_offset(
    moment: datetime,
    target_hour: int,
    unit: OffsetUnit = OffsetUnit.MINUTES,
) -> float:
    """Unwrapped offset of ``moment`` from the target bedtime."""
    minutes = float(minute_of_day(moment) - target_hour * 60)
    if unit == OffsetUnit.HOURS:
        return minutes / 60.0
    return minutes


def duration_z_score(duration_seconds: float, mean: float, std: float) -> float:
    return (duration_seconds - mean) / (std if std > 0 else 1.0)


def is_weekend(moment: datetime) -> bool:
    return moment.isoweekday() in (6, 7)


def extract_features(
    observation: Observation,
    duration_mean: float,
    duration_std: float,
    offset_unit: OffsetUnit = OffsetUnit.MINUTES,
    tz: tzinfo | None = None,
) -> FeatureVector:
    """Build the six-value feature vector for an observation.

    Args:
        observation: The session to encode.
        duration_mean: Mean duration used for the z-score.
        duration_std: Duration stddev; values <= 0 are replaced by 1.0.
        offset_unit: Unit for the start-offset feature.
        tz: Calendar zone; None uses the system local zone.

    Returns:
        ``(start_offset, duration_z, is_weekend, is_friday, is_sunday, start_hour)``
    """
    start = local_datetime(observation.start_time_millis, tz)
    weekday = start.isoweekday()

    return (
        start_offset(start, observation.target_bedtime_hour, offset_unit),
        duration_z_score(float(observation.duration_seconds), duration_mean, duration_std),
        1.0 if is_weekend(start) else 0.0,
        1.0 if weekday == 5 else 0.0,
        1.0 if weekday == 7 else 0.0,
        float(start.hour),
    )
