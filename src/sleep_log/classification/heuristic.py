"""Rule-based session classifier.

This is the ground-truth seeding rule: every newly tracked session is
labeled by it before any user edit.
"""

from __future__ import annotations

import logging
from datetime import tzinfo

from sleep_log.classification.features import local_datetime, minute_of_day, wrapped_offset_hours
from sleep_log.classification.schemas import Category, Observation

logger = logging.getLogger(__name__)

# Sleep window: long sessions starting 2h before to 5h after bedtime.
# Example: bedtime 10 PM -> 8 PM to 3 AM.
SLEEP_MIN_HOURS = 4.0
SLEEP_WINDOW = (-2.0, 5.0)

# Nap window: sessions starting 11h to 5h before bedtime.
# Example: bedtime 10 PM -> 11 AM to 5 PM.
NAP_WINDOW = (-11.0, -5.0)


def classify_offset(hours: float, offset: float) -> Category:
    """Apply the decision rules to a duration and wrapped start offset."""
    if hours >= SLEEP_MIN_HOURS and SLEEP_WINDOW[0] <= offset <= SLEEP_WINDOW[1]:
        return Category.SLEEP
    if NAP_WINDOW[0] <= offset <= NAP_WINDOW[1]:
        return Category.NAP
    return Category.IDLE


class HeuristicClassifier:
    """Deterministic classifier using duration and offset from bedtime."""

    name = "heuristic"

    def __init__(self, tz: tzinfo | None = None):
        self.tz = tz

    def start_offset(self, observation: Observation) -> float:
        """Wrapped offset of the session start from the target bedtime, in hours."""
        start = local_datetime(observation.start_time_millis, self.tz)
        return wrapped_offset_hours(minute_of_day(start), observation.target_bedtime_hour)

    def classify(self, observation: Observation) -> Category:
        hours = observation.duration_seconds / 3600.0
        offset = self.start_offset(observation)
        result = classify_offset(hours, offset)

        logger.debug(
            f"Heuristic: offset={offset:.2f}h hours={hours:.2f} "
            f"target={observation.target_bedtime_hour} -> {result.value}"
        )
        return result
