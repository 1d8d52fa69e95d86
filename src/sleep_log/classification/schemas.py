"""Core data types for session classification."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from sleep_log.errors import InvalidObservationError


class Category(str, Enum):
    """Classification label for a lock/unlock session."""

    SLEEP = "SLEEP"
    NAP = "NAP"
    IDLE = "IDLE"

    @classmethod
    def parse(cls, value: str) -> Category:
        """Parse a category name, case-insensitively."""
        try:
            return cls(value.strip().upper())
        except (AttributeError, ValueError):
            choices = ", ".join(c.value for c in cls)
            raise ValueError(f"Unknown category '{value}' (expected one of: {choices})") from None


# Iteration order for every per-category loop; also the tie-break order.
CATEGORY_ORDER: tuple[Category, ...] = (Category.SLEEP, Category.NAP, Category.IDLE)

FEATURE_NAMES: tuple[str, ...] = (
    "start_offset",
    "duration_z_score",
    "is_weekend",
    "is_friday",
    "is_sunday",
    "start_hour",
)
FEATURE_COUNT = len(FEATURE_NAMES)

FeatureVector = tuple[float, float, float, float, float, float]


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class Observation:
    """A finished lock/unlock interval and the bedtime in effect for it."""

    start_time_millis: int
    duration_seconds: int
    target_bedtime_hour: int

    def __post_init__(self) -> None:
        if not _is_int(self.start_time_millis):
            raise InvalidObservationError(
                f"start_time_millis must be an integer, got {self.start_time_millis!r}"
            )
        if not _is_int(self.duration_seconds) or self.duration_seconds < 0:
            raise InvalidObservationError(
                f"duration_seconds must be a non-negative integer, got {self.duration_seconds!r}"
            )
        if not _is_int(self.target_bedtime_hour) or not 0 <= self.target_bedtime_hour <= 23:
            raise InvalidObservationError(
                f"target_bedtime_hour must be 0..23, got {self.target_bedtime_hour!r}"
            )

    @property
    def end_time_millis(self) -> int:
        return self.start_time_millis + self.duration_seconds * 1000

    @classmethod
    def from_bounds(
        cls, start_time_millis: int, end_time_millis: int, target_bedtime_hour: int
    ) -> Observation:
        """Build an observation from start/end timestamps."""
        if not _is_int(end_time_millis):
            raise InvalidObservationError(
                f"end_time_millis must be an integer, got {end_time_millis!r}"
            )
        if not _is_int(start_time_millis) or end_time_millis <= start_time_millis:
            raise InvalidObservationError(
                f"Session must end after it starts ({start_time_millis} -> {end_time_millis})"
            )
        return cls(
            start_time_millis=start_time_millis,
            duration_seconds=(end_time_millis - start_time_millis) // 1000,
            target_bedtime_hour=target_bedtime_hour,
        )


@dataclass
class SleepSession:
    """A persisted tracking session with its labels and model predictions."""

    start_time_millis: int
    end_time_millis: int
    target_bedtime_hour: int
    category: Category | None = None  # ground truth
    heuristic_category: Category | None = None
    pred_default_ml: bool | None = None
    pred_custom_ml: bool | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def create(
        cls,
        start_time_millis: int,
        end_time_millis: int,
        target_bedtime_hour: int,
        **labels: Any,
    ) -> SleepSession:
        """Create a new session, rejecting inverted or malformed bounds."""
        Observation.from_bounds(start_time_millis, end_time_millis, target_bedtime_hour)
        return cls(
            start_time_millis=start_time_millis,
            end_time_millis=end_time_millis,
            target_bedtime_hour=target_bedtime_hour,
            **labels,
        )

    @property
    def duration_seconds(self) -> int:
        return (self.end_time_millis - self.start_time_millis) // 1000

    @property
    def is_real_sleep(self) -> bool | None:
        """Whether the ground-truth label is SLEEP (None while unlabeled)."""
        if self.category is None:
            return None
        return self.category == Category.SLEEP

    @property
    def observation(self) -> Observation:
        return Observation(
            start_time_millis=self.start_time_millis,
            duration_seconds=self.duration_seconds,
            target_bedtime_hour=self.target_bedtime_hour,
        )

    def with_bounds(self, start_time_millis: int, end_time_millis: int) -> SleepSession:
        """Return a copy with new time bounds; the bedtime stays locked in."""
        Observation.from_bounds(start_time_millis, end_time_millis, self.target_bedtime_hour)
        return replace(self, start_time_millis=start_time_millis, end_time_millis=end_time_millis)

    def with_category(self, category: Category) -> SleepSession:
        return replace(self, category=category)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a database row."""
        return {
            "id": self.id,
            "start_time_millis": self.start_time_millis,
            "end_time_millis": self.end_time_millis,
            "duration_seconds": self.duration_seconds,
            "is_real_sleep": self.is_real_sleep,
            "category": self.category.value if self.category else None,
            "heuristic_category": self.heuristic_category.value if self.heuristic_category else None,
            "target_bedtime_hour": self.target_bedtime_hour,
            "pred_default_ml": self.pred_default_ml,
            "pred_custom_ml": self.pred_custom_ml,
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> SleepSession:
        """Create from a database row."""

        def _category(value: str | None) -> Category | None:
            return Category(value) if value else None

        def _flag(value: Any) -> bool | None:
            return None if value is None else bool(value)

        category = _category(row.get("category"))
        if category is None and row.get("is_real_sleep") is not None:
            # Rows labeled only with the sleep flag
            category = Category.SLEEP if row["is_real_sleep"] else Category.IDLE

        return cls(
            id=row["id"],
            start_time_millis=int(row["start_time_millis"]),
            end_time_millis=int(row["end_time_millis"]),
            target_bedtime_hour=int(row["target_bedtime_hour"]),
            category=category,
            heuristic_category=_category(row.get("heuristic_category")),
            pred_default_ml=_flag(row.get("pred_default_ml")),
            pred_custom_ml=_flag(row.get("pred_custom_ml")),
        )
