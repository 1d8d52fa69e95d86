"""Model Lab: composes the classifiers and scores them against ground truth.

Ground truth for a new session always comes from the heuristic, so training
labels stay stable as models change. Model predictions are stored as
observations only. For callers wanting a single answer, the external model
takes precedence when it is available.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from sleep_log.classification.external import ExternalModelClassifier
from sleep_log.classification.heuristic import HeuristicClassifier
from sleep_log.classification.naive_bayes import NaiveBayesClassifier
from sleep_log.classification.schemas import Category, Observation, SleepSession

logger = logging.getLogger(__name__)


class SessionClassifier(Protocol):
    """Anything that can label an observation (None = no opinion)."""

    name: str

    def classify(self, observation: Observation) -> Category | None: ...


def accuracy_percent(matches: int, total: int) -> int:
    """Agreement percentage rounded down, 0 for an empty history."""
    if total == 0:
        return 0
    return matches * 100 // total


@dataclass(frozen=True)
class SessionLabels:
    """Labels produced when a tracked session is finalized."""

    ground_truth: Category
    default_ml: Category | None = None
    custom_ml: Category | None = None

    @property
    def pred_default_ml(self) -> bool | None:
        return None if self.default_ml is None else self.default_ml == Category.SLEEP

    @property
    def pred_custom_ml(self) -> bool | None:
        return None if self.custom_ml is None else self.custom_ml == Category.SLEEP


@dataclass
class LabRow:
    """Per-session comparison of every classifier with the stored truth."""

    session: SleepSession
    baseline: Category
    naive_bayes: Category | None
    custom: Category | None

    @property
    def truth(self) -> Category | None:
        return self.session.category


@dataclass
class LabReport:
    """Accuracy of each classifier over a session history."""

    rows: list[LabRow] = field(default_factory=list)
    baseline_accuracy: int = 0
    naive_bayes_accuracy: int | None = None
    custom_accuracy: int | None = None

    @property
    def total(self) -> int:
        return len(self.rows)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total": self.total,
            "baseline_accuracy": self.baseline_accuracy,
            "naive_bayes_accuracy": self.naive_bayes_accuracy,
            "custom_accuracy": self.custom_accuracy,
            "rows": [
                {
                    "id": row.session.id,
                    "start_time_millis": row.session.start_time_millis,
                    "duration_seconds": row.session.duration_seconds,
                    "baseline": row.baseline.value,
                    "naive_bayes": row.naive_bayes.value if row.naive_bayes else None,
                    "custom": row.custom.value if row.custom else None,
                    "truth": row.truth.value if row.truth else None,
                }
                for row in self.rows
            ],
        }


class ModelLabEngine:
    """Runs the heuristic, naive Bayes and external classifiers together.

    The engine is built from an explicit snapshot of the available models;
    it holds no global state and is safe to share across calls.
    """

    def __init__(
        self,
        heuristic: HeuristicClassifier | None = None,
        naive_bayes: NaiveBayesClassifier | None = None,
        custom: ExternalModelClassifier | None = None,
    ):
        self.heuristic = heuristic or HeuristicClassifier()
        self.naive_bayes = naive_bayes
        self.custom = custom if custom is not None and custom.is_valid else None

        if custom is not None and self.custom is None:
            logger.info("External model is not usable, continuing without it")

    @property
    def has_naive_bayes(self) -> bool:
        return self.naive_bayes is not None

    @property
    def has_custom(self) -> bool:
        return self.custom is not None

    def _predict_naive_bayes(self, observation: Observation) -> Category | None:
        return self.naive_bayes.classify(observation) if self.naive_bayes else None

    def _predict_custom(self, observation: Observation) -> Category | None:
        return self.custom.classify(observation) if self.custom else None

    def label_new_session(self, observation: Observation) -> SessionLabels:
        """Labels for a session that just finished tracking."""
        labels = SessionLabels(
            ground_truth=self.heuristic.classify(observation),
            default_ml=self._predict_naive_bayes(observation),
            custom_ml=self._predict_custom(observation),
        )
        logger.debug(
            f"Session labels: truth={labels.ground_truth.value} "
            f"nb={labels.default_ml and labels.default_ml.value} "
            f"custom={labels.custom_ml and labels.custom_ml.value}"
        )
        return labels

    def best_label(self, observation: Observation) -> Category:
        """Single best-available label: external model first, then heuristic."""
        custom = self._predict_custom(observation)
        if custom is not None:
            return custom
        return self.heuristic.classify(observation)

    def evaluate(self, sessions: Sequence[SleepSession]) -> LabReport:
        """Score every classifier against the stored ground truth."""
        rows = [
            LabRow(
                session=session,
                baseline=session.heuristic_category or self.heuristic.classify(session.observation),
                naive_bayes=self._predict_naive_bayes(session.observation),
                custom=self._predict_custom(session.observation),
            )
            for session in sessions
        ]
        total = len(rows)

        report = LabReport(
            rows=rows,
            baseline_accuracy=accuracy_percent(sum(r.baseline == r.truth for r in rows), total),
        )
        if self.has_naive_bayes:
            report.naive_bayes_accuracy = accuracy_percent(
                sum(r.naive_bayes == r.truth for r in rows), total
            )
        if self.has_custom:
            report.custom_accuracy = accuracy_percent(
                sum(r.custom == r.truth for r in rows), total
            )
        return report
