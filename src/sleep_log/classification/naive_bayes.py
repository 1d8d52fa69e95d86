"""Gaussian Naive Bayes classifier trained from the session history.

Each of the six features is modeled as an independent Gaussian per
category. Zero variances and zero counts are replaced with ``EPSILON`` so
that the posterior never takes log(0) or divides by zero.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from datetime import tzinfo
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from sleep_log.classification.features import OffsetUnit, extract_features
from sleep_log.classification.schemas import (
    CATEGORY_ORDER,
    FEATURE_COUNT,
    Category,
    FeatureVector,
    Observation,
    SleepSession,
)

logger = logging.getLogger(__name__)

EPSILON = 1e-9

DEFAULT_PARAMS: tuple[tuple[float, float], ...] = tuple((0.0, 1.0) for _ in range(FEATURE_COUNT))

_LOG_SQRT_2PI = math.log(math.sqrt(2 * math.pi))


class NaiveBayesModel(BaseModel):
    """Fitted class priors and per-feature Gaussian parameters.

    A trained model holds an entry for every category in both maps. The
    model trained on an empty history has both maps empty.
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    class_priors: dict[Category, float] = Field(default_factory=dict)
    feature_params: dict[Category, list[tuple[float, float]]] = Field(
        default_factory=dict, description="Category -> (mean, stddev) per feature"
    )
    duration_mean: float = 0.0
    duration_std: float = Field(default=1.0, gt=0)

    @model_validator(mode="after")
    def _check_complete(self) -> NaiveBayesModel:
        prior_keys = set(self.class_priors)
        param_keys = set(self.feature_params)
        if prior_keys != param_keys:
            raise ValueError("class_priors and feature_params must cover the same categories")
        if prior_keys and prior_keys != set(CATEGORY_ORDER):
            missing = ", ".join(c.value for c in CATEGORY_ORDER if c not in prior_keys)
            raise ValueError(f"Model is missing categories: {missing}")

        for category, prior in self.class_priors.items():
            if not 0.0 < prior <= 1.0:
                raise ValueError(f"Prior for {category.value} out of range: {prior}")
        for category, params in self.feature_params.items():
            if len(params) != FEATURE_COUNT:
                raise ValueError(
                    f"{category.value} has {len(params)} feature params, expected {FEATURE_COUNT}"
                )
            if any(std <= 0 for _, std in params):
                raise ValueError(f"{category.value} has a non-positive stddev")
        return self

    @property
    def is_empty(self) -> bool:
        return not self.class_priors


def _mean_std(values: list[float]) -> tuple[float, float]:
    """Mean and population stddev, independent of value order."""
    n = len(values)
    mean = math.fsum(values) / n
    variance = math.fsum((v - mean) ** 2 for v in values) / n
    return mean, math.sqrt(variance)


def train(sessions: Iterable[SleepSession], tz: tzinfo | None = None) -> NaiveBayesModel:
    """Fit a model on labeled sessions.

    Unlabeled sessions are ignored. With no labeled sessions the empty
    model is returned instead of raising.
    """
    labeled = [s for s in sessions if s.category is not None]
    if not labeled:
        logger.info("No labeled sessions, returning empty naive Bayes model")
        return NaiveBayesModel()

    # Global duration stats, used only for z-score normalization
    duration_mean, duration_std = _mean_std([float(s.duration_seconds) for s in labeled])
    if duration_std <= 0:
        duration_std = 1.0

    by_category: dict[Category, list[FeatureVector]] = {c: [] for c in CATEGORY_ORDER}
    for session in labeled:
        by_category[session.category].append(
            extract_features(
                session.observation,
                duration_mean,
                duration_std,
                offset_unit=OffsetUnit.MINUTES,
                tz=tz,
            )
        )

    total = len(labeled)
    class_priors: dict[Category, float] = {}
    feature_params: dict[Category, list[tuple[float, float]]] = {}

    for category in CATEGORY_ORDER:
        vectors = by_category[category]
        class_priors[category] = (len(vectors) / total) or EPSILON

        if not vectors:
            feature_params[category] = list(DEFAULT_PARAMS)
            continue

        params = []
        for index in range(FEATURE_COUNT):
            mean, std = _mean_std([v[index] for v in vectors])
            params.append((mean, std if std > 0 else EPSILON))
        feature_params[category] = params

    counts = ", ".join(f"{c.value}={len(by_category[c])}" for c in CATEGORY_ORDER)
    logger.info(f"Trained naive Bayes on {total} sessions ({counts})")
    return NaiveBayesModel(
        class_priors=class_priors,
        feature_params=feature_params,
        duration_mean=duration_mean,
        duration_std=duration_std,
    )


def gaussian_log_pdf(x: float, mean: float, stddev: float) -> float:
    """Log density of N(mean, stddev²) at x, with 0.0 for degenerate input."""
    if stddev < EPSILON:
        return 0.0
    # Multiplication overflows to inf where ** would raise
    diff = x - mean
    log_prob = -(diff * diff) / (2 * stddev * stddev) - (math.log(stddev) + _LOG_SQRT_2PI)
    return log_prob if math.isfinite(log_prob) else 0.0


def log_posteriors(
    model: NaiveBayesModel,
    observation: Observation,
    tz: tzinfo | None = None,
) -> dict[Category, float]:
    """Unnormalized log posterior per category with a positive prior."""
    if model.is_empty:
        return {}

    features = extract_features(
        observation,
        model.duration_mean,
        model.duration_std,
        offset_unit=OffsetUnit.MINUTES,
        tz=tz,
    )

    scores: dict[Category, float] = {}
    for category in CATEGORY_ORDER:
        prior = model.class_priors.get(category, 0.0)
        params = model.feature_params.get(category)
        if prior <= 0 or params is None:
            continue
        log_likelihood = sum(
            gaussian_log_pdf(value, mean, std) for value, (mean, std) in zip(features, params)
        )
        scores[category] = math.log(prior) + log_likelihood
    return scores


def predict(
    model: NaiveBayesModel,
    observation: Observation,
    tz: tzinfo | None = None,
) -> Category:
    """Maximum a posteriori category; IDLE when no category qualifies."""
    best = Category.IDLE
    best_score = -math.inf
    for category, score in log_posteriors(model, observation, tz).items():
        if score > best_score:
            best_score = score
            best = category
    return best


class NaiveBayesClassifier:
    """Adapts a fitted model to the classifier protocol."""

    name = "naive_bayes"

    def __init__(self, model: NaiveBayesModel, tz: tzinfo | None = None):
        self.model = model
        self.tz = tz

    def classify(self, observation: Observation) -> Category:
        return predict(self.model, observation, self.tz)


# Serialization


def model_to_json(model: NaiveBayesModel) -> str:
    return model.model_dump_json(indent=2)


def model_from_json(text: str | bytes) -> NaiveBayesModel | None:
    """Parse a serialized model, returning None for any malformed input."""
    try:
        return NaiveBayesModel.model_validate_json(text)
    except (ValidationError, ValueError, TypeError) as e:
        logger.warning(f"Rejected malformed naive Bayes model: {e}")
        return None


def save_model(model: NaiveBayesModel, path: Path) -> Path:
    """Write a model to disk as JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(model_to_json(model))
    logger.info(f"Naive Bayes model saved to: {path}")
    return path


def load_model(path: Path) -> NaiveBayesModel | None:
    """Read a model from disk; missing or unreadable files yield None."""
    try:
        text = path.read_text()
    except OSError as e:
        logger.debug(f"No naive Bayes model at {path}: {e}")
        return None
    return model_from_json(text)
