"""User-supplied pre-trained classifier (ONNX).

Loading is an explicit step (``load_external_model``) that either returns an
immutable ``ExternalModel`` handle or raises ``ModelLoadError``. The
classifier built on top of the handle never raises for an unusable model;
it reports "no prediction" instead.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import tzinfo
from pathlib import Path
from typing import Any

from sleep_log.classification.features import (
    MINUTES_PER_DAY,
    is_weekend,
    local_datetime,
    minute_of_day,
    wrapped_offset_hours,
)
from sleep_log.classification.schemas import Category, Observation
from sleep_log.errors import ModelLoadError

logger = logging.getLogger(__name__)

MIN_INPUT_FEATURES = 2
REQUIRED_OUTPUT_CLASSES = 3
DEFAULT_LOAD_TIMEOUT = 10.0

RAW_FEATURE_NAMES = (
    "start_offset_hours",
    "end_offset_hours",
    "duration_seconds",
    "is_weekend",
    "start_minute_fraction",
    "end_minute_fraction",
)

# Output index -> category; any index past NAP maps to IDLE
INDEX_TO_CATEGORY = {0: Category.SLEEP, 1: Category.NAP}


@dataclass(frozen=True)
class ExternalModel:
    """A loaded scoring function and its tensor dimensions."""

    score: Callable[[Sequence[float]], Sequence[float]]
    input_feature_count: int
    output_class_count: int
    source: str = "<memory>"


def _static_dim(shape: Any, axis: int) -> int:
    """Size of a tensor axis, or 0 when unknown or dynamic."""
    if not shape or len(shape) <= axis:
        return 0
    dim = shape[axis]
    return dim if isinstance(dim, int) else 0


def _is_probability_map(meta: Any) -> bool:
    """Whether an output is a ZipMap ``seq(map(label, prob))`` tensor."""
    return str(meta.type).startswith("seq(map(")


def load_external_model(path: str | Path) -> ExternalModel:
    """Load an ONNX classifier from disk.

    The score output is the first 2-D tensor output. Models exported by
    skl2onnx with the default ZipMap option have none; their per-class
    probability map is used instead, ordered by class label.

    Raises:
        ModelLoadError: If the file is missing, cannot be parsed, has no
            input, or has neither a 2-D score output nor a probability map.
    """
    path = Path(path)
    if not path.is_file():
        raise ModelLoadError(str(path), "file does not exist")

    import numpy as np
    import onnxruntime as ort

    try:
        session = ort.InferenceSession(str(path), providers=["CPUExecutionProvider"])
    except Exception as e:
        raise ModelLoadError(str(path), str(e)) from e

    inputs = session.get_inputs()
    if not inputs:
        raise ModelLoadError(str(path), "model has no inputs")
    input_meta = inputs[0]
    input_count = _static_dim(input_meta.shape, 1)

    # Classifier exports may also emit a 1-D label tensor, which is skipped
    outputs = session.get_outputs()
    output_meta = next((o for o in outputs if o.shape and len(o.shape) == 2), None)
    if output_meta is None:
        output_meta = next((o for o in outputs if _is_probability_map(o)), None)
    if output_meta is None:
        raise ModelLoadError(
            str(path), "model has neither a 2-D score output nor a ZipMap probability output"
        )

    def run(features: Sequence[float]) -> Any:
        batch = np.asarray([features], dtype=np.float32)
        return session.run([output_meta.name], {input_meta.name: batch})[0][0]

    if _is_probability_map(output_meta):

        def score(features: Sequence[float]) -> list[float]:
            row = run(features)
            return [float(row[label]) for label in sorted(row)]

        # The class count is only known from an actual prediction
        output_count = 0
        if input_count:
            try:
                output_count = len(score([0.0] * input_count))
            except Exception as e:
                raise ModelLoadError(str(path), f"test inference failed: {e}") from e
    else:

        def score(features: Sequence[float]) -> list[float]:
            return [float(v) for v in np.asarray(run(features))]

        output_count = _static_dim(output_meta.shape, 1)

    model = ExternalModel(
        score=score,
        input_feature_count=input_count,
        output_class_count=output_count,
        source=str(path),
    )
    logger.info(
        f"Loaded external model {path.name}: "
        f"{model.input_feature_count} inputs, {model.output_class_count} outputs"
    )
    return model


async def load_external_model_async(
    path: str | Path,
    timeout: float = DEFAULT_LOAD_TIMEOUT,
) -> ExternalModel:
    """Load a model in a worker thread, giving up after ``timeout`` seconds."""
    try:
        return await asyncio.wait_for(asyncio.to_thread(load_external_model, path), timeout)
    except asyncio.TimeoutError as e:
        raise ModelLoadError(str(path), f"timed out after {timeout:g}s") from e


class ExternalModelClassifier:
    """Classifies sessions with an external model and normalization stats."""

    name = "custom"

    def __init__(
        self,
        model: ExternalModel | None,
        means: Sequence[float] | None = None,
        stds: Sequence[float] | None = None,
        tz: tzinfo | None = None,
    ):
        """Initialize the classifier.

        Args:
            model: Loaded model handle (None when loading failed)
            means: Per-feature normalization means
            stds: Per-feature normalization standard deviations
            tz: Calendar zone for time features (None = local)
        """
        self.model = model
        self.means = tuple(means or ())
        self.stds = tuple(stds or ())
        self.tz = tz

    @property
    def is_valid(self) -> bool:
        """Whether predictions from this classifier can be trusted."""
        if self.model is None:
            return False
        n = self.model.input_feature_count
        return (
            n >= MIN_INPUT_FEATURES
            and self.model.output_class_count == REQUIRED_OUTPUT_CLASSES
            and len(self.means) >= n
            and len(self.stds) >= n
        )

    def raw_features(self, observation: Observation, count: int | None = None) -> list[float]:
        """Unnormalized features, truncated or zero-padded to ``count``."""
        if count is None:
            count = self.model.input_feature_count if self.model else len(RAW_FEATURE_NAMES)

        start = local_datetime(observation.start_time_millis, self.tz)
        end = local_datetime(observation.end_time_millis, self.tz)
        start_minutes = minute_of_day(start)
        end_minutes = minute_of_day(end)
        target = observation.target_bedtime_hour

        features = [
            wrapped_offset_hours(start_minutes, target),
            wrapped_offset_hours(end_minutes, target),
            float(observation.duration_seconds),
            1.0 if is_weekend(start) else 0.0,
            start_minutes / MINUTES_PER_DAY,
            end_minutes / MINUTES_PER_DAY,
        ][:count]
        features.extend([0.0] * (count - len(features)))
        return features

    def normalize(self, raw: Sequence[float]) -> list[float]:
        return [
            (value - self.means[i]) / (self.stds[i] if self.stds[i] > 0 else 1.0)
            for i, value in enumerate(raw)
        ]

    def classify(self, observation: Observation) -> Category | None:
        if not self.is_valid:
            return None

        features = self.normalize(self.raw_features(observation))
        try:
            scores = list(self.model.score(features))
        except Exception as e:
            logger.warning(f"External model inference failed: {e}")
            return None

        if len(scores) != self.model.output_class_count:
            logger.warning(
                f"External model returned {len(scores)} scores, "
                f"expected {self.model.output_class_count}"
            )
            return None

        best_index = max(range(len(scores)), key=scores.__getitem__)
        return INDEX_TO_CATEGORY.get(best_index, Category.IDLE)
