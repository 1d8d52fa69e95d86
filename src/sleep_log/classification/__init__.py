"""Session classification engine for Sleep Log.

This package provides:
- Time feature extraction from lock/unlock timestamps
- The rule-based heuristic that seeds ground truth
- A Gaussian Naive Bayes model trained from labeled history
- An external (ONNX) classifier with input normalization
- The Model Lab, which composes and scores all classifiers
"""

from sleep_log.classification.schemas import (
    CATEGORY_ORDER,
    FEATURE_NAMES,
    Category,
    Observation,
    SleepSession,
)

from sleep_log.classification.features import (
    OffsetUnit,
    extract_features,
    wrapped_offset_hours,
)

from sleep_log.classification.heuristic import HeuristicClassifier

from sleep_log.classification.naive_bayes import (
    EPSILON,
    NaiveBayesClassifier,
    NaiveBayesModel,
    model_from_json,
    model_to_json,
    predict,
    train,
)

from sleep_log.classification.external import (
    ExternalModel,
    ExternalModelClassifier,
    load_external_model,
    load_external_model_async,
)

from sleep_log.classification.model_lab import (
    LabReport,
    LabRow,
    ModelLabEngine,
    SessionClassifier,
    SessionLabels,
    accuracy_percent,
)

from sleep_log.classification.training import TrainingCoordinator

__all__ = [
    # Schemas
    "CATEGORY_ORDER",
    "FEATURE_NAMES",
    "Category",
    "Observation",
    "SleepSession",
    # Features
    "OffsetUnit",
    "extract_features",
    "wrapped_offset_hours",
    # Classifiers
    "HeuristicClassifier",
    "EPSILON",
    "NaiveBayesClassifier",
    "NaiveBayesModel",
    "model_from_json",
    "model_to_json",
    "predict",
    "train",
    "ExternalModel",
    "ExternalModelClassifier",
    "load_external_model",
    "load_external_model_async",
    # Model Lab
    "LabReport",
    "LabRow",
    "ModelLabEngine",
    "SessionClassifier",
    "SessionLabels",
    "accuracy_percent",
    # Training
    "TrainingCoordinator",
]
