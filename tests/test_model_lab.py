import pytest

from sleep_log.classification.external import ExternalModel, ExternalModelClassifier
from sleep_log.classification.heuristic import HeuristicClassifier
from sleep_log.classification.model_lab import ModelLabEngine, SessionLabels, accuracy_percent
from sleep_log.classification.naive_bayes import NaiveBayesClassifier, train
from sleep_log.classification.schemas import Category

from fixtures import UTC, ms, observation, session


def constant_custom(index: int, inputs: int = 6) -> ExternalModelClassifier:
    scores = [0.0, 0.0, 0.0]
    scores[index] = 1.0
    model = ExternalModel(lambda features: scores, input_feature_count=inputs, output_class_count=3)
    return ExternalModelClassifier(model, [0.0] * 6, [1.0] * 6, tz=UTC)


@pytest.mark.parametrize(
    "matches, total, expected",
    [(0, 0, 0), (3, 4, 75), (2, 3, 66), (1, 3, 33), (5, 5, 100), (1, 8, 12), (3, 8, 37), (7, 8, 87)],
)
def test_accuracy_percent(matches, total, expected):
    assert accuracy_percent(matches, total) == expected


def test_session_labels_flags():
    labels = SessionLabels(Category.IDLE, default_ml=Category.SLEEP, custom_ml=Category.NAP)
    assert labels.pred_default_ml is True
    assert labels.pred_custom_ml is False
    assert SessionLabels(Category.SLEEP).pred_default_ml is None


def test_ground_truth_comes_from_heuristic():
    engine = ModelLabEngine(HeuristicClassifier(tz=UTC), custom=constant_custom(1))
    labels = engine.label_new_session(observation(ms(2024, 6, 4, 22, 30), hours=8))

    assert labels.ground_truth == Category.SLEEP
    assert labels.custom_ml == Category.NAP
    assert labels.default_ml is None


def test_best_label_prefers_custom_model():
    obs = observation(ms(2024, 6, 4, 22, 30), hours=8)
    with_custom = ModelLabEngine(HeuristicClassifier(tz=UTC), custom=constant_custom(2))
    without = ModelLabEngine(HeuristicClassifier(tz=UTC))

    assert with_custom.best_label(obs) == Category.IDLE
    assert without.best_label(obs) == Category.SLEEP


def test_invalid_custom_model_is_dropped():
    engine = ModelLabEngine(HeuristicClassifier(tz=UTC), custom=constant_custom(0, inputs=1))
    assert not engine.has_custom
    obs = observation(ms(2024, 6, 4, 14, 0), hours=1)
    assert engine.best_label(obs) == Category.NAP
    assert engine.label_new_session(obs).custom_ml is None


def test_evaluate_scores_each_model():
    sessions = [
        session(ms(2024, 6, 3, 22, 30), 8, Category.SLEEP),
        session(ms(2024, 6, 4, 23, 0), 7, Category.SLEEP),
        session(ms(2024, 6, 4, 14, 0), 1, Category.NAP),
        session(ms(2024, 6, 5, 10, 0), 0.5, Category.IDLE),
    ]
    # User relabeled an evening session the heuristic called SLEEP
    relabeled = session(ms(2024, 6, 5, 22, 0), 6, Category.SLEEP).with_category(Category.IDLE)
    sessions.append(relabeled)

    engine = ModelLabEngine(
        HeuristicClassifier(tz=UTC),
        naive_bayes=NaiveBayesClassifier(train(sessions, tz=UTC), tz=UTC),
        custom=constant_custom(0),
    )
    report = engine.evaluate(sessions)

    assert report.total == 5
    assert report.baseline_accuracy == 80
    assert report.custom_accuracy == 40
    assert report.naive_bayes_accuracy is not None
    assert [row.truth for row in report.rows] == [s.category for s in sessions]

    data = report.to_dict()
    assert data["total"] == 5
    assert data["rows"][4]["baseline"] == "SLEEP"
    assert data["rows"][4]["truth"] == "IDLE"


def test_evaluate_recomputes_missing_baseline():
    unseeded = session(ms(2024, 6, 4, 14, 0), 1, Category.NAP)
    unseeded.heuristic_category = None
    report = ModelLabEngine(HeuristicClassifier(tz=UTC)).evaluate([unseeded])

    assert report.rows[0].baseline == Category.NAP
    assert report.baseline_accuracy == 100
    assert report.naive_bayes_accuracy is None
    assert report.custom_accuracy is None


def test_evaluate_empty_history():
    report = ModelLabEngine().evaluate([])
    assert report.total == 0
    assert report.baseline_accuracy == 0
