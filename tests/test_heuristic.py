import pytest

from sleep_log.classification.heuristic import HeuristicClassifier, classify_offset
from sleep_log.classification.schemas import Category

from fixtures import UTC, ms, observation

heuristic = HeuristicClassifier(tz=UTC)


def test_night_session_is_sleep():
    obs = observation(ms(2024, 6, 4, 22, 30), hours=8)
    assert heuristic.start_offset(obs) == pytest.approx(0.5)
    assert heuristic.classify(obs) == Category.SLEEP


def test_afternoon_session_is_nap():
    obs = observation(ms(2024, 6, 4, 14, 0), hours=1)
    assert heuristic.start_offset(obs) == pytest.approx(-8.0)
    assert heuristic.classify(obs) == Category.NAP


def test_morning_session_wraps_to_idle():
    obs = observation(ms(2024, 6, 4, 10, 0), hours=0.5)
    assert heuristic.start_offset(obs) == pytest.approx(12.0)
    assert heuristic.classify(obs) == Category.IDLE


def test_short_night_session_is_not_sleep():
    obs = observation(ms(2024, 6, 4, 23, 0), hours=3.5)
    assert heuristic.classify(obs) == Category.IDLE


def test_after_midnight_start_is_sleep():
    obs = observation(ms(2024, 6, 5, 2, 0), hours=6)
    assert heuristic.classify(obs) == Category.SLEEP


@pytest.mark.parametrize(
    "hours, offset, expected",
    [
        (4.0, -2.0, Category.SLEEP),
        (4.0, 5.0, Category.SLEEP),
        (3.99, 0.0, Category.IDLE),
        (4.0, 5.01, Category.IDLE),
        (10.0, -5.0, Category.NAP),
        (0.1, -11.0, Category.NAP),
        (1.0, -11.01, Category.IDLE),
        (1.0, -4.99, Category.IDLE),
        (1.0, 12.0, Category.IDLE),
    ],
)
def test_decision_boundaries(hours, offset, expected):
    assert classify_offset(hours, offset) == expected


def test_shifting_a_day_keeps_the_label():
    for hour in range(24):
        first = observation(ms(2024, 6, 4, hour, 15), hours=5, target=23)
        second = observation(ms(2024, 6, 5, hour, 15), hours=5, target=23)
        assert heuristic.classify(first) == heuristic.classify(second)


def test_target_hour_moves_the_window():
    obs = observation(ms(2024, 6, 4, 0, 30), hours=8, target=0)
    assert heuristic.classify(obs) == Category.SLEEP
    late = observation(ms(2024, 6, 4, 0, 30), hours=8, target=12)
    assert heuristic.classify(late) == Category.IDLE
