import pytest

from sleep_log.classification.features import (
    OffsetUnit,
    duration_z_score,
    extract_features,
    local_datetime,
    wrapped_offset_hours,
)
from sleep_log.classification.schemas import Observation
from sleep_log.errors import InvalidObservationError

from fixtures import UTC, ms, observation


def test_friday_night_features():
    # 2024-06-07 is a Friday
    obs = observation(ms(2024, 6, 7, 22, 30), hours=8)
    features = extract_features(obs, duration_mean=8 * 3600, duration_std=3600, tz=UTC)
    assert features == (30.0, 0.0, 0.0, 1.0, 0.0, 22.0)


def test_sunday_is_weekend():
    obs = observation(ms(2024, 6, 9, 23, 0), hours=7)
    _, _, weekend, friday, sunday, hour = extract_features(obs, 0.0, 1.0, tz=UTC)
    assert (weekend, friday, sunday, hour) == (1.0, 0.0, 1.0, 23.0)


def test_offset_is_unwrapped_and_unit_selectable():
    # 01:00 with a 22:00 bedtime is 21h "earlier" unwrapped
    obs = observation(ms(2024, 6, 4, 1, 0), hours=7)
    minutes = extract_features(obs, 0.0, 1.0, tz=UTC)[0]
    hours = extract_features(obs, 0.0, 1.0, offset_unit=OffsetUnit.HOURS, tz=UTC)[0]
    assert minutes == -1260.0
    assert hours == -21.0


def test_zero_std_is_replaced():
    assert duration_z_score(7200, 3600, 0) == 3600.0
    assert duration_z_score(7200, 3600, -5) == 3600.0
    assert duration_z_score(7200, 3600, 1800) == 2.0


@pytest.mark.parametrize(
    "minutes, target, expected",
    [
        (22 * 60 + 30, 22, 0.5),
        (14 * 60, 22, -8.0),
        (10 * 60, 22, 12.0),
        (60, 22, 3.0),
        (21 * 60, 22, -1.0),
        (0, 0, 0.0),
    ],
)
def test_wrapped_offset(minutes, target, expected):
    assert wrapped_offset_hours(minutes, target) == pytest.approx(expected)


def test_wrapped_offset_range():
    for target in range(24):
        for minutes in range(0, 1440, 15):
            assert -12 < wrapped_offset_hours(minutes, target) <= 12


def test_local_datetime_rejects_non_integers():
    with pytest.raises(InvalidObservationError):
        local_datetime(1.5)
    with pytest.raises(InvalidObservationError):
        local_datetime(True)


def test_local_datetime_rejects_out_of_range():
    with pytest.raises(InvalidObservationError):
        local_datetime(10**20, UTC)


def test_observation_validation():
    with pytest.raises(InvalidObservationError):
        Observation(start_time_millis=0, duration_seconds=-1, target_bedtime_hour=22)
    with pytest.raises(InvalidObservationError):
        Observation(start_time_millis=0, duration_seconds=60, target_bedtime_hour=24)
    with pytest.raises(InvalidObservationError):
        Observation.from_bounds(1000, 1000, 22)

    obs = Observation.from_bounds(0, 5_999, 22)
    assert obs.duration_seconds == 5
