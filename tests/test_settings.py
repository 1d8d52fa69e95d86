import pytest

from sleep_log.core.settings import UserSettings, UserTime

from fixtures import UTC, ms


def test_weeknight_keeps_base_bedtime():
    settings = UserSettings()
    # Monday night, Tuesday is a work day
    assert settings.target_hour_for(ms(2024, 6, 3, 21, 0), UTC) == 22
    # Sunday night, Monday is a work day
    assert settings.target_hour_for(ms(2024, 6, 9, 21, 0), UTC) == 22


def test_night_before_off_day_shifts_bedtime():
    settings = UserSettings()
    # Friday and Saturday nights
    assert settings.target_hour_for(ms(2024, 6, 7, 21, 0), UTC) == 0
    assert settings.target_hour_for(ms(2024, 6, 8, 21, 0), UTC) == 0


def test_shift_wraps_past_midnight():
    settings = UserSettings(base_bedtime=UserTime(23, 30), off_days=frozenset({3}))
    # Tuesday night, Wednesday off
    assert settings.target_hour_for(ms(2024, 6, 4, 22, 0), UTC) == 1
    assert settings.target_hour_for(ms(2024, 6, 7, 22, 0), UTC) == 23


def test_no_off_days():
    settings = UserSettings(off_days=frozenset())
    assert settings.target_hour_for(ms(2024, 6, 7, 21, 0), UTC) == 22
    assert settings.off_day_names() == "none"


def test_off_day_names():
    assert UserSettings().off_day_names() == "Sat, Sun"


def test_invalid_off_days():
    with pytest.raises(ValueError):
        UserSettings(off_days=frozenset({0, 8}))


@pytest.mark.parametrize(
    "text, expected",
    [("22:00", UserTime(22, 0)), (" 7:05 ", UserTime(7, 5)), ("00:00", UserTime(0, 0))],
)
def test_parse_time(text, expected):
    assert UserTime.parse(text) == expected


@pytest.mark.parametrize("text", ["", "22", "24:00", "12:60", "ab:cd", "1:2:3"])
def test_parse_time_rejects(text):
    with pytest.raises(ValueError):
        UserTime.parse(text)


def test_time_formatting():
    assert str(UserTime(7, 5)) == "07:05"
    assert UserTime(22, 0).display() == "10:00 PM"
    assert UserTime(0, 15).display() == "12:15 AM"
    assert UserTime(12, 0).display() == "12:00 PM"
