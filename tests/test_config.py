import pytest
import yaml
from pydantic import ValidationError

from sleep_log.core.config import BedtimeConfig, Config
from sleep_log.core.settings import UserTime


def test_defaults(config):
    assert config.db_path == config.data_dir / "sleep_log.db"
    assert config.tracking.min_session_seconds == 3600
    assert config.user_settings.base_bedtime == UserTime(22, 0)
    assert config.user_settings.off_days == frozenset({6, 7})
    assert config.models.use_custom_model is False


def test_save_and_load_round_trip(config):
    config.bedtime = BedtimeConfig(base_bedtime="23:15", off_days=[5, 6])
    config.save()

    data = yaml.safe_load(config.config_file.read_text())
    assert data["bedtime"] == {"base_bedtime": "23:15", "off_days": [5, 6]}

    loaded = Config.load(config.config_file)
    assert loaded.user_settings.base_bedtime == UserTime(23, 15)
    assert loaded.user_settings.off_days == frozenset({5, 6})
    assert loaded.data_dir == config.data_dir


def test_load_missing_file_uses_defaults(tmp_path):
    loaded = Config.load(tmp_path / "nope.yaml")
    assert loaded.bedtime.base_bedtime == "22:00"


def test_bedtime_is_normalized():
    assert BedtimeConfig(base_bedtime="7:5").base_bedtime == "07:05"
    assert BedtimeConfig(off_days=[7, 6, 6]).off_days == [6, 7]


@pytest.mark.parametrize(
    "kwargs",
    [{"base_bedtime": "25:00"}, {"base_bedtime": "late"}, {"off_days": [0]}, {"off_days": [8]}],
)
def test_invalid_bedtime(kwargs):
    with pytest.raises(ValidationError):
        BedtimeConfig(**kwargs)


def test_env_overrides_log_level(monkeypatch):
    monkeypatch.setenv("SLEEP_LOG_LOG_LEVEL", "DEBUG")
    assert Config().log_level == "DEBUG"


def test_env_overrides_saved_yaml(config, monkeypatch):
    config.save()
    monkeypatch.setenv("SLEEP_LOG_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("SLEEP_LOG_TRACKING__MIN_SESSION_SECONDS", "60")

    loaded = Config.load(config.config_file)

    assert loaded.log_level == "DEBUG"
    assert loaded.tracking.min_session_seconds == 60
    # Values only present in the file still come through
    assert loaded.tracking.sleep_target_hours == config.tracking.sleep_target_hours
    assert loaded.data_dir == config.data_dir
