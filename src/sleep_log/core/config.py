"""Configuration management with Pydantic and YAML support."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from sleep_log.core.settings import UserSettings, UserTime


class TrackingConfig(BaseModel):
    """Session tracking configuration."""

    min_session_seconds: int = Field(
        default=3600, ge=0, description="Discard tracked sessions shorter than this"
    )
    sleep_target_hours: int = Field(default=7, ge=1, le=24, description="Nightly sleep goal")


class BedtimeConfig(BaseModel):
    """Bedtime policy configuration."""

    base_bedtime: str = Field(default="22:00", description="Usual bedtime (HH:MM)")
    off_days: list[int] = Field(
        default_factory=lambda: [6, 7],
        description="ISO weekdays off work (1=Mon ... 7=Sun)",
    )

    @field_validator("base_bedtime")
    @classmethod
    def _check_bedtime(cls, value: str) -> str:
        return str(UserTime.parse(value))

    @field_validator("off_days")
    @classmethod
    def _check_off_days(cls, value: list[int]) -> list[int]:
        if any(not 1 <= d <= 7 for d in value):
            raise ValueError("off_days must be ISO weekdays 1-7")
        return sorted(set(value))

    def to_user_settings(self) -> UserSettings:
        return UserSettings(
            base_bedtime=UserTime.parse(self.base_bedtime),
            off_days=frozenset(self.off_days),
        )


class ModelsConfig(BaseModel):
    """Classifier model configuration."""

    use_custom_model: bool = Field(default=False, description="Evaluate the external model")
    custom_model_path: Path | None = Field(default=None, description="ONNX model file")
    custom_means: list[float] = Field(default_factory=list, description="Input feature means")
    custom_stds: list[float] = Field(default_factory=list, description="Input feature stddevs")
    load_timeout_seconds: float = Field(default=10.0, gt=0)


class Config(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SLEEP_LOG_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment beats the YAML values passed in by load()
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    # Paths
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".local/share/sleep-log")
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".local/state/sleep-log")
    config_dir: Path = Field(default_factory=lambda: Path.home() / ".config/sleep-log")

    # Log level
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    # Sub-configurations
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)
    bedtime: BedtimeConfig = Field(default_factory=BedtimeConfig)
    models: ModelsConfig = Field(default_factory=ModelsConfig)

    @property
    def db_path(self) -> Path:
        """Path to SQLite database."""
        return self.data_dir / "sleep_log.db"

    @property
    def naive_bayes_model_path(self) -> Path:
        """Path to the trained naive Bayes model."""
        return self.data_dir / "naive_bayes_model.json"

    @property
    def config_file(self) -> Path:
        """Path to YAML config file."""
        return self.config_dir / "config.yaml"

    @property
    def user_settings(self) -> UserSettings:
        return self.bedtime.to_user_settings()

    def ensure_directories(self) -> None:
        """Create all required directories."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        # Set restrictive permissions on data directory
        os.chmod(self.data_dir, 0o700)

    @classmethod
    def load(cls, config_path: Path | None = None) -> Config:
        """Load configuration from YAML file, environment variables, and defaults.

        Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values
        """
        config_path = config_path or Path.home() / ".config/sleep-log/config.yaml"

        yaml_config: dict[str, Any] = {}
        if config_path.exists():
            with open(config_path) as f:
                yaml_config = yaml.safe_load(f) or {}

        return cls(**yaml_config)

    def save(self, config_path: Path | None = None) -> None:
        """Save current configuration to YAML file."""
        config_path = config_path or self.config_file
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(mode="json", exclude_none=True)

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

        os.chmod(config_path, 0o600)


@lru_cache
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.load()
