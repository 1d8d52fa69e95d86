"""Core configuration and session service."""

from sleep_log.core.config import Config, get_config
from sleep_log.core.session_service import SessionService
from sleep_log.core.settings import UserSettings, UserTime

__all__ = ["Config", "get_config", "SessionService", "UserSettings", "UserTime"]
