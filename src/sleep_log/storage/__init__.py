"""Storage layer for the database and session records."""

from sleep_log.storage.database import Database, init_database
from sleep_log.storage.session_store import SessionRepository

__all__ = ["Database", "init_database", "SessionRepository"]
