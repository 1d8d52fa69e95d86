"""Sleep session persistence."""

from __future__ import annotations

import logging
import math

from sleep_log.classification.schemas import SleepSession
from sleep_log.errors import SessionNotFoundError, SleepLogError
from sleep_log.storage.database import Database

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, start_time_millis, end_time_millis, duration_seconds, is_real_sleep, "
    "category, heuristic_category, target_bedtime_hour, pred_default_ml, pred_custom_ml"
)


class SessionRepository:
    """CRUD access to the ``sleep_sessions`` table."""

    def __init__(self, db: Database):
        self.db = db

    async def insert(self, session: SleepSession) -> SleepSession:
        await self.db.insert("sleep_sessions", session.to_dict())
        logger.debug(f"Inserted session {session.id}")
        return session

    async def update(self, session: SleepSession) -> SleepSession:
        """Overwrite a stored session by id.

        Raises:
            SessionNotFoundError: If no session has this id.
        """
        data = session.to_dict()
        session_id = data.pop("id")
        assignments = ", ".join(f"{column} = ?" for column in data)
        changed = await self.db.execute(
            f"UPDATE sleep_sessions SET {assignments} WHERE id = ?",
            (*data.values(), session_id),
        )
        if changed == 0:
            raise SessionNotFoundError(session_id)
        return session

    async def delete(self, session_id: str) -> None:
        changed = await self.db.execute("DELETE FROM sleep_sessions WHERE id = ?", (session_id,))
        if changed == 0:
            raise SessionNotFoundError(session_id)
        logger.debug(f"Deleted session {session_id}")

    async def get(self, session_id: str) -> SleepSession | None:
        row = await self.db.fetch_one(
            f"SELECT {_COLUMNS} FROM sleep_sessions WHERE id = ?", (session_id,)
        )
        return SleepSession.from_db_row(row) if row else None

    async def resolve_id(self, prefix: str) -> str:
        """Expand a unique id prefix (as shown by ``list``) to a full id."""
        rows = await self.db.fetch_all(
            "SELECT id FROM sleep_sessions WHERE substr(id, 1, length(?)) = ? LIMIT 2",
            (prefix, prefix),
        )
        if len(rows) != 1:
            if rows:
                raise SleepLogError(f"Session id prefix '{prefix}' is ambiguous")
            raise SessionNotFoundError(prefix)
        return rows[0]["id"]

    async def query_all(self, limit: int | None = None) -> list[SleepSession]:
        """All sessions, newest first."""
        query = f"SELECT {_COLUMNS} FROM sleep_sessions ORDER BY start_time_millis DESC"
        params: tuple[int, ...] = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        rows = await self.db.fetch_all(query, params)
        return [SleepSession.from_db_row(row) for row in rows]

    async def count(self) -> int:
        row = await self.db.fetch_one("SELECT COUNT(*) AS n FROM sleep_sessions")
        return row["n"] if row else 0

    async def duration_stats(self) -> tuple[float, float] | None:
        """Mean and population stddev of session durations (None when empty)."""
        row = await self.db.fetch_one(
            """SELECT COUNT(*) AS n,
                      AVG(duration_seconds) AS mean,
                      AVG(duration_seconds * duration_seconds) AS mean_sq
               FROM sleep_sessions"""
        )
        if not row or not row["n"]:
            return None
        mean = float(row["mean"])
        variance = max(float(row["mean_sq"]) - mean * mean, 0.0)
        return mean, math.sqrt(variance)
