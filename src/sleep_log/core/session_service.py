"""Session service coordinating storage, settings and the classifiers."""

from __future__ import annotations

import logging
import time
from datetime import datetime, tzinfo

from sleep_log.classification.external import ExternalModelClassifier, load_external_model_async
from sleep_log.classification.heuristic import HeuristicClassifier
from sleep_log.classification.model_lab import LabReport, ModelLabEngine
from sleep_log.classification.naive_bayes import (
    NaiveBayesClassifier,
    NaiveBayesModel,
    load_model,
    save_model,
)
from sleep_log.classification.schemas import Category, Observation, SleepSession
from sleep_log.classification.training import TrainingCoordinator
from sleep_log.core.config import Config
from sleep_log.core.stats import PeriodStats, sleep_stats
from sleep_log.errors import ModelLoadError, SessionNotFoundError
from sleep_log.storage.database import Database
from sleep_log.storage.session_store import SessionRepository

logger = logging.getLogger(__name__)

NB_TRAINED_AT_KEY = "naive_bayes_trained_at"


class SessionService:
    """Records, edits and classifies sleep sessions.

    Every operation works from the current config snapshot; the classifier
    engine is rebuilt from it on demand rather than cached globally.
    """

    def __init__(self, config: Config, db: Database, tz: tzinfo | None = None):
        self.config = config
        self.db = db
        self.tz = tz
        self.sessions = SessionRepository(db)
        self.training = TrainingCoordinator(tz=tz)

    # Engine

    def load_naive_bayes(self) -> NaiveBayesModel | None:
        """Load the trained naive Bayes model, if a valid one exists."""
        model = load_model(self.config.naive_bayes_model_path)
        if model is not None and model.is_empty:
            return None
        return model

    async def load_custom_classifier(self) -> ExternalModelClassifier | None:
        """Load the external model when enabled; failures disable it."""
        models = self.config.models
        if not models.use_custom_model or models.custom_model_path is None:
            return None

        try:
            handle = await load_external_model_async(
                models.custom_model_path, timeout=models.load_timeout_seconds
            )
        except ModelLoadError as e:
            logger.warning(f"External model unavailable: {e}")
            return None

        return ExternalModelClassifier(handle, models.custom_means, models.custom_stds, tz=self.tz)

    async def build_engine(self) -> ModelLabEngine:
        """Build a Model Lab engine from the currently available models."""
        naive_bayes = self.load_naive_bayes()
        return ModelLabEngine(
            heuristic=HeuristicClassifier(tz=self.tz),
            naive_bayes=NaiveBayesClassifier(naive_bayes, tz=self.tz) if naive_bayes else None,
            custom=await self.load_custom_classifier(),
        )

    def target_hour_for(self, timestamp_millis: int) -> int:
        return self.config.user_settings.target_hour_for(timestamp_millis, self.tz)

    # Recording

    async def finalize_session(
        self,
        start_time_millis: int,
        end_time_millis: int,
        engine: ModelLabEngine | None = None,
    ) -> SleepSession | None:
        """Store a session that just finished tracking.

        Sessions shorter than the configured minimum are discarded.

        Returns:
            The stored session, or None if it was discarded.
        """
        observation = Observation.from_bounds(
            start_time_millis, end_time_millis, self.target_hour_for(start_time_millis)
        )
        if observation.duration_seconds < self.config.tracking.min_session_seconds:
            logger.info(f"Session too short ({observation.duration_seconds}s), discarding")
            return None

        engine = engine or await self.build_engine()
        labels = engine.label_new_session(observation)

        session = SleepSession.create(
            start_time_millis,
            end_time_millis,
            observation.target_bedtime_hour,
            category=labels.ground_truth,
            heuristic_category=labels.ground_truth,
            pred_default_ml=labels.pred_default_ml,
            pred_custom_ml=labels.pred_custom_ml,
        )
        await self.sessions.insert(session)

        logger.info(
            f"Recorded {labels.ground_truth.value} session of {observation.duration_seconds}s "
            f"(target {observation.target_bedtime_hour}:00)"
        )
        return session

    async def add_manual_session(
        self,
        start_time_millis: int,
        end_time_millis: int,
        category: Category,
    ) -> SleepSession:
        """Add a session entered by hand; the user's label is also its baseline."""
        session = SleepSession.create(
            start_time_millis,
            end_time_millis,
            self.target_hour_for(start_time_millis),
            category=category,
            heuristic_category=category,
        )
        return await self.sessions.insert(session)

    # User edits

    async def _require(self, session_id: str) -> SleepSession:
        session = await self.sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def edit_session(
        self,
        session_id: str,
        start_time_millis: int,
        end_time_millis: int,
        category: Category | None = None,
    ) -> SleepSession:
        session = await self._require(session_id)
        updated = session.with_bounds(start_time_millis, end_time_millis)
        if category is not None:
            updated = updated.with_category(category)
        return await self.sessions.update(updated)

    async def label_session(self, session_id: str, category: Category) -> SleepSession:
        session = await self._require(session_id)
        return await self.sessions.update(session.with_category(category))

    async def delete_session(self, session_id: str) -> None:
        await self.sessions.delete(session_id)

    async def list_sessions(self, limit: int | None = None) -> list[SleepSession]:
        return await self.sessions.query_all(limit)

    # Models

    async def train_naive_bayes(self) -> NaiveBayesModel | None:
        """Train on the current history and save the model.

        Returns:
            The trained model, or None when there is nothing to train on.
        """
        sessions = await self.sessions.query_all()
        if not sessions:
            logger.info("No sessions recorded, skipping naive Bayes training")
            return None

        model = await self.training.request(sessions)
        if model.is_empty:
            logger.info("No labeled sessions, naive Bayes model not saved")
            return None

        save_model(model, self.config.naive_bayes_model_path)
        await self.db.set_config(NB_TRAINED_AT_KEY, datetime.now().isoformat(timespec="seconds"))
        return model

    async def naive_bayes_trained_at(self) -> str | None:
        return await self.db.get_config(NB_TRAINED_AT_KEY)

    async def delete_naive_bayes_model(self) -> bool:
        """Remove the trained model. Returns whether a file was deleted."""
        path = self.config.naive_bayes_model_path
        existed = path.exists()
        path.unlink(missing_ok=True)
        await self.db.execute("DELETE FROM config WHERE key = ?", (NB_TRAINED_AT_KEY,))
        if existed:
            logger.info(f"Deleted naive Bayes model: {path}")
        return existed

    async def run_model_lab(self) -> LabReport:
        engine = await self.build_engine()
        return engine.evaluate(await self.sessions.query_all())

    async def classify(self, start_time_millis: int, duration_seconds: int) -> Category:
        """Best available label for an arbitrary interval under current settings."""
        observation = Observation(
            start_time_millis=start_time_millis,
            duration_seconds=duration_seconds,
            target_bedtime_hour=self.target_hour_for(start_time_millis),
        )
        engine = await self.build_engine()
        return engine.best_label(observation)

    async def backfill_predictions(self) -> int:
        """Recompute stored model predictions for every session.

        Only the prediction flags change; ground truth is left as is.

        Returns:
            Number of sessions updated.
        """
        engine = await self.build_engine()
        updated = 0
        for session in await self.sessions.query_all():
            labels = engine.label_new_session(session.observation)
            if (
                session.pred_default_ml == labels.pred_default_ml
                and session.pred_custom_ml == labels.pred_custom_ml
            ):
                continue
            session.pred_default_ml = labels.pred_default_ml
            session.pred_custom_ml = labels.pred_custom_ml
            await self.sessions.update(session)
            updated += 1

        logger.info(f"Backfilled predictions for {updated} sessions")
        return updated

    async def stats(self, now_millis: int | None = None) -> list[PeriodStats]:
        """Sleep stats for the last 7 and 30 days and the whole history."""
        if now_millis is None:
            now_millis = int(time.time() * 1000)
        return sleep_stats(
            await self.sessions.query_all(),
            now_millis,
            self.config.tracking.sleep_target_hours,
            tz=self.tz,
        )
