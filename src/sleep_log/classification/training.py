"""Background training with at most one run in flight.

Requests made while a training run is active replace the pending snapshot.
When the run finishes, its result is dropped if a newer snapshot is
waiting, and every caller receives the model trained on the latest one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import tzinfo

from sleep_log.classification.naive_bayes import NaiveBayesModel, train
from sleep_log.classification.schemas import SleepSession

logger = logging.getLogger(__name__)

Trainer = Callable[[Sequence[SleepSession]], NaiveBayesModel]


class TrainingCoordinator:
    """Coalesces training requests to the latest session snapshot."""

    def __init__(self, trainer: Trainer | None = None, tz: tzinfo | None = None):
        self._trainer = trainer or (lambda sessions: train(sessions, tz=tz))
        self._pending: list[SleepSession] | None = None
        self._waiters: list[asyncio.Future[NaiveBayesModel]] = []
        self._task: asyncio.Task | None = None
        self.runs_completed = 0
        self.runs_superseded = 0

    @property
    def is_training(self) -> bool:
        return self._task is not None and not self._task.done()

    async def request(self, sessions: Sequence[SleepSession]) -> NaiveBayesModel:
        """Train on ``sessions`` (or a newer snapshot, if one arrives first)."""
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[NaiveBayesModel] = loop.create_future()
        self._waiters.append(waiter)
        self._pending = list(sessions)

        if not self.is_training:
            self._task = asyncio.create_task(self._train_loop())
        else:
            logger.debug("Training in progress, queued newer snapshot")

        return await waiter

    async def _train_loop(self) -> None:
        try:
            while self._pending is not None:
                snapshot, self._pending = self._pending, None
                model = await asyncio.to_thread(self._trainer, snapshot)

                if self._pending is not None:
                    self.runs_superseded += 1
                    logger.debug("Discarding stale training result, newer snapshot queued")
                    continue

                self.runs_completed += 1
                waiters, self._waiters = self._waiters, []
                for waiter in waiters:
                    if not waiter.done():
                        waiter.set_result(model)
        except Exception as e:
            logger.error(f"Training failed: {e}")
            self._pending = None
            waiters, self._waiters = self._waiters, []
            for waiter in waiters:
                if not waiter.done():
                    waiter.set_exception(e)
