"""
Periodic refresh of the aggregate headline set.

``HeadlineStore`` owns the current ``AggregateResult``.  A cycle builds a
complete new result and only then swaps the store's reference, so readers
see either the old set or the new one, never a mix.

``RefreshScheduler`` is a two-state machine:

    RUNNING  --pause()-->  PAUSED
    PAUSED   --resume()--> RUNNING   (runs one cycle immediately)

Pausing only stops the *next* cycle from being scheduled.  A cycle that is
already in flight runs to completion.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Optional, Sequence, Set

from ..core.config import settings
from ..models.articles import AggregateResult, Source
from .news_aggregator import NewsAggregator

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


class HeadlineStore:
    def __init__(self, initial: Optional[AggregateResult] = None):
        self._current = initial if initial is not None else AggregateResult()
        self.cycles_completed = 0

    @property
    def current(self) -> AggregateResult:
        return self._current

    def replace(self, result: AggregateResult) -> AggregateResult:
        previous, self._current = self._current, result
        self.cycles_completed += 1
        return previous


class RefreshScheduler:
    def __init__(
        self,
        aggregator: NewsAggregator,
        store: HeadlineStore,
        sources: Optional[Sequence[Source]] = None,
        interval: Optional[float] = None,
    ):
        self.aggregator = aggregator
        self.store = store
        self.sources = sources
        self.interval = interval if interval is not None else settings.refresh_interval_seconds
        self.state = SchedulerState.STOPPED
        self.last_duration_ms: Optional[int] = None
        self._lock = asyncio.Lock()
        self._timer: Optional[asyncio.Task] = None
        self._cycles: Set[asyncio.Task] = set()

    @property
    def refreshing(self) -> bool:
        return self._lock.locked()

    async def refresh_now(self) -> AggregateResult:
        """Run one full cycle and publish its result.  Cycles never overlap."""
        async with self._lock:
            start_time = time.time()
            result = await self.aggregator.run_cycle(self.sources)
            self.store.replace(result)
            self.last_duration_ms = int((time.time() - start_time) * 1000)
            logger.info(f"Headlines updated: {len(result)} articles in {self.last_duration_ms} ms")
            return result

    def _spawn_cycle(self) -> asyncio.Task:
        task = asyncio.create_task(self._guarded_refresh())
        self._cycles.add(task)
        task.add_done_callback(self._cycles.discard)
        return task

    async def _guarded_refresh(self) -> None:
        try:
            await self.refresh_now()
        except Exception:
            # The store keeps serving the previous cycle's result.
            logger.exception("Refresh cycle failed")

    async def _tick(self) -> None:
        while self.state is SchedulerState.RUNNING:
            await asyncio.sleep(self.interval)
            if self.state is not SchedulerState.RUNNING:
                break
            # Shielded so that pausing during a cycle only cancels the timer.
            await asyncio.shield(self._spawn_cycle())

    def _start_timer(self) -> None:
        if self._timer is None or self._timer.done():
            self._timer = asyncio.create_task(self._tick())

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    def start(self) -> asyncio.Task:
        """Run the first cycle now and schedule the following ones."""
        self.state = SchedulerState.RUNNING
        task = self._spawn_cycle()
        self._start_timer()
        return task

    def pause(self) -> None:
        if self.state is not SchedulerState.RUNNING:
            return
        self.state = SchedulerState.PAUSED
        self._cancel_timer()
        logger.info("Auto refresh paused")

    def resume(self) -> Optional[asyncio.Task]:
        if self.state is not SchedulerState.PAUSED:
            return None
        logger.info("Auto refresh resumed")
        return self.start()

    async def stop(self) -> None:
        self.state = SchedulerState.STOPPED
        self._cancel_timer()
        pending = [task for task in self._cycles if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
