import asyncio
from dataclasses import dataclass
import logging
from typing import Awaitable, Callable, List, Optional

from mergeguard.metric import (
    jobs_dispatched_counter,
    jobs_enqueued_counter,
    queue_size,
    worker_error_count,
)

logger = logging.getLogger("mergeguard")


@dataclass(frozen=True, order=True)
class Job:
    installation_id: int
    repo: str
    commit: str

    def __str__(self) -> str:
        return f"Job({self.repo}@{self.commit}, installation {self.installation_id})"


class JobQueue:
    """
    Refresh requests waiting for the next periodic drain. Duplicates are kept
    on insertion and collapsed when the queue is drained.
    """

    lock: asyncio.Lock
    jobs: List[Job]

    def __init__(self):
        self.lock = asyncio.Lock()
        self.jobs = []

    async def enqueue(self, job: Job) -> None:
        async with self.lock:
            self.jobs.append(job)
            queue_size.set(len(self.jobs))
        jobs_enqueued_counter.inc()
        logger.debug("Pushing %s", job)

    async def drain(self) -> List[Job]:
        async with self.lock:
            if len(self.jobs) == 0:
                return []
            jobs = sorted(self.jobs)
            self.jobs = []
            queue_size.set(0)

        unique: List[Job] = []
        for job in jobs:
            if len(unique) == 0 or unique[-1] != job:
                unique.append(job)

        logger.debug("Drained %d jobs, %d unique", len(jobs), len(unique))
        return unique

    async def size(self) -> int:
        async with self.lock:
            return len(self.jobs)


class PeriodicRefresher:
    """Drains a ``JobQueue`` every ``period`` seconds and hands jobs to ``handler``."""

    def __init__(
        self,
        queue: JobQueue,
        handler: Callable[[Job], Awaitable[None]],
        period: float,
    ):
        if period <= 0:
            raise ValueError("Refresh period must be positive")
        self.queue = queue
        self.handler = handler
        self.period = period
        self._stopped = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._task is not None:
            return
        logger.info("Starting periodic refresh every %ss", self.period)
        self._stopped.clear()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """
        Prevent further ticks. A drain that is already running finishes before
        this returns.
        """
        if self._task is None:
            return
        logger.info("Stopping periodic refresh")
        self._stopped.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.period)
            except asyncio.TimeoutError:
                pass
            if self._stopped.is_set():
                return
            await self.tick()

    async def tick(self) -> int:
        jobs = await self.queue.drain()
        if len(jobs) == 0:
            return 0

        logger.info("Refreshing %d queued commits", len(jobs))
        jobs_dispatched_counter.inc(len(jobs))
        await asyncio.gather(*(self._process(job) for job in jobs))
        return len(jobs)

    async def _process(self, job: Job) -> None:
        try:
            await self.handler(job)
        except asyncio.CancelledError:
            raise
        except Exception:
            worker_error_count.inc()
            logger.error("Failed to refresh %s", job, exc_info=True)
