"""
Bounded pool of background asyncio tasks.

Used by the external tool manager for connection setup and tool discovery,
so that slow servers never block the caller and at most a fixed number of
jobs run at once.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)


class BackgroundWorkerPool:
    """Runs submitted coroutines as tasks, at most ``max_workers`` at a time."""

    def __init__(self, max_workers: int = 4, name: str = "worker"):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._name = name
        self._semaphore = asyncio.Semaphore(max_workers)
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    def submit(
        self,
        job: Callable[[], Awaitable[None]],
        label: Optional[str] = None
    ) -> Optional[asyncio.Task]:
        """Schedule a job. Returns None once the pool has been shut down."""
        if self._closed:
            logger.debug(f"Pool '{self._name}' is shut down, dropping job {label}")
            return None

        async def run() -> None:
            async with self._semaphore:
                try:
                    await job()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error(f"Background job {label or ''} in pool '{self._name}' failed: {e}")

        task = asyncio.create_task(run(), name=f"{self._name}-{label}" if label else None)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def join(self) -> None:
        """Wait until every submitted job, including ones submitted meanwhile, has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel outstanding jobs and refuse new ones."""
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        logger.debug(f"Pool '{self._name}' shut down")
