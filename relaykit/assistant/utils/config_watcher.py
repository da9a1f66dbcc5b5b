"""
Polling watcher for the external server configuration file.
"""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)


class ConfigFileWatcher:
    """Calls ``on_change`` whenever the watched file's mtime changes.

    Creation and deletion of the file count as changes.
    """

    def __init__(
        self,
        path: Union[str, Path],
        on_change: Callable[[], Awaitable[None]],
        interval_seconds: float = 2.0
    ):
        self.path = Path(path)
        self._on_change = on_change
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._last_mtime: Optional[float] = self._mtime()

    def _mtime(self) -> Optional[float]:
        try:
            return self.path.stat().st_mtime
        except OSError:
            return None

    async def check(self) -> bool:
        """Check once; returns True when a change was detected and handled."""
        current = self._mtime()
        if current == self._last_mtime:
            return False
        self._last_mtime = current
        logger.info(f"Configuration file changed: {self.path}")
        try:
            await self._on_change()
        except Exception as e:
            logger.error(f"Configuration reload failed: {e}")
        return True

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.check()

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._poll(), name="config-file-watcher")
            logger.debug(f"Watching {self.path} every {self._interval}s")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
