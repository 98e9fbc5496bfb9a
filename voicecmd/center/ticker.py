"""Cancellable fixed-interval tick source for the auto-run countdown."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

LOGGER = logging.getLogger(__name__)


class RecurringTicker:
    """Invoke ``callback`` every ``interval`` seconds until stopped.

    ``stop()`` may be called from inside the callback; the loop exits after
    the callback returns instead of cancelling itself mid-call.
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], None],
        name: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("Tick interval must be positive")
        self.interval = interval
        self._callback = callback
        self._name = name or "ticker"
        self._logger = logger or LOGGER
        self._task: asyncio.Task | None = None
        self._in_callback = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=self._name)

    def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        if self._in_callback and task is asyncio.current_task():
            return
        task.cancel()

    async def _loop(self) -> None:
        me = asyncio.current_task()
        while self._task is me:
            await asyncio.sleep(self.interval)
            if self._task is not me:
                break
            self._in_callback = True
            try:
                self._callback()
            except Exception:
                self._logger.exception("[ticker] %s callback failed", self._name)
            finally:
                self._in_callback = False
