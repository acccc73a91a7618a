# rpsls_escrow/polling.py
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class PollingScheduler:
    """Calls `reconcile` every `interval` seconds, never more than one at a time.

    A tick that finds the previous call still pending is skipped.
    """

    def __init__(self, reconcile: Callable[[], Awaitable[None]], interval: float = 30.0):
        self.reconcile = reconcile
        self.interval = interval
        self.skipped_ticks = 0
        self._loop_task: asyncio.Task | None = None
        self._in_flight: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def busy(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    def start(self) -> None:
        if self.running:
            return
        self._loop_task = asyncio.get_running_loop().create_task(self._loop())

    def stop(self) -> None:
        # A reconciliation may stop its own scheduler; let it finish.
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        for task in (self._loop_task, self._in_flight):
            if task is not None and not task.done() and task is not current:
                task.cancel()
        self._loop_task = None
        self._in_flight = None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if self.busy:
                self.skipped_ticks += 1
                logger.debug("previous reconciliation still pending, tick skipped")
                continue
            self._in_flight = asyncio.get_running_loop().create_task(self._run_once())

    async def _run_once(self) -> None:
        try:
            await self.reconcile()
        except asyncio.CancelledError:
            raise
        except Exception:
            # next tick retries
            logger.exception("scheduled reconciliation failed")
