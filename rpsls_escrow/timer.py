# rpsls_escrow/timer.py
from __future__ import annotations

import asyncio
import logging
from typing import Callable

from .models import TimerState

logger = logging.getLogger(__name__)


class TimerController:
    """Single countdown clock: Idle or Running(seconds_remaining).

    The countdown runs in its own task so it keeps ticking while a
    reconciliation is slow. Re-arming replaces the running countdown;
    a stale task that wakes after being replaced does nothing.
    """

    def __init__(self, on_expired: Callable[[], None] | None = None, tick_seconds: float = 1.0):
        self.on_expired = on_expired
        self.tick_seconds = tick_seconds
        self._remaining = 0
        self._active = False
        self._generation = 0
        self._task: asyncio.Task | None = None

    @property
    def state(self) -> TimerState:
        return TimerState(seconds_remaining=self._remaining, is_active=self._active)

    @property
    def expired(self) -> bool:
        return not self._active and self._remaining == 0

    def arm(self, seconds: int) -> None:
        self._stop_task()
        self._remaining = max(0, int(seconds))
        self._active = self._remaining > 0
        if self._active:
            self._task = asyncio.get_running_loop().create_task(self._run(self._generation))

    def disarm(self) -> None:
        self._stop_task()
        self._active = False

    def tick(self) -> None:
        if not self._active:
            return
        self._remaining = max(0, self._remaining - 1)
        if self._remaining == 0:
            self._active = False
            logger.debug("timer expired")
            if self.on_expired is not None:
                self.on_expired()

    def format_remaining(self) -> str:
        minutes, seconds = divmod(self._remaining, 60)
        return f"{minutes}:{seconds:02d}"

    def _stop_task(self) -> None:
        self._generation += 1
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self, generation: int) -> None:
        while self._active and generation == self._generation:
            await asyncio.sleep(self.tick_seconds)
            if generation != self._generation:
                return
            self.tick()
