# asclepius/services/countdown.py
"""
Per-exercise countdown timers.

A Countdown ticks once per second on the event loop until it reaches zero,
then locks and fires its time-up callback exactly once. The registry keeps
them alive across requests, keyed by (athlete_id, exercise_id), until the
exercise is submitted.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Awaitable, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
TimeUp = Callable[["Countdown"], None]


class Countdown:
    def __init__(
        self,
        minutes: int,
        on_time_up: Optional[TimeUp] = None,
        *,
        tick: float = 1.0,
        sleep: Sleep = asyncio.sleep,
    ):
        self.total_seconds = int(minutes) * 60
        self.remaining = self.total_seconds
        self.started = False
        self.time_up = False
        self._on_time_up = on_time_up
        self._tick = tick
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        # starting twice is a no-op
        if self.started:
            return
        self.started = True
        if self.remaining <= 0:
            self._finish()
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while self.remaining > 0:
            await self._sleep(self._tick)
            self.remaining -= 1
        self._finish()

    def _finish(self) -> None:
        if self.time_up:
            return
        self.time_up = True
        if self._on_time_up is not None:
            self._on_time_up(self)

    def display(self) -> str:
        minutes, seconds = divmod(max(self.remaining, 0), 60)
        return f"{minutes}:{seconds:02d}"

    async def wait(self) -> None:
        """Until time is up (or the countdown is cancelled)."""
        if self._task is not None:
            with suppress(asyncio.CancelledError):
                await self._task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()


class CountdownRegistry:
    def __init__(self, *, tick: float = 1.0, sleep: Sleep = asyncio.sleep):
        self._tick = tick
        self._sleep = sleep
        self._countdowns: Dict[Tuple[str, str], Countdown] = {}

    def start(
        self,
        athlete_id: str,
        exercise_id: str,
        minutes: int,
        on_time_up: Optional[TimeUp] = None,
    ) -> Countdown:
        key = (athlete_id, exercise_id)
        countdown = self._countdowns.get(key)
        if countdown is None:
            countdown = Countdown(minutes, on_time_up, tick=self._tick, sleep=self._sleep)
            self._countdowns[key] = countdown
        countdown.start()
        return countdown

    def get(self, athlete_id: str, exercise_id: str) -> Optional[Countdown]:
        return self._countdowns.get((athlete_id, exercise_id))

    def was_started(self, athlete_id: str, exercise_id: str) -> bool:
        countdown = self.get(athlete_id, exercise_id)
        return countdown is not None and countdown.started

    async def discard(self, athlete_id: str, exercise_id: str) -> None:
        """Forget a countdown (stopping it if it is still ticking)."""
        countdown = self._countdowns.pop((athlete_id, exercise_id), None)
        if countdown is not None:
            countdown.cancel()
            await countdown.wait()

    def __len__(self) -> int:
        return len(self._countdowns)

    async def cancel_all(self) -> None:
        countdowns = list(self._countdowns.values())
        self._countdowns.clear()
        for countdown in countdowns:
            countdown.cancel()
        for countdown in countdowns:
            await countdown.wait()
        if countdowns:
            logger.info("Cancelled %d countdown(s)", len(countdowns))
