"""Tick runner: drives a ProgramState on an asyncio event loop.

Paces ticks without busy-waiting:
    1. Evaluate the program at the current logical time.
    2. Sleep until the earliest of: the next alarm requested by a stream,
       the next fixed ``tick_ms`` boundary (if configured), or a wake-up
       from an async deposit, an external notify or a program update.
    3. Repeat until ``stop()`` is called or ``max_ticks`` is reached.

Logical time is milliseconds elapsed since ``run()`` started.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from reflow.config import ReflowConfig

if TYPE_CHECKING:
    from collections.abc import Callable

    from reflow.reactive.state import ProgramState


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class TickRunner:
    """Coordinates ticks of a single program.

    Args:
        state: The program state to drive.
        config: Pacing options (``tick_ms``, ``max_ticks``).
        clock: Millisecond clock; defaults to the monotonic clock.
        on_tick: Called with the state after every tick.

    """

    def __init__(
        self,
        state: ProgramState,
        config: ReflowConfig | None = None,
        *,
        clock: Callable[[], float] | None = None,
        on_tick: Callable[[ProgramState], None] | None = None,
    ) -> None:
        self._state = state
        self._config = config if config is not None else ReflowConfig()
        self._clock = clock if clock is not None else _monotonic_ms
        self._on_tick = on_tick
        self._loop: asyncio.AbstractEventLoop | None = None
        self._wakeup: asyncio.Event | None = None
        self._origin = 0.0
        self._stopped = False
        self._ticks = 0

    @property
    def ticks(self) -> int:
        """Number of ticks run so far."""
        return self._ticks

    @property
    def elapsed(self) -> float:
        """Milliseconds since ``run()`` started."""
        return self._clock() - self._origin

    async def run(self, max_ticks: int | None = None) -> int:
        """Run ticks until stopped; return the number of ticks run.

        Exceptions raised by cell bodies stop the runner and propagate.

        """
        state = self._state
        self._loop = asyncio.get_running_loop()
        if state.loop is None:
            state.loop = self._loop
        self._wakeup = asyncio.Event()
        self._origin = self._clock()
        self._stopped = False
        limit = max_ticks if max_ticks is not None else self._config.max_ticks
        state.set_waker(self._wake)

        try:
            while not self._stopped:
                self._wakeup.clear()
                tick_started = self.elapsed
                state.evaluate(state.start_time + tick_started)
                self._ticks += 1
                if self._on_tick is not None:
                    self._on_tick(state)
                if limit is not None and self._ticks >= limit:
                    break
                if self._stopped:
                    break
                await self._sleep(self._next_delay(tick_started))
        finally:
            state.set_waker(None)
        return self._ticks

    def stop(self) -> None:
        """Ask the runner to exit after the current tick.  Thread-safe."""
        self._stopped = True
        self._wake()

    def _wake(self) -> None:
        loop, wakeup = self._loop, self._wakeup
        if loop is None or wakeup is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(wakeup.set)

    def _next_delay(self, tick_started: float) -> float | None:
        """Milliseconds until the next tick is due, or None to wait for a wake-up."""
        state = self._state
        if state.has_deposits:
            return 0.0
        candidates: list[float] = []
        alarm = state.next_alarm
        if alarm is not None:
            candidates.append(alarm - self.elapsed)
        if self._config.tick_ms is not None:
            candidates.append(tick_started + self._config.tick_ms - self.elapsed)
        if not candidates:
            return None
        return max(min(candidates), 0.0)

    async def _sleep(self, delay_ms: float | None) -> None:
        wakeup = self._wakeup
        assert wakeup is not None
        if delay_ms is None:
            await wakeup.wait()
            return
        if delay_ms <= 0:
            await asyncio.sleep(0)
            return
        try:
            async with asyncio.timeout(delay_ms / 1000):
                await wakeup.wait()
        except TimeoutError:
            pass
