"""
Async driver for a DrawAnimator.

Sleeps until the animator's next deadline, advances it and hands each
tick to a callback. At most one draw runs per runner: starting a new
one cancels the previous task first, so two draws can never interleave.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional, Union

import structlog

from business_manager.lottery.animator import DrawAnimator, DrawTick


logger = structlog.get_logger(__name__)

TickCallback = Callable[[DrawTick], Union[None, Awaitable[None]]]


class DrawRunner:
    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._clock = clock
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._animator: Optional[DrawAnimator] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(
        self,
        animator: DrawAnimator,
        on_tick: Optional[TickCallback] = None,
    ) -> asyncio.Task:
        """Start `animator` and drive it in a background task."""
        self.cancel()
        animator.start(self._clock())
        self._animator = animator
        self._task = asyncio.get_running_loop().create_task(
            self.run(animator, on_tick)
        )
        return self._task

    async def run(
        self,
        animator: DrawAnimator,
        on_tick: Optional[TickCallback] = None,
    ) -> DrawAnimator:
        """Drive an already started animator until it settles or is closed."""
        while True:
            deadline = animator.next_deadline
            if deadline is None:
                break
            delay = deadline - self._clock()
            if delay > 0:
                await self._sleep(delay)
            for tick in animator.advance(self._clock()):
                if on_tick is None:
                    continue
                result = on_tick(tick)
                if asyncio.iscoroutine(result):
                    await result
        logger.debug(
            "draw_run_finished",
            session_id=str(animator.session_id),
            phase=animator.phase.value,
        )
        return animator

    def cancel(self) -> bool:
        """
        Stop the current draw, if any.

        The animator is closed before the task is cancelled so a tick
        already in flight cannot produce a winner.
        """
        cancelled = False
        if self._animator is not None:
            cancelled = self._animator.close()
            self._animator = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
            cancelled = True
        self._task = None
        return cancelled
