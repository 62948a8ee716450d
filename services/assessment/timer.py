"""Countdown timer for timed assessment attempts.

`AttemptTimer` counts down once per second on the running asyncio loop while
armed, exposes the remaining time as `mm:ss` plus a low-time warning flag, and
calls `on_expire` at most once per instance. A cancelled timer never fires.

Usage:
    timer = AttemptTimer.for_limit(limit_seconds, on_expire=session_auto_submit)
    timer.start()          # only once the attempt payload is loaded
    ...
    await timer.aclose()   # on teardown
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional

from packages.common.metrics import mark_expiry

log = logging.getLogger("beelearn.assessment.timer")

UNTIMED_DURATION = 999_999
DEFAULT_WARNING_SECONDS = 300

ExpireCallback = Callable[[], Any]
Sleeper = Callable[[float], Awaitable[Any]]


class AttemptTimer:
    """Armed-on-demand countdown with an at-most-once expiry callback."""

    def __init__(
        self,
        duration_seconds: int,
        on_expire: Optional[ExpireCallback] = None,
        warning_threshold: int = DEFAULT_WARNING_SECONDS,
        tick_interval: float = 1.0,
        sleep: Sleeper = asyncio.sleep,
        untimed: bool = False,
    ) -> None:
        """Create a stopped timer.

        Args:
            duration_seconds: Countdown length in whole seconds.
            on_expire: Sync or async callable fired once when the countdown reaches zero.
            warning_threshold: `is_warning` turns on at or below this many seconds.
            tick_interval: Seconds between ticks of the background loop.
            sleep: Awaitable sleep used by the loop (injectable for tests).
            untimed: Never count down nor expire; see `for_limit`.
        """
        self.duration = max(0, int(duration_seconds))
        self.on_expire = on_expire
        self.warning_threshold = warning_threshold
        self.tick_interval = tick_interval
        self.untimed = untimed
        self._sleep = sleep
        self._remaining = self.duration
        self._running = False
        self._cancelled = False
        self._fired = False
        self._task: Optional[asyncio.Task] = None
        self._stopped: List[asyncio.Task] = []
        self.expiry_task: Optional[asyncio.Future] = None

    @classmethod
    def for_limit(
        cls,
        limit_seconds: int,
        on_expire: Optional[ExpireCallback] = None,
        **kwargs: Any,
    ) -> "AttemptTimer":
        """Build a timer for an attempt time limit; 0 means untimed.

        Untimed attempts get an effectively infinite duration and no expiry
        callback at all.
        """
        if limit_seconds and limit_seconds > 0:
            return cls(limit_seconds, on_expire=on_expire, **kwargs)
        return cls(UNTIMED_DURATION, on_expire=None, untimed=True, **kwargs)

    # ---------- state ----------
    @property
    def remaining(self) -> int:
        """Seconds left."""
        return self._remaining

    @property
    def formatted(self) -> str:
        """Remaining time as zero-padded `mm:ss`."""
        minutes, seconds = divmod(self._remaining, 60)
        return f"{minutes:02d}:{seconds:02d}"

    @property
    def is_warning(self) -> bool:
        """True while `0 < remaining <= warning_threshold` on a timed attempt."""
        return not self.untimed and 0 < self._remaining <= self.warning_threshold

    @property
    def is_expired(self) -> bool:
        return self._remaining <= 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def has_fired(self) -> bool:
        return self._fired

    # ---------- control ----------
    def start(self) -> None:
        """Arm the countdown and schedule the tick loop on the running event loop."""
        if self._cancelled or self.untimed or self.is_expired:
            return
        self._running = True
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())

    arm = start

    def pause(self) -> None:
        """Stop ticking, keeping the remaining time."""
        self._running = False
        self._stop_loop()

    def reset(self) -> None:
        """Restore the full duration and stop. Expiry stays at-most-once per instance."""
        self._remaining = self.duration
        self.pause()

    def cancel(self) -> None:
        """Stop for good: no further ticks and no late expiry."""
        self._cancelled = True
        self.pause()

    async def aclose(self) -> None:
        """Cancel the timer and wait for the tick loop to finish."""
        self.cancel()
        tasks = [t for t in (*self._stopped, self._task) if t is not None and t is not asyncio.current_task()]
        self._task = None
        self._stopped.clear()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def tick(self) -> None:
        """Advance the countdown by one second; fires `on_expire` when it reaches zero."""
        if not self._running or self._cancelled or self.untimed or self._remaining <= 0:
            return
        self._remaining -= 1
        if self._remaining == 0:
            self._running = False
            self._expire()

    # ---------- internals ----------
    def _stop_loop(self) -> None:
        task = self._task
        if task is None or task.done() or task is asyncio.current_task():
            return
        # a cancelled task is not done() until the loop runs it again; drop it so start() schedules a new one
        task.cancel()
        self._stopped = [t for t in self._stopped if not t.done()] + [task]
        self._task = None

    def _expire(self) -> None:
        if self._fired or self._cancelled:
            return
        self._fired = True
        mark_expiry()
        log.info("Attempt timer expired after %ss", self.duration)
        if self.on_expire is None:
            return
        result = self.on_expire()
        if inspect.isawaitable(result):
            self.expiry_task = asyncio.ensure_future(result)

    async def _run(self) -> None:
        while self._running and not self._cancelled and self._remaining > 0:
            await self._sleep(self.tick_interval)
            self.tick()
