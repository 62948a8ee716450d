"""Tests for the attempt countdown timer."""

import asyncio

import pytest

from services.assessment.timer import UNTIMED_DURATION, AttemptTimer


async def _no_sleep(_: float) -> None:
    await asyncio.sleep(0)


def test_formatting_and_warning() -> None:
    t = AttemptTimer(601, warning_threshold=300)
    assert t.formatted == "10:01"
    assert not t.is_warning
    t._remaining = 300
    assert t.is_warning and t.formatted == "05:00"
    t._remaining = 0
    assert not t.is_warning and t.is_expired


def test_does_not_tick_until_armed() -> None:
    t = AttemptTimer(5)
    t.tick()
    assert t.remaining == 5 and not t.is_running


@pytest.mark.asyncio
async def test_expiry_fires_at_most_once() -> None:
    fired = []
    t = AttemptTimer(3, on_expire=lambda: fired.append(1))
    t.start()
    for _ in range(10):  # extra ticks stand in for re-renders after zero
        t.tick()
    assert fired == [1]
    assert t.is_expired and not t.is_running and t.has_fired
    t.start()
    t.tick()
    assert fired == [1]
    await t.aclose()


@pytest.mark.asyncio
async def test_background_loop_counts_down_and_runs_async_callback() -> None:
    done = asyncio.Event()

    async def on_expire() -> None:
        done.set()

    t = AttemptTimer(3, on_expire=on_expire, sleep=_no_sleep)
    t.start()
    await asyncio.wait_for(done.wait(), timeout=1)
    assert t.remaining == 0
    assert t.expiry_task is not None
    await t.expiry_task
    await t.aclose()


@pytest.mark.asyncio
async def test_cancel_suppresses_late_expiry() -> None:
    fired = []
    t = AttemptTimer(2, on_expire=lambda: fired.append(1))
    t.start()
    t.tick()
    t.cancel()
    t.tick()
    t.start()
    t.tick()
    assert fired == [] and t.remaining == 1 and t.is_cancelled
    await t.aclose()


@pytest.mark.asyncio
async def test_pause_and_reset() -> None:
    t = AttemptTimer(10)
    t.start()
    t.tick()
    t.pause()
    t.tick()
    assert t.remaining == 9 and not t.is_running
    t.reset()
    assert t.remaining == 10
    await t.aclose()


@pytest.mark.asyncio
async def test_resume_after_pause_keeps_counting_down() -> None:
    done = asyncio.Event()
    t = AttemptTimer(50, on_expire=done.set, sleep=_no_sleep)
    t.start()
    t.tick()
    t.pause()
    t.start()  # same loop step as the pause
    for _ in range(20):
        await asyncio.sleep(0)
    assert t.is_running
    assert t.remaining < 49
    await asyncio.wait_for(done.wait(), timeout=1)
    assert t.remaining == 0 and t.has_fired
    await t.aclose()


@pytest.mark.asyncio
async def test_untimed_attempt_never_expires() -> None:
    fired = []
    t = AttemptTimer.for_limit(0, on_expire=lambda: fired.append(1))
    assert t.untimed and t.on_expire is None and t.duration == UNTIMED_DURATION
    t.start()
    for _ in range(UNTIMED_DURATION + 10):
        t.tick()
    assert fired == []
    assert not t.is_expired and not t.is_warning
    await t.aclose()


def test_for_limit_keeps_callback_when_timed() -> None:
    cb = lambda: None  # noqa: E731
    t = AttemptTimer.for_limit(90, on_expire=cb, warning_threshold=30)
    assert not t.untimed and t.on_expire is cb and t.warning_threshold == 30
