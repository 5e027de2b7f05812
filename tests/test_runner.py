"""Tests for the asyncio draw driver."""

import asyncio
from uuid import uuid4

import pytest

from business_manager.lottery import DrawAnimator, DrawPhase, DrawRunner
from business_manager.models import ChitMember


def participants(*member_names):
    group_id = uuid4()
    return [ChitMember(group_id=group_id, name=n) for n in member_names]


class TestDrawRunner:
    """The runner sleeps to each deadline and forwards ticks."""

    def test_runs_to_settle(self, draw_settings, clock, scripted_random):
        animator = DrawAnimator(participants("A", "B"), draw_settings, scripted_random([1]))
        runner = DrawRunner(clock=clock, sleep=clock.sleep)
        seen = []

        async def scenario():
            task = runner.start(animator, on_tick=seen.append)
            return await task

        result = asyncio.run(scenario())

        assert result is animator
        assert animator.phase == DrawPhase.SETTLED
        assert [t.at for t in seen] == [0.25, 0.5, 0.75, 1.5, 2.0]
        assert clock.now == pytest.approx(2.0)

    def test_async_tick_callback_is_awaited(self, draw_settings, clock, scripted_random):
        animator = DrawAnimator(participants("A", "B"), draw_settings, scripted_random([0]))
        runner = DrawRunner(clock=clock, sleep=clock.sleep)
        seen = []

        async def on_tick(tick):
            await asyncio.sleep(0)
            seen.append(tick.displayed_name)

        async def scenario():
            await runner.start(animator, on_tick=on_tick)

        asyncio.run(scenario())

        assert seen == ["A"] * 5

    def test_cancel_closes_animator(self, draw_settings, clock):
        animator = DrawAnimator(participants("A", "B"), draw_settings)
        runner = DrawRunner(clock=clock, sleep=clock.sleep)

        async def scenario():
            task = runner.start(animator)
            assert runner.is_running
            cancelled = runner.cancel()
            await asyncio.gather(task, return_exceptions=True)
            return task, cancelled

        task, cancelled = asyncio.run(scenario())

        assert cancelled is True
        assert task.cancelled()
        assert animator.phase == DrawPhase.CLOSED
        assert animator.winner is None
        assert runner.is_running is False

    def test_new_run_cancels_previous(self, draw_settings, clock):
        first = DrawAnimator(participants("A", "B"), draw_settings)
        second = DrawAnimator(participants("C", "D"), draw_settings)
        runner = DrawRunner(clock=clock, sleep=clock.sleep)

        async def scenario():
            old_task = runner.start(first)
            new_task = runner.start(second)
            await asyncio.gather(old_task, return_exceptions=True)
            await new_task
            return old_task

        old_task = asyncio.run(scenario())

        assert old_task.cancelled()
        assert first.phase == DrawPhase.CLOSED
        assert first.winner is None
        assert second.phase == DrawPhase.SETTLED
        assert second.winner.name in {"C", "D"}

    def test_run_on_finished_animator_returns_immediately(self, draw_settings, clock):
        animator = DrawAnimator(participants("A", "B"), draw_settings)
        animator.start(0.0)
        animator.advance(5.0)
        runner = DrawRunner(clock=clock, sleep=clock.sleep)

        asyncio.run(runner.run(animator))

        assert clock.now == 0.0
