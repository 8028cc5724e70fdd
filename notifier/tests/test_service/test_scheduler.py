"""Tests for the timer queue."""

import pytest

from notifier.scheduler import TimerQueue


@pytest.fixture
def timers(clock) -> TimerQueue:
    return TimerQueue(clock)


class TestTimerQueue:
    def test_runs_in_deadline_order(self, timers, clock):
        ran = []
        timers.call_later(2, ran.append, "b")
        timers.call_later(1, ran.append, "a")
        assert timers.next_delay() == 1
        clock.advance(2)
        assert timers.run_due() == 2
        assert ran == ["a", "b"]
        assert timers.next_delay() is None

    def test_not_run_before_due(self, timers, clock):
        ran = []
        timers.call_later(5, ran.append, 1)
        clock.advance(4.9)
        assert timers.run_due() == 0

    def test_repeating(self, timers, clock):
        ran = []
        timers.call_every(10, lambda: ran.append(clock()), run_now=True)
        timers.run_due()
        clock.advance(10)
        timers.run_due()
        assert len(ran) == 2
        assert timers.next_delay() == 10

    def test_cancel(self, timers, clock):
        ran = []
        handle = timers.call_later(1, ran.append, 1)
        handle.cancel()
        assert timers.next_delay() is None
        assert len(timers) == 0
        clock.advance(1)
        timers.run_due()
        assert ran == []

    def test_failing_callback_does_not_stop_others(self, timers, clock):
        ran = []

        def boom():
            raise RuntimeError("boom")

        timers.call_later(0, boom)
        timers.call_later(0, ran.append, "ok")
        assert timers.run_due() == 2
        assert ran == ["ok"]

    def test_cancel_all(self, timers):
        timers.call_every(1, lambda: None)
        timers.call_later(1, lambda: None)
        timers.cancel_all()
        assert len(timers) == 0
