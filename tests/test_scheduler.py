"""Tests for the cooperative scheduler and the latest-value handoff."""

import pytest

from gesturefield.scheduler import CooperativeScheduler, LatestValue, PeriodicTask


class TestLatestValue:
    """Test suite for LatestValue."""

    def test_reader_sees_only_latest(self):
        slot = LatestValue(0)
        for i in range(1, 4):
            slot.publish(i)
        assert slot.get() == 3
        assert slot.get() == 3
        assert slot.version == 3


class TestPeriodicTask:
    """Test suite for PeriodicTask."""

    def test_negative_period(self):
        with pytest.raises(ValueError):
            PeriodicTask('bad', print, -1.0)

    def test_due(self):
        calls = []
        task = PeriodicTask('t', calls.append, 0.5)
        assert task.due(0.0)
        task.run(0.0)
        assert not task.due(0.4)
        assert task.due(0.5)
        assert calls == [0.0]


class TestCooperativeScheduler:
    """Test suite for CooperativeScheduler."""

    def test_tasks_run_at_their_rates(self, fake_clock):
        scheduler = CooperativeScheduler(clock=fake_clock, sleep=fake_clock.sleep)
        inference = scheduler.add(PeriodicTask('inference', lambda now: None, 1 / 30))

        def render(now):
            if render_task.run_count >= 60:
                scheduler.stop()

        render_task = scheduler.add(PeriodicTask('render', render, 1 / 60))
        scheduler.run()

        assert render_task.run_count == 60
        assert 29 <= inference.run_count <= 31
        assert fake_clock.now == pytest.approx(59 / 60, abs=0.02)

    def test_stop_from_inside_a_task_skips_the_rest_of_the_pass(self, fake_clock):
        scheduler = CooperativeScheduler(clock=fake_clock, sleep=fake_clock.sleep)
        second = []
        scheduler.add(PeriodicTask('first', lambda now: scheduler.stop(), 0.1))
        scheduler.add(PeriodicTask('second', second.append, 0.1))
        scheduler.run()
        assert scheduler.stopped
        assert second == []

    def test_missed_slots_are_not_caught_up(self, fake_clock):
        calls = []
        task = PeriodicTask('t', calls.append, 0.1)
        scheduler = CooperativeScheduler([task], clock=fake_clock, sleep=fake_clock.sleep)
        scheduler.run_pending()
        fake_clock.advance(1.0)
        scheduler.run_pending()
        scheduler.run_pending()
        assert len(calls) == 2

    def test_time_until_next(self, fake_clock):
        task = PeriodicTask('t', lambda now: None, 0.25)
        scheduler = CooperativeScheduler([task], clock=fake_clock, sleep=fake_clock.sleep)
        assert scheduler.time_until_next(0.0) == 0.0
        scheduler.run_pending()
        assert scheduler.time_until_next(0.0) == pytest.approx(0.25)
        assert scheduler.time_until_next(1.0) == 0.0
