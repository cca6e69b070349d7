"""Tests for rotation.py (carousel timing on a manual clock)."""

from __future__ import annotations

import pytest

from newsboard.rotation import ManualScheduler, RotationTimer


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def rotation(scheduler) -> RotationTimer:
    return RotationTimer(scheduler, default_duration=10, settle_delay=0.25)


class TestManualScheduler:
    def test_runs_callbacks_in_due_order(self, scheduler):
        calls = []
        scheduler.call_later(2, lambda: calls.append("b"))
        scheduler.call_later(1, lambda: calls.append("a"))
        assert scheduler.advance(5) == 2
        assert calls == ["a", "b"]
        assert scheduler.now() == 5

    def test_cancelled_entries_never_run(self, scheduler):
        calls = []
        handle = scheduler.call_later(1, lambda: calls.append("x"))
        handle.cancel()
        assert scheduler.pending() == 0
        assert scheduler.advance(2) == 0
        assert calls == []

    def test_callback_scheduled_during_advance_runs_if_due(self, scheduler):
        calls = []

        def first():
            calls.append("first")
            scheduler.call_later(1, lambda: calls.append("second"))

        scheduler.call_later(1, first)
        scheduler.advance(3)
        assert calls == ["first", "second"]


class TestAdvanceTiming:
    def test_advances_after_item_duration(self, scheduler, rotation, make_item):
        rotation.set_items([make_item("a", 5), make_item("b", 3)])
        assert rotation.index == 0

        scheduler.advance(4.5)
        assert rotation.index == 0
        scheduler.advance(0.5)
        assert rotation.index == 1

    def test_loops_back_to_first_item(self, scheduler, rotation, make_item):
        rotation.set_items([make_item("a", 5), make_item("b", 3)])
        scheduler.advance(5)
        scheduler.advance(3)
        assert rotation.index == 0

    @pytest.mark.parametrize("duration", [None, 0, -4, "abc"])
    def test_missing_or_non_positive_duration_uses_default(self, scheduler, rotation, make_item, duration):
        rotation.set_items([make_item("a", duration), make_item("b", 5)])
        scheduler.advance(9.5)
        assert rotation.index == 0
        scheduler.advance(0.5)
        assert rotation.index == 1

    def test_remaining_counts_down(self, scheduler, rotation, make_item):
        rotation.set_items([make_item("a", 8), make_item("b", 8)])
        scheduler.advance(3)
        assert rotation.remaining() == pytest.approx(5)

    def test_single_pending_callback(self, scheduler, rotation, make_item):
        rotation.set_items([make_item("a"), make_item("b"), make_item("c")])
        rotation.select(1)
        rotation.next()
        rotation.previous()
        assert scheduler.pending() == 1

    def test_select_restarts_countdown(self, scheduler, rotation, make_item):
        rotation.set_items([make_item("a", 6), make_item("b", 4), make_item("c", 6)])
        scheduler.advance(5)
        rotation.select(1)
        assert rotation.remaining() == pytest.approx(4)
        scheduler.advance(4)
        assert rotation.index == 2

    def test_select_wraps_index(self, rotation, make_item):
        rotation.set_items([make_item("a"), make_item("b"), make_item("c")])
        rotation.select(-1)
        assert rotation.index == 2
        rotation.next()
        assert rotation.index == 0

    def test_on_change_reports_new_index(self, scheduler, make_item):
        seen = []
        rotation = RotationTimer(scheduler, default_duration=10, on_change=seen.append)
        rotation.set_items([make_item("a", 2), make_item("b", 2)])
        scheduler.advance(2)
        scheduler.advance(2)
        assert seen == [1, 0]


class TestPointer:
    def test_pointer_down_cancels_advance(self, scheduler, rotation, make_item):
        rotation.set_items([make_item("a", 5), make_item("b", 5)])
        scheduler.advance(2)
        rotation.pointer_down()
        assert not rotation.pending
        scheduler.advance(100)
        assert rotation.index == 0

    def test_pointer_up_restarts_after_settle_delay(self, scheduler, rotation, make_item):
        rotation.set_items([make_item("a", 5), make_item("b", 5)])
        rotation.pointer_down()
        rotation.pointer_up()

        scheduler.advance(0.125)
        assert rotation.remaining() is None
        scheduler.advance(0.125)
        assert rotation.remaining() == pytest.approx(5)

        scheduler.advance(4.5)
        assert rotation.index == 0
        scheduler.advance(0.5)
        assert rotation.index == 1

    def test_pointer_down_cancels_pending_settle(self, scheduler, rotation, make_item):
        rotation.set_items([make_item("a", 5), make_item("b", 5)])
        rotation.pointer_down()
        rotation.pointer_up()
        rotation.pointer_down()
        scheduler.advance(50)
        assert rotation.index == 0
        assert scheduler.pending() == 0

    def test_select_while_held_schedules_nothing(self, scheduler, rotation, make_item):
        rotation.set_items([make_item("a", 5), make_item("b", 5)])
        rotation.pointer_down()
        rotation.select(1)
        assert rotation.index == 1
        assert scheduler.pending() == 0


class TestSetItems:
    def test_keeps_index_when_still_valid(self, rotation, make_item):
        rotation.set_items([make_item("a"), make_item("b"), make_item("c")])
        rotation.select(2)
        rotation.set_items([make_item("a"), make_item("b"), make_item("c"), make_item("d")])
        assert rotation.index == 2

    def test_resets_index_when_out_of_range(self, rotation, make_item):
        rotation.set_items([make_item("a"), make_item("b"), make_item("c")])
        rotation.select(2)
        rotation.set_items([make_item("a")])
        assert rotation.index == 0

    def test_unchanged_snapshot_keeps_countdown(self, scheduler, rotation, make_item):
        rotation.set_items([make_item("a", 10), make_item("b", 10)])
        scheduler.advance(4)
        rotation.set_items([make_item("a", 10), make_item("b", 10)])
        assert rotation.remaining() == pytest.approx(6)

    def test_changed_snapshot_reissues_countdown(self, scheduler, rotation, make_item):
        rotation.set_items([make_item("a", 10), make_item("b", 10)])
        scheduler.advance(4)
        rotation.set_items([make_item("a", 10), make_item("b", 10), make_item("c", 10)])
        assert rotation.remaining() == pytest.approx(10)
        assert scheduler.pending() == 1

    def test_empty_list_cancels_everything(self, scheduler, rotation, make_item):
        rotation.set_items([make_item("a", 10)])
        rotation.set_items([])
        assert rotation.current is None
        assert not rotation.pending
        assert scheduler.pending() == 0
        scheduler.advance(60)
        assert rotation.index == 0


class TestStopResume:
    def test_stop_cancels_and_resume_restarts(self, scheduler, rotation, make_item):
        rotation.set_items([make_item("a", 5), make_item("b", 5)])
        rotation.stop()
        scheduler.advance(20)
        assert rotation.index == 0

        rotation.resume()
        scheduler.advance(5)
        assert rotation.index == 1

    def test_stale_callback_is_ignored(self, scheduler, make_item):
        captured = []

        class CapturingScheduler(ManualScheduler):
            def call_later(self, delay, callback):
                captured.append(callback)
                return super().call_later(delay, callback)

        sched = CapturingScheduler()
        rotation = RotationTimer(sched, default_duration=10)
        rotation.set_items([make_item("a", 5), make_item("b", 5), make_item("c", 5)])
        stale = captured[0]
        rotation.select(0)

        stale()
        assert rotation.index == 0
