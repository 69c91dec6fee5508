"""Tests for actor calendars, intervals and capacity models."""

from datetime import datetime, time, timedelta

import pytest

from goalplan.engine.calendar import ActorCalendar, compute_utilization, task_windows
from goalplan.models.capacity import CapacityProfile, ScheduledBlock, SlotSource, TimeSlot
from goalplan.models.conflict import Conflict, ConflictKind, ResolutionStatus
from goalplan.models.task import Task
from goalplan.utils.datetime_utils import intersect_intervals, merge_intervals, subtract_intervals

MON = datetime(2025, 1, 6, 9, 0)


def h(hour, minute=0, day=0):
    return datetime(2025, 1, 6 + day, hour, minute)


class TestIntervals:
    def test_merge(self):
        assert merge_intervals([(h(11), h(12)), (h(9), h(10)), (h(10), h(11))]) == [(h(9), h(12))]

    def test_subtract(self):
        assert subtract_intervals([(h(9), h(17))], [(h(12), h(13))]) == [(h(9), h(12)), (h(13), h(17))]

    def test_intersect(self):
        assert intersect_intervals([(h(8), h(12))], [(h(9), h(17))]) == [(h(9), h(12))]


class TestActorCalendar:
    def test_free_time_clipped_to_working_hours(self):
        profile = CapacityProfile("ann", work_start=time(10), work_end=time(16))
        slots = [
            TimeSlot("ann", h(7), h(20)),
            TimeSlot("ann", h(12), h(13), SlotSource.BUSY),
            TimeSlot("bob", h(9), h(17)),
        ]
        calendar = ActorCalendar.build(profile, slots, MON, MON + timedelta(days=1), [0, 1, 2, 3, 4])
        assert calendar.free == [(h(10), h(12)), (h(13), h(16))]
        assert calendar.available_minutes == 300

    def test_daily_capacity_caps_available(self):
        profile = CapacityProfile("ann", hours_per_period=20)
        calendar = ActorCalendar.build(profile, [TimeSlot("ann", h(9), h(17))], MON, h(17), [0, 1, 2, 3, 4])
        assert profile.daily_capacity_minutes == 240
        assert calendar.available_minutes == 240

    def test_reserve_and_capacity(self):
        profile = CapacityProfile("ann", hours_per_period=20)
        calendar = ActorCalendar(profile, [(h(9), h(17))])
        calendar.reserve(h(9), h(12))
        assert calendar.free == [(h(12), h(17))]
        assert calendar.candidates(MON, 120, 30) == []
        assert calendar.candidates(MON, 60, 30) == [(h(12), h(13))]

    def test_copy_is_independent(self):
        calendar = ActorCalendar(CapacityProfile("ann"), [(h(9), h(17))])
        clone = calendar.copy()
        clone.reserve(h(9), h(10))
        assert calendar.free == [(h(9), h(17))]
        assert calendar.daily_used[MON.date()] == 0

    def test_weekend_allowed(self):
        saturday = h(9, day=5)
        profile = CapacityProfile("ann", hours_per_period=56, weekend_allowed=True)
        slots = [TimeSlot("ann", saturday, saturday.replace(hour=17))]
        calendar = ActorCalendar.build(profile, slots, saturday, saturday + timedelta(days=1), [0, 1, 2, 3, 4])
        assert calendar.available_minutes == 480


class TestUtilization:
    def test_no_capacity_with_work_is_infinite(self):
        blocks = [ScheduledBlock("g1-a", "a", "ann", h(9), h(10))]
        assert compute_utilization(blocks, {"ann": 0, "bob": 0}) == {"ann": float('inf'), "bob": 0.0}

    def test_task_windows_span_fragments(self):
        blocks = [
            ScheduledBlock("g1-a#2", "a#2", "ann", h(13), h(14), parent_task_id="a"),
            ScheduledBlock("g1-a#1", "a#1", "ann", h(9), h(11), parent_task_id="a"),
        ]
        assert task_windows(blocks) == {"a": (h(9), h(14))}


class TestModels:
    def test_priority_range(self):
        with pytest.raises(ValueError):
            Task("t", "Title", "m1", priority=101)

    def test_negative_estimate(self):
        with pytest.raises(ValueError):
            Task("t", "Title", "m1", estimated_minutes=-5)

    def test_status_from_string(self):
        assert Task("t", "Title", "m1", status="in_progress").is_immovable()

    def test_profile_window_order(self):
        with pytest.raises(ValueError):
            CapacityProfile("ann", work_start=time(17), work_end=time(9))

    def test_profile_accepts_lists(self):
        profile = CapacityProfile("ann", skills=["a"], preferred_windows=[[time(9), time(12)]])
        assert profile.skills == ("a",)
        assert profile.preferred_windows == ((time(9), time(12)),)

    def test_conflict_status_returns_copy(self):
        conflict = Conflict("g1-c1", ConflictKind.OVERLAP, ("a", "b"), "overlap")
        resolved = conflict.with_status(ResolutionStatus.RESOLVED)
        assert conflict.resolution_status == ResolutionStatus.PENDING
        assert resolved.to_dict()['resolution_status'] == "resolved"
