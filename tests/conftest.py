"""Shared fixtures for planning engine tests."""

from datetime import datetime, timedelta

import pytest

from goalplan.engine.scheduler import SchedulingConstraints
from goalplan.models.capacity import CapacityProfile, SlotSource, TimeSlot
from goalplan.models.task import Task
from goalplan.utils.config import get_default_config

# A Monday.
MONDAY = datetime(2025, 1, 6, 9, 0)


@pytest.fixture
def config():
    return get_default_config()


@pytest.fixture
def monday():
    return MONDAY


@pytest.fixture
def make_task():
    """Factory for tasks in milestone m1."""
    def _make(task_id, minutes=60, **kwargs):
        kwargs.setdefault('milestone_id', 'm1')
        kwargs.setdefault('title', f"Task {task_id}")
        return Task(task_id=task_id, estimated_minutes=minutes, **kwargs)
    return _make


@pytest.fixture
def workdays():
    """Factory for one 09:00-17:00 free slot per weekday."""
    def _slots(actor_id, start=MONDAY, days=5):
        slots = []
        day = start.replace(hour=9, minute=0)
        for offset in range(days):
            current = day + timedelta(days=offset)
            if current.weekday() >= 5:
                continue
            slots.append(TimeSlot(actor_id, current, current.replace(hour=17), SlotSource.FREE))
        return slots
    return _slots


@pytest.fixture
def profile():
    def _profile(actor_id, **kwargs):
        return CapacityProfile(actor_id=actor_id, **kwargs)
    return _profile


@pytest.fixture
def one_week(monday):
    return SchedulingConstraints(window_start=monday, window_end=monday + timedelta(days=5))
