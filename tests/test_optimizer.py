"""Tests for capacity optimization."""

from datetime import datetime, timedelta

import pytest

from goalplan.engine.optimizer import CapacityOptimizer
from goalplan.engine.scheduler import SchedulingConstraints
from goalplan.errors import OptimizationIncompleteError
from goalplan.graph.task_graph import TaskGraph
from goalplan.models.capacity import ScheduledBlock, TimeSlot
from goalplan.models.task import TaskStatus

MON = datetime(2025, 1, 6, 9, 0)


def block(task_id, actor_id, start_offset, minutes):
    start = MON + timedelta(minutes=start_offset)
    return ScheduledBlock(f"g1-{task_id}", task_id, actor_id, start, start + timedelta(minutes=minutes))


@pytest.fixture
def constraints():
    return SchedulingConstraints(window_start=MON, window_end=MON.replace(hour=17))


@pytest.fixture
def availability():
    return [TimeSlot("ann", MON, MON.replace(hour=17)), TimeSlot("bob", MON, MON.replace(hour=17))]


@pytest.fixture
def overloaded():
    """ann holds three low-priority tasks (95%), bob one task (40%)."""
    return [
        block("t1", "ann", 0, 152),
        block("t2", "ann", 152, 152),
        block("t3", "ann", 304, 152),
        block("u", "bob", 0, 192),
    ]


def make_graph(make_task, status=TaskStatus.PENDING, skills=()):
    return TaskGraph([
        make_task("t1", 152, priority=10, status=status, skills=list(skills)),
        make_task("t2", 152, priority=10, status=status, skills=list(skills)),
        make_task("t3", 152, priority=10, status=status, skills=list(skills)),
        make_task("u", 192, priority=90),
    ])


class TestRebalance:
    def test_moves_work_off_overloaded_actor(self, make_task, config, profile, availability, constraints, overloaded):
        result = CapacityOptimizer(config).optimize(
            overloaded, make_graph(make_task), [profile("ann"), profile("bob")], availability, constraints,
        )

        assert result.utilization_before["ann"] == pytest.approx(0.95)
        assert result.utilization_before["bob"] == pytest.approx(0.4)
        assert len(result.reassignments) >= 1
        assert result.reassignments[0].task_id == "t1"
        assert result.reassignments[0].to_actor == "bob"
        assert result.utilization_after["ann"] < 0.9
        assert result.utilization_after["bob"] <= 0.9
        assert result.converged
        assert result.error is None

    def test_new_generation_keeps_previous(self, make_task, config, profile, availability, constraints, overloaded):
        result = CapacityOptimizer(config).optimize(
            overloaded, make_graph(make_task), [profile("ann"), profile("bob")], availability, constraints,
        )
        assert result.generation == 2
        assert all(b.generation == 2 and b.block_id.startswith("g2-") for b in result.blocks)
        assert result.previous_blocks == overloaded

    def test_moved_block_avoids_existing_work(self, make_task, config, profile, availability, constraints, overloaded):
        result = CapacityOptimizer(config).optimize(
            overloaded, make_graph(make_task), [profile("ann"), profile("bob")], availability, constraints,
        )
        moved = next(b for b in result.blocks if b.task_id == "t1")
        assert moved.actor_id == "bob"
        assert moved.start == MON + timedelta(minutes=192)
        assert result.conflicts == []


class TestIncomplete:
    def test_in_progress_tasks_stay(self, make_task, config, profile, availability, constraints, overloaded):
        graph = make_graph(make_task, status=TaskStatus.IN_PROGRESS)
        result = CapacityOptimizer(config).optimize(
            overloaded, graph, [profile("ann"), profile("bob")], availability, constraints,
        )

        assert result.reassignments == []
        assert not result.converged
        assert isinstance(result.error, OptimizationIncompleteError)
        assert result.error.overallocated == {"ann": pytest.approx(0.95)}
        assert [c.kind.value for c in result.conflicts] == ["capacity_breach"]

    def test_skill_mismatch(self, make_task, config, profile, availability, constraints, overloaded):
        graph = make_graph(make_task, skills=("design",))
        profiles = [profile("ann", skills=("design",)), profile("bob")]
        result = CapacityOptimizer(config).optimize(overloaded, graph, profiles, availability, constraints)
        assert result.reassignments == []
        assert result.error is not None

    def test_iteration_cap(self, make_task, config, profile, availability, constraints, overloaded):
        config['capacity']['iteration_cap_multiplier'] = 0
        result = CapacityOptimizer(config).optimize(
            overloaded, make_graph(make_task), [profile("ann"), profile("bob")], availability, constraints,
        )
        assert result.iterations == 0
        assert "iteration cap" in result.error.details['reason']
