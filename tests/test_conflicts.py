"""Tests for conflict detection."""

from datetime import datetime, timedelta

import pytest

from goalplan.engine.conflicts import ConflictDetector, check_dependency
from goalplan.graph.task_graph import TaskGraph
from goalplan.models.capacity import ScheduledBlock
from goalplan.models.conflict import ConflictKind, ResolutionStatus
from goalplan.models.task import Dependency, DependencyKind

T0 = datetime(2025, 1, 6, 9, 0)


def block(task_id, actor_id, start_offset, minutes, parent=None):
    start = T0 + timedelta(minutes=start_offset)
    return ScheduledBlock(
        block_id=f"g1-{task_id}",
        task_id=task_id,
        actor_id=actor_id,
        start=start,
        end=start + timedelta(minutes=minutes),
        parent_task_id=parent,
    )


@pytest.fixture
def graph(make_task):
    graph = TaskGraph([make_task("a"), make_task("b")])
    graph.add_dependency("a", "b")
    return graph


class TestDetect:
    def test_clean_schedule(self, graph, config):
        blocks = [block("a", "ann", 0, 60), block("b", "ann", 60, 60)]
        assert ConflictDetector(config).detect(blocks, graph, {"ann": 480}) == []

    def test_overlap(self, graph, config):
        blocks = [block("x", "ann", 0, 120), block("y", "ann", 60, 120)]
        conflicts = ConflictDetector(config).detect(blocks, graph, {"ann": 480})

        assert len(conflicts) == 1
        assert conflicts[0].kind == ConflictKind.OVERLAP
        assert conflicts[0].task_ids == ("x", "y")
        assert conflicts[0].actor_id == "ann"
        assert conflicts[0].conflict_id == "g1-c1"
        assert conflicts[0].resolution_status == ResolutionStatus.PENDING

    def test_touching_blocks_do_not_overlap(self, graph, config):
        blocks = [block("x", "ann", 0, 60), block("y", "ann", 60, 60)]
        assert ConflictDetector(config).detect(blocks, graph, {"ann": 480}) == []

    def test_same_time_different_actors(self, graph, config):
        blocks = [block("x", "ann", 0, 60), block("y", "bob", 0, 60)]
        assert ConflictDetector(config).detect(blocks, graph, {"ann": 480, "bob": 480}) == []

    def test_dependency_violation(self, graph, config):
        blocks = [block("a", "ann", 60, 60), block("b", "bob", 0, 60)]
        conflicts = ConflictDetector(config).detect(blocks, graph, {"ann": 480, "bob": 480})

        assert [c.kind for c in conflicts] == [ConflictKind.DEPENDENCY_VIOLATION]
        assert conflicts[0].task_ids == ("a", "b")

    def test_fragments_checked_as_one_task(self, graph, config):
        blocks = [
            block("a#1", "ann", 0, 60, parent="a"),
            block("a#2", "ann", 120, 60, parent="a"),
            block("b", "bob", 90, 30),
        ]
        conflicts = ConflictDetector(config).detect(blocks, graph, {"ann": 480, "bob": 480})
        assert [c.kind for c in conflicts] == [ConflictKind.DEPENDENCY_VIOLATION]

    def test_capacity_breach(self, graph, config):
        blocks = [block("x", "ann", 0, 120)]
        conflicts = ConflictDetector(config).detect(blocks, graph, {"ann": 100}, generation=3)

        assert [c.kind for c in conflicts] == [ConflictKind.CAPACITY_BREACH]
        assert conflicts[0].conflict_id == "g3-c1"
        assert conflicts[0].generation == 3

    def test_ceiling_from_config(self, graph, config):
        config['capacity']['utilization_ceiling'] = 0.5
        blocks = [block("x", "ann", 0, 300)]
        conflicts = ConflictDetector(config).detect(blocks, graph, {"ann": 480})
        assert [c.kind for c in conflicts] == [ConflictKind.CAPACITY_BREACH]


class TestCheckDependency:
    @pytest.mark.parametrize("kind,lag,pred,succ,ok", [
        (DependencyKind.FINISH_TO_START, 0, (0, 60), (60, 120), True),
        (DependencyKind.FINISH_TO_START, 30, (0, 60), (60, 120), False),
        (DependencyKind.START_TO_START, 0, (0, 60), (0, 30), True),
        (DependencyKind.FINISH_TO_FINISH, 0, (0, 60), (0, 50), False),
        (DependencyKind.START_TO_FINISH, 0, (30, 60), (0, 30), True),
    ])
    def test_kinds(self, kind, lag, pred, succ, ok):
        window = lambda pair: (T0 + timedelta(minutes=pair[0]), T0 + timedelta(minutes=pair[1]))
        dep = Dependency("p", "s", kind, lag)
        assert (check_dependency(dep, window(pred), window(succ)) is None) == ok
