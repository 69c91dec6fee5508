"""Tests for the planning service request surface."""

import pytest

from goalplan.advisory import Fallback
from goalplan.engine.scheduler import SchedulingConstraints
from goalplan.errors import InfeasibleDeadlineError, PlanningError, UnknownConflictError, UnknownTaskError
from goalplan.models.conflict import ConflictKind, ResolutionStatus
from goalplan.models.estimate import EstimationMethod
from goalplan.models.task import Dependency, TaskStatus
from goalplan.service import PlanningService
from goalplan.store import InMemoryTaskStore, StaticCalendar


@pytest.fixture
def store(make_task, profile):
    tasks = [
        make_task("A", 240),
        make_task("B", 480),
        make_task("C", 120),
        make_task("X", 60, milestone_id="m2"),
    ]
    return InMemoryTaskStore(
        tasks,
        [Dependency("A", "B"), Dependency("A", "C")],
        [profile("ann")],
        milestone_goals={"m1": "goal-1", "m2": "goal-2"},
    )


@pytest.fixture
def service(store, workdays, config):
    return PlanningService(store, StaticCalendar(workdays("ann")), config)


class TestGraphAndEstimates:
    def test_generate_wbs(self, service):
        assert [t.task_id for t in service.generate_wbs("m1")] == ["A", "B", "C"]

    def test_dependency_graph_view(self, service):
        view = service.compute_dependency_graph("m1")
        assert view.critical_path == ["A", "B"]
        assert view.total_duration_minutes == 720
        assert len(view.edges) == 2
        assert view.to_dict()['nodes'][0]['task_id'] == "A"

    def test_infeasible_deadline(self, service):
        with pytest.raises(InfeasibleDeadlineError) as excinfo:
            service.compute_dependency_graph("m1", deadline_minutes=600)
        assert excinfo.value.earliest_completion == 720

    def test_estimate_updates_task(self, service, store):
        estimate = service.estimate("C", "pert", {'optimistic': 4, 'most_likely': 8, 'pessimistic': 16})
        assert estimate.expected_minutes == pytest.approx(8.6667, rel=1e-4)
        assert store.get_task("C").estimated_minutes == 9

    def test_estimate_unknown_task(self, service):
        with pytest.raises(UnknownTaskError):
            service.estimate("nope", "expert", {'duration_minutes': 10})


class TestSchedule:
    def test_schedule_places_everything(self, service, one_week):
        response = service.schedule("m1", one_week)

        assert response.generation == 1
        assert response.unplaced_tasks == []
        assert response.conflicts == []
        assert {b.root_id for b in response.scheduled_blocks} == {"A", "B", "C"}
        assert isinstance(response.advisory, Fallback)
        assert response.to_dict()['advisory']['source'] == "fallback"

    def test_each_pass_is_a_new_generation(self, service, one_week):
        service.schedule("m1", one_week)
        second = service.schedule("m1", one_week)
        assert second.generation == 2
        assert second.scheduled_blocks[0].block_id.startswith("g2-")
        assert len(service.generations("m1")) == 2

    def test_schedule_goals_in_parallel(self, service, one_week):
        responses = service.schedule_goals([("m1", one_week), ("m2", one_week)])
        assert set(responses) == {"m1", "m2"}
        assert [b.task_id for b in responses["m2"].scheduled_blocks] == ["X"]

    def test_repeat_pass_places_identical_blocks(self, service, one_week):
        first = service.schedule("m1", one_week)
        second = service.schedule("m1", one_week)
        assert second.scheduled_blocks == first.scheduled_blocks
        assert second.scheduled_blocks[0].block_id != first.scheduled_blocks[0].block_id

    def test_scoped_pass_without_plan_waits_for_predecessor(self, service, one_week):
        response = service.schedule("m1", one_week, task_ids=["C"])
        assert response.scheduled_blocks == []
        assert [(u.task_id, u.constraint) for u in response.unplaced_tasks] == [("C", "dependency_block")]

    def test_scoped_pass_keeps_other_blocks(self, service, one_week):
        first = service.schedule("m1", one_week)
        a_end = max(b.end for b in first.scheduled_blocks if b.root_id == "A")

        response = service.schedule("m1", one_week, task_ids=["C"])

        assert {b.root_id for b in response.scheduled_blocks} == {"C"}
        assert min(b.start for b in response.scheduled_blocks) >= a_end
        assert response.conflicts == []
        latest = service.generations("m1")[-1]
        assert latest.number == 2
        assert {b.root_id for b in latest.blocks} == {"A", "B", "C"}

    def test_optimize_requires_schedule(self, service):
        with pytest.raises(PlanningError):
            service.optimize_capacity("m1")

    def test_optimize_after_schedule(self, service, one_week):
        service.schedule("m1", one_week)
        result = service.optimize_capacity("m1")
        assert result.converged
        assert result.generation == 2
        assert [g.origin for g in service.generations("m1")] == ["schedule", "optimize"]


class TestCompletion:
    def test_record_completion(self, service, store):
        service.estimate("C", "expert", {'duration_minutes': 100})
        sample = service.record_completion("C", 125)

        assert sample.absolute_percentage_error == pytest.approx(0.2)
        assert store.get_task("C").status == TaskStatus.DONE
        assert [o.task_id for o in store.outcomes()] == ["C"]

    def test_completion_without_estimate(self, service, store):
        assert service.record_completion("A", 200) is None
        assert store.get_task("A").actual_minutes == 200

    def test_outcomes_feed_analogy(self, service):
        service.record_completion("A", 200)
        estimate = service.estimate("C", "analogy", {'similarity': lambda task, past: 1.0})
        assert estimate.expected_minutes == pytest.approx(200.0)
        assert estimate.source_task_ids == ("A",)

    def test_repeated_completion_keeps_one_outcome(self, service, store):
        service.estimate("C", "expert", {'duration_minutes': 100})
        service.record_completion("C", 125)
        service.record_completion("C", 150)
        service.estimate("C", "expert", {'duration_minutes': 100})

        assert [(o.task_id, o.actual_minutes) for o in store.outcomes()] == [("C", 150)]
        assert service.estimation.accuracy_report()['expert']['samples'] == 1

    def test_combined_estimate_uses_history(self, service, store):
        service.record_completion("A", 200)

        estimate = service.estimate_combined("C", {
            'expert': {'duration_minutes': 100, 'confidence': 0.95},
            'analogy': {'similarity': lambda task, past: 1.0},
        })

        assert estimate.method == EstimationMethod.COMBINED
        assert estimate.expected_minutes == pytest.approx(150.0)
        assert store.get_task("C").estimated_minutes == estimate.rounded_minutes()


class TestConflictResolution:
    @pytest.fixture
    def full_day(self, make_task, profile, workdays, config, monday):
        store = InMemoryTaskStore([make_task("Z", 480)], [], [profile("ann")])
        service = PlanningService(store, StaticCalendar(workdays("ann")), config)
        constraints = SchedulingConstraints(window_start=monday, window_end=monday.replace(hour=17))
        return service, service.schedule("m1", constraints)

    def test_resolve_updates_latest_generation(self, full_day):
        service, response = full_day
        assert [(c.conflict_id, c.kind) for c in response.conflicts] == [("g1-c1", ConflictKind.CAPACITY_BREACH)]

        updated = service.resolve_conflict("m1", "g1-c1", "ignored")

        assert updated.resolution_status == ResolutionStatus.IGNORED
        assert service.generations("m1")[-1].conflicts == [updated]
        assert response.conflicts[0].resolution_status == ResolutionStatus.PENDING

    def test_unknown_conflict(self, full_day):
        service, _ = full_day
        with pytest.raises(UnknownConflictError):
            service.resolve_conflict("m1", "g1-c9")
