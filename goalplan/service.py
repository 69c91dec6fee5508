"""Request surface of the planning engine."""

import dataclasses
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .advisory import AdvisoryClient, AdvisoryGateway, AdvisoryResult
from .engine.conflicts import ConflictDetector
from .engine.optimizer import CapacityOptimizer, OptimizationResult
from .engine.scheduler import SchedulingConstraints, SchedulingResult, SlotScheduler, UnplacedTask
from .engine.session import SessionRegistry
from .errors import PlanningError
from .estimation.engine import EstimationEngine
from .graph.critical_path import CriticalPathAnalyzer
from .graph.task_graph import TaskGraph
from .models.capacity import PlanGeneration, ScheduledBlock
from .models.conflict import Conflict, ResolutionStatus
from .models.estimate import AccuracySample, Estimate, EstimationMethod
from .models.task import Task, TaskStatus
from .policies.base import SlotScoringPolicy
from .store import CalendarSource, TaskStore

logger = logging.getLogger(__name__)


@dataclass
class DependencyGraphView:
    """Nodes, edges and critical path of a milestone."""

    milestone_id: str
    nodes: List[Dict[str, Any]]
    edges: List[Dict[str, Any]]
    critical_path: List[str]
    critical_tasks: List[str]
    total_duration_minutes: int
    unestimated: List[str] = field(default_factory=list)
    parallel_tracks: List[Dict[str, Any]] = field(default_factory=list)
    metrics: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass
class ScheduleResponse:
    milestone_id: str
    generation: int
    scheduled_blocks: List[ScheduledBlock]
    unplaced_tasks: List[UnplacedTask]
    conflicts: List[Conflict]
    advisory: AdvisoryResult
    result: SchedulingResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            'milestone_id': self.milestone_id,
            'generation': self.generation,
            'scheduled_blocks': [
                {
                    'block_id': b.block_id,
                    'task_id': b.task_id,
                    'parent_task_id': b.parent_task_id,
                    'actor_id': b.actor_id,
                    'start': b.start.isoformat(),
                    'end': b.end.isoformat(),
                    'is_focus_time': b.is_focus_time,
                }
                for b in self.scheduled_blocks
            ],
            'unplaced_tasks': [u.to_dict() for u in self.unplaced_tasks],
            'conflicts': [c.to_dict() for c in self.conflicts],
            'advisory': self.advisory.to_dict(),
            'utilization': self.result.utilization(),
        }


class PlanningService:
    """Ties the store, calendar and engines together per milestone."""

    def __init__(
        self,
        store: TaskStore,
        calendar: CalendarSource,
        config: Optional[dict] = None,
        advisory_client: Optional[AdvisoryClient] = None,
        policy: Optional[SlotScoringPolicy] = None,
    ):
        self.store = store
        self.calendar = calendar
        self.config = config or {}
        self.sessions = SessionRegistry.from_config(self.config)
        self.estimation = EstimationEngine(self.config)
        self.analyzer = CriticalPathAnalyzer(self.config)
        self.scheduler = SlotScheduler(self.config, policy)
        self.optimizer = CapacityOptimizer(self.config, self.scheduler.skill_matcher)
        self.detector = ConflictDetector(self.config)
        self.advisory = AdvisoryGateway.from_config(self.config, advisory_client)
        self._constraints: Dict[str, SchedulingConstraints] = {}

    def generate_wbs(self, milestone_id: str) -> List[Task]:
        """Tasks of a milestone, parents before their children."""
        tasks = self.store.tasks(milestone_id)
        return sorted(tasks, key=lambda t: (t.parent_task_id is not None, t.task_id))

    def build_graph(self, milestone_id: str) -> TaskGraph:
        return TaskGraph(self.generate_wbs(milestone_id), self.store.dependencies(milestone_id))

    def compute_dependency_graph(self, milestone_id: str,
                                 deadline_minutes: Optional[int] = None) -> DependencyGraphView:
        graph = self.build_graph(milestone_id)
        analysis = self.analyzer.analyze(graph, deadline_minutes)
        return DependencyGraphView(
            milestone_id=milestone_id,
            nodes=[
                {
                    'task_id': t.task_id,
                    'title': t.title,
                    'estimated_minutes': analysis.timings[t.task_id].duration,
                    'priority': t.priority,
                    'earliest_start': analysis.timings[t.task_id].earliest_start,
                    'slack': analysis.timings[t.task_id].slack,
                    'is_critical': analysis.timings[t.task_id].is_critical,
                }
                for t in graph.topological_order()
            ],
            edges=[
                {
                    'from_task_id': d.predecessor_id,
                    'to_task_id': d.successor_id,
                    'dependency_type': d.kind.value,
                    'lag_minutes': d.lag_minutes,
                }
                for d in graph.dependencies
            ],
            critical_path=analysis.critical_path,
            critical_tasks=analysis.critical_tasks,
            total_duration_minutes=analysis.project_duration,
            unestimated=analysis.unestimated,
            parallel_tracks=[dataclasses.asdict(track) for track in analysis.parallel_tracks],
            metrics=analysis.metrics,
        )

    def estimate(self, task_id: str, method: Union[EstimationMethod, str],
                 params: Optional[Dict[str, Any]] = None) -> Estimate:
        """Estimate a task and store the rounded result as its duration."""
        task = self.store.get_task(task_id)
        params = dict(params or {})
        if method == EstimationMethod.ANALOGY and 'corpus' not in params:
            params['corpus'] = self.store.outcomes()
        estimate = self.estimation.estimate(task, method, params)
        self.store.save_task(dataclasses.replace(task, estimated_minutes=estimate.rounded_minutes()))
        return estimate

    def estimate_combined(
        self,
        task_id: str,
        requests: Mapping[Union[EstimationMethod, str], Optional[Dict[str, Any]]],
        confidence_level: float = 0.8,
    ) -> Estimate:
        """Estimate with several methods and store the combined result."""
        task = self.store.get_task(task_id)
        requests = {method: dict(params or {}) for method, params in requests.items()}
        for method, params in requests.items():
            if method == EstimationMethod.ANALOGY and 'corpus' not in params:
                params['corpus'] = self.store.outcomes()
        estimate = self.estimation.estimate_combined(task, requests, confidence_level)
        self.store.save_task(dataclasses.replace(task, estimated_minutes=estimate.rounded_minutes()))
        return estimate

    def schedule(self, milestone_id: str, constraints: SchedulingConstraints,
                 task_ids: Optional[List[str]] = None) -> ScheduleResponse:
        graph = self.build_graph(milestone_id)
        goal_id = self.store.goal_of(milestone_id)
        profiles = self.store.profiles()

        with self.sessions.acquire(goal_id) as session:
            availability = self.calendar.availability(
                [p.actor_id for p in profiles], constraints.window_start, constraints.window_end,
            )
            latest = session.latest(milestone_id)
            generation = session.next_generation(milestone_id)
            result = self.scheduler.schedule(
                graph, profiles, availability, constraints, task_ids, generation=generation,
                prior_blocks=latest.blocks if latest is not None else None,
            )
            plan = list(result.blocks)
            if task_ids is not None and latest is not None:
                # Tasks outside the scope keep their earlier blocks.
                scope = set(task_ids)
                plan = sorted(
                    plan + [b for b in latest.blocks if b.root_id not in scope],
                    key=lambda b: (b.start, b.actor_id, b.task_id),
                )
            conflicts = self.detector.detect(plan, graph, result.available_minutes, generation)
            session.record(milestone_id, plan, 'schedule', conflicts)
            self._constraints[milestone_id] = constraints

        advisory = self.advisory.advise(
            result.blocks, result.unplaced, conflicts, result.critical_path.critical_tasks,
        )
        return ScheduleResponse(
            milestone_id=milestone_id,
            generation=generation,
            scheduled_blocks=result.blocks,
            unplaced_tasks=result.unplaced,
            conflicts=conflicts,
            advisory=advisory,
            result=result,
        )

    def schedule_goals(
        self,
        requests: List[Tuple[str, SchedulingConstraints]],
        max_workers: Optional[int] = None,
    ) -> Dict[str, ScheduleResponse]:
        """Schedule several milestones in parallel.

        Milestones of the same goal still run one at a time.
        """
        if not requests:
            return {}
        with ThreadPoolExecutor(max_workers=max_workers or len(requests)) as pool:
            futures = {
                milestone_id: pool.submit(self.schedule, milestone_id, constraints)
                for milestone_id, constraints in requests
            }
            return {milestone_id: future.result() for milestone_id, future in futures.items()}

    def optimize_capacity(self, milestone_id: str) -> OptimizationResult:
        """Rebalance the latest generation into a new one."""
        graph = self.build_graph(milestone_id)
        goal_id = self.store.goal_of(milestone_id)
        profiles = self.store.profiles()

        with self.sessions.acquire(goal_id) as session:
            latest = session.latest(milestone_id)
            constraints = self._constraints.get(milestone_id)
            if latest is None or constraints is None:
                raise PlanningError(
                    f"Milestone {milestone_id} has no schedule to optimize",
                    details={'milestone_id': milestone_id},
                )
            availability = self.calendar.availability(
                [p.actor_id for p in profiles], constraints.window_start, constraints.window_end,
            )
            result = self.optimizer.optimize(
                latest.blocks, graph, profiles, availability, constraints,
                generation=session.next_generation(milestone_id),
            )
            session.record(milestone_id, result.blocks, 'optimize', result.conflicts)

        logger.info(
            "Optimized milestone %s: %d reassignments, converged=%s",
            milestone_id, len(result.reassignments), result.converged,
        )
        return result

    def resolve_conflict(self, milestone_id: str, conflict_id: str,
                         status: Union[ResolutionStatus, str] = ResolutionStatus.RESOLVED) -> Conflict:
        """Set the resolution status of a conflict in the latest generation."""
        goal_id = self.store.goal_of(milestone_id)
        with self.sessions.acquire(goal_id) as session:
            return session.set_conflict_status(milestone_id, conflict_id, ResolutionStatus(status))

    def record_completion(self, task_id: str, actual_minutes: int) -> Optional[AccuracySample]:
        """Mark a task done and feed its actual duration to estimation accuracy."""
        task = self.store.get_task(task_id)
        sample = self.estimation.record_actual(task_id, actual_minutes)
        self.store.save_task(dataclasses.replace(task, status=TaskStatus.DONE, actual_minutes=actual_minutes))
        return sample

    def generations(self, milestone_id: str) -> List[PlanGeneration]:
        return self.sessions.session(self.store.goal_of(milestone_id)).history(milestone_id)
