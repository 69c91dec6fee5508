"""Critical path analysis over a task graph.

Times are minutes of work measured from the project start. The forward
pass yields earliest start/finish, the backward pass latest start/finish
from the project end (or an explicit deadline), and slack is the
difference between the two starts.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..errors import InfeasibleDeadlineError
from ..models.task import Dependency, DependencyKind, Task
from .task_graph import TaskGraph

logger = logging.getLogger(__name__)


@dataclass
class TaskTiming:
    """CPM results for one task."""

    task_id: str
    duration: int
    earliest_start: int = 0
    earliest_finish: int = 0
    latest_start: int = 0
    latest_finish: int = 0
    slack: int = 0
    is_critical: bool = False


@dataclass
class ParallelTrack:
    """Tasks with no direct dependency whose early windows overlap."""

    track_id: str
    task_ids: List[str]
    duration_minutes: int
    skills: List[str]
    can_run_in_parallel: bool


@dataclass
class CriticalPathResult:
    """Outcome of a forward and backward pass."""

    timings: Dict[str, TaskTiming]
    critical_path: List[str]
    critical_tasks: List[str]
    project_duration: int
    horizon: int
    deadline: Optional[int] = None
    unestimated: List[str] = field(default_factory=list)
    parallel_tracks: List[ParallelTrack] = field(default_factory=list)
    metrics: Dict[str, float] = field(default_factory=dict)

    @property
    def project_float(self) -> int:
        return self.horizon - self.project_duration

    def is_critical(self, task_id: str) -> bool:
        timing = self.timings.get(task_id)
        return bool(timing and timing.is_critical)

    def slack(self, task_id: str) -> float:
        timing = self.timings.get(task_id)
        return float(timing.slack) if timing else 0.0

    def urgency(self, task_id: str) -> float:
        """1.0 on the critical path, falling linearly to 0.0 at the largest slack."""
        timing = self.timings.get(task_id)
        if timing is None:
            return 0.0
        relative = timing.slack - self.project_float
        max_relative = max((t.slack for t in self.timings.values()), default=0) - self.project_float
        if relative <= 0 or max_relative <= 0:
            return 1.0
        return max(0.0, 1.0 - relative / max_relative)


def _start_bound(dep: Dependency, pred: TaskTiming, duration: int) -> int:
    """Earliest start a dependency allows its successor."""
    if dep.kind == DependencyKind.FINISH_TO_START:
        return pred.earliest_finish + dep.lag_minutes
    if dep.kind == DependencyKind.START_TO_START:
        return pred.earliest_start + dep.lag_minutes
    if dep.kind == DependencyKind.FINISH_TO_FINISH:
        return pred.earliest_finish + dep.lag_minutes - duration
    return pred.earliest_start + dep.lag_minutes - duration


def _finish_bound(dep: Dependency, succ: TaskTiming, duration: int) -> int:
    """Latest finish a dependency allows its predecessor."""
    if dep.kind == DependencyKind.FINISH_TO_START:
        return succ.latest_start - dep.lag_minutes
    if dep.kind == DependencyKind.START_TO_START:
        return succ.latest_start - dep.lag_minutes + duration
    if dep.kind == DependencyKind.FINISH_TO_FINISH:
        return succ.latest_finish - dep.lag_minutes
    return succ.latest_finish - dep.lag_minutes + duration


class CriticalPathAnalyzer:
    """Computes slack and the primary critical path of a task graph."""

    TIE_BREAKS = ('earliest_task_id', 'fewest_tasks')

    def __init__(self, config: Optional[dict] = None):
        config = config or {}
        cp_config = config.get('critical_path', {})
        self.tie_break = cp_config.get('tie_break', 'earliest_task_id')
        if self.tie_break not in self.TIE_BREAKS:
            raise ValueError(f"Unknown critical path tie-break: {self.tie_break}")
        self.buffer_percentage = cp_config.get('buffer_percentage', 20)
        self.default_minutes = config.get('scheduling', {}).get('default_task_minutes', 60)

    def analyze(
        self,
        graph: TaskGraph,
        deadline_minutes: Optional[int] = None,
        durations: Optional[Dict[str, int]] = None,
    ) -> CriticalPathResult:
        """Run forward and backward passes.

        Raises InfeasibleDeadlineError when the earliest completion falls
        after ``deadline_minutes``.
        """
        order = graph.topological_order()
        durations = dict(durations or {})
        unestimated = []
        for task in order:
            if task.task_id not in durations:
                if task.estimated_minutes is None:
                    unestimated.append(task.task_id)
                durations[task.task_id] = task.get_duration(self.default_minutes)

        timings = {t.task_id: TaskTiming(t.task_id, durations[t.task_id]) for t in order}
        project_duration = self._forward_pass(graph, order, timings)

        horizon = project_duration
        if deadline_minutes is not None and deadline_minutes >= project_duration:
            horizon = deadline_minutes
        self._backward_pass(graph, order, timings, horizon)

        critical_tasks = [t.task_id for t in order if timings[t.task_id].is_critical]
        critical_path = self._primary_path(graph, order, timings)

        if deadline_minutes is not None and project_duration > deadline_minutes:
            logger.info(
                "Deadline infeasible: earliest completion %d min, deadline %d min",
                project_duration, deadline_minutes,
            )
            raise InfeasibleDeadlineError(project_duration, deadline_minutes, critical_path)

        result = CriticalPathResult(
            timings=timings,
            critical_path=critical_path,
            critical_tasks=sorted(critical_tasks),
            project_duration=project_duration,
            horizon=horizon,
            deadline=deadline_minutes,
            unestimated=sorted(unestimated),
        )
        result.parallel_tracks = self._parallel_tracks(graph, order, timings)
        result.metrics = self._metrics(result)

        logger.debug(
            "Critical path analysis: %d tasks, duration %d min, path %s",
            len(order), project_duration, critical_path,
        )
        return result

    def _forward_pass(self, graph: TaskGraph, order: List[Task], timings: Dict[str, TaskTiming]) -> int:
        project_duration = 0
        for task in order:
            timing = timings[task.task_id]
            earliest = 0
            for dep in graph.predecessors(task.task_id):
                earliest = max(earliest, _start_bound(dep, timings[dep.predecessor_id], timing.duration))
            timing.earliest_start = earliest
            timing.earliest_finish = earliest + timing.duration
            project_duration = max(project_duration, timing.earliest_finish)
        return project_duration

    def _backward_pass(
        self,
        graph: TaskGraph,
        order: List[Task],
        timings: Dict[str, TaskTiming],
        horizon: int,
    ) -> None:
        project_float = horizon - max((t.earliest_finish for t in timings.values()), default=0)
        for task in reversed(order):
            timing = timings[task.task_id]
            latest = horizon
            for dep in graph.successors(task.task_id):
                latest = min(latest, _finish_bound(dep, timings[dep.successor_id], timing.duration))
            timing.latest_finish = latest
            timing.latest_start = latest - timing.duration
            timing.slack = timing.latest_start - timing.earliest_start
            timing.is_critical = timing.slack <= project_float

    def _primary_path(self, graph: TaskGraph, order: List[Task], timings: Dict[str, TaskTiming]) -> List[str]:
        """Longest chain of critical tasks joined by driving edges.

        Ties go to the highest cumulative priority, then to the configured
        tie-break.
        """
        best: Dict[str, Tuple[List[str], int]] = {}
        for task in order:
            timing = timings[task.task_id]
            if not timing.is_critical:
                continue
            candidates = [([task.task_id], task.priority)]
            for dep in graph.predecessors(task.task_id):
                pred = timings[dep.predecessor_id]
                driving = _start_bound(dep, pred, timing.duration) == timing.earliest_start
                if pred.is_critical and driving and dep.predecessor_id in best:
                    ids, priority = best[dep.predecessor_id]
                    candidates.append((ids + [task.task_id], priority + task.priority))
            best[task.task_id] = min(candidates, key=lambda c: self._chain_key(c, timings))

        if not best:
            return []
        ids, _ = min(best.values(), key=lambda c: self._chain_key(c, timings))
        return ids

    def _chain_key(self, chain: Tuple[List[str], int], timings: Dict[str, TaskTiming]):
        ids, priority = chain
        span = timings[ids[-1]].earliest_finish - timings[ids[0]].earliest_start
        if self.tie_break == 'fewest_tasks':
            return (-span, -priority, len(ids), ids)
        return (-span, -priority, ids)

    def _parallel_tracks(self, graph: TaskGraph, order: List[Task], timings: Dict[str, TaskTiming]) -> List[ParallelTrack]:
        tracks: List[ParallelTrack] = []
        processed = set()
        task_ids = sorted(timings)

        for task_id in task_ids:
            if task_id in processed:
                continue
            members = [task_id]
            for other_id in task_ids:
                if other_id == task_id or other_id in processed:
                    continue
                if self._directly_linked(graph, task_id, other_id):
                    continue
                if self._windows_overlap(timings[task_id], timings[other_id]):
                    members.append(other_id)
            if len(members) < 2:
                continue

            processed.update(members)
            skill_owners: Dict[str, int] = {}
            for member in members:
                for skill in graph.get_task(member).skills:
                    skill_owners[skill] = skill_owners.get(skill, 0) + 1
            tracks.append(ParallelTrack(
                track_id=f"track-{len(tracks) + 1}",
                task_ids=members,
                duration_minutes=max(timings[m].duration for m in members),
                skills=sorted(skill_owners),
                can_run_in_parallel=all(count == 1 for count in skill_owners.values()),
            ))
        return tracks

    @staticmethod
    def _directly_linked(graph: TaskGraph, a: str, b: str) -> bool:
        return any(d.successor_id == b for d in graph.successors(a)) or \
            any(d.successor_id == a for d in graph.successors(b))

    @staticmethod
    def _windows_overlap(a: TaskTiming, b: TaskTiming) -> bool:
        return a.earliest_start < b.earliest_finish and b.earliest_start < a.earliest_finish

    def _metrics(self, result: CriticalPathResult) -> Dict[str, float]:
        parallelizable = sum(
            track.duration_minutes * (len(track.task_ids) - 1)
            for track in result.parallel_tracks
            if track.can_run_in_parallel
        )
        return {
            'total_tasks': len(result.timings),
            'critical_tasks': len(result.critical_tasks),
            'sequential_minutes': result.project_duration,
            'parallelizable_minutes': parallelizable,
            'buffer_minutes': result.project_duration * self.buffer_percentage / 100.0,
        }
