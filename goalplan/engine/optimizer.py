"""Capacity-aware rebalancing of scheduled work across actors."""

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from ..errors import OptimizationIncompleteError, UnknownTaskError
from ..graph.critical_path import CriticalPathAnalyzer, CriticalPathResult
from ..graph.task_graph import TaskGraph
from ..models.capacity import CapacityProfile, ScheduledBlock, TimeSlot
from ..models.conflict import Conflict
from ..models.task import Task
from .calendar import ActorCalendar, compute_utilization, task_windows
from .conflicts import ConflictDetector, find_dependency_violations
from .scheduler import SchedulingConstraints, SkillMatcher, dependency_start_bound, skills_match

logger = logging.getLogger(__name__)


@dataclass
class Reassignment:
    """A task moved from one actor to another."""

    task_id: str
    from_actor: str
    to_actor: str
    old_start: datetime
    new_start: datetime
    minutes: int

    def to_dict(self) -> dict:
        return {
            'task_id': self.task_id,
            'from_actor': self.from_actor,
            'to_actor': self.to_actor,
            'old_start': self.old_start.isoformat(),
            'new_start': self.new_start.isoformat(),
            'minutes': self.minutes,
        }


@dataclass
class OptimizationResult:
    """New block generation plus before/after utilization."""

    generation: int
    blocks: List[ScheduledBlock]
    previous_blocks: List[ScheduledBlock]
    reassignments: List[Reassignment]
    utilization_before: Dict[str, float]
    utilization_after: Dict[str, float]
    iterations: int
    converged: bool
    conflicts: List[Conflict] = field(default_factory=list)
    error: Optional[OptimizationIncompleteError] = None


class CapacityOptimizer:
    """Greedy reassignment of low-priority, non-critical work.

    Overallocated actors are visited in descending utilization. The least
    critical movable task of the first actor that has one is moved to the
    least utilized compatible actor, and utilization is recomputed. The loop
    ends when no actor is above the ceiling, when nothing can move, or at
    the iteration cap.
    """

    def __init__(self, config: Optional[dict] = None, skill_matcher: SkillMatcher = skills_match):
        self.config = config or {}
        capacity = self.config.get('capacity', {})
        self.utilization_ceiling = capacity.get('utilization_ceiling', 0.9)
        self.iteration_cap_multiplier = capacity.get('iteration_cap_multiplier', 3)
        self.skill_matcher = skill_matcher
        self.detector = ConflictDetector(self.config)

    def optimize(
        self,
        blocks: List[ScheduledBlock],
        graph: TaskGraph,
        profiles: Iterable[CapacityProfile],
        availability: Iterable[TimeSlot],
        constraints: SchedulingConstraints,
        critical_path: Optional[CriticalPathResult] = None,
        generation: Optional[int] = None,
    ) -> OptimizationResult:
        profiles = {p.actor_id: p for p in profiles}
        availability = list(availability)
        if generation is None:
            generation = max((b.generation for b in blocks), default=0) + 1
        if critical_path is None:
            critical_path = CriticalPathAnalyzer(self.config).analyze(graph)

        available = {
            actor_id: ActorCalendar.build(
                profile, availability, constraints.window_start, constraints.window_end, constraints.working_days,
            ).available_minutes
            for actor_id, profile in profiles.items()
        }

        current = list(blocks)
        before = compute_utilization(current, available)
        reassignments: List[Reassignment] = []
        cap = self.iteration_cap_multiplier * max(1, len({b.root_id for b in blocks}))
        iterations = 0
        reason = None

        while True:
            utilization = compute_utilization(current, available)
            over = sorted(
                (a for a, u in utilization.items() if u > self.utilization_ceiling),
                key=lambda a: (-utilization[a], a),
            )
            if not over:
                break
            if iterations >= cap:
                reason = f"iteration cap of {cap} reached"
                break

            move = None
            for actor_id in over:
                move = self._find_move(
                    actor_id, current, graph, profiles, availability, constraints,
                    available, utilization, critical_path, generation,
                )
                if move is not None:
                    break
            if move is None:
                reason = "no movable task fits a compatible actor"
                break

            current, reassignment = move
            reassignments.append(reassignment)
            iterations += 1
            logger.info(
                "Moved %s from %s to %s (%d min)",
                reassignment.task_id, reassignment.from_actor, reassignment.to_actor, reassignment.minutes,
            )

        final = [
            dataclasses.replace(b, generation=generation, block_id=f"g{generation}-{b.task_id}")
            for b in sorted(current, key=lambda b: (b.start, b.actor_id, b.task_id))
        ]
        after = compute_utilization(final, available)
        conflicts = self.detector.detect(final, graph, available, generation)

        error = None
        if reason is not None:
            overallocated = {a: u for a, u in after.items() if u > self.utilization_ceiling}
            error = OptimizationIncompleteError(iterations, overallocated, reason)
            logger.warning("Capacity optimization incomplete: %s", error.message)

        return OptimizationResult(
            generation=generation,
            blocks=final,
            previous_blocks=list(blocks),
            reassignments=reassignments,
            utilization_before=before,
            utilization_after=after,
            iterations=iterations,
            converged=reason is None,
            conflicts=conflicts,
            error=error,
        )

    def _movable_tasks(
        self,
        actor_id: str,
        blocks: List[ScheduledBlock],
        graph: TaskGraph,
        critical_path: CriticalPathResult,
    ) -> List[Task]:
        candidates = []
        for root_id in sorted({b.root_id for b in blocks if b.actor_id == actor_id}):
            try:
                task = graph.get_task(root_id)
            except UnknownTaskError:
                continue
            if task.is_immovable() or critical_path.is_critical(root_id):
                continue
            candidates.append(task)
        return sorted(candidates, key=lambda t: (t.priority, -critical_path.slack(t.task_id), t.task_id))

    def _find_move(
        self,
        actor_id: str,
        blocks: List[ScheduledBlock],
        graph: TaskGraph,
        profiles: Dict[str, CapacityProfile],
        availability: List[TimeSlot],
        constraints: SchedulingConstraints,
        available: Dict[str, int],
        utilization: Dict[str, float],
        critical_path: CriticalPathResult,
        generation: int,
    ) -> Optional[Tuple[List[ScheduledBlock], Reassignment]]:
        targets = sorted(
            (a for a in profiles if a != actor_id and utilization.get(a, 0.0) < self.utilization_ceiling),
            key=lambda a: (utilization.get(a, 0.0), a),
        )
        for task in self._movable_tasks(actor_id, blocks, graph, critical_path):
            own = sorted((b for b in blocks if b.root_id == task.task_id), key=lambda b: b.start)
            others = [b for b in blocks if b.root_id != task.task_id]
            for target in targets:
                if not self.skill_matcher(task, profiles[target]):
                    continue
                moved = self._place_on(task, own, others, target, graph, profiles[target], availability, constraints, generation)
                if moved is None:
                    continue
                candidate = others + moved
                after = compute_utilization(candidate, available)
                if after.get(target, 0.0) > self.utilization_ceiling:
                    continue
                if find_dependency_violations(candidate, graph, {task.task_id}):
                    continue
                return candidate, Reassignment(
                    task_id=task.task_id,
                    from_actor=actor_id,
                    to_actor=target,
                    old_start=own[0].start,
                    new_start=moved[0].start,
                    minutes=sum(b.minutes for b in own),
                )
        return None

    def _place_on(
        self,
        task: Task,
        own: List[ScheduledBlock],
        others: List[ScheduledBlock],
        target: str,
        graph: TaskGraph,
        profile: CapacityProfile,
        availability: List[TimeSlot],
        constraints: SchedulingConstraints,
        generation: int,
    ) -> Optional[List[ScheduledBlock]]:
        """Earliest-fit placement of a task's blocks on the target's free time."""
        calendar = ActorCalendar.build(
            profile, availability, constraints.window_start, constraints.window_end, constraints.working_days,
        )
        for block in others:
            if block.actor_id == target:
                calendar.reserve(block.start, block.end)

        duration = sum(b.minutes for b in own)
        windows = task_windows(others)
        cursor = constraints.window_start
        for dep in graph.predecessors(task.task_id):
            if dep.predecessor_id in windows:
                cursor = max(cursor, dependency_start_bound(dep, windows[dep.predecessor_id], duration))

        min_focus = constraints.min_focus_minutes
        if min_focus is None:
            min_focus = profile.min_focus_minutes

        moved = []
        for block in own:
            found = calendar.candidates(cursor, block.minutes, min_focus)
            if not found:
                return None
            start, end = found[0]
            calendar.reserve(start, end)
            moved.append(dataclasses.replace(
                block,
                actor_id=target,
                start=start,
                end=end,
                generation=generation,
                block_id=f"g{generation}-{block.task_id}",
            ))
            cursor = end
        return moved
