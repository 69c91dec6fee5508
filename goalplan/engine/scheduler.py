"""Core slot scheduling engine."""

import dataclasses
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Generator, Iterable, List, Optional, Tuple

from ..graph.critical_path import CriticalPathAnalyzer, CriticalPathResult
from ..graph.task_graph import TaskGraph
from ..models.capacity import CapacityProfile, ScheduledBlock, TimeSlot
from ..models.task import Dependency, DependencyKind, Task, TaskStatus
from ..models.trace import DecisionTrace, SchedulingDecision, TaskFeatures
from ..policies.base import SlotCandidate, SlotScoringPolicy
from ..policies.weighted import WeightedSlotPolicy
from .calendar import ActorCalendar, compute_utilization, scheduled_minutes, task_windows
from .splitting import check_split, split_task

logger = logging.getLogger(__name__)

SkillMatcher = Callable[[Task, CapacityProfile], bool]


def skills_match(task: Task, profile: CapacityProfile) -> bool:
    """Default compatibility: the actor has every skill the task lists."""
    return set(task.skills) <= set(profile.skills)


class PlacementState(str, Enum):
    UNSCHEDULED = "unscheduled"
    PLACED = "placed"
    SPLIT = "split"
    CONFIRMED = "confirmed"
    UNPLACED = "unplaced"


@dataclass
class SchedulingConstraints:
    """Window and limits of one scheduling pass."""

    window_start: datetime
    window_end: datetime
    max_block_minutes: int = 120
    min_focus_minutes: Optional[int] = None
    default_task_minutes: int = 60
    default_actor: Optional[str] = None
    working_days: List[int] = field(default_factory=lambda: [0, 1, 2, 3, 4])

    def __post_init__(self):
        if self.window_end <= self.window_start:
            raise ValueError("window_end must be after window_start")
        if self.max_block_minutes <= 0:
            raise ValueError("max_block_minutes must be positive")

    @classmethod
    def from_config(
        cls,
        config: dict,
        window_start: datetime,
        window_end: Optional[datetime] = None,
        **overrides,
    ) -> 'SchedulingConstraints':
        sched = config.get('scheduling', {})
        if window_end is None:
            window_end = window_start + timedelta(days=sched.get('planning_horizon_days', 14))
        values = {
            'window_start': window_start,
            'window_end': window_end,
            'max_block_minutes': sched.get('max_block_minutes', 120),
            'min_focus_minutes': sched.get('min_focus_minutes'),
            'default_task_minutes': sched.get('default_task_minutes', 60),
            'working_days': list(sched.get('working_days', [0, 1, 2, 3, 4])),
        }
        values.update(overrides)
        return cls(**values)


@dataclass
class UnplacedTask:
    """A task the pass could not place, with the reason."""

    task_id: str
    reason: str
    constraint: str
    earliest_start: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            'task_id': self.task_id,
            'reason': self.reason,
            'constraint': self.constraint,
            'earliest_start': self.earliest_start.isoformat() if self.earliest_start else None,
        }


@dataclass
class SchedulingResult:
    """Blocks, shortfalls and bookkeeping of one scheduling pass."""

    generation: int
    blocks: List[ScheduledBlock]
    unplaced: List[UnplacedTask]
    fragments: Dict[str, List[Task]]
    states: Dict[str, PlacementState]
    available_minutes: Dict[str, int]
    critical_path: Optional[CriticalPathResult]
    trace: DecisionTrace

    def blocks_for(self, task_id: str) -> List[ScheduledBlock]:
        """Blocks of a task, including those of its fragments."""
        return [b for b in self.blocks if b.task_id == task_id or b.parent_task_id == task_id]

    def utilization(self) -> Dict[str, float]:
        return compute_utilization(self.blocks, self.available_minutes)


def dependency_start_bound(
    dep: Dependency,
    pred_window: Tuple[datetime, datetime],
    duration_minutes: int,
) -> datetime:
    """Earliest start a placed predecessor allows its successor."""
    pred_start, pred_end = pred_window
    lag = timedelta(minutes=dep.lag_minutes)
    duration = timedelta(minutes=duration_minutes)
    if dep.kind == DependencyKind.FINISH_TO_START:
        return pred_end + lag
    if dep.kind == DependencyKind.START_TO_START:
        return pred_start + lag
    if dep.kind == DependencyKind.FINISH_TO_FINISH:
        return pred_end + lag - duration
    return pred_start + lag - duration


class SlotScheduler:
    """Scores free slots and places tasks in dependency order."""

    def __init__(self, config: Optional[dict] = None, policy: Optional[SlotScoringPolicy] = None,
                 skill_matcher: SkillMatcher = skills_match):
        """Initialize scheduler with configuration and a scoring policy."""
        self.config = config or {}
        self.policy = policy or WeightedSlotPolicy(self.config)
        self.skill_matcher = skill_matcher

    def schedule(
        self,
        graph: TaskGraph,
        profiles: Iterable[CapacityProfile],
        availability: Iterable[TimeSlot],
        constraints: SchedulingConstraints,
        task_ids: Optional[Iterable[str]] = None,
        critical_path: Optional[CriticalPathResult] = None,
        generation: int = 1,
        prior_blocks: Optional[Iterable[ScheduledBlock]] = None,
    ) -> SchedulingResult:
        """Run a full pass and return its result."""
        runner = self.iter_decisions(
            graph, profiles, availability, constraints, task_ids, critical_path, generation, prior_blocks,
        )
        while True:
            try:
                next(runner)
            except StopIteration as done:
                return done.value

    def iter_decisions(
        self,
        graph: TaskGraph,
        profiles: Iterable[CapacityProfile],
        availability: Iterable[TimeSlot],
        constraints: SchedulingConstraints,
        task_ids: Optional[Iterable[str]] = None,
        critical_path: Optional[CriticalPathResult] = None,
        generation: int = 1,
        prior_blocks: Optional[Iterable[ScheduledBlock]] = None,
    ) -> Generator[SchedulingDecision, None, SchedulingResult]:
        """Yield each task's decision as it is made.

        The generator's return value is the SchedulingResult. Closing the
        generator early cancels the pass without side effects.

        ``prior_blocks`` are blocks of an earlier generation. They bound
        in-scope successors of tasks outside ``task_ids``; a predecessor
        that is neither done, placed in this pass nor in ``prior_blocks``
        blocks its successor.
        """
        snapshot = graph.snapshot()
        scope = set(task_ids) if task_ids is not None else {t.task_id for t in snapshot.tasks}
        for task_id in sorted(scope):
            snapshot.get_task(task_id)
        if critical_path is None:
            critical_path = CriticalPathAnalyzer(self.config).analyze(snapshot)

        profiles = {p.actor_id: p for p in profiles}
        availability = list(availability)
        calendars = {
            actor_id: ActorCalendar.build(
                profile, availability, constraints.window_start, constraints.window_end, constraints.working_days,
            )
            for actor_id, profile in sorted(profiles.items())
        }
        kept = [b for b in (prior_blocks or ()) if b.root_id not in scope]
        available = {actor_id: cal.available_minutes for actor_id, cal in calendars.items()}
        # Kept blocks still occupy their actors.
        for block in kept:
            if block.actor_id in calendars:
                calendars[block.actor_id].reserve(block.start, block.end)

        blocks: List[ScheduledBlock] = []
        unplaced: List[UnplacedTask] = []
        fragments: Dict[str, List[Task]] = {}
        states: Dict[str, PlacementState] = {}
        features_list: List[TaskFeatures] = []
        decisions: List[SchedulingDecision] = []
        windows: Dict[str, Tuple[datetime, datetime]] = {
            task_id: window for task_id, window in task_windows(kept).items()
            if task_id in snapshot
        }

        logger.info(
            "Scheduling %d tasks for %d actors between %s and %s",
            len(scope), len(profiles), constraints.window_start, constraints.window_end,
        )

        for task in snapshot.topological_order():
            if task.task_id not in scope or task.status == TaskStatus.DONE:
                continue
            states[task.task_id] = PlacementState.UNSCHEDULED
            duration = task.get_duration(constraints.default_task_minutes)

            deps = snapshot.predecessors(task.task_id)
            blocked = sorted(
                d.predecessor_id for d in deps
                if snapshot.get_task(d.predecessor_id).status != TaskStatus.DONE
                and d.predecessor_id not in windows
            )
            features = self.policy.compute_task_features(task, duration, critical_path, not blocked)
            features_list.append(features)

            if blocked:
                shortfall = UnplacedTask(
                    task.task_id, f"Predecessors not placed: {', '.join(blocked)}", "dependency_block",
                )
                decision = self._record_unplaced(shortfall, unplaced, states, decisions)
                yield decision
                continue

            earliest = constraints.window_start
            for dep in deps:
                if dep.predecessor_id in windows:
                    earliest = max(earliest, dependency_start_bound(dep, windows[dep.predecessor_id], duration))

            actors = self._candidate_actors(task, profiles, constraints)
            if not actors:
                shortfall = UnplacedTask(task.task_id, "No compatible actor with a capacity profile", "no_actor", earliest)
                decision = self._record_unplaced(shortfall, unplaced, states, decisions)
                yield decision
                continue

            max_block = min(profiles[a].max_block_minutes or constraints.max_block_minutes for a in actors)
            sized = dataclasses.replace(task, estimated_minutes=duration)
            parts = split_task(sized, max_block) or [sized]
            if len(parts) > 1:
                check_split(sized, parts)

            placed = self._place_parts(
                parts, actors, calendars, profiles, constraints, features, earliest, generation,
            )
            if placed is None:
                shortfall = UnplacedTask(
                    task.task_id,
                    f"No slot with {duration} min of capacity after {earliest.isoformat(timespec='minutes')}",
                    "capacity_shortfall",
                    earliest,
                )
                decision = self._record_unplaced(shortfall, unplaced, states, decisions)
                yield decision
                continue

            task_blocks, tentative = placed
            calendars.update(tentative)
            blocks.extend(task_blocks)
            windows[task.task_id] = (task_blocks[0].start, max(b.end for b in task_blocks))

            states[task.task_id] = PlacementState.PLACED
            if len(parts) > 1:
                fragments[task.task_id] = parts
                states[task.task_id] = PlacementState.SPLIT

            decision = SchedulingDecision(
                task_id=task.task_id,
                actor_id=task_blocks[0].actor_id,
                scheduled_start=task_blocks[0].start,
                scheduled_minutes=duration,
                reason=(
                    f"Split into {len(parts)} blocks of at most {max_block} min"
                    if len(parts) > 1 else "Placed in highest scoring slot"
                ),
                constraint_applied="task_split" if len(parts) > 1 else None,
                fragments=len(parts),
            )
            decisions.append(decision)
            yield decision

        for task_id, state in states.items():
            if state in (PlacementState.PLACED, PlacementState.SPLIT):
                states[task_id] = PlacementState.CONFIRMED

        trace = DecisionTrace(
            run_id=str(uuid.uuid4())[:8],
            timestamp=datetime.now(),
            policy_name=self.policy.get_policy_name(),
            config={
                'window_start': constraints.window_start.isoformat(),
                'window_end': constraints.window_end.isoformat(),
                'max_block_minutes': constraints.max_block_minutes,
                'min_focus_minutes': constraints.min_focus_minutes,
                'generation': generation,
            },
            task_features=features_list,
            decisions=decisions,
        )
        result = SchedulingResult(
            generation=generation,
            blocks=sorted(blocks, key=lambda b: (b.start, b.actor_id, b.task_id)),
            unplaced=unplaced,
            fragments=fragments,
            states=states,
            available_minutes=available,
            critical_path=critical_path,
            trace=trace,
        )
        trace.summary_stats = self._compute_summary_stats(result, scope)

        logger.info(
            "Scheduling pass finished: %d blocks, %d unplaced tasks",
            len(result.blocks), len(unplaced),
        )
        return result

    def _candidate_actors(
        self,
        task: Task,
        profiles: Dict[str, CapacityProfile],
        constraints: SchedulingConstraints,
    ) -> List[str]:
        if task.assigned_actor is not None:
            return [task.assigned_actor] if task.assigned_actor in profiles else []
        if constraints.default_actor is not None:
            return [constraints.default_actor] if constraints.default_actor in profiles else []
        return [a for a in sorted(profiles) if self.skill_matcher(task, profiles[a])]

    def _place_parts(
        self,
        parts: List[Task],
        actors: List[str],
        calendars: Dict[str, ActorCalendar],
        profiles: Dict[str, CapacityProfile],
        constraints: SchedulingConstraints,
        features: TaskFeatures,
        earliest: datetime,
        generation: int,
    ) -> Optional[Tuple[List[ScheduledBlock], Dict[str, ActorCalendar]]]:
        """Place every part on copies of the calendars, or nothing at all."""
        tentative = {a: calendars[a].copy() for a in actors}
        placed: List[ScheduledBlock] = []
        cursor = earliest
        previous: Optional[ScheduledBlock] = None
        split = len(parts) > 1

        for index, part in enumerate(parts):
            minutes = part.estimated_minutes
            best = None
            pool = [previous.actor_id] if previous is not None else actors
            for actor_id in pool:
                profile = profiles[actor_id]
                min_focus = constraints.min_focus_minutes
                if min_focus is None:
                    min_focus = profile.min_focus_minutes
                for start, end in tentative[actor_id].candidates(cursor, minutes, min_focus):
                    candidate = SlotCandidate(
                        actor_id=actor_id,
                        start=start,
                        end=end,
                        fragment_index=index if split else 0,
                        previous_end=previous.end if previous else None,
                        previous_actor=previous.actor_id if previous else None,
                    )
                    score, components = self.policy.score_slot(features, candidate, profile)
                    key = (-score, start, actor_id)
                    if best is None or key < best[0]:
                        best = (key, candidate, score, components, min_focus)

            if best is None:
                return None

            _, candidate, score, components, min_focus = best
            if index == 0:
                features.best_score = score
                features.score_components = components
            tentative[candidate.actor_id].reserve(candidate.start, candidate.end)
            previous = ScheduledBlock(
                block_id=f"g{generation}-{part.task_id}",
                task_id=part.task_id,
                actor_id=candidate.actor_id,
                start=candidate.start,
                end=candidate.end,
                is_focus_time=minutes >= min_focus,
                parent_task_id=part.parent_task_id,
                generation=generation,
            )
            placed.append(previous)
            cursor = candidate.end

        return placed, tentative

    @staticmethod
    def _record_unplaced(
        shortfall: UnplacedTask,
        unplaced: List[UnplacedTask],
        states: Dict[str, PlacementState],
        decisions: List[SchedulingDecision],
    ) -> SchedulingDecision:
        logger.info("Task %s unplaced: %s", shortfall.task_id, shortfall.reason)
        unplaced.append(shortfall)
        states[shortfall.task_id] = PlacementState.UNPLACED
        decision = SchedulingDecision(
            task_id=shortfall.task_id,
            actor_id=None,
            scheduled_start=None,
            scheduled_minutes=0,
            reason=shortfall.reason,
            constraint_applied=shortfall.constraint,
            fragments=0,
        )
        decisions.append(decision)
        return decision

    def _compute_summary_stats(self, result: SchedulingResult, scope: set) -> Dict[str, object]:
        """Compute summary statistics for the trace."""
        placed = {b.root_id for b in result.blocks}
        utilization = result.utilization()
        finite = [u for u in utilization.values() if u != float('inf')]
        return {
            'tasks_scheduled': len(placed),
            'tasks_total': len(scope),
            'tasks_unscheduled': len(result.unplaced),
            'total_scheduled_minutes': sum(scheduled_minutes(result.blocks).values()),
            'task_splits': len(result.fragments),
            'blocks': len(result.blocks),
            'utilization': {actor: round(u, 3) for actor, u in utilization.items()},
            'average_utilization': (sum(finite) / len(finite)) if finite else 0.0,
        }
