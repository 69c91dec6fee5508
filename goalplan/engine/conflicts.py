"""Conflict detection over a final set of scheduled blocks.

Conflict types:
- Overlap (two blocks on the same actor share time)
- Dependency violation (a successor is placed before its dependency allows)
- Capacity breach (actor utilization above the ceiling)

The detector only reports; it never moves blocks.
"""

import logging
from collections import defaultdict
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..graph.task_graph import TaskGraph
from ..models.capacity import ScheduledBlock
from ..models.conflict import Conflict, ConflictKind, ConflictSummary
from ..models.task import Dependency, DependencyKind
from .calendar import compute_utilization, task_windows

logger = logging.getLogger(__name__)


def check_dependency(dep: Dependency, pred_window, succ_window) -> Optional[str]:
    """Return a description of the violation, or None when satisfied."""
    pred_start, pred_end = pred_window
    succ_start, succ_end = succ_window
    lag = timedelta(minutes=dep.lag_minutes)

    if dep.kind == DependencyKind.FINISH_TO_START:
        bound, actual, what = pred_end + lag, succ_start, "start"
    elif dep.kind == DependencyKind.START_TO_START:
        bound, actual, what = pred_start + lag, succ_start, "start"
    elif dep.kind == DependencyKind.FINISH_TO_FINISH:
        bound, actual, what = pred_end + lag, succ_end, "finish"
    else:
        bound, actual, what = pred_start + lag, succ_end, "finish"

    if actual >= bound:
        return None
    return (
        f"{dep.successor_id} must {what} no earlier than {bound.isoformat(timespec='minutes')} "
        f"({dep.kind.value} on {dep.predecessor_id}, lag {dep.lag_minutes} min) "
        f"but is placed to {what} at {actual.isoformat(timespec='minutes')}"
    )


def find_dependency_violations(
    blocks: Iterable[ScheduledBlock],
    graph: TaskGraph,
    task_ids: Optional[Set[str]] = None,
) -> List[Tuple[Dependency, str]]:
    """Dependencies whose placed endpoints break their kind and lag.

    With ``task_ids`` only edges touching those root tasks are checked.
    """
    windows = task_windows(blocks)
    violations = []
    for dep in graph.dependencies:
        if task_ids is not None and dep.predecessor_id not in task_ids and dep.successor_id not in task_ids:
            continue
        if dep.predecessor_id not in windows or dep.successor_id not in windows:
            continue
        problem = check_dependency(dep, windows[dep.predecessor_id], windows[dep.successor_id])
        if problem:
            violations.append((dep, problem))
    return violations


class ConflictDetector:
    """Detects overlaps, dependency violations and capacity breaches."""

    def __init__(self, config: Optional[dict] = None):
        config = config or {}
        self.utilization_ceiling = config.get('capacity', {}).get('utilization_ceiling', 0.9)

    def detect(
        self,
        blocks: List[ScheduledBlock],
        graph: TaskGraph,
        available_minutes: Dict[str, int],
        generation: int = 1,
    ) -> List[Conflict]:
        """Scan blocks and return one Conflict per violation."""
        found: List[Tuple[ConflictKind, Tuple[str, ...], str, Optional[str]]] = []
        found.extend(self._overlaps(blocks))
        found.extend(
            (ConflictKind.DEPENDENCY_VIOLATION, (dep.predecessor_id, dep.successor_id), problem, None)
            for dep, problem in find_dependency_violations(blocks, graph)
        )
        found.extend(self._capacity_breaches(blocks, available_minutes))

        conflicts = [
            Conflict(
                conflict_id=f"g{generation}-c{index}",
                kind=kind,
                task_ids=task_ids,
                description=description,
                actor_id=actor_id,
                generation=generation,
            )
            for index, (kind, task_ids, description, actor_id) in enumerate(found, start=1)
        ]

        if conflicts:
            summary = ConflictSummary.from_conflicts(conflicts)
            logger.warning("Detected %d conflicts: %s", summary.total_conflicts, summary.by_kind)
        return conflicts

    def _overlaps(self, blocks: List[ScheduledBlock]):
        by_actor: Dict[str, List[ScheduledBlock]] = defaultdict(list)
        for block in blocks:
            by_actor[block.actor_id].append(block)

        for actor_id in sorted(by_actor):
            active: List[ScheduledBlock] = []
            for block in sorted(by_actor[actor_id], key=lambda b: (b.start, b.end, b.task_id)):
                active = [b for b in active if b.overlaps(block)]
                for other in active:
                    yield (
                        ConflictKind.OVERLAP,
                        (other.task_id, block.task_id),
                        f"{other.task_id} and {block.task_id} overlap on {actor_id} "
                        f"from {block.start.isoformat(timespec='minutes')} "
                        f"to {min(other.end, block.end).isoformat(timespec='minutes')}",
                        actor_id,
                    )
                active.append(block)

    def _capacity_breaches(self, blocks: List[ScheduledBlock], available_minutes: Dict[str, int]):
        utilization = compute_utilization(blocks, available_minutes)
        for actor_id, value in utilization.items():
            if value <= self.utilization_ceiling:
                continue
            task_ids = tuple(sorted({b.root_id for b in blocks if b.actor_id == actor_id}))
            yield (
                ConflictKind.CAPACITY_BREACH,
                task_ids,
                f"{actor_id} is at {value:.0%} utilization, above the {self.utilization_ceiling:.0%} ceiling",
                actor_id,
            )
