"""Task dependency graph with incremental cycle rejection."""

import copy
import heapq
import logging
from typing import Dict, Iterable, List, Optional

from ..errors import CycleError, DuplicateTaskError, UnknownTaskError
from ..models.task import Dependency, DependencyKind, Task, TaskStatus

logger = logging.getLogger(__name__)


class TaskGraph:
    """Holds tasks, parent/child links and typed dependency edges.

    Tasks are kept in an arena keyed by task id. Fragments point back at
    their parent through ``parent_task_id``; the graph never embeds task
    objects inside one another.
    """

    def __init__(self, tasks: Optional[Iterable[Task]] = None,
                 dependencies: Optional[Iterable[Dependency]] = None):
        self._tasks: Dict[str, Task] = {}
        self._successors: Dict[str, Dict[str, Dependency]] = {}
        self._predecessors: Dict[str, Dict[str, Dependency]] = {}

        for task in tasks or []:
            self.add_task(task)
        for dep in dependencies or []:
            self.add_dependency(dep.predecessor_id, dep.successor_id, dep.kind, dep.lag_minutes)

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: str) -> bool:
        return task_id in self._tasks

    @property
    def tasks(self) -> List[Task]:
        """Tasks in ascending id order."""
        return [self._tasks[task_id] for task_id in sorted(self._tasks)]

    @property
    def dependencies(self) -> List[Dependency]:
        return [
            dep
            for pred_id in sorted(self._successors)
            for _, dep in sorted(self._successors[pred_id].items())
        ]

    def get_task(self, task_id: str) -> Task:
        try:
            return self._tasks[task_id]
        except KeyError:
            raise UnknownTaskError(task_id) from None

    def add_task(self, task: Task) -> Task:
        if task.task_id in self._tasks:
            raise DuplicateTaskError(task.task_id)
        if task.parent_task_id is not None and task.parent_task_id not in self._tasks:
            raise UnknownTaskError(task.parent_task_id)
        self._tasks[task.task_id] = task
        self._successors[task.task_id] = {}
        self._predecessors[task.task_id] = {}
        return task

    def add_dependency(
        self,
        predecessor_id: str,
        successor_id: str,
        kind: DependencyKind = DependencyKind.FINISH_TO_START,
        lag_minutes: int = 0,
    ) -> Dependency:
        """Add an edge, failing before mutation if it would close a cycle."""
        for task_id in (predecessor_id, successor_id):
            if task_id not in self._tasks:
                raise UnknownTaskError(task_id)

        path = self._find_path(successor_id, predecessor_id)
        if path is not None:
            raise CycleError(predecessor_id, successor_id, path)

        dep = Dependency(predecessor_id, successor_id, DependencyKind(kind), lag_minutes)
        if successor_id in self._successors[predecessor_id]:
            logger.debug("Replacing dependency %s -> %s", predecessor_id, successor_id)
        self._successors[predecessor_id][successor_id] = dep
        self._predecessors[successor_id][predecessor_id] = dep
        return dep

    def remove_dependency(self, predecessor_id: str, successor_id: str) -> None:
        self._successors.get(predecessor_id, {}).pop(successor_id, None)
        self._predecessors.get(successor_id, {}).pop(predecessor_id, None)

    def _find_path(self, source: str, target: str) -> Optional[List[str]]:
        """Return a successor path from source to target, if one exists.

        Only the part of the graph reachable from ``source`` is visited.
        """
        if source == target:
            return [source]
        parents: Dict[str, Optional[str]] = {source: None}
        stack = [source]
        while stack:
            node = stack.pop()
            for nxt in self._successors[node]:
                if nxt in parents:
                    continue
                parents[nxt] = node
                if nxt == target:
                    path = [nxt]
                    while parents[path[-1]] is not None:
                        path.append(parents[path[-1]])
                    return list(reversed(path))
                stack.append(nxt)
        return None

    def predecessors(self, task_id: str) -> List[Dependency]:
        self.get_task(task_id)
        return [dep for _, dep in sorted(self._predecessors[task_id].items())]

    def successors(self, task_id: str) -> List[Dependency]:
        self.get_task(task_id)
        return [dep for _, dep in sorted(self._successors[task_id].items())]

    def children(self, task_id: str) -> List[Task]:
        """Fragments or subtasks whose parent is ``task_id``."""
        self.get_task(task_id)
        return [t for t in self.tasks if t.parent_task_id == task_id]

    def topological_order(self) -> List[Task]:
        """Kahn's algorithm; ready tasks leave in ascending id order."""
        in_degree = {task_id: len(preds) for task_id, preds in self._predecessors.items()}
        ready = [task_id for task_id, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)

        order: List[Task] = []
        while ready:
            task_id = heapq.heappop(ready)
            order.append(self._tasks[task_id])
            for succ_id in self._successors[task_id]:
                in_degree[succ_id] -= 1
                if in_degree[succ_id] == 0:
                    heapq.heappush(ready, succ_id)

        # add_dependency keeps the graph acyclic, so every task is emitted.
        return order

    def phase_zero(self) -> List[Task]:
        """Open tasks whose predecessors are all done; these may start now."""
        return [
            task for task in self.tasks
            if task.status != TaskStatus.DONE
            and all(self._tasks[p].status == TaskStatus.DONE for p in self._predecessors[task.task_id])
        ]

    def subgraph(self, task_ids: Iterable[str]) -> 'TaskGraph':
        """Copy of the graph restricted to ``task_ids`` and edges among them."""
        keep = set(task_ids)
        for task_id in keep:
            self.get_task(task_id)
        graph = TaskGraph()
        for task in self.tasks:
            if task.task_id in keep:
                task = copy.deepcopy(task)
                if task.parent_task_id not in keep:
                    task.parent_task_id = None
                graph._insert(task)
        for dep in self.dependencies:
            if dep.predecessor_id in keep and dep.successor_id in keep:
                graph._link(dep)
        return graph

    def snapshot(self) -> 'TaskGraph':
        """Deep copy used as the immutable input of a scheduling pass."""
        graph = TaskGraph()
        for task in self.tasks:
            graph._insert(copy.deepcopy(task))
        for dep in self.dependencies:
            graph._link(dep)
        return graph

    def _insert(self, task: Task) -> None:
        self._tasks[task.task_id] = task
        self._successors[task.task_id] = {}
        self._predecessors[task.task_id] = {}

    def _link(self, dep: Dependency) -> None:
        self._successors[dep.predecessor_id][dep.successor_id] = dep
        self._predecessors[dep.successor_id][dep.predecessor_id] = dep
