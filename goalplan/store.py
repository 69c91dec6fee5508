"""Collaborator interfaces for tasks and calendars, with in-memory versions."""

import dataclasses
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from .errors import UnknownTaskError
from .models.capacity import CapacityProfile, TimeSlot
from .models.task import Dependency, Task, TaskOutcome, TaskStatus


class TaskStore(ABC):
    """Source of tasks, dependencies, capacity profiles and history."""

    @abstractmethod
    def get_task(self, task_id: str) -> Task:
        pass

    @abstractmethod
    def tasks(self, milestone_id: str) -> List[Task]:
        pass

    @abstractmethod
    def dependencies(self, milestone_id: str) -> List[Dependency]:
        pass

    @abstractmethod
    def profiles(self) -> List[CapacityProfile]:
        pass

    @abstractmethod
    def goal_of(self, milestone_id: str) -> str:
        pass

    @abstractmethod
    def outcomes(self) -> List[TaskOutcome]:
        """Completed tasks usable as analogy history."""
        pass

    @abstractmethod
    def save_task(self, task: Task) -> None:
        pass


class CalendarSource(ABC):
    """Actor availability over a window."""

    @abstractmethod
    def availability(self, actor_ids: Iterable[str], start: datetime, end: datetime) -> List[TimeSlot]:
        pass


class InMemoryTaskStore(TaskStore):
    """Dictionary-backed store, used by the CLI and tests."""

    def __init__(
        self,
        tasks: Iterable[Task] = (),
        dependencies: Iterable[Dependency] = (),
        profiles: Iterable[CapacityProfile] = (),
        milestone_goals: Optional[Dict[str, str]] = None,
        outcomes: Iterable[TaskOutcome] = (),
    ):
        self._lock = threading.Lock()
        self._tasks: Dict[str, Task] = {t.task_id: t for t in tasks}
        self._dependencies: List[Dependency] = list(dependencies)
        self._profiles: Dict[str, CapacityProfile] = {p.actor_id: p for p in profiles}
        self._milestone_goals: Dict[str, str] = dict(milestone_goals or {})
        self._outcomes: List[TaskOutcome] = list(outcomes)

    def get_task(self, task_id: str) -> Task:
        with self._lock:
            if task_id not in self._tasks:
                raise UnknownTaskError(task_id)
            return dataclasses.replace(self._tasks[task_id], skills=list(self._tasks[task_id].skills))

    def tasks(self, milestone_id: str) -> List[Task]:
        with self._lock:
            return [
                dataclasses.replace(t, skills=list(t.skills))
                for _, t in sorted(self._tasks.items())
                if t.milestone_id == milestone_id
            ]

    def dependencies(self, milestone_id: str) -> List[Dependency]:
        with self._lock:
            ids = {t.task_id for t in self._tasks.values() if t.milestone_id == milestone_id}
            return [d for d in self._dependencies if d.predecessor_id in ids and d.successor_id in ids]

    def profiles(self) -> List[CapacityProfile]:
        with self._lock:
            return [self._profiles[a] for a in sorted(self._profiles)]

    def goal_of(self, milestone_id: str) -> str:
        return self._milestone_goals.get(milestone_id, milestone_id)

    def outcomes(self) -> List[TaskOutcome]:
        with self._lock:
            return list(self._outcomes)

    def save_task(self, task: Task) -> None:
        with self._lock:
            self._tasks[task.task_id] = task
            if task.status == TaskStatus.DONE and task.actual_minutes:
                # One outcome per task; saving a finished task again replaces it.
                previous = next((o for o in self._outcomes if o.task_id == task.task_id), None)
                self._outcomes = [o for o in self._outcomes if o.task_id != task.task_id]
                self._outcomes.append(TaskOutcome(
                    task_id=task.task_id,
                    title=task.title,
                    estimated_minutes=task.estimated_minutes or task.actual_minutes,
                    actual_minutes=task.actual_minutes,
                    completed_at=previous.completed_at if previous else datetime.now(),
                    description=task.description,
                    skills=list(task.skills),
                ))


class StaticCalendar(CalendarSource):
    """Fixed list of free and busy slots."""

    def __init__(self, slots: Iterable[TimeSlot] = ()):
        self.slots = list(slots)

    def availability(self, actor_ids: Iterable[str], start: datetime, end: datetime) -> List[TimeSlot]:
        actors = set(actor_ids)
        return [
            s for s in self.slots
            if s.actor_id in actors and s.end > start and s.start < end
        ]
