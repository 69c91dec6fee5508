"""Task, dependency and outcome data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class TaskStatus(str, Enum):
    """Lifecycle status of a task."""
    PENDING = "pending"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    BLOCKED = "blocked"


class DependencyKind(str, Enum):
    """How a successor is constrained by its predecessor."""
    FINISH_TO_START = "finish_to_start"
    START_TO_START = "start_to_start"
    FINISH_TO_FINISH = "finish_to_finish"
    START_TO_FINISH = "start_to_finish"


@dataclass
class Task:
    """Represents a schedulable unit of work inside a milestone."""

    task_id: str
    title: str
    milestone_id: str
    estimated_minutes: Optional[int] = None
    actual_minutes: Optional[int] = None
    status: TaskStatus = TaskStatus.PENDING
    priority: int = 50
    parent_task_id: Optional[str] = None
    assigned_actor: Optional[str] = None
    skills: List[str] = field(default_factory=list)
    description: str = ""

    def __post_init__(self):
        """Validate priority range and normalize status."""
        if not 0 <= self.priority <= 100:
            raise ValueError(f"Task {self.task_id}: priority must be within 0-100, got {self.priority}")
        if self.estimated_minutes is not None and self.estimated_minutes < 0:
            raise ValueError(f"Task {self.task_id}: estimated_minutes must not be negative")
        self.status = TaskStatus(self.status)

    @property
    def root_id(self) -> str:
        """Id of the original task, for fragments the parent's id."""
        return self.parent_task_id or self.task_id

    def is_immovable(self) -> bool:
        """Tasks already underway or finished may not be reassigned."""
        return self.status in (TaskStatus.IN_PROGRESS, TaskStatus.DONE)

    def get_duration(self, default_minutes: int) -> int:
        """Get estimate, falling back to a default for unestimated tasks."""
        if self.estimated_minutes is None:
            return default_minutes
        return self.estimated_minutes


@dataclass(frozen=True)
class Dependency:
    """A typed, lagged precedence edge between two tasks."""

    predecessor_id: str
    successor_id: str
    kind: DependencyKind = DependencyKind.FINISH_TO_START
    lag_minutes: int = 0


@dataclass
class TaskOutcome:
    """Represents historical completion data for a task."""

    task_id: str
    title: str
    estimated_minutes: int
    actual_minutes: int
    completed_at: datetime
    description: str = ""
    skills: List[str] = field(default_factory=list)
    notes: Optional[str] = None
