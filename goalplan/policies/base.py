"""Base slot scoring policy interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Tuple

from ..graph.critical_path import CriticalPathResult
from ..models.capacity import CapacityProfile
from ..models.task import Task
from ..models.trace import TaskFeatures


@dataclass(frozen=True)
class SlotCandidate:
    """A feasible start for one block on one actor's calendar."""

    actor_id: str
    start: datetime
    end: datetime
    fragment_index: int = 0
    previous_end: Optional[datetime] = None
    previous_actor: Optional[str] = None


class SlotScoringPolicy(ABC):
    """Abstract base class for slot scoring policies."""

    def __init__(self, config: dict):
        """Initialize policy with configuration."""
        self.config = config

    def compute_task_features(
        self,
        task: Task,
        effort_minutes: int,
        critical_path: Optional[CriticalPathResult],
        dependency_ready: bool,
    ) -> TaskFeatures:
        """Compute the slot-independent features of a task."""
        root_id = task.root_id
        if critical_path is not None:
            slack = critical_path.slack(root_id)
            urgency = critical_path.urgency(root_id)
        else:
            slack, urgency = 0.0, 0.0
        return TaskFeatures(
            task_id=task.task_id,
            priority=task.priority,
            effort_minutes=effort_minutes,
            slack_minutes=slack,
            urgency=urgency,
            dependency_ready=dependency_ready,
        )

    @abstractmethod
    def score_slot(
        self,
        features: TaskFeatures,
        candidate: SlotCandidate,
        profile: CapacityProfile,
    ) -> Tuple[float, Dict[str, float]]:
        """Return the score of a candidate and its components."""
        pass

    @abstractmethod
    def get_policy_name(self) -> str:
        """Return the name of this policy."""
        pass
