"""Structured exceptions raised by the planning engine."""

from typing import Any, Dict, List, Optional


class PlanningError(Exception):
    """Base exception for all planning engine errors."""

    kind = "planning_error"

    def __init__(self, message: str, *, task_ids: Optional[List[str]] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.task_ids = list(task_ids or [])
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Return kind, affected ids and explanation for callers."""
        return {
            'kind': self.kind,
            'task_ids': self.task_ids,
            'message': self.message,
            'details': self.details,
        }


class UnknownTaskError(PlanningError):
    """Raised when an operation references a task that is not in the graph."""

    kind = "unknown_task"

    def __init__(self, task_id: str):
        super().__init__(f"Task not found: {task_id}", task_ids=[task_id])


class DuplicateTaskError(PlanningError):
    """Raised when a task id is added to a graph twice."""

    kind = "duplicate_task"

    def __init__(self, task_id: str):
        super().__init__(f"Task already exists: {task_id}", task_ids=[task_id])


class CycleError(PlanningError):
    """Raised when a dependency edge would close a cycle."""

    kind = "cycle"

    def __init__(self, predecessor_id: str, successor_id: str, path: List[str]):
        cycle = " -> ".join(path + [successor_id])
        super().__init__(
            f"Dependency {predecessor_id} -> {successor_id} would create a cycle: {cycle}",
            task_ids=list(dict.fromkeys(path + [successor_id])),
            details={'predecessor_id': predecessor_id, 'successor_id': successor_id, 'path': path},
        )
        self.path = path


class InfeasibleDeadlineError(PlanningError):
    """Raised when the earliest completion falls after an explicit deadline."""

    kind = "infeasible_deadline"

    def __init__(self, earliest_completion: int, deadline: int, critical_path: List[str]):
        super().__init__(
            f"Earliest completion at {earliest_completion} min exceeds deadline of {deadline} min",
            task_ids=critical_path,
            details={
                'earliest_completion_minutes': earliest_completion,
                'deadline_minutes': deadline,
                'overrun_minutes': earliest_completion - deadline,
            },
        )
        self.earliest_completion = earliest_completion
        self.deadline = deadline
        self.critical_path = critical_path


class InvalidEstimateInputError(PlanningError):
    """Raised when estimation inputs are rejected before computation."""

    kind = "invalid_estimate_input"

    def __init__(self, message: str, task_id: Optional[str] = None, **details: Any):
        super().__init__(message, task_ids=[task_id] if task_id else None, details=details)


class InsufficientHistoryError(InvalidEstimateInputError):
    """Raised when analogy estimation finds no sufficiently similar history."""

    kind = "insufficient_history"


class OptimizationIncompleteError(PlanningError):
    """Attached to an optimization result that did not converge."""

    kind = "optimization_incomplete"

    def __init__(self, iterations: int, overallocated: Dict[str, float], reason: str):
        super().__init__(
            f"Capacity optimization stopped after {iterations} iterations: {reason}",
            details={'iterations': iterations, 'overallocated': overallocated, 'reason': reason},
        )
        self.iterations = iterations
        self.overallocated = overallocated


class AlreadySchedulingError(PlanningError):
    """Raised in reject mode when a goal already has a pass in flight."""

    kind = "already_scheduling"

    def __init__(self, goal_id: str):
        super().__init__(
            f"A scheduling pass is already running for goal {goal_id}",
            details={'goal_id': goal_id},
        )
        self.goal_id = goal_id


class UnknownConflictError(PlanningError):
    """Raised when a conflict id is not in the milestone's latest generation."""

    kind = "unknown_conflict"

    def __init__(self, milestone_id: str, conflict_id: str):
        super().__init__(
            f"Conflict {conflict_id} not found in the latest plan of milestone {milestone_id}",
            details={'milestone_id': milestone_id, 'conflict_id': conflict_id},
        )
        self.conflict_id = conflict_id
