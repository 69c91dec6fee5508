"""Data models."""

from .capacity import CapacityProfile, PlanGeneration, ScheduledBlock, SlotSource, TimeSlot
from .conflict import Conflict, ConflictKind, ConflictSummary, ResolutionStatus
from .estimate import Estimate, EstimationMethod
from .task import Dependency, DependencyKind, Task, TaskOutcome, TaskStatus

__all__ = [
    'CapacityProfile', 'PlanGeneration', 'ScheduledBlock', 'SlotSource', 'TimeSlot',
    'Conflict', 'ConflictKind', 'ConflictSummary', 'ResolutionStatus',
    'Estimate', 'EstimationMethod',
    'Dependency', 'DependencyKind', 'Task', 'TaskOutcome', 'TaskStatus',
]
