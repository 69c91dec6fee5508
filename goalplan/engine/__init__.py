"""Scheduling, rebalancing and validation engines."""

from .calendar import ActorCalendar, compute_utilization
from .conflicts import ConflictDetector
from .optimizer import CapacityOptimizer, OptimizationResult, Reassignment
from .scheduler import (
    PlacementState, SchedulingConstraints, SchedulingResult, SlotScheduler, UnplacedTask,
    skills_match,
)
from .session import SchedulingSession, SessionRegistry
from .splitting import split_task

__all__ = [
    'ActorCalendar', 'compute_utilization',
    'ConflictDetector',
    'CapacityOptimizer', 'OptimizationResult', 'Reassignment',
    'PlacementState', 'SchedulingConstraints', 'SchedulingResult', 'SlotScheduler', 'UnplacedTask',
    'skills_match',
    'SchedulingSession', 'SessionRegistry',
    'split_task',
]
