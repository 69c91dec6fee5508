"""Capacity, availability and scheduled block models."""

from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum
from typing import List, Optional, Tuple


class SlotSource(str, Enum):
    """Whether a calendar slot is free or busy."""
    FREE = "free"
    BUSY = "busy"


@dataclass(frozen=True)
class CapacityProfile:
    """Per-actor capacity model.

    ``hours_per_period`` is spread evenly over the working days of one
    ``period_days`` period to give the actor's daily capacity.
    """

    actor_id: str
    hours_per_period: float = 40.0
    period_days: int = 7
    work_start: time = time(9, 0)
    work_end: time = time(17, 0)
    weekend_allowed: bool = False
    min_focus_minutes: int = 30
    max_block_minutes: Optional[int] = None
    skills: Tuple[str, ...] = ()
    preferred_windows: Tuple[Tuple[time, time], ...] = ()

    def __post_init__(self):
        if self.work_end <= self.work_start:
            raise ValueError(f"Profile {self.actor_id}: work_end must be after work_start")
        if self.hours_per_period < 0:
            raise ValueError(f"Profile {self.actor_id}: hours_per_period must not be negative")
        # Accept lists from config files.
        object.__setattr__(self, 'skills', tuple(self.skills))
        object.__setattr__(self, 'preferred_windows', tuple(tuple(w) for w in self.preferred_windows))

    @property
    def working_days_per_period(self) -> int:
        if self.weekend_allowed:
            return self.period_days
        return max(1, round(self.period_days * 5 / 7))

    @property
    def daily_capacity_minutes(self) -> int:
        return int(self.hours_per_period * 60 / self.working_days_per_period)


@dataclass(frozen=True)
class TimeSlot:
    """A free or busy interval supplied by the calendar collaborator."""

    actor_id: str
    start: datetime
    end: datetime
    source: SlotSource = SlotSource.FREE

    @property
    def minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


@dataclass(frozen=True)
class ScheduledBlock:
    """A placed piece of work on an actor's calendar."""

    block_id: str = field(compare=False)
    task_id: str
    actor_id: str
    start: datetime
    end: datetime
    is_focus_time: bool = False
    parent_task_id: Optional[str] = None
    generation: int = field(default=1, compare=False)

    @property
    def root_id(self) -> str:
        return self.parent_task_id or self.task_id

    @property
    def minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, other: 'ScheduledBlock') -> bool:
        return self.start < other.end and other.start < self.end


@dataclass
class PlanGeneration:
    """One generation of blocks produced by a scheduling or optimization pass."""

    number: int
    blocks: List[ScheduledBlock]
    created_at: datetime
    origin: str
    conflicts: List = field(default_factory=list)
