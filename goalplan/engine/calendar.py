"""Per-actor free time and utilization bookkeeping for a scheduling pass."""

import copy
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Tuple

from ..models.capacity import CapacityProfile, ScheduledBlock, SlotSource, TimeSlot
from ..utils.datetime_utils import (
    WEEKEND, Interval, get_working_days, intersect_intervals, minutes_between,
    subtract_intervals,
)


def allowed_weekdays(profile: CapacityProfile, working_days: Iterable[int]) -> List[int]:
    """Configured working days, with weekends governed by the profile."""
    days = {d for d in working_days if d not in WEEKEND}
    if profile.weekend_allowed:
        days.update(WEEKEND)
    return sorted(days)


class ActorCalendar:
    """Mutable free time of one actor during a pass.

    Free time is the calendar's free slots minus its busy slots, clipped to
    the profile's working window on allowed days. Reservations remove time
    and count against the actor's daily capacity.
    """

    def __init__(self, profile: CapacityProfile, free: List[Interval]):
        self.profile = profile
        self.free: List[Interval] = sorted(free)
        self.daily_used: Dict[date, int] = defaultdict(int)
        self.daily_capacity = profile.daily_capacity_minutes
        self.available_minutes = self._available_minutes()

    @classmethod
    def build(
        cls,
        profile: CapacityProfile,
        availability: Iterable[TimeSlot],
        window_start: datetime,
        window_end: datetime,
        working_days: Iterable[int],
    ) -> 'ActorCalendar':
        slots = [s for s in availability if s.actor_id == profile.actor_id]
        free = [(s.start, s.end) for s in slots if s.source == SlotSource.FREE]
        busy = [(s.start, s.end) for s in slots if s.source == SlotSource.BUSY]

        tz = window_start.tzinfo
        windows = [
            (datetime.combine(day.date(), profile.work_start, tzinfo=tz),
             datetime.combine(day.date(), profile.work_end, tzinfo=tz))
            for day in get_working_days(window_start, window_end, allowed_weekdays(profile, working_days))
        ]
        usable = intersect_intervals(subtract_intervals(free, busy), windows)
        usable = intersect_intervals(usable, [(window_start, window_end)])
        return cls(profile, usable)

    def _available_minutes(self) -> int:
        per_day: Dict[date, int] = defaultdict(int)
        for start, end in self.free:
            per_day[start.date()] += minutes_between(start, end)
        return sum(min(minutes, self.daily_capacity) for minutes in per_day.values())

    def copy(self) -> 'ActorCalendar':
        clone = copy.copy(self)
        clone.free = list(self.free)
        clone.daily_used = defaultdict(int, self.daily_used)
        return clone

    def candidates(self, earliest: datetime, minutes: int, min_focus: int) -> List[Interval]:
        """Earliest feasible block in each free interval.

        An interval qualifies when the time left from the start covers both
        the block and the actor's minimum focus block, and the day still has
        capacity for the block.
        """
        needed = timedelta(minutes=max(minutes, min_focus))
        block = timedelta(minutes=minutes)
        found = []
        for start, end in self.free:
            if end <= earliest:
                continue
            begin = max(start, earliest)
            if end - begin < needed:
                continue
            if self.daily_used[begin.date()] + minutes > self.daily_capacity:
                continue
            found.append((begin, begin + block))
        return found

    def reserve(self, start: datetime, end: datetime) -> None:
        self.free = subtract_intervals(self.free, [(start, end)])
        self.daily_used[start.date()] += minutes_between(start, end)


def scheduled_minutes(blocks: Iterable[ScheduledBlock]) -> Dict[str, int]:
    totals: Dict[str, int] = defaultdict(int)
    for block in blocks:
        totals[block.actor_id] += block.minutes
    return dict(totals)


def compute_utilization(blocks: Iterable[ScheduledBlock], available: Dict[str, int]) -> Dict[str, float]:
    """Scheduled minutes over available minutes, per actor.

    An actor with work but no available time is reported as infinitely
    utilized.
    """
    totals = scheduled_minutes(blocks)
    utilization: Dict[str, float] = {}
    for actor_id in sorted(set(available) | set(totals)):
        capacity = available.get(actor_id, 0)
        used = totals.get(actor_id, 0)
        if capacity > 0:
            utilization[actor_id] = used / capacity
        else:
            utilization[actor_id] = float('inf') if used else 0.0
    return utilization


def task_windows(blocks: Iterable[ScheduledBlock]) -> Dict[str, Tuple[datetime, datetime]]:
    """First start and last end of every root task across its blocks."""
    windows: Dict[str, Tuple[datetime, datetime]] = {}
    for block in blocks:
        current = windows.get(block.root_id)
        if current is None:
            windows[block.root_id] = (block.start, block.end)
        else:
            windows[block.root_id] = (min(current[0], block.start), max(current[1], block.end))
    return windows
