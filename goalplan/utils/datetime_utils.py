"""Date, time and interval utilities."""

from datetime import datetime, timedelta
from typing import Iterable, List, Tuple

Interval = Tuple[datetime, datetime]

WEEKEND = (5, 6)


def get_working_days(start_date: datetime, end_date: datetime, working_days: List[int]) -> List[datetime]:
    """Get list of working days between start and end dates."""
    days = []
    current = start_date.date()
    end = end_date.date()

    while current <= end:
        if current.weekday() in working_days:
            days.append(datetime.combine(current, datetime.min.time(), tzinfo=start_date.tzinfo))
        current += timedelta(days=1)

    return days


def minutes_between(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)


def merge_intervals(intervals: Iterable[Interval]) -> List[Interval]:
    """Sort and merge overlapping or touching intervals."""
    merged: List[Interval] = []
    for start, end in sorted(i for i in intervals if i[1] > i[0]):
        if merged and start <= merged[-1][1]:
            if end > merged[-1][1]:
                merged[-1] = (merged[-1][0], end)
        else:
            merged.append((start, end))
    return merged


def subtract_intervals(free: Iterable[Interval], busy: Iterable[Interval]) -> List[Interval]:
    """Remove busy time from free time."""
    result = merge_intervals(free)
    for b_start, b_end in merge_intervals(busy):
        remaining = []
        for start, end in result:
            if b_end <= start or b_start >= end:
                remaining.append((start, end))
                continue
            if start < b_start:
                remaining.append((start, b_start))
            if b_end < end:
                remaining.append((b_end, end))
        result = remaining
    return result


def intersect_intervals(a: Iterable[Interval], b: Iterable[Interval]) -> List[Interval]:
    """Intersection of two interval sets."""
    left = merge_intervals(a)
    right = merge_intervals(b)
    result: List[Interval] = []
    i = j = 0
    while i < len(left) and j < len(right):
        start = max(left[i][0], right[j][0])
        end = min(left[i][1], right[j][1])
        if start < end:
            result.append((start, end))
        if left[i][1] < right[j][1]:
            i += 1
        else:
            j += 1
    return result

