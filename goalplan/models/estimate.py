"""Effort estimate model."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple


class EstimationMethod(str, Enum):
    """Supported estimation methods."""
    EXPERT = "expert"
    ANALOGY = "analogy"
    PERT = "pert"
    COMBINED = "combined"


@dataclass(frozen=True)
class Estimate:
    """An effort estimate for one task, from one method or a combination."""

    task_id: str
    method: EstimationMethod
    expected_minutes: float
    confidence: float
    optimistic: Optional[float] = None
    most_likely: Optional[float] = None
    pessimistic: Optional[float] = None
    std_dev: Optional[float] = None
    interval: Optional[Tuple[float, float]] = None
    source_task_ids: Tuple[str, ...] = ()
    rationale: str = ""
    created_at: datetime = field(default_factory=datetime.now)

    def rounded_minutes(self) -> int:
        """Whole minutes to store on the task, never rounding work away."""
        whole = int(self.expected_minutes)
        return whole if whole == self.expected_minutes else whole + 1

    def to_dict(self) -> dict:
        return {
            'task_id': self.task_id,
            'method': self.method.value,
            'expected_minutes': self.expected_minutes,
            'confidence': self.confidence,
            'optimistic': self.optimistic,
            'most_likely': self.most_likely,
            'pessimistic': self.pessimistic,
            'std_dev': self.std_dev,
            'interval': list(self.interval) if self.interval else None,
            'source_task_ids': list(self.source_task_ids),
            'rationale': self.rationale,
        }


@dataclass(frozen=True)
class AccuracySample:
    """Actual-vs-estimated record for a completed task."""

    task_id: str
    method: EstimationMethod
    estimated_minutes: float
    actual_minutes: float

    @property
    def absolute_percentage_error(self) -> float:
        if self.actual_minutes <= 0:
            return 0.0
        return abs(self.estimated_minutes - self.actual_minutes) / self.actual_minutes


@dataclass
class MethodAccuracy:
    """Running accuracy of one estimation method."""

    method: EstimationMethod
    samples: List[AccuracySample] = field(default_factory=list)

    @property
    def mape(self) -> Optional[float]:
        """Mean absolute percentage error, None until a sample exists."""
        if not self.samples:
            return None
        return sum(s.absolute_percentage_error for s in self.samples) / len(self.samples)
