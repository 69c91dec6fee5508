"""Expert judgment: a duration supplied directly by a person or model."""

from typing import Any, Dict

from ..errors import InvalidEstimateInputError
from ..models.estimate import Estimate, EstimationMethod
from ..models.task import Task
from .base import EstimationStrategy


class ExpertJudgmentStrategy(EstimationStrategy):
    """Accepts a direct duration and confidence without computation."""

    def estimate(self, task: Task, params: Dict[str, Any]) -> Estimate:
        duration = float(self._require(params, 'duration_minutes', task))
        confidence = float(params.get('confidence', 0.5))

        if duration < 0:
            raise InvalidEstimateInputError("Duration must not be negative", task.task_id, duration=duration)
        if not 0.0 <= confidence <= 1.0:
            raise InvalidEstimateInputError("Confidence must be within 0-1", task.task_id, confidence=confidence)

        source = params.get('source', 'expert')
        return Estimate(
            task_id=task.task_id,
            method=EstimationMethod.EXPERT,
            expected_minutes=duration,
            confidence=confidence,
            rationale=f"Expert judgment from {source}",
        )

    def get_method(self) -> EstimationMethod:
        return EstimationMethod.EXPERT
