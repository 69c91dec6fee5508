"""Three-point (PERT) estimation."""

from typing import Any, Dict

from ..errors import InvalidEstimateInputError
from ..models.estimate import Estimate, EstimationMethod
from ..models.task import Task
from .base import EstimationStrategy


class PertStrategy(EstimationStrategy):
    """expected = (o + 4m + p) / 6, std dev = (p - o) / 6."""

    def estimate(self, task: Task, params: Dict[str, Any]) -> Estimate:
        optimistic = float(self._require(params, 'optimistic', task))
        most_likely = float(self._require(params, 'most_likely', task))
        pessimistic = float(self._require(params, 'pessimistic', task))

        if optimistic < 0:
            raise InvalidEstimateInputError(
                "Optimistic estimate must not be negative", task.task_id, optimistic=optimistic,
            )
        if not optimistic <= most_likely <= pessimistic:
            raise InvalidEstimateInputError(
                "PERT inputs must satisfy optimistic <= most_likely <= pessimistic",
                task.task_id,
                optimistic=optimistic,
                most_likely=most_likely,
                pessimistic=pessimistic,
            )

        expected = (optimistic + 4 * most_likely + pessimistic) / 6
        std_dev = (pessimistic - optimistic) / 6

        # A narrow spread relative to the mean earns more confidence.
        base = self.config.get('estimation', {}).get('pert_confidence', 0.8)
        spread = std_dev / expected if expected > 0 else 0.0
        confidence = max(0.1, min(0.95, base * (1.0 - min(spread, 0.5))))

        return Estimate(
            task_id=task.task_id,
            method=EstimationMethod.PERT,
            expected_minutes=expected,
            confidence=confidence,
            optimistic=optimistic,
            most_likely=most_likely,
            pessimistic=pessimistic,
            std_dev=std_dev,
            interval=(expected - std_dev, expected + std_dev),
            rationale=(
                f"PERT estimate from optimistic ({optimistic:g}), most likely ({most_likely:g}) "
                f"and pessimistic ({pessimistic:g}) scenarios"
            ),
        )

    def get_method(self) -> EstimationMethod:
        return EstimationMethod.PERT
