"""Estimation engine: method dispatch, estimate history and accuracy tracking."""

import dataclasses
import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Union

from ..errors import InvalidEstimateInputError
from ..models.estimate import AccuracySample, Estimate, EstimationMethod, MethodAccuracy
from ..models.task import Task
from .analogy import AnalogyStrategy
from .base import EstimationStrategy
from .expert import ExpertJudgmentStrategy
from .pert import PertStrategy

logger = logging.getLogger(__name__)

# Two-sided z-scores by confidence level.
Z_SCORES = {0.5: 0.674, 0.6: 0.842, 0.7: 1.036, 0.8: 1.282, 0.9: 1.645, 0.95: 1.960, 0.99: 2.576}


class EstimationEngine:
    """Produces estimates with interchangeable methods.

    Estimates are append-only per task. Recording an actual duration feeds
    the per-method accuracy metric, which scales the confidence of later
    estimates from that method; earlier estimates are left as they were.
    """

    def __init__(self, config: Optional[dict] = None):
        self.config = config or {}
        est_config = self.config.get('estimation', {})
        self.calibration_min_samples = est_config.get('calibration_min_samples', 3)
        self.strategies: Dict[EstimationMethod, EstimationStrategy] = {}
        for strategy in (
            ExpertJudgmentStrategy(self.config),
            AnalogyStrategy(self.config),
            PertStrategy(self.config),
        ):
            self.register(strategy)
        self._history: Dict[str, List[Estimate]] = {}
        self._accuracy: Dict[EstimationMethod, MethodAccuracy] = {
            method: MethodAccuracy(method) for method in EstimationMethod
        }

    def register(self, strategy: EstimationStrategy) -> None:
        """Install or replace the strategy for its method."""
        self.strategies[strategy.get_method()] = strategy

    def estimate(
        self,
        task: Task,
        method: Union[EstimationMethod, str],
        params: Optional[Dict[str, Any]] = None,
    ) -> Estimate:
        try:
            method = EstimationMethod(method)
        except ValueError:
            raise InvalidEstimateInputError(f"Unknown estimation method: {method}", task.task_id) from None
        if method not in self.strategies:
            raise InvalidEstimateInputError(f"No strategy registered for {method.value}", task.task_id)

        estimate = self.strategies[method].estimate(task, params or {})
        factor = self.calibration_factor(method)
        if factor < 1.0:
            estimate = dataclasses.replace(estimate, confidence=estimate.confidence * factor)

        self._history.setdefault(task.task_id, []).append(estimate)
        logger.info(
            "Estimated task %s with %s: %.1f min (confidence %.2f)",
            task.task_id, method.value, estimate.expected_minutes, estimate.confidence,
        )
        return estimate

    def estimate_combined(
        self,
        task: Task,
        requests: Mapping[Union[EstimationMethod, str], Optional[Dict[str, Any]]],
        confidence_level: float = 0.8,
    ) -> Estimate:
        """Run several methods and merge them into one confidence-weighted estimate.

        Each method's estimate is recorded on its own, then the combination
        is recorded last so it becomes the task's latest estimate. The
        interval is the weighted spread of the methods around the mean,
        scaled by the z-score of ``confidence_level``.
        """
        if not requests:
            raise InvalidEstimateInputError("At least one estimation method is required", task.task_id)

        parts = [self.estimate(task, method, params) for method, params in requests.items()]

        total_weight = sum(p.confidence for p in parts)
        if total_weight > 0:
            expected = sum(p.expected_minutes * p.confidence for p in parts) / total_weight
            variance = sum(p.confidence * (p.expected_minutes - expected) ** 2 for p in parts) / total_weight
        else:
            expected = sum(p.expected_minutes for p in parts) / len(parts)
            variance = sum((p.expected_minutes - expected) ** 2 for p in parts) / len(parts)
        std_dev = math.sqrt(variance)

        z = Z_SCORES[min(Z_SCORES, key=lambda level: abs(level - confidence_level))]
        margin = z * std_dev
        optimistic, pessimistic = expected - margin, expected + margin
        # A three-point estimate widens the range to at least +/-30%.
        if any(p.method == EstimationMethod.PERT for p in parts):
            optimistic = min(optimistic, expected * 0.7)
            pessimistic = max(pessimistic, expected * 1.3)

        sources = []
        for part in parts:
            sources.extend(s for s in part.source_task_ids if s not in sources)

        combined = Estimate(
            task_id=task.task_id,
            method=EstimationMethod.COMBINED,
            expected_minutes=expected,
            confidence=total_weight / len(parts) * self.calibration_factor(EstimationMethod.COMBINED),
            optimistic=max(0.0, optimistic),
            most_likely=expected,
            pessimistic=pessimistic,
            std_dev=std_dev,
            interval=(max(0.0, expected - margin), expected + margin),
            source_task_ids=tuple(sources),
            rationale="Confidence-weighted mean of " + ", ".join(p.method.value for p in parts),
        )
        self._history.setdefault(task.task_id, []).append(combined)
        logger.info(
            "Combined %d estimates for task %s: %.1f min (std dev %.1f)",
            len(parts), task.task_id, expected, std_dev,
        )
        return combined

    def history(self, task_id: str) -> List[Estimate]:
        return list(self._history.get(task_id, []))

    def latest(self, task_id: str) -> Optional[Estimate]:
        estimates = self._history.get(task_id)
        return estimates[-1] if estimates else None

    def record_actual(self, task_id: str, actual_minutes: float) -> Optional[AccuracySample]:
        """Compare a completed task's actual duration with its latest estimate.

        A task contributes one sample at most; recording again replaces it.
        """
        if actual_minutes <= 0:
            raise InvalidEstimateInputError("Actual duration must be positive", task_id, actual=actual_minutes)
        estimate = self.latest(task_id)
        if estimate is None:
            logger.debug("No estimate on record for %s, skipping accuracy sample", task_id)
            return None

        sample = AccuracySample(task_id, estimate.method, estimate.expected_minutes, actual_minutes)
        for accuracy in self._accuracy.values():
            accuracy.samples = [s for s in accuracy.samples if s.task_id != task_id]
        self._accuracy[estimate.method].samples.append(sample)
        logger.info(
            "Recorded actual for %s: estimated %.1f, actual %.1f (APE %.1f%%)",
            task_id, estimate.expected_minutes, actual_minutes, sample.absolute_percentage_error * 100,
        )
        return sample

    def calibration_factor(self, method: EstimationMethod) -> float:
        accuracy = self._accuracy[method]
        if len(accuracy.samples) < self.calibration_min_samples:
            return 1.0
        return max(0.1, 1.0 - accuracy.mape)

    def mape(self, method: Union[EstimationMethod, str]) -> Optional[float]:
        return self._accuracy[EstimationMethod(method)].mape

    def accuracy_report(self) -> Dict[str, Dict[str, Any]]:
        """Per-method MAPE and sample counts for reporting."""
        return {
            method.value: {
                'mape': accuracy.mape,
                'samples': len(accuracy.samples),
                'calibration_factor': self.calibration_factor(method),
            }
            for method, accuracy in self._accuracy.items()
        }
