"""Base estimation strategy interface."""

from abc import ABC, abstractmethod
from typing import Any, Dict

from ..errors import InvalidEstimateInputError
from ..models.estimate import Estimate, EstimationMethod
from ..models.task import Task


class EstimationStrategy(ABC):
    """Abstract base class for estimation methods."""

    def __init__(self, config: dict):
        """Initialize strategy with configuration."""
        self.config = config

    @abstractmethod
    def estimate(self, task: Task, params: Dict[str, Any]) -> Estimate:
        """Produce an estimate for a task from method-specific params."""
        pass

    @abstractmethod
    def get_method(self) -> EstimationMethod:
        """Return the method this strategy implements."""
        pass

    @staticmethod
    def _require(params: Dict[str, Any], key: str, task: Task) -> Any:
        if params.get(key) is None:
            raise InvalidEstimateInputError(f"Missing estimation parameter '{key}'", task.task_id, parameter=key)
        return params[key]
