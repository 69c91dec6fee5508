"""Effort estimation methods."""

from .analogy import AnalogyStrategy, keyword_similarity
from .base import EstimationStrategy
from .engine import EstimationEngine
from .expert import ExpertJudgmentStrategy
from .pert import PertStrategy

__all__ = [
    'EstimationEngine', 'EstimationStrategy',
    'AnalogyStrategy', 'ExpertJudgmentStrategy', 'PertStrategy',
    'keyword_similarity',
]
