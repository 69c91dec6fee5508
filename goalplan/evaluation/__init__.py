"""Evaluation and simulation modules."""

from .generator import GoalGenerator, SyntheticGoal
from .evaluator import EvaluationResult, PlanEvaluator
from .diff import BlockChange, ChangeType, GenerationDiff

__all__ = [
    'GoalGenerator', 'SyntheticGoal',
    'EvaluationResult', 'PlanEvaluator',
    'BlockChange', 'ChangeType', 'GenerationDiff',
]
