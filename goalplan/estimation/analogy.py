"""Analogy estimation from historically completed tasks."""

import re
from typing import Any, Callable, Dict, List, Set, Tuple

from ..errors import InsufficientHistoryError, InvalidEstimateInputError
from ..models.estimate import Estimate, EstimationMethod
from ..models.task import Task, TaskOutcome
from .base import EstimationStrategy

Similarity = Callable[[Task, TaskOutcome], float]


def _words(text: str) -> Set[str]:
    return set(re.findall(r"[a-z0-9]+", text.lower()))


def _jaccard(a: Set[str], b: Set[str]) -> float:
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def keyword_similarity(task: Task, outcome: TaskOutcome) -> float:
    """Default similarity: skill overlap and title/description word overlap."""
    skills = _jaccard(set(task.skills), set(outcome.skills))
    words = _jaccard(
        _words(f"{task.title} {task.description}"),
        _words(f"{outcome.title} {outcome.description}"),
    )
    if not task.skills and not outcome.skills:
        return words
    return 0.5 * skills + 0.5 * words


class AnalogyStrategy(EstimationStrategy):
    """Weighted average of the actual durations of the top-k similar tasks.

    Params:
        corpus: completed ``TaskOutcome`` records.
        similarity: callable scoring (task, outcome) in 0-1.
        k: number of neighbours (default from config).
        complexity_delta: relative adjustment, 0.2 means 20% more work.
    """

    def estimate(self, task: Task, params: Dict[str, Any]) -> Estimate:
        corpus: List[TaskOutcome] = list(params.get('corpus') or [])
        similarity: Similarity = params.get('similarity') or keyword_similarity
        est_config = self.config.get('estimation', {})
        k = int(params.get('k', est_config.get('analogy_top_k', 5)))
        min_similarity = float(params.get('min_similarity', est_config.get('analogy_min_similarity', 0.3)))
        complexity_delta = float(params.get('complexity_delta', 0.0))

        if k < 1:
            raise InvalidEstimateInputError("k must be at least 1", task.task_id, k=k)
        if complexity_delta <= -1.0:
            raise InvalidEstimateInputError(
                "complexity_delta must be greater than -1", task.task_id, complexity_delta=complexity_delta,
            )

        scored: List[Tuple[float, TaskOutcome]] = []
        for outcome in corpus:
            if outcome.task_id == task.task_id:
                continue
            score = float(similarity(task, outcome))
            if not 0.0 <= score <= 1.0:
                raise InvalidEstimateInputError(
                    "Similarity scores must be within 0-1", task.task_id, outcome=outcome.task_id, score=score,
                )
            if score >= min_similarity and score > 0:
                scored.append((score, outcome))

        if not scored:
            raise InsufficientHistoryError(
                "No sufficiently similar completed tasks for analogy estimation",
                task.task_id,
                corpus_size=len(corpus),
                min_similarity=min_similarity,
            )

        scored.sort(key=lambda pair: (-pair[0], pair[1].task_id))
        neighbours = scored[:k]

        total_weight = sum(score for score, _ in neighbours)
        baseline = sum(score * outcome.actual_minutes for score, outcome in neighbours) / total_weight
        expected = baseline * (1.0 + complexity_delta)

        scores = [score for score, _ in neighbours]
        mean_similarity = total_weight / len(scores)
        spread = max(scores) - min(scores)
        confidence = max(0.0, min(0.95, mean_similarity * (1.0 - spread)))

        return Estimate(
            task_id=task.task_id,
            method=EstimationMethod.ANALOGY,
            expected_minutes=expected,
            confidence=confidence,
            source_task_ids=tuple(outcome.task_id for _, outcome in neighbours),
            rationale=(
                f"Based on {len(neighbours)} similar tasks with average similarity "
                f"of {mean_similarity:.2f}, complexity adjustment {complexity_delta:+.0%}"
            ),
        )

    def get_method(self) -> EstimationMethod:
        return EstimationMethod.ANALOGY
