"""Weighted priority/dependency/preference slot scoring policy."""

from datetime import datetime
from typing import Dict, Tuple

from ..models.capacity import CapacityProfile
from ..models.trace import TaskFeatures
from ..utils.datetime_utils import intersect_intervals, minutes_between
from .base import SlotCandidate, SlotScoringPolicy


class WeightedSlotPolicy(SlotScoringPolicy):
    """Scores slots as a weighted sum of normalized components.

    score = w_priority * priority/100
          + w_dependency * dependency_urgency
          + w_preference * preference_match
          + w_adjacency * adjacency   (split fragments only)
    """

    def __init__(self, config: dict):
        """Initialize weighted policy."""
        super().__init__(config)
        self.weights = {
            'priority': 0.4,
            'dependency': 0.4,
            'preference': 0.2,
            'adjacency': 0.1,
        }
        self.weights.update(config.get('slot_weights', {}))

    def score_slot(
        self,
        features: TaskFeatures,
        candidate: SlotCandidate,
        profile: CapacityProfile,
    ) -> Tuple[float, Dict[str, float]]:
        """Compute the weighted score of a candidate slot."""
        components = {
            'priority': max(0.0, min(1.0, features.priority / 100.0)),
            'dependency': max(0.0, min(1.0, features.urgency)),
            'preference': self._preference_match(candidate, profile),
        }
        if candidate.fragment_index > 0:
            components['adjacency'] = self._adjacency(candidate)

        score = sum(components[key] * self.weights.get(key, 0.0) for key in components)
        return score, components

    @staticmethod
    def _preference_match(candidate: SlotCandidate, profile: CapacityProfile) -> float:
        """Share of the block that falls inside the actor's preferred windows.

        Actors without preferred windows match every slot fully.
        """
        if not profile.preferred_windows:
            return 1.0
        day = candidate.start.date()
        windows = [
            (datetime.combine(day, start, tzinfo=candidate.start.tzinfo),
             datetime.combine(day, end, tzinfo=candidate.start.tzinfo))
            for start, end in profile.preferred_windows
        ]
        total = minutes_between(candidate.start, candidate.end)
        if total <= 0:
            return 0.0
        inside = sum(
            minutes_between(start, end)
            for start, end in intersect_intervals([(candidate.start, candidate.end)], windows)
        )
        return inside / total

    @staticmethod
    def _adjacency(candidate: SlotCandidate) -> float:
        """1.0 when a fragment directly follows its predecessor fragment."""
        if candidate.previous_end is None or candidate.previous_actor != candidate.actor_id:
            return 0.0
        if candidate.start == candidate.previous_end:
            return 1.0
        if candidate.start.date() == candidate.previous_end.date():
            return 0.5
        return 0.0

    def get_policy_name(self) -> str:
        """Return policy name."""
        return "WEIGHTED"
