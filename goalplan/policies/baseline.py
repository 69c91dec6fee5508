"""Baseline earliest-fit slot policy."""

from typing import Dict, Tuple

from ..models.capacity import CapacityProfile
from ..models.trace import TaskFeatures
from .base import SlotCandidate, SlotScoringPolicy


class EarliestFitPolicy(SlotScoringPolicy):
    """Baseline policy: every slot scores the same, so the earliest start wins."""

    def score_slot(
        self,
        features: TaskFeatures,
        candidate: SlotCandidate,
        profile: CapacityProfile,
    ) -> Tuple[float, Dict[str, float]]:
        """Flat score; selection falls through to the start-time tie-break."""
        return 0.0, {}

    def get_policy_name(self) -> str:
        """Return policy name."""
        return "EARLIEST-FIT"
