"""Slot scoring policy implementations."""

from .base import SlotCandidate, SlotScoringPolicy
from .baseline import EarliestFitPolicy
from .weighted import WeightedSlotPolicy

__all__ = ['SlotCandidate', 'SlotScoringPolicy', 'EarliestFitPolicy', 'WeightedSlotPolicy']
