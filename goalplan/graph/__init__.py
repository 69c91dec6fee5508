"""Task graph and critical path analysis."""

from .critical_path import CriticalPathAnalyzer, CriticalPathResult, ParallelTrack, TaskTiming
from .task_graph import TaskGraph

__all__ = ['TaskGraph', 'CriticalPathAnalyzer', 'CriticalPathResult', 'ParallelTrack', 'TaskTiming']
