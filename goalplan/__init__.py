"""Goal decomposition and constrained scheduling engine."""

from .errors import PlanningError
from .service import DependencyGraphView, PlanningService, ScheduleResponse
from .store import CalendarSource, InMemoryTaskStore, StaticCalendar, TaskStore

__version__ = "0.1.0"

__all__ = [
    'PlanningError',
    'PlanningService', 'DependencyGraphView', 'ScheduleResponse',
    'TaskStore', 'CalendarSource', 'InMemoryTaskStore', 'StaticCalendar',
]
