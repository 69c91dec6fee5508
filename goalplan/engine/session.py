"""Per-goal scheduling sessions.

A session owns the block generations of one goal and admits a single
scheduling pass at a time. A second request for the same goal waits its
turn (``queue`` mode) or fails fast (``reject`` mode).
"""

import itertools
import logging
import threading
from collections import deque
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, List, Optional

from ..errors import AlreadySchedulingError, UnknownConflictError
from ..models.capacity import PlanGeneration, ScheduledBlock
from ..models.conflict import Conflict, ResolutionStatus

logger = logging.getLogger(__name__)

MODES = ('queue', 'reject')


class SchedulingSession:
    """Single-writer state of one goal."""

    def __init__(self, goal_id: str):
        self.goal_id = goal_id
        self._cond = threading.Condition()
        self._running = False
        self._waiting: deque = deque()
        self._tickets = itertools.count(1)
        self._generations: Dict[str, List[PlanGeneration]] = {}

    @property
    def running(self) -> bool:
        with self._cond:
            return self._running

    def begin(self, mode: str = 'queue', timeout: Optional[float] = None) -> None:
        """Claim the session, waiting in FIFO order in queue mode."""
        with self._cond:
            if mode == 'reject':
                if self._running:
                    raise AlreadySchedulingError(self.goal_id)
                self._running = True
                return

            ticket = next(self._tickets)
            self._waiting.append(ticket)
            if self._running:
                logger.info("Goal %s busy, request %d queued", self.goal_id, ticket)
            ready = self._cond.wait_for(
                lambda: not self._running and self._waiting[0] == ticket, timeout=timeout,
            )
            if not ready:
                self._waiting.remove(ticket)
                self._cond.notify_all()
                raise AlreadySchedulingError(self.goal_id)
            self._waiting.popleft()
            self._running = True

    def end(self) -> None:
        with self._cond:
            self._running = False
            self._cond.notify_all()

    def next_generation(self, milestone_id: str) -> int:
        history = self._generations.get(milestone_id, [])
        return history[-1].number + 1 if history else 1

    def record(
        self,
        milestone_id: str,
        blocks: List[ScheduledBlock],
        origin: str,
        conflicts: Optional[List[Conflict]] = None,
    ) -> PlanGeneration:
        """Append a generation. Earlier generations are kept for diffing."""
        generation = PlanGeneration(
            number=self.next_generation(milestone_id),
            blocks=list(blocks),
            created_at=datetime.now(),
            origin=origin,
            conflicts=list(conflicts or []),
        )
        self._generations.setdefault(milestone_id, []).append(generation)
        logger.debug(
            "Goal %s milestone %s: generation %d from %s (%d blocks)",
            self.goal_id, milestone_id, generation.number, origin, len(blocks),
        )
        return generation

    def latest(self, milestone_id: str) -> Optional[PlanGeneration]:
        history = self._generations.get(milestone_id)
        return history[-1] if history else None

    def history(self, milestone_id: str) -> List[PlanGeneration]:
        return list(self._generations.get(milestone_id, []))

    def set_conflict_status(self, milestone_id: str, conflict_id: str, status: ResolutionStatus) -> Conflict:
        """Replace a conflict of the latest generation with a copy carrying ``status``."""
        latest = self.latest(milestone_id)
        conflicts = latest.conflicts if latest is not None else []
        for index, conflict in enumerate(conflicts):
            if conflict.conflict_id == conflict_id:
                updated = conflict.with_status(status)
                conflicts[index] = updated
                logger.info(
                    "Goal %s conflict %s marked %s", self.goal_id, conflict_id, status.value,
                )
                return updated
        raise UnknownConflictError(milestone_id, conflict_id)


class SessionRegistry:
    """Hands out one session per goal."""

    def __init__(self, mode: str = 'queue'):
        if mode not in MODES:
            raise ValueError(f"Unknown concurrent request mode: {mode}")
        self.mode = mode
        self._lock = threading.Lock()
        self._sessions: Dict[str, SchedulingSession] = {}

    @classmethod
    def from_config(cls, config: dict) -> 'SessionRegistry':
        return cls(config.get('sessions', {}).get('concurrent_request_mode', 'queue'))

    def session(self, goal_id: str) -> SchedulingSession:
        with self._lock:
            if goal_id not in self._sessions:
                self._sessions[goal_id] = SchedulingSession(goal_id)
            return self._sessions[goal_id]

    @contextmanager
    def acquire(self, goal_id: str, timeout: Optional[float] = None) -> Iterator[SchedulingSession]:
        """Hold the goal's session for the duration of a pass."""
        session = self.session(goal_id)
        session.begin(self.mode, timeout)
        try:
            yield session
        finally:
            session.end()
