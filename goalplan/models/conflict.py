"""Conflict records emitted after scheduling."""

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class ConflictKind(str, Enum):
    """Types of conflicts."""
    OVERLAP = "overlap"
    DEPENDENCY_VIOLATION = "dependency_violation"
    CAPACITY_BREACH = "capacity_breach"


class ResolutionStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    IGNORED = "ignored"


@dataclass(frozen=True)
class Conflict:
    """Represents a detected conflict."""

    conflict_id: str
    kind: ConflictKind
    task_ids: Tuple[str, ...]
    description: str
    actor_id: Optional[str] = None
    resolution_status: ResolutionStatus = ResolutionStatus.PENDING
    generation: int = 1

    def with_status(self, status: ResolutionStatus) -> 'Conflict':
        """Return a new record carrying the resolution status."""
        return dataclasses.replace(self, resolution_status=status)

    def to_dict(self) -> Dict:
        return {
            'conflict_id': self.conflict_id,
            'kind': self.kind.value,
            'task_ids': list(self.task_ids),
            'description': self.description,
            'actor_id': self.actor_id,
            'resolution_status': self.resolution_status.value,
            'generation': self.generation,
        }


@dataclass
class ConflictSummary:
    """Summary of a conflict detection run."""

    total_conflicts: int
    by_kind: Dict[str, int]
    affected_task_ids: List[str] = field(default_factory=list)

    @classmethod
    def from_conflicts(cls, conflicts: List[Conflict]) -> 'ConflictSummary':
        by_kind = {kind.value: 0 for kind in ConflictKind}
        affected = set()
        for conflict in conflicts:
            by_kind[conflict.kind.value] += 1
            affected.update(conflict.task_ids)
        return cls(len(conflicts), by_kind, sorted(affected))
