"""Comparison of two block generations."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from ..models.capacity import ScheduledBlock


class ChangeType(str, Enum):
    MOVED = "moved"
    RETIMED = "retimed"
    ADDED = "added"
    REMOVED = "removed"


@dataclass
class BlockChange:
    """Represents one difference between generations."""

    task_id: str
    change_type: ChangeType
    description: str
    before: Optional[ScheduledBlock] = None
    after: Optional[ScheduledBlock] = None


class GenerationDiff:
    """Compares blocks of two generations by task id.

    A block that changed actor is ``moved`` even if its time changed too.
    """

    def analyze(self, before: List[ScheduledBlock], after: List[ScheduledBlock]) -> List[BlockChange]:
        old: Dict[str, ScheduledBlock] = {b.task_id: b for b in before}
        new: Dict[str, ScheduledBlock] = {b.task_id: b for b in after}
        changes = []

        for task_id in sorted(set(old) | set(new)):
            a, b = old.get(task_id), new.get(task_id)
            if a is None:
                changes.append(BlockChange(
                    task_id, ChangeType.ADDED,
                    f"{task_id} added on {b.actor_id} at {b.start.isoformat(timespec='minutes')}", after=b,
                ))
            elif b is None:
                changes.append(BlockChange(
                    task_id, ChangeType.REMOVED, f"{task_id} no longer scheduled on {a.actor_id}", before=a,
                ))
            elif a.actor_id != b.actor_id:
                changes.append(BlockChange(
                    task_id, ChangeType.MOVED, f"{task_id} moved from {a.actor_id} to {b.actor_id}", a, b,
                ))
            elif (a.start, a.end) != (b.start, b.end):
                changes.append(BlockChange(
                    task_id, ChangeType.RETIMED,
                    f"{task_id} retimed from {a.start.isoformat(timespec='minutes')} "
                    f"to {b.start.isoformat(timespec='minutes')}",
                    a, b,
                ))
        return changes

    def generate_report(self, changes: List[BlockChange]) -> Dict:
        """Generate a JSON-ready report grouped by change type."""
        report = {
            'summary': {
                'total_changes': len(changes),
                **{kind.value: sum(1 for c in changes if c.change_type == kind) for kind in ChangeType},
            },
        }
        for kind in ChangeType:
            report[kind.value] = [
                {'task_id': c.task_id, 'description': c.description}
                for c in changes if c.change_type == kind
            ]
        return report
