"""Optional advisory suggestions with a deterministic fallback.

The advisory collaborator sees a finished schedule and its conflicts and
may return natural-language suggestions. Its output never changes blocks.
If it is disabled, late, failing or malformed, the gateway substitutes
suggestions derived from the schedule itself.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

from .engine.scheduler import UnplacedTask
from .models.capacity import ScheduledBlock
from .models.conflict import Conflict, ConflictKind

logger = logging.getLogger(__name__)


@dataclass
class Suggestion:
    suggestion: str
    reasoning: str
    alternatives: List[Dict[str, str]] = field(default_factory=list)
    urgency_warning: Optional[str] = None
    conflict_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'suggestion': self.suggestion,
            'reasoning': self.reasoning,
            'alternatives': self.alternatives,
            'urgency_warning': self.urgency_warning,
            'conflict_id': self.conflict_id,
        }


@dataclass
class Advisory:
    """Suggestions supplied by the advisory collaborator."""

    suggestions: List[Suggestion]
    is_fallback = False

    def to_dict(self) -> Dict[str, Any]:
        return {'source': 'advisory', 'suggestions': [s.to_dict() for s in self.suggestions]}


@dataclass
class Fallback:
    """Deterministic suggestions used when no advisory is available."""

    suggestions: List[Suggestion]
    reason: str
    is_fallback = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source': 'fallback',
            'reason': self.reason,
            'suggestions': [s.to_dict() for s in self.suggestions],
        }


AdvisoryResult = Union[Advisory, Fallback]


class AdvisoryClient(ABC):
    """External collaborator asked for suggestions on a schedule."""

    @abstractmethod
    def advise(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """Return ``{'suggestions': [{'suggestion', 'alternatives', ...}]}``."""
        pass


def build_request(
    blocks: List[ScheduledBlock],
    unplaced: List[UnplacedTask],
    conflicts: List[Conflict],
) -> Dict[str, Any]:
    return {
        'schedule': [
            {
                'block_id': b.block_id,
                'task_id': b.task_id,
                'actor_id': b.actor_id,
                'start': b.start.isoformat(),
                'end': b.end.isoformat(),
            }
            for b in blocks
        ],
        'unplaced': [u.to_dict() for u in unplaced],
        'conflicts': [c.to_dict() for c in conflicts],
    }


def parse_response(response: Any) -> List[Suggestion]:
    """Validate a collaborator response. Raises ValueError when malformed."""
    if not isinstance(response, dict):
        raise ValueError("response is not a mapping")
    items = response.get('suggestions')
    if not isinstance(items, list) or not items:
        raise ValueError("response has no suggestions list")

    suggestions = []
    for item in items:
        if not isinstance(item, dict) or not isinstance(item.get('suggestion'), str):
            raise ValueError("suggestion entry lacks a 'suggestion' string")
        alternatives = item.get('alternatives', [])
        if not isinstance(alternatives, list) or not all(isinstance(a, dict) for a in alternatives):
            raise ValueError("'alternatives' must be a list of mappings")
        suggestions.append(Suggestion(
            suggestion=item['suggestion'],
            reasoning=str(item.get('reasoning', '')),
            alternatives=[{str(k): str(v) for k, v in a.items()} for a in alternatives],
            urgency_warning=item.get('urgency_warning'),
            conflict_id=item.get('conflict_id'),
        ))
    return suggestions


_CONFLICT_OPTIONS = {
    ConflictKind.OVERLAP: [
        {'option': 'Move the later block to the next free slot', 'trade_offs': 'Small delay, keeps task order'},
        {'option': 'Reassign one task to another actor', 'trade_offs': 'Needs a compatible actor with free time'},
    ],
    ConflictKind.DEPENDENCY_VIOLATION: [
        {'option': 'Reschedule the successor after its predecessor', 'trade_offs': 'Delays downstream work'},
        {'option': 'Relax the dependency lag', 'trade_offs': 'Needs agreement that work may overlap'},
    ],
    ConflictKind.CAPACITY_BREACH: [
        {'option': 'Run capacity optimization', 'trade_offs': 'Moves low-priority work to other actors'},
        {'option': 'Extend the planning window', 'trade_offs': 'Later completion for non-critical work'},
    ],
}


def fallback_suggestions(
    blocks: List[ScheduledBlock],
    unplaced: List[UnplacedTask],
    conflicts: List[Conflict],
    urgent_task_ids: Iterable[str] = (),
) -> List[Suggestion]:
    """Suggestions derived from unplaced tasks, fragmentation and conflicts."""
    suggestions = []
    urgent = set(urgent_task_ids)

    if unplaced:
        suggestions.append(Suggestion(
            suggestion=(
                f"{len(unplaced)} tasks could not be scheduled. "
                "Consider extending working hours or moving lower-priority tasks."
            ),
            reasoning="Insufficient available time slots for all tasks within current constraints.",
            alternatives=[
                {'option': 'Extend daily working hours by 1-2 hours',
                 'trade_offs': 'More daily load but the work fits'},
                {'option': 'Move non-critical tasks to the next planning window',
                 'trade_offs': 'Delays some deliverables but keeps the schedule realistic'},
            ],
            urgency_warning=(
                "Critical tasks are unscheduled"
                if any(u.task_id in urgent for u in unplaced) else None
            ),
        ))

    fragmented = sorted({b.parent_task_id for b in blocks if b.parent_task_id is not None})
    if fragmented:
        suggestions.append(Suggestion(
            suggestion=(
                f"{len(fragmented)} tasks are split across multiple time blocks. "
                "Consider consolidating for better focus."
            ),
            reasoning="Fragmented work adds context switches.",
            alternatives=[
                {'option': 'Reserve longer continuous blocks',
                 'trade_offs': 'May require moving other commitments'},
                {'option': 'Keep the split and add buffer between blocks',
                 'trade_offs': 'Reduces total available time'},
            ],
        ))

    for conflict in conflicts:
        suggestions.append(Suggestion(
            suggestion=f"Resolve {conflict.kind.value.replace('_', ' ')}: {conflict.description}",
            reasoning="Unresolved conflicts may delay dependent tasks.",
            alternatives=list(_CONFLICT_OPTIONS[conflict.kind]),
            conflict_id=conflict.conflict_id,
        ))

    return suggestions


class AdvisoryGateway:
    """Calls the advisory collaborator with a timeout, once, without retry."""

    def __init__(self, client: Optional[AdvisoryClient] = None, timeout_seconds: float = 10.0,
                 enabled: bool = True):
        self.client = client
        self.timeout_seconds = timeout_seconds
        self.enabled = enabled

    @classmethod
    def from_config(cls, config: dict, client: Optional[AdvisoryClient] = None) -> 'AdvisoryGateway':
        settings = config.get('advisory', {})
        return cls(client, settings.get('timeout_seconds', 10), settings.get('enabled', False))

    def advise(
        self,
        blocks: List[ScheduledBlock],
        unplaced: List[UnplacedTask],
        conflicts: List[Conflict],
        urgent_task_ids: Iterable[str] = (),
    ) -> AdvisoryResult:
        urgent_task_ids = list(urgent_task_ids)
        if not self.enabled or self.client is None:
            return Fallback(fallback_suggestions(blocks, unplaced, conflicts, urgent_task_ids), "advisory disabled")

        request = build_request(blocks, unplaced, conflicts)
        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(self.client.advise, request)
        try:
            suggestions = parse_response(future.result(timeout=self.timeout_seconds))
        except FutureTimeout:
            reason = f"advisory timed out after {self.timeout_seconds}s"
        except ValueError as exc:
            reason = f"malformed advisory response: {exc}"
        except Exception as exc:
            reason = f"advisory failed: {exc}"
        else:
            return Advisory(suggestions)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        logger.warning("Using deterministic suggestions, %s", reason)
        return Fallback(fallback_suggestions(blocks, unplaced, conflicts, urgent_task_ids), reason)
