"""Decision trace models for observability."""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Dict, List, Optional, Any


@dataclass
class TaskFeatures:
    """Computed features for a task during scheduling."""

    task_id: str
    priority: int
    effort_minutes: int
    slack_minutes: float
    urgency: float
    dependency_ready: bool
    best_score: Optional[float] = None
    score_components: Optional[Dict[str, float]] = None


@dataclass
class SchedulingDecision:
    """Records a single scheduling decision."""

    task_id: str
    actor_id: Optional[str]
    scheduled_start: Optional[datetime]
    scheduled_minutes: int
    reason: str
    constraint_applied: Optional[str] = None
    fragments: int = 1


@dataclass
class DecisionTrace:
    """Complete trace of a scheduling run."""

    run_id: str
    timestamp: datetime
    policy_name: str
    config: Dict[str, Any]
    task_features: List[TaskFeatures]
    decisions: List[SchedulingDecision]
    summary_stats: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert trace to dictionary for JSON export."""
        return asdict(self)

    def to_human_readable(self) -> str:
        """Generate human-readable log format."""
        lines = [
            f"=== Scheduling Run: {self.run_id} ===",
            f"Policy: {self.policy_name}",
            f"Timestamp: {self.timestamp}",
            f"",
            "Configuration:",
        ]

        for key, value in self.config.items():
            lines.append(f"  {key}: {value}")

        lines.extend([
            "",
            "Task Features:",
        ])

        for tf in self.task_features:
            lines.append(f"  Task {tf.task_id}:")
            lines.append(f"    Priority: {tf.priority}")
            lines.append(f"    Effort: {tf.effort_minutes} minutes")
            lines.append(f"    Slack: {tf.slack_minutes:.0f} minutes")
            lines.append(f"    Urgency: {tf.urgency:.2f}")
            lines.append(f"    Dependencies ready: {tf.dependency_ready}")
            if tf.best_score is not None:
                lines.append(f"    Best slot score: {tf.best_score:.3f}")
                if tf.score_components:
                    lines.append(f"    Score components: {tf.score_components}")

        lines.extend([
            "",
            "Scheduling Decisions:",
        ])

        for decision in self.decisions:
            when = decision.scheduled_start.isoformat(timespec='minutes') if decision.scheduled_start else "-"
            lines.append(
                f"  {decision.task_id} -> {decision.actor_id or '-'} @ {when}: "
                f"{decision.scheduled_minutes} min in {decision.fragments} block(s)"
            )
            lines.append(f"    Reason: {decision.reason}")
            if decision.constraint_applied:
                lines.append(f"    Constraint: {decision.constraint_applied}")

        lines.extend([
            "",
            "Summary Statistics:",
        ])

        for key, value in self.summary_stats.items():
            lines.append(f"  {key}: {value}")

        lines.append("=" * 50)

        return "\n".join(lines)
