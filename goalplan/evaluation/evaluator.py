"""Offline plan evaluation: policy comparison and capacity rebalancing report."""

import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..engine.conflicts import ConflictDetector
from ..engine.optimizer import CapacityOptimizer, OptimizationResult
from ..engine.scheduler import SchedulingConstraints, SchedulingResult, SlotScheduler
from ..graph.task_graph import TaskGraph
from ..models.trace import DecisionTrace
from ..policies.base import SlotScoringPolicy
from ..policies.baseline import EarliestFitPolicy
from ..policies.weighted import WeightedSlotPolicy
from .generator import GoalGenerator, SyntheticGoal


class EvaluationResult:
    """Results from evaluating a policy."""

    def __init__(self, policy_name: str):
        self.policy_name = policy_name
        self.tasks_total = 0
        self.tasks_scheduled = 0
        self.tasks_unplaced = 0
        self.task_splits = 0
        self.conflicts = 0
        self.makespan_minutes = 0
        self.preference_match = 0.0
        self.average_utilization = 0.0
        self.max_utilization = 0.0
        self.traces: List[DecisionTrace] = []

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON export."""
        placement_rate = (self.tasks_scheduled / self.tasks_total * 100) if self.tasks_total > 0 else 0

        return {
            'policy': self.policy_name,
            'placement_rate_percent': placement_rate,
            'tasks_scheduled': self.tasks_scheduled,
            'tasks_unplaced': self.tasks_unplaced,
            'tasks_total': self.tasks_total,
            'task_splits': self.task_splits,
            'conflicts': self.conflicts,
            'makespan_minutes': self.makespan_minutes,
            'preference_match': self.preference_match,
            'average_utilization': self.average_utilization,
            'max_utilization': self.max_utilization,
        }


class PlanEvaluator:
    """Compares slot policies on a generated goal and reports rebalancing."""

    def __init__(self, config: dict):
        """Initialize evaluator with configuration."""
        self.config = config
        self.generator = GoalGenerator(seed=42, config=config)

    def constraints_for(self, start: datetime) -> SchedulingConstraints:
        return SchedulingConstraints.from_config(self.config, start)

    def evaluate_policy(
        self,
        policy: SlotScoringPolicy,
        goal: SyntheticGoal,
        constraints: SchedulingConstraints,
    ) -> Tuple[EvaluationResult, SchedulingResult]:
        """Schedule the goal with one policy and measure the outcome."""
        graph = TaskGraph(goal.tasks, goal.dependencies)
        scheduler = SlotScheduler(self.config, policy)
        scheduled = scheduler.schedule(graph, goal.profiles, goal.availability, constraints)
        conflicts = ConflictDetector(self.config).detect(
            scheduled.blocks, graph, scheduled.available_minutes, scheduled.generation,
        )

        result = EvaluationResult(policy.get_policy_name())
        result.traces.append(scheduled.trace)
        summary = scheduled.trace.summary_stats
        result.tasks_total = summary.get('tasks_total', 0)
        result.tasks_scheduled = summary.get('tasks_scheduled', 0)
        result.tasks_unplaced = summary.get('tasks_unscheduled', 0)
        result.task_splits = summary.get('task_splits', 0)
        result.average_utilization = summary.get('average_utilization', 0.0)
        result.conflicts = len(conflicts)

        if scheduled.blocks:
            last_end = max(b.end for b in scheduled.blocks)
            result.makespan_minutes = int((last_end - constraints.window_start).total_seconds() // 60)

        finite = [u for u in scheduled.utilization().values() if u != float('inf')]
        result.max_utilization = max(finite) if finite else 0.0

        # Preference component of the chosen slots, WEIGHTED only
        matches = [
            tf.score_components['preference'] for tf in scheduled.trace.task_features
            if tf.score_components and 'preference' in tf.score_components
        ]
        result.preference_match = sum(matches) / len(matches) if matches else 0.0

        return result, scheduled

    def compare_policies(
        self,
        goal: SyntheticGoal,
        constraints: SchedulingConstraints,
    ) -> Tuple[Tuple[EvaluationResult, SchedulingResult], Tuple[EvaluationResult, SchedulingResult]]:
        """Compare earliest-fit and weighted scoring on the same goal."""
        baseline = self.evaluate_policy(EarliestFitPolicy(self.config), goal, constraints)
        weighted = self.evaluate_policy(WeightedSlotPolicy(self.config), goal, constraints)
        return baseline, weighted

    def optimize(
        self,
        scheduled: SchedulingResult,
        goal: SyntheticGoal,
        constraints: SchedulingConstraints,
    ) -> OptimizationResult:
        graph = TaskGraph(goal.tasks, goal.dependencies)
        return CapacityOptimizer(self.config).optimize(
            scheduled.blocks, graph, goal.profiles, goal.availability, constraints,
            critical_path=scheduled.critical_path,
        )

    @staticmethod
    def utilization_report(optimization: OptimizationResult) -> Dict:
        """Before/after utilization per actor plus moves made."""
        actors = sorted(set(optimization.utilization_before) | set(optimization.utilization_after))
        return {
            'generation': optimization.generation,
            'converged': optimization.converged,
            'iterations': optimization.iterations,
            'actors': {
                actor: {
                    'before': optimization.utilization_before.get(actor, 0.0),
                    'after': optimization.utilization_after.get(actor, 0.0),
                }
                for actor in actors
            },
            'reassignments': [r.to_dict() for r in optimization.reassignments],
            'residual_conflicts': [c.to_dict() for c in optimization.conflicts],
            'error': optimization.error.to_dict() if optimization.error else None,
        }

    def run_evaluation(
        self,
        output_dir: str = "results",
        start: Optional[datetime] = None,
    ) -> Tuple[EvaluationResult, EvaluationResult, Dict]:
        """Run full evaluation suite."""
        if start is None:
            start = datetime.now().replace(hour=9, minute=0, second=0, microsecond=0) + timedelta(days=1)

        goal = self.generator.generate_goal(start)
        constraints = self.constraints_for(start)
        (baseline, _), (weighted, weighted_schedule) = self.compare_policies(goal, constraints)
        rebalance = self.utilization_report(self.optimize(weighted_schedule, goal, constraints))

        # Export results
        output_path = Path(output_dir)
        output_path.mkdir(exist_ok=True)

        comparison = {
            'earliest_fit': baseline.to_dict(),
            'weighted': weighted.to_dict(),
            'delta': {
                'placement_rate': weighted.to_dict()['placement_rate_percent'] - baseline.to_dict()['placement_rate_percent'],
                'preference_match': weighted.preference_match - baseline.preference_match,
                'makespan_minutes': weighted.makespan_minutes - baseline.makespan_minutes,
            },
            'rebalance': rebalance,
        }

        with open(output_path / 'evaluation_results.json', 'w') as f:
            json.dump(comparison, f, indent=2, default=str)

        for trace in baseline.traces + weighted.traces:
            trace_path = output_path / f"trace_{trace.policy_name.lower()}_{trace.run_id}.json"
            with open(trace_path, 'w') as f:
                json.dump(trace.to_dict(), f, indent=2, default=str)

        self._print_comparison(baseline, weighted)
        self._print_rebalance(rebalance)

        return baseline, weighted, rebalance

    def _print_comparison(self, baseline: EvaluationResult, weighted: EvaluationResult):
        """Print comparison report."""
        print("\n" + "=" * 70)
        print("EVALUATION RESULTS COMPARISON")
        print("=" * 70)
        print(f"\n{'Metric':<40} {'Earliest-Fit':<15} {'Weighted':<15}")
        print("-" * 70)

        b, w = baseline.to_dict(), weighted.to_dict()

        print(f"{'Placement rate (%)':<40} {b['placement_rate_percent']:<15.2f} {w['placement_rate_percent']:<15.2f}")
        print(f"{'Unplaced tasks':<40} {baseline.tasks_unplaced:<15} {weighted.tasks_unplaced:<15}")
        print(f"{'Task splits':<40} {baseline.task_splits:<15} {weighted.task_splits:<15}")
        print(f"{'Conflicts':<40} {baseline.conflicts:<15} {weighted.conflicts:<15}")
        print(f"{'Makespan (minutes)':<40} {baseline.makespan_minutes:<15} {weighted.makespan_minutes:<15}")
        print(f"{'Max utilization':<40} {baseline.max_utilization:<15.2f} {weighted.max_utilization:<15.2f}")

        print("\n" + "=" * 70)

    def _print_rebalance(self, report: Dict):
        print("CAPACITY REBALANCING")
        print("-" * 70)
        for actor, values in report['actors'].items():
            print(f"{actor:<40} {values['before']:<15.2f} {values['after']:<15.2f}")
        print(f"\nReassignments: {len(report['reassignments'])}, converged: {report['converged']}")
        print("=" * 70)
