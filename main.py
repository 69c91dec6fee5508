"""Main entry point for the goal planning engine."""

import argparse
import json
import logging
from datetime import datetime, timedelta
from pathlib import Path

from goalplan.engine.scheduler import SchedulingConstraints
from goalplan.errors import PlanningError
from goalplan.evaluation.diff import GenerationDiff
from goalplan.evaluation.evaluator import PlanEvaluator
from goalplan.evaluation.generator import GoalGenerator
from goalplan.policies.baseline import EarliestFitPolicy
from goalplan.policies.weighted import WeightedSlotPolicy
from goalplan.service import PlanningService
from goalplan.utils.config import get_default_config, load_config

logger = logging.getLogger(__name__)


def _load(config_path: str) -> dict:
    return load_config(config_path) if config_path and Path(config_path).exists() else get_default_config()


def _start(value: str) -> datetime:
    if value:
        return datetime.fromisoformat(value)
    return datetime.now().replace(hour=9, minute=0, second=0, microsecond=0) + timedelta(days=1)


def _save_json(path: Path, data) -> None:
    with open(path, 'w') as f:
        json.dump(data, f, indent=2, default=str)


def _build_service(config: dict, args):
    generator = GoalGenerator(seed=args.seed, config=config)
    start = _start(args.start)
    goal = generator.generate_goal(start, task_count=args.tasks, actor_count=args.actors)
    store, calendar = goal.to_store()

    if args.policy == "earliest-fit":
        policy = EarliestFitPolicy(config)
    else:
        policy = WeightedSlotPolicy(config)

    service = PlanningService(store, calendar, config, policy=policy)
    constraints = SchedulingConstraints.from_config(config, start)
    return service, goal, constraints


def run_scheduling(config: dict, args):
    """Schedule a generated milestone and save the response and trace."""
    service, goal, constraints = _build_service(config, args)
    response = service.schedule(goal.milestone_id, constraints)
    trace = response.result.trace

    print(f"\nScheduling completed using {trace.policy_name} policy")
    print(f"Placed {len(response.scheduled_blocks)} blocks, {len(response.unplaced_tasks)} tasks unplaced")
    print(f"Conflicts: {len(response.conflicts)}")
    for suggestion in response.advisory.suggestions:
        print(f"  - {suggestion.suggestion}")

    results_dir = Path("results")
    _save_json(results_dir / f"schedule_{trace.run_id}.json", response.to_dict())
    _save_json(results_dir / f"trace_{trace.run_id}.json", trace.to_dict())

    # Save human-readable log
    log_path = results_dir / f"trace_{trace.run_id}.log"
    with open(log_path, 'w') as f:
        f.write(trace.to_human_readable())

    print(f"\nSchedule saved to: results/schedule_{trace.run_id}.json")
    print(f"Human-readable log saved to: {log_path}")
    return response


def run_analysis(config: dict, args):
    """Critical path, parallel tracks and metrics of a generated milestone."""
    service, goal, _ = _build_service(config, args)
    view = service.compute_dependency_graph(goal.milestone_id, args.deadline)

    print(f"\nMilestone {goal.milestone_id}: {len(view.nodes)} tasks, {len(view.edges)} dependencies")
    print(f"Earliest completion: {view.total_duration_minutes} min")
    print(f"Critical path: {' -> '.join(view.critical_path)}")
    print(f"Parallel tracks: {len(view.parallel_tracks)}")
    if view.unestimated:
        print(f"Unestimated (default duration used): {', '.join(view.unestimated)}")

    _save_json(Path("results") / "dependency_graph.json", view.to_dict())
    print("Graph saved to: results/dependency_graph.json")
    return view


def run_optimization(config: dict, args):
    """Schedule, rebalance capacity and report the difference."""
    service, goal, constraints = _build_service(config, args)
    service.schedule(goal.milestone_id, constraints)
    result = service.optimize_capacity(goal.milestone_id)

    report = PlanEvaluator.utilization_report(result)
    differ = GenerationDiff()
    report['diff'] = differ.generate_report(differ.analyze(result.previous_blocks, result.blocks))

    print(f"\n{'Actor':<20} {'Before':<10} {'After':<10}")
    print("-" * 40)
    for actor, values in report['actors'].items():
        print(f"{actor:<20} {values['before']:<10.2f} {values['after']:<10.2f}")
    print(f"\nReassignments: {len(result.reassignments)}")
    if result.error:
        print(f"Incomplete: {result.error.message}")

    _save_json(Path("results") / f"optimization_g{result.generation}.json", report)
    print(f"Report saved to: results/optimization_g{result.generation}.json")
    return result


def run_generation(config: dict, args):
    generator = GoalGenerator(seed=args.seed, config=config)
    goal = generator.generate_goal(_start(args.start), task_count=args.tasks, actor_count=args.actors)

    print(f"Generated {len(goal.tasks)} tasks, {len(goal.dependencies)} dependencies")
    print(f"Generated {len(goal.profiles)} actors, {len(goal.availability)} calendar slots")
    print(f"Generated {len(goal.outcomes)} historical outcomes")

    # Save to JSON for inspection
    data = {
        'goal_id': goal.goal_id,
        'milestone_id': goal.milestone_id,
        'tasks': [
            {
                'task_id': t.task_id,
                'title': t.title,
                'estimated_minutes': t.estimated_minutes,
                'priority': t.priority,
                'skills': t.skills,
            }
            for t in goal.tasks
        ],
        'dependencies': [
            {
                'predecessor_id': d.predecessor_id,
                'successor_id': d.successor_id,
                'kind': d.kind.value,
                'lag_minutes': d.lag_minutes,
            }
            for d in goal.dependencies
        ],
        'actors': [
            {'actor_id': p.actor_id, 'hours_per_period': p.hours_per_period, 'skills': list(p.skills)}
            for p in goal.profiles
        ],
    }
    _save_json(Path("results") / "generated_goal.json", data)
    print("Goal saved to: results/generated_goal.json")
    return goal


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Goal Planning and Scheduling Engine"
    )
    parser.add_argument(
        'command',
        choices=['schedule', 'analyze', 'optimize', 'evaluate', 'generate-goal'],
        help='Command to run'
    )
    parser.add_argument(
        '--config',
        type=str,
        default='config.yaml',
        help='Path to configuration file (default: config.yaml)'
    )
    parser.add_argument(
        '--policy',
        type=str,
        choices=['weighted', 'earliest-fit'],
        default='weighted',
        help='Slot scoring policy to use (default: weighted)'
    )
    parser.add_argument('--seed', type=int, default=42, help='Generator seed (default: 42)')
    parser.add_argument('--tasks', type=int, default=None, help='Number of generated tasks')
    parser.add_argument('--actors', type=int, default=None, help='Number of generated actors')
    parser.add_argument('--start', type=str, default=None, help='Window start, ISO format (default: tomorrow 09:00)')
    parser.add_argument('--deadline', type=int, default=None, help='Deadline in minutes for analyze')

    args = parser.parse_args()
    config = _load(args.config)

    logging.basicConfig(
        level=config.get('logging', {}).get('level', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    # Create results directory
    Path("results").mkdir(exist_ok=True)

    try:
        if args.command == 'schedule':
            run_scheduling(config, args)
        elif args.command == 'analyze':
            run_analysis(config, args)
        elif args.command == 'optimize':
            run_optimization(config, args)
        elif args.command == 'evaluate':
            PlanEvaluator(config).run_evaluation(start=_start(args.start))
        elif args.command == 'generate-goal':
            run_generation(config, args)
    except PlanningError as exc:
        logger.error("%s", exc.message)
        print(json.dumps(exc.to_dict(), indent=2, default=str))
        raise SystemExit(1)


if __name__ == "__main__":
    main()
