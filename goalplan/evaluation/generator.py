"""Synthetic goal generator for evaluation and the CLI."""

import random
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import List, Tuple

from ..models.capacity import CapacityProfile, SlotSource, TimeSlot
from ..models.task import Dependency, DependencyKind, Task, TaskOutcome
from ..store import InMemoryTaskStore, StaticCalendar
from ..utils.datetime_utils import get_working_days

SKILLS = ['backend', 'frontend', 'design', 'writing', 'research']

WORDS = ['api', 'schema', 'review', 'prototype', 'docs', 'tests', 'deploy', 'research', 'layout', 'migration']


@dataclass
class SyntheticGoal:
    """Everything a planning run needs for one generated milestone."""

    goal_id: str
    milestone_id: str
    tasks: List[Task]
    dependencies: List[Dependency]
    profiles: List[CapacityProfile]
    availability: List[TimeSlot]
    outcomes: List[TaskOutcome] = field(default_factory=list)

    def to_store(self) -> Tuple[InMemoryTaskStore, StaticCalendar]:
        store = InMemoryTaskStore(
            self.tasks, self.dependencies, self.profiles,
            milestone_goals={self.milestone_id: self.goal_id}, outcomes=self.outcomes,
        )
        return store, StaticCalendar(self.availability)


class GoalGenerator:
    """Generates deterministic goals, calendars and history from a seed."""

    def __init__(self, seed: int = 42, config: dict = None):
        """Initialize generator with seed for reproducibility."""
        self.seed = seed
        self.random = random.Random(seed)
        self.config = config or {}
        self.eval_config = self.config.get('evaluation', {})

    def generate_tasks(self, milestone_id: str, count: int) -> List[Task]:
        """Generate tasks with a mix of sizes, priorities and skills."""
        tasks = []
        for i in range(count):
            # Vary task sizes (some small, some large)
            roll = self.random.random()
            if roll < 0.3:
                estimated_minutes = self.random.randint(2, 8) * 15
            elif roll < 0.8:
                estimated_minutes = self.random.randint(8, 24) * 15
            else:
                estimated_minutes = self.random.randint(24, 48) * 15

            skills = [self.random.choice(SKILLS)] if self.random.random() < 0.6 else []
            words = self.random.sample(WORDS, 2)
            tasks.append(Task(
                task_id=f"{milestone_id}-t{i:03d}",
                title=f"{words[0].title()} {words[1]} {i}",
                milestone_id=milestone_id,
                # Some tasks stay unestimated
                estimated_minutes=estimated_minutes if self.random.random() < 0.9 else None,
                priority=self.random.randint(1, 10) * 10,
                skills=skills,
            ))
        return tasks

    def generate_dependencies(self, tasks: List[Task], density: float = 0.2) -> List[Dependency]:
        """Edges only run from earlier to later tasks, so the graph is acyclic."""
        dependencies = []
        for i, task in enumerate(tasks[1:], start=1):
            if self.random.random() >= density:
                continue
            pred = tasks[self.random.randint(max(0, i - 5), i - 1)]
            kind = DependencyKind.FINISH_TO_START
            if self.random.random() < 0.15:
                kind = DependencyKind.START_TO_START
            dependencies.append(Dependency(
                pred.task_id, task.task_id, kind, lag_minutes=self.random.choice([0, 0, 0, 30, 60]),
            ))
        return dependencies

    def generate_profiles(self, count: int) -> List[CapacityProfile]:
        profiles = []
        for i in range(count):
            skills = tuple(sorted(self.random.sample(SKILLS, 3)))
            profiles.append(CapacityProfile(
                actor_id=f"actor-{i + 1}",
                hours_per_period=self.random.choice([30, 35, 40]),
                skills=skills,
                preferred_windows=((time(9), time(12)),) if self.random.random() < 0.5 else (),
            ))
        return profiles

    def generate_availability(
        self,
        profiles: List[CapacityProfile],
        start: datetime,
        days: int,
        working_days: List[int],
    ) -> List[TimeSlot]:
        """One free working-day slot per actor and day, with occasional meetings."""
        slots = []
        end = start + timedelta(days=days)
        for profile in profiles:
            for day in get_working_days(start, end, working_days):
                day_start = datetime.combine(day.date(), profile.work_start, tzinfo=start.tzinfo)
                day_end = datetime.combine(day.date(), profile.work_end, tzinfo=start.tzinfo)
                slots.append(TimeSlot(profile.actor_id, day_start, day_end, SlotSource.FREE))
                if self.random.random() < 0.4:
                    meeting = day_start + timedelta(hours=self.random.randint(1, 6))
                    slots.append(TimeSlot(profile.actor_id, meeting, meeting + timedelta(minutes=60), SlotSource.BUSY))
        return slots

    def generate_outcomes(
        self,
        count: int,
        completed_before: datetime,
        overrun_mean: float = 1.2,
        overrun_std: float = 0.3,
    ) -> List[TaskOutcome]:
        """Generate completed history usable by analogy estimation."""
        outcomes = []
        for i in range(count):
            estimated_minutes = self.random.randint(2, 32) * 15
            # Generate overrun factor from normal distribution
            overrun_factor = max(0.5, self.random.gauss(overrun_mean, overrun_std))
            words = self.random.sample(WORDS, 2)
            outcomes.append(TaskOutcome(
                task_id=f"hist-{i:03d}",
                title=f"{words[0].title()} {words[1]}",
                estimated_minutes=estimated_minutes,
                actual_minutes=int(estimated_minutes * overrun_factor),
                completed_at=completed_before - timedelta(days=self.random.randint(1, 90)),
                skills=[self.random.choice(SKILLS)],
                notes=f"Generated outcome with overrun {overrun_factor:.2f}",
            ))
        return outcomes

    def generate_goal(
        self,
        start: datetime,
        goal_id: str = "goal-1",
        milestone_id: str = "m1",
        task_count: int = None,
        actor_count: int = None,
        horizon_days: int = None,
    ) -> SyntheticGoal:
        """Generate a complete milestone with actors, calendars and history."""
        task_count = task_count or self.eval_config.get('task_count', 20)
        actor_count = actor_count or self.eval_config.get('actor_count', 3)
        horizon_days = horizon_days or self.config.get('scheduling', {}).get('planning_horizon_days', 14)
        working_days = self.config.get('scheduling', {}).get('working_days', [0, 1, 2, 3, 4])

        tasks = self.generate_tasks(milestone_id, task_count)
        dependencies = self.generate_dependencies(tasks)
        profiles = self.generate_profiles(actor_count)
        availability = self.generate_availability(profiles, start, horizon_days, working_days)
        outcomes = self.generate_outcomes(self.eval_config.get('history_count', 30), start)

        return SyntheticGoal(goal_id, milestone_id, tasks, dependencies, profiles, availability, outcomes)
