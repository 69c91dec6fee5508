"""Splitting long tasks into bounded fragments."""

import logging
from typing import List

from ..models.task import Task

logger = logging.getLogger(__name__)


def fragment_id(task_id: str, index: int) -> str:
    return f"{task_id}#{index}"


def split_task(task: Task, max_block_minutes: int) -> List[Task]:
    """Split a task into children of at most ``max_block_minutes``.

    Returns an empty list when the task already fits in one block. Every
    child but the last is exactly ``max_block_minutes`` long, and the
    children's durations always sum to the parent's.
    """
    if max_block_minutes <= 0:
        raise ValueError(f"max_block_minutes must be positive, got {max_block_minutes}")
    if task.estimated_minutes is None:
        raise ValueError(f"Task {task.task_id} has no estimate to split")

    duration = task.estimated_minutes
    if duration <= max_block_minutes:
        return []

    sizes = [max_block_minutes] * (duration // max_block_minutes)
    if duration % max_block_minutes:
        sizes.append(duration % max_block_minutes)

    children = [
        Task(
            task_id=fragment_id(task.task_id, index),
            title=f"{task.title} (Part {index}/{len(sizes)})",
            milestone_id=task.milestone_id,
            estimated_minutes=size,
            status=task.status,
            priority=task.priority,
            parent_task_id=task.task_id,
            assigned_actor=task.assigned_actor,
            skills=list(task.skills),
            description=task.description,
        )
        for index, size in enumerate(sizes, start=1)
    ]

    logger.debug(
        "Task %s split into %d blocks (%d min, max block %d)",
        task.task_id, len(children), duration, max_block_minutes,
    )
    return children


def check_split(parent: Task, children: List[Task]) -> None:
    """Raise ValueError unless ``children`` conserve the parent's work."""
    if parent.estimated_minutes is None:
        raise ValueError(f"Task {parent.task_id} has no estimate")
    for child in children:
        if child.parent_task_id != parent.task_id:
            raise ValueError(f"{child.task_id} is not a child of {parent.task_id}")
        if (child.estimated_minutes or 0) > parent.estimated_minutes:
            raise ValueError(f"{child.task_id} is longer than its parent")
    total = sum(child.estimated_minutes or 0 for child in children)
    if children and total != parent.estimated_minutes:
        raise ValueError(
            f"Children of {parent.task_id} sum to {total} min, expected {parent.estimated_minutes}"
        )
