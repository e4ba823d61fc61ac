"""Single-task compression on the live schedule."""

from __future__ import annotations

from ganttline.logger import get_logger
from ganttline.models import Schedule, Task

from .config import CompressionMode
from .timeline import MachineTimeline

logger = get_logger()


def _timeline_for(schedule: Schedule, task: Task) -> MachineTimeline:
    """Occupancy of the task's machine, excluding the task itself."""
    if task.machine_id is None:
        return MachineTimeline(machine_id="unassigned")
    occupants = schedule.tasks_on_machine(task.machine_id, exclude=task.id)
    return MachineTimeline(((t.start, t.end) for t in occupants), machine_id=task.machine_id)


def earliest_allowed_start(schedule: Schedule, task: Task) -> int:
    """Lower bound on the task's start from its incoming edges, never below zero."""
    bounds = [
        edge.earliest_target_start(source, task.duration)
        for edge, source in schedule.predecessors(task.id)
    ]
    return max([0, *bounds])


def latest_allowed_end(schedule: Schedule, task: Task) -> int:
    """Upper bound on the task's end from the deadline (or makespan) and outgoing edges."""
    upper = schedule.deadline if schedule.deadline is not None else schedule.makespan()
    for edge, target in schedule.successors(task.id):
        upper = min(upper, edge.latest_source_end(target, task.duration))
    return upper


def _move(task: Task, new_start: int, direction: str) -> int | None:
    if new_start == task.start:
        logger.checks(f"Task {task.id} already at its {direction} position {task.start}")
        return None
    logger.changes(f"Task {task.id} compressed {direction}: {task.start} -> {new_start}")
    task.start = new_start
    return new_start


def compress_earliest(schedule: Schedule, task_id: str) -> int | None:
    """Move a task to the first feasible gap on its machine.

    Returns:
        The new start, or None if the task did not move

    Raises:
        TaskNotFoundError: If the task is not in the schedule
    """
    task = schedule.get_task(task_id)
    lower = earliest_allowed_start(schedule, task)
    new_start = _timeline_for(schedule, task).earliest_fit(lower, task.duration)
    return _move(task, new_start, "earliest")


def compress_latest(schedule: Schedule, task_id: str) -> int | None:
    """Move a task to the right-most feasible gap before its upper bound.

    If no gap fits inside the window the task is left where it is.

    Returns:
        The new start, or None if the task did not move

    Raises:
        TaskNotFoundError: If the task is not in the schedule
    """
    task = schedule.get_task(task_id)
    lower = earliest_allowed_start(schedule, task)
    upper = latest_allowed_end(schedule, task)
    new_start = _timeline_for(schedule, task).latest_fit(lower, upper, task.duration)
    if new_start is None:
        logger.checks(f"Task {task_id} cannot be placed in [{lower}, {upper}); left unchanged")
        return None
    return _move(task, new_start, "latest")


def compress(schedule: Schedule, task_id: str, mode: CompressionMode) -> int | None:
    """Compress a task in the given direction."""
    if mode == CompressionMode.LATEST:
        return compress_latest(schedule, task_id)
    return compress_earliest(schedule, task_id)
