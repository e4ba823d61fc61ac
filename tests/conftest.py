"""Pytest configuration and fixtures for ganttline tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from ganttline.logger import reset_logger
from ganttline.models import Job, Machine, Precedence, RelationType, Schedule, Task
from ganttline.scheduler.core import Instance, Operation, Solution
from ganttline.scheduler.validator import validate

EXAMPLES_DIR = Path(__file__).parent.parent / "examples"


def make_instance(data: list[list[tuple[int, int]]], machine_count: int | None = None) -> Instance:
    """Build an instance from ``[[(machine, duration), ...], ...]``."""
    if machine_count is None:
        machine_count = max(m for ops in data for m, _ in ops) + 1
    return Instance(
        machine_count=machine_count,
        jobs=[[Operation(m, d) for m, d in ops] for ops in data],
    )


def assert_feasible(instance: Instance, solution: Solution) -> None:
    """Fail with the validator's errors if the solution is infeasible."""
    result = validate(instance, solution)
    assert result.is_valid, result.errors


@pytest.fixture(autouse=True)
def clean_logger() -> Iterator[None]:
    """Each test starts and ends with the logger in its default state."""
    reset_logger()
    yield
    reset_logger()


@pytest.fixture
def two_by_two() -> Instance:
    """Two jobs, two machines.

    J0: M0 for 3, then M1 for 2
    J1: M1 for 2, then M0 for 4
    """
    return make_instance([[(0, 3), (1, 2)], [(1, 2), (0, 4)]])


@pytest.fixture
def three_by_three() -> Instance:
    return make_instance(
        [
            [(0, 3), (1, 2), (2, 2)],
            [(0, 2), (2, 1), (1, 4)],
            [(1, 4), (2, 3), (0, 1)],
        ]
    )


@pytest.fixture
def make_schedule() -> Callable[..., Schedule]:
    """Factory for a schedule from compact task specs.

    Each task is ``(id, machine_id, start, duration)``; machines are created
    as needed. Edges are ``(source, target)`` or ``(source, target, relation, lag)``.
    """

    def _make(
        tasks: list[tuple[str, str | None, int, int]],
        edges: list[tuple[str, ...] | tuple[str, str, str, int]] | None = None,
        deadline: int | None = None,
    ) -> Schedule:
        schedule = Schedule(name="test")
        for _, machine_id, _, _ in tasks:
            if machine_id is not None and machine_id not in schedule.machines:
                schedule.add_machine(
                    Machine(machine_id, machine_id, row_index=len(schedule.machines))
                )
        for task_id, machine_id, start, duration in tasks:
            schedule.add_task(Task(task_id, duration, start=start, machine_id=machine_id))
        for edge in edges or []:
            if len(edge) == 2:  # noqa: PLR2004
                schedule.add_precedence(Precedence(edge[0], edge[1]))
            else:
                source, target, relation, lag = edge  # type: ignore[misc]
                schedule.add_precedence(
                    Precedence(source, target, RelationType.parse(relation), int(lag))
                )
        if deadline is not None:
            schedule.set_deadline(deadline)
        return schedule

    return _make


@pytest.fixture
def job_schedule() -> Schedule:
    """Two jobs on two machines laid out feasibly, with implied job order."""
    schedule = Schedule(name="jobs")
    schedule.add_machine(Machine("M1", "Lathe", 0))
    schedule.add_machine(Machine("M2", "Mill", 1))
    schedule.add_job(Job("J1", "Bracket"))
    schedule.add_job(Job("J2", "Shaft"))
    schedule.add_task(Task("J1-Op1", 3, start=0, machine_id="M1", job_id="J1"))
    schedule.add_task(Task("J1-Op2", 2, start=3, machine_id="M2", job_id="J1"))
    schedule.add_task(Task("J2-Op1", 2, start=0, machine_id="M2", job_id="J2"))
    schedule.add_task(Task("J2-Op2", 4, start=3, machine_id="M1", job_id="J2"))
    return schedule
