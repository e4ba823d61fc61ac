"""Data models for the interactive schedule."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from .exceptions import MissingReferenceError, TaskNotFoundError, ValidationError
from .logger import get_logger

logger = get_logger()


class RelationType(str, Enum):
    """How a precedence edge couples the source and target intervals."""

    FINISH_TO_START = "FS"
    START_TO_START = "SS"
    FINISH_TO_FINISH = "FF"
    START_TO_FINISH = "SF"

    @classmethod
    def parse(cls, value: str | RelationType) -> RelationType:
        """Accept either the short code ("FS") or the member name."""
        if isinstance(value, RelationType):
            return value
        text = str(value).strip().upper()
        for member in cls:
            if text in (member.value, member.name):
                return member
        raise ValueError(f"Unknown relation type: {value}")


class Interval(Protocol):
    """Anything with an integer start and end."""

    @property
    def start(self) -> int: ...

    @property
    def end(self) -> int: ...


@dataclass
class Machine:
    """An exclusive resource. Row index orders machines for display and indexing."""

    id: str
    name: str = ""
    row_index: int = 0


@dataclass
class Job:
    """An ordered list of operations (task IDs)."""

    id: str
    name: str = ""
    operation_ids: list[str] = field(default_factory=list)


@dataclass
class Task:
    """A scheduled bar on the timeline."""

    id: str
    duration: int
    start: int = 0
    machine_id: str | None = None
    job_id: str | None = None
    name: str = ""
    row_index: int = 0
    is_violation: bool = False

    @property
    def end(self) -> int:
        return self.start + self.duration


@dataclass(frozen=True)
class Precedence:
    """A typed, lagged edge from source to target.

    The constraint each relation enforces:
        FS: target.start >= source.end + lag
        SS: target.start >= source.start + lag
        FF: target.end >= source.end + lag
        SF: target.end >= source.start + lag
    """

    source_id: str
    target_id: str
    relation: RelationType = RelationType.FINISH_TO_START
    lag: int = 0

    def earliest_target_start(self, source: Interval, target_duration: int) -> int:
        """Smallest target start that satisfies this edge given the source position."""
        if self.relation == RelationType.FINISH_TO_START:
            return source.end + self.lag
        if self.relation == RelationType.START_TO_START:
            return source.start + self.lag
        if self.relation == RelationType.FINISH_TO_FINISH:
            return source.end + self.lag - target_duration
        return source.start + self.lag - target_duration

    def latest_source_end(self, target: Interval, source_duration: int) -> int:
        """Largest source end that satisfies this edge given the target position."""
        if self.relation == RelationType.FINISH_TO_START:
            return target.start - self.lag
        if self.relation == RelationType.START_TO_START:
            return target.start - self.lag + source_duration
        if self.relation == RelationType.FINISH_TO_FINISH:
            return target.end - self.lag
        return target.end - self.lag + source_duration

    def required_shift(self, source: Interval, target: Task) -> int:
        """How far the target must move forward to satisfy this edge (0 if satisfied)."""
        return max(0, self.earliest_target_start(source, target.duration) - target.start)

    def is_satisfied(self, source: Interval, target: Task) -> bool:
        return self.required_shift(source, target) == 0

    def __str__(self) -> str:
        lag = f"{self.lag:+d}" if self.lag else ""
        return f"{self.source_id} -{self.relation.value}{lag}-> {self.target_id}"


class Schedule:
    """The live, editable model: machines, jobs, tasks, edges and a deadline.

    The schedule may be infeasible at any time; violations are flagged on
    tasks by the conflict engine, never rejected here.
    """

    def __init__(self, name: str = "", time_unit: str = "units") -> None:
        self.name = name
        self.time_unit = time_unit
        self.machines: dict[str, Machine] = {}
        self.jobs: dict[str, Job] = {}
        self.tasks: dict[str, Task] = {}
        self.precedences: list[Precedence] = []
        self.deadline: int | None = None

    # Machines

    def add_machine(self, machine: Machine) -> Machine:
        self.machines[machine.id] = machine
        return machine

    def remove_machine(self, machine_id: str) -> None:
        """Remove a machine; its tasks stay in the schedule but become unassigned."""
        if machine_id not in self.machines:
            raise MissingReferenceError(f"Unknown machine: {machine_id}")
        del self.machines[machine_id]
        for task in self.tasks.values():
            if task.machine_id == machine_id:
                task.machine_id = None
                logger.changes(f"Task {task.id} unassigned from removed machine {machine_id}")

    def sorted_machines(self) -> list[Machine]:
        """Machines ordered by row index (ties keep insertion order)."""
        return sorted(self.machines.values(), key=lambda m: m.row_index)

    # Jobs

    def add_job(self, job: Job) -> Job:
        self.jobs[job.id] = job
        for op_id in job.operation_ids:
            if op_id in self.tasks:
                self.tasks[op_id].job_id = job.id
        return job

    def remove_job(self, job_id: str) -> None:
        """Remove a job together with all of its operations."""
        job = self.jobs.get(job_id)
        if job is None:
            raise MissingReferenceError(f"Unknown job: {job_id}")
        for op_id in list(job.operation_ids):
            if op_id in self.tasks:
                self.remove_task(op_id)
        del self.jobs[job_id]

    # Tasks

    def add_task(self, task: Task) -> Task:
        """Add a task, appending it to its job's operation list if needed."""
        if task.machine_id is not None and task.machine_id not in self.machines:
            raise MissingReferenceError(
                f"Task {task.id} references unknown machine {task.machine_id}"
            )
        if task.job_id is not None:
            job = self.jobs.get(task.job_id)
            if job is None:
                raise MissingReferenceError(f"Task {task.id} references unknown job {task.job_id}")
            if task.id not in job.operation_ids:
                job.operation_ids.append(task.id)
        self.tasks[task.id] = task
        return task

    def get_task(self, task_id: str) -> Task:
        task = self.tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(f"Unknown task: {task_id}")
        return task

    def remove_task(self, task_id: str) -> None:
        """Remove a task, its incident edges and its slot in its job."""
        task = self.get_task(task_id)
        self.precedences = [
            p for p in self.precedences if task_id not in (p.source_id, p.target_id)
        ]
        if task.job_id is not None and task.job_id in self.jobs:
            ops = self.jobs[task.job_id].operation_ids
            if task_id in ops:
                ops.remove(task_id)
        del self.tasks[task_id]

    def tasks_on_machine(self, machine_id: str, exclude: str | None = None) -> list[Task]:
        """Tasks assigned to a machine, sorted by start."""
        return sorted(
            (t for t in self.tasks.values() if t.machine_id == machine_id and t.id != exclude),
            key=lambda t: t.start,
        )

    def clear_violations(self) -> None:
        for task in self.tasks.values():
            task.is_violation = False

    # Precedences

    def add_precedence(self, precedence: Precedence) -> Precedence:
        for task_id in (precedence.source_id, precedence.target_id):
            if task_id not in self.tasks:
                raise TaskNotFoundError(f"Edge {precedence} references unknown task {task_id}")
        if precedence.source_id == precedence.target_id:
            raise ValidationError(f"Task {precedence.source_id} cannot precede itself")
        self.precedences.append(precedence)
        return precedence

    def remove_precedence(
        self, source_id: str, target_id: str, relation: RelationType | None = None
    ) -> int:
        """Remove matching edges. Returns the number removed."""
        before = len(self.precedences)
        self.precedences = [
            p
            for p in self.precedences
            if not (
                p.source_id == source_id
                and p.target_id == target_id
                and (relation is None or p.relation == relation)
            )
        ]
        return before - len(self.precedences)

    def effective_precedences(self) -> list[Precedence]:
        """Explicit edges plus the implied job-order edges.

        A job's declared operation order becomes zero-lag FS edges between
        consecutive operations, unless some explicit edge already connects two
        operations of that job; then the explicit edges govern it.
        """
        edges = list(self.precedences)
        for job in self.jobs.values():
            ops = [op for op in job.operation_ids if op in self.tasks]
            members = set(ops)
            if any(p.source_id in members and p.target_id in members for p in self.precedences):
                continue
            edges.extend(Precedence(a, b) for a, b in zip(ops, ops[1:]))
        return edges

    def predecessors(self, task_id: str) -> list[tuple[Precedence, Task]]:
        """Incoming edges of a task with their source tasks."""
        return [
            (p, self.tasks[p.source_id])
            for p in self.effective_precedences()
            if p.target_id == task_id
        ]

    def successors(self, task_id: str) -> list[tuple[Precedence, Task]]:
        """Outgoing edges of a task with their target tasks."""
        return [
            (p, self.tasks[p.target_id])
            for p in self.effective_precedences()
            if p.source_id == task_id
        ]

    # Timeline

    def makespan(self) -> int:
        """Latest task end; 0 for an empty schedule."""
        return max((t.end for t in self.tasks.values()), default=0)

    def set_deadline(self, deadline: int) -> None:
        self.deadline = deadline

    def clear_deadline(self) -> None:
        self.deadline = None

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Per-task field values used to diff a schedule before and after a change."""
        return {
            task.id: {
                "start": task.start,
                "duration": task.duration,
                "machine_id": task.machine_id,
                "row_index": task.row_index,
                "job_id": task.job_id,
            }
            for task in self.tasks.values()
        }

    def copy(self) -> Schedule:
        return copy.deepcopy(self)
