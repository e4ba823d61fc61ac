"""Core dataclasses for job-shop instances and solutions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import DispatchRule
    from .validator import ValidationResult


def _default_str_list() -> list[str]:
    return []


@dataclass
class Operation:
    """One step of a job: a machine index and a processing time."""

    machine: int
    duration: int


@dataclass
class Instance:
    """A job-shop problem: jobs are ordered operation lists over indexed machines."""

    machine_count: int
    jobs: list[list[Operation]]
    name: str = ""
    time_unit: str = "units"
    machine_names: list[str] = field(default_factory=_default_str_list)
    job_names: list[str] = field(default_factory=_default_str_list)
    declared_job_count: int | None = None  # JobCount as stated by the source, if any

    @property
    def job_count(self) -> int:
        return len(self.jobs)

    def validate(self) -> list[str]:
        """Return every structural problem with this instance (empty if valid)."""
        errors: list[str] = []
        if self.machine_count <= 0:
            errors.append(f"Machine count must be positive, got {self.machine_count}")
        if not self.jobs:
            errors.append("Instance has no jobs")
        if self.declared_job_count is not None and self.declared_job_count != len(self.jobs):
            errors.append(
                f"Job count mismatch: declared {self.declared_job_count}, found {len(self.jobs)}"
            )
        for j, ops in enumerate(self.jobs):
            if not ops:
                errors.append(f"Job {j} has no operations")
            for o, op in enumerate(ops):
                if not 0 <= op.machine < self.machine_count:
                    errors.append(
                        f"Job {j} operation {o}: machine {op.machine} out of range "
                        f"[0, {self.machine_count})"
                    )
                if op.duration < 0:
                    errors.append(f"Job {j} operation {o}: negative duration {op.duration}")
        return errors

    def machine_loads(self) -> list[int]:
        """Total processing time assigned to each machine index."""
        loads = [0] * max(self.machine_count, 0)
        for ops in self.jobs:
            for op in ops:
                if 0 <= op.machine < len(loads):
                    loads[op.machine] += op.duration
        return loads

    def job_lengths(self) -> list[int]:
        return [sum(op.duration for op in ops) for ops in self.jobs]

    def total_processing_time(self) -> int:
        return sum(self.job_lengths())

    def lower_bound(self) -> int:
        """Trivial makespan bound: the heaviest machine or the longest job."""
        return max([*self.machine_loads(), *self.job_lengths(), 0])

    def machine_name(self, index: int) -> str:
        if index < len(self.machine_names):
            return self.machine_names[index]
        return f"Machine {index + 1}"

    def job_name(self, index: int) -> str:
        if index < len(self.job_names):
            return self.job_names[index]
        return f"Job {index + 1}"


@dataclass
class ScheduledOperation:
    """An operation with its assigned start time."""

    machine: int
    duration: int
    start: int | None = None

    @property
    def end(self) -> int:
        return (self.start or 0) + self.duration


@dataclass
class Solution:
    """Start times for every operation of an instance, in instance shape."""

    jobs: list[list[ScheduledOperation]]
    makespan: int | None = None  # As reported by the producer; recomputed by the validator
    solver: str = ""
    status: str = "Feasible"

    def computed_makespan(self) -> int:
        return max(
            (op.end for ops in self.jobs for op in ops if op.start is not None),
            default=0,
        )

    def operations_by_start(self) -> list[tuple[int, int, ScheduledOperation]]:
        """(job, operation index, op) triples ordered by start, then job, then index."""
        triples = [
            (j, o, op) for j, ops in enumerate(self.jobs) for o, op in enumerate(ops)
        ]
        return sorted(triples, key=lambda t: (t[2].start or 0, t[0], t[1]))


@dataclass
class SolverResult:
    """Outcome of a dispatch solve."""

    success: bool
    rule: DispatchRule | None = None
    solution: Solution | None = None
    makespan: int = 0
    elapsed_seconds: float = 0.0
    errors: list[str] = field(default_factory=_default_str_list)
    validation: ValidationResult | None = None
