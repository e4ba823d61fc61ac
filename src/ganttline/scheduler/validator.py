"""Feasibility validation and quality metrics for job-shop solutions."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field

from ganttline.logger import get_logger

from .core import Instance, ScheduledOperation, Solution

logger = get_logger()


@dataclass
class PrecedenceViolation:
    """Operation ``index + 1`` of a job starts before operation ``index`` ends."""

    job: int
    index: int
    previous_end: int
    next_start: int

    @property
    def shortfall(self) -> int:
        return self.previous_end - self.next_start


@dataclass
class MachineConflict:
    """Two operations overlap on the same machine."""

    machine: int
    first: tuple[int, int]  # (job, operation index)
    second: tuple[int, int]
    overlap: int


@dataclass
class SolutionMetrics:
    """Quality figures for a solution."""

    makespan: int = 0
    lower_bound: int = 0
    gap_percent: float = 0.0
    average_utilization: float = 0.0
    total_processing_time: int = 0
    total_idle_time: int = 0
    average_flow_time: float = 0.0
    max_flow_time: int = 0

    def as_dict(self) -> dict[str, float]:
        return {
            "makespan": float(self.makespan),
            "lower_bound": float(self.lower_bound),
            "gap_percent": self.gap_percent,
            "average_utilization": self.average_utilization,
            "total_processing_time": float(self.total_processing_time),
            "total_idle_time": float(self.total_idle_time),
            "average_flow_time": self.average_flow_time,
            "max_flow_time": float(self.max_flow_time),
        }


@dataclass
class ValidationResult:
    """Feasibility verdict plus metrics."""

    is_valid: bool
    computed_makespan: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    precedence_violations: list[PrecedenceViolation] = field(default_factory=list)
    machine_conflicts: list[MachineConflict] = field(default_factory=list)
    metrics: SolutionMetrics = field(default_factory=SolutionMetrics)

    def summary(self) -> str:
        status = "valid" if self.is_valid else f"INVALID ({len(self.errors)} errors)"
        m = self.metrics
        return (
            f"{status}: makespan {self.computed_makespan}, lower bound {m.lower_bound}, "
            f"gap {m.gap_percent:.1f}%, utilization {m.average_utilization:.1f}%"
        )


class SolutionValidator:
    """Checks a solution against its instance.

    Validation never raises; every problem found is reported in the result.
    """

    def __init__(self, instance: Instance) -> None:
        self.instance = instance

    def validate(self, solution: Solution) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []

        if not self._check_structure(solution, errors):
            return ValidationResult(is_valid=False, errors=_dedupe(errors))

        self._check_operations(solution, errors)
        precedence_violations = self._check_job_order(solution, errors)
        machine_conflicts = self._check_machines(solution, errors)

        computed = solution.computed_makespan()
        if solution.makespan is not None and solution.makespan != computed:
            errors.append(f"Reported makespan {solution.makespan} differs from computed {computed}")

        metrics = self._metrics(solution, computed)
        if metrics.lower_bound and computed == metrics.lower_bound:
            logger.checks(f"Makespan {computed} meets the lower bound")

        result = ValidationResult(
            is_valid=not errors,
            computed_makespan=computed,
            errors=_dedupe(errors),
            warnings=_dedupe(warnings),
            precedence_violations=precedence_violations,
            machine_conflicts=machine_conflicts,
            metrics=metrics,
        )
        logger.debug(f"Validation: {result.summary()}")
        return result

    def _check_structure(self, solution: Solution, errors: list[str]) -> bool:
        if len(solution.jobs) != self.instance.job_count:
            errors.append(
                f"Solution has {len(solution.jobs)} jobs, instance has {self.instance.job_count}"
            )
            return False
        for j, (ops, expected) in enumerate(zip(solution.jobs, self.instance.jobs)):
            if len(ops) != len(expected):
                errors.append(
                    f"Job {j} has {len(ops)} operations in solution, {len(expected)} in instance"
                )
        return not errors

    def _check_operations(self, solution: Solution, errors: list[str]) -> None:
        for j, (ops, expected) in enumerate(zip(solution.jobs, self.instance.jobs)):
            for o, (op, exp) in enumerate(zip(ops, expected)):
                if op.machine != exp.machine:
                    errors.append(
                        f"Job {j} operation {o}: machine {op.machine}, expected {exp.machine}"
                    )
                if op.duration != exp.duration:
                    errors.append(
                        f"Job {j} operation {o}: duration {op.duration}, expected {exp.duration}"
                    )
                if op.start is None:
                    errors.append(f"Job {j} operation {o}: missing start time")
                elif op.start < 0:
                    errors.append(f"Job {j} operation {o}: negative start time {op.start}")

    def _check_job_order(
        self, solution: Solution, errors: list[str]
    ) -> list[PrecedenceViolation]:
        violations: list[PrecedenceViolation] = []
        for j, ops in enumerate(solution.jobs):
            for o in range(len(ops) - 1):
                prev, nxt = ops[o], ops[o + 1]
                if prev.start is None or nxt.start is None:
                    continue
                if nxt.start < prev.end:
                    violations.append(PrecedenceViolation(j, o, prev.end, nxt.start))
                    errors.append(
                        f"Job {j}: operation {o + 1} starts at {nxt.start} "
                        f"before operation {o} ends at {prev.end}"
                    )
        return violations

    def _check_machines(self, solution: Solution, errors: list[str]) -> list[MachineConflict]:
        per_machine: dict[int, list[tuple[int, int, ScheduledOperation]]] = defaultdict(list)
        for j, ops in enumerate(solution.jobs):
            for o, op in enumerate(ops):
                if op.start is not None:
                    per_machine[op.machine].append((j, o, op))

        conflicts: list[MachineConflict] = []
        for machine in sorted(per_machine):
            entries = sorted(per_machine[machine], key=lambda e: (e[2].start, e[0], e[1]))
            for i, (j1, o1, a) in enumerate(entries):
                for j2, o2, b in entries[i + 1 :]:
                    assert a.start is not None and b.start is not None
                    if b.start >= a.end:
                        break
                    overlap = min(a.end, b.end) - b.start
                    if overlap <= 0:
                        continue
                    conflicts.append(MachineConflict(machine, (j1, o1), (j2, o2), overlap))
                    errors.append(
                        f"Machine {machine}: job {j1} op {o1} [{a.start}, {a.end}) overlaps "
                        f"job {j2} op {o2} [{b.start}, {b.end})"
                    )
        return conflicts

    def _metrics(self, solution: Solution, makespan: int) -> SolutionMetrics:
        instance = self.instance
        total = instance.total_processing_time()
        lower_bound = instance.lower_bound()
        capacity = instance.machine_count * makespan

        flow_times = [
            max((op.end for op in ops if op.start is not None), default=0)
            for ops in solution.jobs
        ]

        return SolutionMetrics(
            makespan=makespan,
            lower_bound=lower_bound,
            gap_percent=(makespan - lower_bound) / lower_bound * 100 if lower_bound else 0.0,
            average_utilization=total / capacity * 100 if capacity else 0.0,
            total_processing_time=total,
            total_idle_time=max(capacity - total, 0),
            average_flow_time=sum(flow_times) / len(flow_times) if flow_times else 0.0,
            max_flow_time=max(flow_times, default=0),
        )


def _dedupe(messages: list[str]) -> list[str]:
    return list(dict.fromkeys(messages))


def validate(instance: Instance, solution: Solution) -> ValidationResult:
    """Validate a solution against an instance."""
    return SolutionValidator(instance).validate(solution)
