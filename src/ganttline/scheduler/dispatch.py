"""Dispatch-rule solver for job-shop instances.

All rules share one event-driven simulation. At every step each job with an
operation left is a candidate; the rule's priority key ranks the candidates
and the winner is placed at the later of its machine's free time and its
job's ready time. Ties go to the lowest job index.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from ganttline.logger import debug_enabled, get_logger

from .config import DispatchRule
from .core import Instance, ScheduledOperation, Solution, SolverResult
from .validator import validate

logger = get_logger()


@dataclass
class _Candidate:
    """The next operation of a job, as seen by a priority key."""

    job: int
    duration: int
    job_ready: int
    remaining_work: int


PriorityKey = Callable[[_Candidate], int]

_PRIORITY_KEYS: dict[DispatchRule, PriorityKey] = {
    DispatchRule.SPT: lambda c: c.duration,
    DispatchRule.LPT: lambda c: -c.duration,
    DispatchRule.FCFS: lambda c: c.job_ready,
    DispatchRule.MWR: lambda c: -c.remaining_work,
    DispatchRule.LWR: lambda c: c.remaining_work,
}


def _dispatch(instance: Instance, rule: DispatchRule) -> Solution:
    key = _PRIORITY_KEYS[rule]
    machine_free = [0] * instance.machine_count
    job_ready = [0] * instance.job_count
    next_op = [0] * instance.job_count
    remaining = instance.job_lengths()
    placed: list[list[ScheduledOperation]] = [[] for _ in instance.jobs]

    total_ops = sum(len(ops) for ops in instance.jobs)
    for _ in range(total_ops):
        candidates = [
            _Candidate(j, ops[next_op[j]].duration, job_ready[j], remaining[j])
            for j, ops in enumerate(instance.jobs)
            if next_op[j] < len(ops)
        ]
        best = min(candidates, key=lambda c: (key(c), c.job))
        op = instance.jobs[best.job][next_op[best.job]]
        start = max(machine_free[op.machine], job_ready[best.job])

        placed[best.job].append(ScheduledOperation(op.machine, op.duration, start))
        if debug_enabled():
            logger.debug(
                f"{rule.value}: job {best.job} op {next_op[best.job]} on machine {op.machine} "
                f"at [{start}, {start + op.duration})"
            )

        machine_free[op.machine] = start + op.duration
        job_ready[best.job] = start + op.duration
        remaining[best.job] -= op.duration
        next_op[best.job] += 1

    solution = Solution(jobs=placed, solver=rule.value)
    solution.makespan = solution.computed_makespan()
    return solution


def compress_solution(instance: Instance, solution: Solution) -> Solution:
    """Left-shift every operation as far as its job and machine allow.

    Operations are replayed in start order, so relative order on each machine
    is preserved and the makespan never increases.
    """
    machine_free = [0] * instance.machine_count
    job_ready = [0] * len(solution.jobs)
    shifted = [
        [ScheduledOperation(op.machine, op.duration, op.start) for op in ops]
        for ops in solution.jobs
    ]

    for j, o, _ in solution.operations_by_start():
        op = shifted[j][o]
        # Zero-length operations never occupy their machine
        start = max(machine_free[op.machine], job_ready[j]) if op.duration else job_ready[j]
        if op.start is not None and start < op.start:
            logger.checks(f"Job {j} op {o} shifted left {op.start} -> {start}")
        op.start = start
        if op.duration:
            machine_free[op.machine] = op.end
        job_ready[j] = op.end

    result = Solution(jobs=shifted, solver=solution.solver, status=solution.status)
    result.makespan = result.computed_makespan()
    return result


def solve(instance: Instance, rule: DispatchRule, *, compress: bool = False) -> SolverResult:
    """Solve an instance with one dispatch rule.

    An invalid instance yields an unsuccessful result carrying its errors;
    no solution is produced.
    """
    errors = instance.validate()
    if errors:
        logger.error(f"Cannot solve {instance.name or 'instance'}: {'; '.join(errors)}")
        return SolverResult(success=False, rule=rule, errors=errors)

    started = time.perf_counter()
    solution = _dispatch(instance, rule)
    if compress:
        solution = compress_solution(instance, solution)
    elapsed = time.perf_counter() - started

    validation = validate(instance, solution)
    if not validation.is_valid:
        # Unreachable for a valid instance
        logger.error(f"{rule.value} produced an infeasible schedule: {validation.errors}")

    logger.changes(f"{rule.value}: makespan {solution.makespan} in {elapsed * 1000:.1f} ms")
    return SolverResult(
        success=validation.is_valid,
        rule=rule,
        solution=solution,
        makespan=solution.computed_makespan(),
        elapsed_seconds=elapsed,
        errors=list(validation.errors),
        validation=validation,
    )


def solve_multiple(
    instance: Instance,
    rules: Iterable[DispatchRule] | None = None,
    *,
    compress: bool = False,
) -> SolverResult:
    """Run several rules and keep the lowest makespan.

    Rules always run in declaration order (SPT, LPT, FCFS, MWR, LWR); on a
    makespan tie the earlier rule is kept.
    """
    wanted = set(rules) if rules is not None else set(DispatchRule)
    best: SolverResult | None = None
    for rule in DispatchRule:
        if rule not in wanted:
            continue
        result = solve(instance, rule, compress=compress)
        if not result.success:
            return result
        logger.checks(f"Candidate {rule.value}: makespan {result.makespan}")
        if best is None or result.makespan < best.makespan:
            best = result

    if best is None:
        return SolverResult(success=False, errors=["No dispatch rules selected"])
    logger.changes(f"Best rule {best.rule.value if best.rule else '?'}: makespan {best.makespan}")
    return best
