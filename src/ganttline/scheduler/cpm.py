"""Critical path method over a date-based dependency graph.

Dates are inclusive: a task of duration ``d`` starting on day ``S`` finishes
on day ``S + d - 1``. Zero-duration tasks are milestones finishing on their
start day. Edges reuse :class:`ganttline.models.Precedence` with the lag
counted in days.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from ganttline.logger import get_logger
from ganttline.models import Precedence, RelationType

from .graph import topological_sort

logger = get_logger()


@dataclass
class ProjectTask:
    """A task on the calendar."""

    id: str
    start_date: date
    duration_days: int
    name: str = ""

    @property
    def span(self) -> timedelta:
        """Days from start to (inclusive) finish."""
        return timedelta(days=max(self.duration_days - 1, 0))

    @property
    def end_date(self) -> date:
        return self.start_date + self.span


@dataclass
class CpmResult:
    """Early/late dates and float for one task."""

    task_id: str
    early_start: date
    early_finish: date
    late_start: date
    late_finish: date
    total_float: int
    free_float: int

    @property
    def is_critical(self) -> bool:
        return self.total_float == 0


def _forward_constraint(edge: Precedence, pred: CpmResult, span: timedelta) -> date:
    """Earliest start of the successor implied by one edge."""
    lag = timedelta(days=edge.lag)
    if edge.relation == RelationType.FINISH_TO_START:
        return pred.early_finish + timedelta(days=1) + lag
    if edge.relation == RelationType.START_TO_START:
        return pred.early_start + lag
    if edge.relation == RelationType.FINISH_TO_FINISH:
        return pred.early_finish + lag - span
    return pred.early_start + lag - span


def _backward_constraint(edge: Precedence, succ: CpmResult, span: timedelta) -> date:
    """Latest finish of the predecessor implied by one edge."""
    lag = timedelta(days=edge.lag)
    if edge.relation == RelationType.FINISH_TO_START:
        return succ.late_start - timedelta(days=1) - lag
    if edge.relation == RelationType.START_TO_START:
        return succ.late_start - lag + span
    if edge.relation == RelationType.FINISH_TO_FINISH:
        return succ.late_finish - lag
    return succ.late_finish - lag + span


def compute_cpm(
    tasks: list[ProjectTask],
    dependencies: list[Precedence],
    deadline: date | None = None,
) -> dict[str, CpmResult]:
    """Run the forward and backward passes.

    Tasks without predecessors start on their own start date. Tasks without
    successors finish no later than ``deadline``, or the latest early finish
    when no deadline is given. A cycle is logged and the tasks are processed
    in their given order.

    Args:
        tasks: Tasks to analyze
        dependencies: Edges between them; edges to unknown tasks are ignored
        deadline: Optional project finish date

    Returns:
        CPM result per task ID
    """
    if not tasks:
        return {}

    by_id = {task.id: task for task in tasks}
    edges = [e for e in dependencies if e.source_id in by_id and e.target_id in by_id]
    order = topological_sort(list(by_id), ((e.source_id, e.target_id) for e in edges))

    incoming: dict[str, list[Precedence]] = {task_id: [] for task_id in by_id}
    outgoing: dict[str, list[Precedence]] = {task_id: [] for task_id in by_id}
    for edge in edges:
        incoming[edge.target_id].append(edge)
        outgoing[edge.source_id].append(edge)

    # Forward pass
    results: dict[str, CpmResult] = {}
    for task_id in order:
        task = by_id[task_id]
        constraints = [
            _forward_constraint(edge, results[edge.source_id], task.span)
            for edge in incoming[task_id]
            if edge.source_id in results
        ]
        es = max(constraints) if constraints else task.start_date
        ef = es + task.span
        results[task_id] = CpmResult(task_id, es, ef, es, ef, 0, 0)

    project_end = deadline
    if project_end is None:
        project_end = max(r.early_finish for r in results.values())

    # Backward pass
    done: set[str] = set()
    for task_id in reversed(order):
        task = by_id[task_id]
        constraints = [
            _backward_constraint(edge, results[edge.target_id], task.span)
            for edge in outgoing[task_id]
            if edge.target_id in done
        ]
        lf = min(constraints) if constraints else project_end
        result = results[task_id]
        result.late_finish = lf
        result.late_start = lf - task.span
        result.total_float = (result.late_start - result.early_start).days
        done.add(task_id)

    # Free float: slack before the tightest successor constraint
    for task_id, result in results.items():
        slacks = [
            (
                results[e.target_id].early_start
                - _forward_constraint(e, result, by_id[e.target_id].span)
            ).days
            for e in outgoing[task_id]
        ]
        result.free_float = max(min(slacks), 0) if slacks else result.total_float

    critical = sum(1 for r in results.values() if r.is_critical)
    logger.changes(f"CPM: {len(results)} tasks, {critical} critical, project end {project_end}")
    return results


def critical_path(results: dict[str, CpmResult]) -> list[str]:
    """Critical task IDs ordered by early start."""
    critical = [r for r in results.values() if r.is_critical]
    return [r.task_id for r in sorted(critical, key=lambda r: (r.early_start, r.early_finish))]


def early_schedule(results: dict[str, CpmResult]) -> dict[str, date]:
    """Each task's early start, for auto-scheduling tasks to their earliest dates."""
    return {task_id: result.early_start for task_id, result in results.items()}


def project_finish(results: dict[str, CpmResult]) -> date | None:
    return max((r.early_finish for r in results.values()), default=None)
