"""Conflict detection and precedence auto-fix for the live schedule."""

from __future__ import annotations

from dataclasses import dataclass, field

from ganttline.logger import checks_enabled, get_logger
from ganttline.models import Precedence, Schedule

from .graph import topological_sort

logger = get_logger()


@dataclass
class PrecedenceConflict:
    """An edge whose constraint is not met."""

    precedence: Precedence
    required_shift: int

    @property
    def message(self) -> str:
        p = self.precedence
        return f"{p.target_id} must move {self.required_shift} later to satisfy {p}"


@dataclass
class MachineOverlap:
    """Two tasks overlapping on one machine."""

    machine_id: str
    first_id: str
    second_id: str
    overlap: int

    @property
    def message(self) -> str:
        return (
            f"{self.first_id} and {self.second_id} overlap by {self.overlap} "
            f"on machine {self.machine_id}"
        )


@dataclass
class ConflictReport:
    """Everything currently wrong with the schedule."""

    precedence_conflicts: list[PrecedenceConflict] = field(default_factory=list)
    machine_overlaps: list[MachineOverlap] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.precedence_conflicts and not self.machine_overlaps

    @property
    def flagged_task_ids(self) -> set[str]:
        ids: set[str] = set()
        for conflict in self.precedence_conflicts:
            ids.update((conflict.precedence.source_id, conflict.precedence.target_id))
        for overlap in self.machine_overlaps:
            ids.update((overlap.first_id, overlap.second_id))
        return ids

    def messages(self) -> list[str]:
        return [c.message for c in self.precedence_conflicts] + [
            o.message for o in self.machine_overlaps
        ]


@dataclass
class AutoFixResult:
    """Tasks moved by auto-fix and the conflicts left afterwards."""

    moved: dict[str, tuple[int, int]] = field(default_factory=dict)  # id -> (old, new)
    report: ConflictReport = field(default_factory=ConflictReport)


def find_precedence_conflicts(schedule: Schedule) -> list[PrecedenceConflict]:
    conflicts: list[PrecedenceConflict] = []
    for edge in schedule.effective_precedences():
        source = schedule.tasks[edge.source_id]
        target = schedule.tasks[edge.target_id]
        shift = edge.required_shift(source, target)
        if shift > 0:
            conflicts.append(PrecedenceConflict(edge, shift))
    return conflicts


def find_machine_overlaps(schedule: Schedule) -> list[MachineOverlap]:
    overlaps: list[MachineOverlap] = []
    for machine in schedule.sorted_machines():
        tasks = [t for t in schedule.tasks_on_machine(machine.id) if t.duration > 0]
        for i, first in enumerate(tasks):
            for second in tasks[i + 1 :]:
                if second.start >= first.end:
                    break
                overlap = min(first.end, second.end) - second.start
                overlaps.append(MachineOverlap(machine.id, first.id, second.id, overlap))
    return overlaps


def detect_conflicts(schedule: Schedule) -> ConflictReport:
    """Recompute violation flags on every task.

    All flags are cleared first; then both endpoints of each unmet edge and
    both tasks of each same-machine overlap are flagged.
    """
    schedule.clear_violations()
    report = ConflictReport(
        precedence_conflicts=find_precedence_conflicts(schedule),
        machine_overlaps=find_machine_overlaps(schedule),
    )
    for task_id in report.flagged_task_ids:
        schedule.tasks[task_id].is_violation = True

    if report.is_clean:
        logger.checks("No conflicts")
    elif checks_enabled():
        for message in report.messages():
            logger.checks(f"Conflict: {message}")
    return report


def auto_fix(schedule: Schedule) -> AutoFixResult:
    """Shift tasks forward until every precedence edge is satisfied.

    Tasks are visited in dependency order, and each one is moved by the
    smallest amount that satisfies all of its incoming edges. A cycle falls
    back to insertion order, in which case some edges may remain unmet.
    Machine overlaps are reported but not resolved.
    """
    edges = schedule.effective_precedences()
    order = topological_sort(list(schedule.tasks), ((e.source_id, e.target_id) for e in edges))

    incoming: dict[str, list[Precedence]] = {}
    for edge in edges:
        incoming.setdefault(edge.target_id, []).append(edge)

    result = AutoFixResult()
    for task_id in order:
        task = schedule.tasks[task_id]
        shift = max(
            (
                edge.required_shift(schedule.tasks[edge.source_id], task)
                for edge in incoming.get(task_id, [])
            ),
            default=0,
        )
        if shift > 0:
            old = task.start
            task.start += shift
            result.moved[task_id] = (old, task.start)
            logger.changes(f"Auto-fix: {task_id} moved {old} -> {task.start}")

    result.report = detect_conflicts(schedule)
    return result
