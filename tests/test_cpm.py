"""Tests for critical path analysis."""

from datetime import date
from io import StringIO

from ganttline.logger import setup_logger
from ganttline.models import Precedence, RelationType
from ganttline.scheduler.cpm import (
    ProjectTask,
    compute_cpm,
    critical_path,
    early_schedule,
    project_finish,
)

MON = date(2025, 1, 6)


def d(day: int) -> date:
    """Day ``day`` of January 2025."""
    return date(2025, 1, day)


def chain() -> tuple[list[ProjectTask], list[Precedence]]:
    tasks = [ProjectTask("A", MON, 3), ProjectTask("B", MON, 2), ProjectTask("C", MON, 1)]
    return tasks, [Precedence("A", "B"), Precedence("B", "C")]


class TestForwardPass:
    def test_linear_chain(self) -> None:
        tasks, deps = chain()

        results = compute_cpm(tasks, deps)

        assert (results["A"].early_start, results["A"].early_finish) == (d(6), d(8))
        assert (results["B"].early_start, results["B"].early_finish) == (d(9), d(10))
        assert (results["C"].early_start, results["C"].early_finish) == (d(11), d(11))

    def test_unconstrained_task_keeps_its_start(self) -> None:
        results = compute_cpm([ProjectTask("A", d(15), 2)], [])

        assert results["A"].early_start == d(15)

    def test_fs_lag(self) -> None:
        tasks = [ProjectTask("A", MON, 3), ProjectTask("B", MON, 2)]

        results = compute_cpm(tasks, [Precedence("A", "B", lag=2)])

        assert results["B"].early_start == d(11)

    def test_start_to_start(self) -> None:
        tasks = [ProjectTask("A", MON, 3), ProjectTask("B", MON, 2)]

        results = compute_cpm(tasks, [Precedence("A", "B", RelationType.START_TO_START, 1)])

        assert results["B"].early_start == d(7)

    def test_finish_to_finish(self) -> None:
        tasks = [ProjectTask("A", MON, 3), ProjectTask("B", MON, 2)]

        results = compute_cpm(tasks, [Precedence("A", "B", RelationType.FINISH_TO_FINISH)])

        assert (results["B"].early_start, results["B"].early_finish) == (d(7), d(8))

    def test_start_to_finish(self) -> None:
        tasks = [ProjectTask("A", MON, 3), ProjectTask("B", MON, 2)]

        results = compute_cpm(tasks, [Precedence("A", "B", RelationType.START_TO_FINISH)])

        assert results["B"].early_start == d(5)

    def test_milestone(self) -> None:
        tasks = [ProjectTask("A", MON, 3), ProjectTask("M", MON, 0)]

        results = compute_cpm(tasks, [Precedence("A", "M")])

        assert results["M"].early_start == results["M"].early_finish == d(9)

    def test_latest_predecessor_wins(self) -> None:
        tasks = [ProjectTask("A", MON, 3), ProjectTask("X", MON, 5), ProjectTask("B", MON, 1)]

        results = compute_cpm(tasks, [Precedence("A", "B"), Precedence("X", "B")])

        assert results["B"].early_start == d(11)


class TestBackwardPass:
    def test_chain_is_all_critical(self) -> None:
        tasks, deps = chain()

        results = compute_cpm(tasks, deps)

        assert all(r.is_critical for r in results.values())
        assert critical_path(results) == ["A", "B", "C"]

    def test_parallel_branch_has_float(self) -> None:
        tasks, deps = chain()
        tasks.append(ProjectTask("D", MON, 1))
        deps.append(Precedence("A", "D"))

        results = compute_cpm(tasks, deps)

        assert results["D"].total_float == 2
        assert results["D"].free_float == 2
        assert not results["D"].is_critical
        assert results["D"].late_finish == d(11)

    def test_start_to_start_backward(self) -> None:
        tasks = [ProjectTask("A", MON, 3), ProjectTask("B", MON, 2)]

        results = compute_cpm(tasks, [Precedence("A", "B", RelationType.START_TO_START, 1)])

        assert results["A"].late_finish == d(8)
        assert results["A"].is_critical
        assert results["B"].is_critical

    def test_deadline_adds_float(self) -> None:
        tasks, deps = chain()

        results = compute_cpm(tasks, deps, deadline=d(15))

        assert all(r.total_float == 4 for r in results.values())
        assert critical_path(results) == []

    def test_free_float_accounts_for_lag(self) -> None:
        tasks = [
            ProjectTask("A", MON, 5),
            ProjectTask("B", MON, 2),
            ProjectTask("C", MON, 1),
        ]
        deps = [Precedence("A", "C"), Precedence("B", "C", lag=1)]

        results = compute_cpm(tasks, deps)

        # B's edge only needs C to start on the 9th; A holds C until the 11th
        assert results["B"].free_float == 2
        assert results["B"].total_float == 2


class TestEdgeCases:
    def test_empty(self) -> None:
        assert compute_cpm([], []) == {}

    def test_cycle_falls_back_to_given_order(self) -> None:
        stream = StringIO()
        setup_logger(1, stream)
        tasks = [ProjectTask("A", MON, 2), ProjectTask("B", MON, 2)]

        results = compute_cpm(tasks, [Precedence("A", "B"), Precedence("B", "A")])

        assert "Circular dependency" in stream.getvalue()
        assert set(results) == {"A", "B"}
        assert results["A"].early_start == MON

    def test_unknown_dependency_ignored(self) -> None:
        results = compute_cpm([ProjectTask("A", MON, 2)], [Precedence("ghost", "A")])

        assert results["A"].early_start == MON

    def test_helpers(self) -> None:
        tasks, deps = chain()

        results = compute_cpm(tasks, deps)

        assert early_schedule(results) == {"A": d(6), "B": d(9), "C": d(11)}
        assert project_finish(results) == d(11)


class TestMilestones:
    """Zero-duration tasks under every relation type."""

    def test_start_to_start_from_milestone(self) -> None:
        tasks = [ProjectTask("M", MON, 0), ProjectTask("B", MON, 3)]

        results = compute_cpm(tasks, [Precedence("M", "B", RelationType.START_TO_START)])

        assert results["B"].early_start == d(6)
        assert results["M"].late_start == results["M"].early_start == d(6)
        assert results["M"].total_float == 0
        assert critical_path(results) == ["M", "B"]

    def test_finish_to_finish_into_milestone(self) -> None:
        tasks = [ProjectTask("A", MON, 3), ProjectTask("M", MON, 0)]

        results = compute_cpm(tasks, [Precedence("A", "M", RelationType.FINISH_TO_FINISH)])

        assert results["M"].early_finish == results["A"].early_finish == d(8)
        assert results["A"].total_float == 0
        assert results["M"].is_critical

    def test_start_to_finish_into_milestone(self) -> None:
        tasks = [ProjectTask("A", MON, 3), ProjectTask("M", MON, 0)]

        results = compute_cpm(tasks, [Precedence("A", "M", RelationType.START_TO_FINISH)])

        assert results["M"].early_start == results["M"].early_finish == d(6)
        assert results["M"].total_float == 2
        assert results["A"].total_float == 2

    def test_finish_to_finish_from_milestone(self) -> None:
        tasks = [ProjectTask("M", MON, 0), ProjectTask("B", MON, 2)]

        results = compute_cpm(tasks, [Precedence("M", "B", RelationType.FINISH_TO_FINISH, 3)])

        assert results["B"].early_finish == d(9)
        assert results["M"].late_finish == d(6)
        assert results["M"].free_float == 0
