"""Tests for single-task compression and the machine timeline."""

from collections.abc import Callable

import pytest

from ganttline.exceptions import TaskNotFoundError
from ganttline.models import Schedule
from ganttline.scheduler.compression import compress, compress_earliest, compress_latest
from ganttline.scheduler.config import CompressionMode
from ganttline.scheduler.timeline import MachineTimeline

MakeSchedule = Callable[..., Schedule]


class TestMachineTimeline:
    def test_merges_overlapping_and_touching(self) -> None:
        timeline = MachineTimeline([(5, 8), (0, 2), (2, 3), (7, 9), (4, 4)])

        assert timeline.busy_periods == [(0, 3), (5, 9)]

    def test_is_free(self) -> None:
        timeline = MachineTimeline([(0, 3), (5, 9)])

        assert timeline.is_free(3, 2)
        assert not timeline.is_free(2, 2)
        assert not timeline.is_free(4, 2)
        assert timeline.is_free(9, 100)
        assert timeline.is_free(1, 0)

    def test_earliest_fit(self) -> None:
        timeline = MachineTimeline([(0, 3), (5, 9)])

        assert timeline.earliest_fit(0, 2) == 3
        assert timeline.earliest_fit(0, 3) == 9
        assert timeline.earliest_fit(4, 1) == 4
        assert timeline.earliest_fit(12, 5) == 12

    def test_latest_fit(self) -> None:
        timeline = MachineTimeline([(0, 1), (4, 6), (7, 10)])

        assert timeline.latest_fit(0, 20, 2) == 18
        assert timeline.latest_fit(0, 10, 2) == 2
        assert timeline.latest_fit(0, 10, 1) == 6
        assert timeline.latest_fit(0, 10, 4) is None
        assert timeline.latest_fit(5, 4, 1) is None


class TestCompressEarliest:
    """Move a task to the first feasible gap."""

    def test_moves_into_first_gap(self, make_schedule: MakeSchedule) -> None:
        schedule = make_schedule([("A", "M1", 0, 3), ("B", "M1", 10, 2)])

        assert compress_earliest(schedule, "B") == 3
        assert schedule.tasks["B"].start == 3

    def test_idempotent(self, make_schedule: MakeSchedule) -> None:
        schedule = make_schedule([("A", "M1", 0, 3), ("C", "M1", 5, 4), ("B", "M1", 20, 2)])

        compress_earliest(schedule, "B")
        first = schedule.tasks["B"].start

        assert compress_earliest(schedule, "B") is None
        assert schedule.tasks["B"].start == first == 3

    def test_skips_gap_too_small(self, make_schedule: MakeSchedule) -> None:
        schedule = make_schedule([("A", "M1", 0, 3), ("C", "M1", 5, 4), ("B", "M1", 20, 3)])

        assert compress_earliest(schedule, "B") == 9

    def test_respects_predecessor(self, make_schedule: MakeSchedule) -> None:
        schedule = make_schedule(
            [("A", "M1", 0, 3), ("X", "M2", 0, 6), ("B", "M1", 20, 2)], [("X", "B")]
        )

        assert compress_earliest(schedule, "B") == 6

    def test_respects_lag(self, make_schedule: MakeSchedule) -> None:
        schedule = make_schedule(
            [("A", "M1", 0, 3), ("X", "M2", 0, 6), ("B", "M1", 20, 2)], [("X", "B", "FS", 2)]
        )

        assert compress_earliest(schedule, "B") == 8

    def test_start_to_start(self, make_schedule: MakeSchedule) -> None:
        """SS+1 allows start 1, but the machine is busy until 3."""
        schedule = make_schedule(
            [("A", "M1", 0, 3), ("X", "M2", 0, 6), ("B", "M1", 20, 2)], [("X", "B", "SS", 1)]
        )

        assert compress_earliest(schedule, "B") == 3

    def test_never_before_zero(self, make_schedule: MakeSchedule) -> None:
        """An SF edge can allow a negative start; zero is the floor."""
        schedule = make_schedule(
            [("X", "M2", 0, 1), ("B", "M1", 5, 4)], [("X", "B", "SF", 0)]
        )

        assert compress_earliest(schedule, "B") == 0

    def test_unassigned_task(self, make_schedule: MakeSchedule) -> None:
        schedule = make_schedule([("A", "M1", 0, 3), ("B", None, 5, 2)])

        assert compress_earliest(schedule, "B") == 0

    def test_implied_job_order(self, job_schedule: Schedule) -> None:
        job_schedule.tasks["J1-Op2"].start = 10

        assert compress_earliest(job_schedule, "J1-Op2") == 3

    def test_unknown_task(self, make_schedule: MakeSchedule) -> None:
        with pytest.raises(TaskNotFoundError):
            compress_earliest(make_schedule([]), "nope")


class TestCompressLatest:
    """Move a task to the right-most feasible gap."""

    def test_moves_to_makespan(self, make_schedule: MakeSchedule) -> None:
        schedule = make_schedule([("A", "M1", 0, 2), ("B", "M1", 2, 1), ("Z", "M2", 0, 10)])

        assert compress_latest(schedule, "A") == 8
        assert schedule.tasks["A"].end == 10

    def test_deadline_bounds(self, make_schedule: MakeSchedule) -> None:
        schedule = make_schedule(
            [("A", "M1", 0, 2), ("B", "M1", 2, 1), ("Z", "M2", 0, 10)], deadline=6
        )

        assert compress_latest(schedule, "A") == 4

    def test_between_gaps(self, make_schedule: MakeSchedule) -> None:
        schedule = make_schedule(
            [
                ("P", "M1", 0, 1),
                ("A", "M1", 1, 2),
                ("Q", "M1", 4, 2),
                ("R", "M1", 7, 3),
            ]
        )

        assert compress_latest(schedule, "A") == 2

    def test_successor_bounds(self, make_schedule: MakeSchedule) -> None:
        schedule = make_schedule(
            [("A", "M1", 0, 2), ("S", "M2", 7, 1), ("Z", "M2", 12, 8)], [("A", "S")]
        )

        assert compress_latest(schedule, "A") == 5

    def test_no_fit_is_noop(self, make_schedule: MakeSchedule) -> None:
        """A successor starting at 0 leaves no room before it."""
        schedule = make_schedule([("A", "M1", 0, 2), ("Z", "M2", 0, 10)], [("A", "Z")])

        assert compress_latest(schedule, "A") is None
        assert schedule.tasks["A"].start == 0

    def test_repeat_is_noop(self, make_schedule: MakeSchedule) -> None:
        schedule = make_schedule([("A", "M1", 0, 2), ("Z", "M2", 0, 10)])

        compress_latest(schedule, "A")

        assert compress_latest(schedule, "A") is None
        assert schedule.tasks["A"].start == 8

    def test_unknown_task(self, make_schedule: MakeSchedule) -> None:
        with pytest.raises(TaskNotFoundError):
            compress_latest(make_schedule([]), "nope")


class TestCompressDispatch:
    def test_modes(self, make_schedule: MakeSchedule) -> None:
        schedule = make_schedule([("A", "M1", 3, 2), ("Z", "M2", 0, 10)])

        assert compress(schedule, "A", CompressionMode.LATEST) == 8
        assert compress(schedule, "A", CompressionMode.EARLIEST) == 0
