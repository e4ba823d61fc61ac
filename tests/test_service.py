"""Tests for the scheduling service."""

from io import StringIO

import pytest

from ganttline.exceptions import InstanceValidationError
from ganttline.layers import TaskOverride
from ganttline.loader import load_project
from ganttline.logger import setup_logger
from ganttline.models import Schedule, Task
from ganttline.scheduler.config import (
    CompressionConfig,
    CompressionMode,
    DispatchRule,
    LayerConfig,
    SchedulingConfig,
    SolverConfig,
)
from ganttline.scheduler.conflicts import detect_conflicts
from ganttline.scheduler.service import SchedulingService

from tests.conftest import EXAMPLES_DIR


class TestToInstance:
    def test_machines_in_row_order(self, job_schedule: Schedule) -> None:
        mapping = SchedulingService(job_schedule).to_instance()

        assert mapping.machine_ids == ["M1", "M2"]
        assert mapping.task_ids == [["J1-Op1", "J1-Op2"], ["J2-Op1", "J2-Op2"]]
        assert [[(op.machine, op.duration) for op in ops] for ops in mapping.instance.jobs] == [
            [(0, 3), (1, 2)],
            [(1, 2), (0, 4)],
        ]
        assert mapping.instance.machine_names == ["Lathe", "Mill"]
        assert mapping.instance.job_names == ["Bracket", "Shaft"]

    def test_unassigned_operation_skipped(self, job_schedule: Schedule) -> None:
        stream = StringIO()
        setup_logger(1, stream)
        job_schedule.add_task(Task("J1-Op3", 1, job_id="J1"))

        mapping = SchedulingService(job_schedule).to_instance()

        assert mapping.task_ids[0] == ["J1-Op1", "J1-Op2"]
        assert "J1-Op3 has no machine" in stream.getvalue()

    def test_task_without_job_skipped(self, job_schedule: Schedule) -> None:
        stream = StringIO()
        setup_logger(1, stream)
        job_schedule.add_task(Task("loose", 2, machine_id="M1"))

        mapping = SchedulingService(job_schedule).to_instance()

        assert "loose" not in {task_id for ids in mapping.task_ids for task_id in ids}
        assert "Task loose has no job; left out of the instance" in stream.getvalue()


class TestApplyRule:
    """Solver runs stored as layers."""

    def test_matching_solution_has_no_overrides(self, job_schedule: Schedule) -> None:
        service = SchedulingService(job_schedule)

        layer = service.apply_rule(DispatchRule.SPT)

        assert layer.name == "SPT Solution #1"
        assert layer.algorithm == "SPT"
        assert layer.description == "Shortest Processing Time"
        assert layer.overrides == {}
        assert layer.metrics["makespan"] == 7.0
        assert "elapsed_ms" in layer.metrics
        assert service.layers.active_layer is layer

    def test_overrides_are_sparse(self, job_schedule: Schedule) -> None:
        service = SchedulingService(job_schedule)

        layer = service.apply_rule(DispatchRule.LPT)

        assert layer.overrides == {
            "J2-Op1": TaskOverride(start=5),
            "J2-Op2": TaskOverride(start=7),
        }
        assert layer.metrics["makespan"] == 11.0
        assert job_schedule.tasks["J2-Op1"].start == 0

    def test_numbering_per_rule(self, job_schedule: Schedule) -> None:
        service = SchedulingService(job_schedule)

        service.apply_rule(DispatchRule.SPT)
        service.apply_rule(DispatchRule.LPT)
        layer = service.apply_rule(DispatchRule.SPT)

        assert layer.name == "SPT Solution #2"
        assert len(service.layers.layers) == 3

    def test_default_rule_from_config(self, job_schedule: Schedule) -> None:
        config = SchedulingConfig(solver=SolverConfig(default_rule=DispatchRule.MWR))

        layer = SchedulingService(job_schedule, config=config).apply_rule()

        assert layer.name == "MWR Solution #1"

    def test_inactive_when_configured(self, job_schedule: Schedule) -> None:
        config = SchedulingConfig(layers=LayerConfig(activate_new_layers=False))
        service = SchedulingService(job_schedule, config=config)

        service.apply_rule(DispatchRule.SPT)

        assert service.layers.active_layer is None

    def test_empty_schedule_rejected(self) -> None:
        service = SchedulingService(Schedule())

        with pytest.raises(InstanceValidationError) as exc_info:
            service.apply_rule(DispatchRule.SPT)

        assert "Instance has no jobs" in exc_info.value.errors
        assert service.layers.layers == []

    def test_apply_best(self, job_schedule: Schedule) -> None:
        service = SchedulingService(job_schedule)

        layer = service.apply_best()

        assert layer.algorithm == "SPT"
        assert layer.metrics["makespan"] == 7.0

    def test_apply_best_restricted_rules(self, job_schedule: Schedule) -> None:
        config = SchedulingConfig(solver=SolverConfig(rules=[DispatchRule.LWR, DispatchRule.LPT]))

        layer = SchedulingService(job_schedule, config=config).apply_best()

        assert layer.algorithm == "LPT"
        assert layer.metrics["makespan"] == 11.0


class TestEffectiveView:
    def test_effective_schedule_applies_active_layer(self, job_schedule: Schedule) -> None:
        service = SchedulingService(job_schedule)
        service.apply_rule(DispatchRule.LPT)

        view = service.effective_schedule()

        assert view.tasks["J2-Op1"].start == 5
        assert view.makespan() == 11
        assert job_schedule.makespan() == 7

    def test_check_solver_layer_is_clean(self, job_schedule: Schedule) -> None:
        service = SchedulingService(job_schedule)
        layer = service.apply_rule(DispatchRule.LPT)

        assert service.check_layer(layer.id).is_clean

    def test_check_edited_layer(self, job_schedule: Schedule) -> None:
        service = SchedulingService(job_schedule)
        layer = service.layers.create_layer("edit", overrides={"J1-Op2": TaskOverride(start=1)})

        report = service.check_layer(layer.id)

        assert [c.precedence.target_id for c in report.precedence_conflicts] == ["J1-Op2"]
        assert not job_schedule.tasks["J1-Op2"].is_violation


class TestApplyCpm:
    def test_example_project(self) -> None:
        tasks, deps, deadline = load_project(EXAMPLES_DIR / "project.yaml")
        service = SchedulingService(Schedule())

        layer, results = service.apply_cpm(tasks, deps, deadline)

        assert layer.name == "CPM"
        assert set(layer.overrides) == {"design", "permits", "racking", "handover"}
        assert str(layer.overrides["racking"].start_date) == "2025-03-10"
        assert layer.metrics == {"critical_tasks": 4.0, "project_duration_days": 12.0}
        assert results["permits"].total_float == 1
        assert service.layers.active_layer is layer


class TestCompressTask:
    def test_default_mode_is_earliest(self, job_schedule: Schedule) -> None:
        job_schedule.tasks["J1-Op2"].start = 10
        service = SchedulingService(job_schedule)

        new_start, report = service.compress_task("J1-Op2")

        assert new_start == 3
        assert report.is_clean

    def test_mode_from_config(self, job_schedule: Schedule) -> None:
        config = SchedulingConfig(compression=CompressionConfig(mode=CompressionMode.LATEST))
        service = SchedulingService(job_schedule, config=config)

        new_start, _ = service.compress_task("J2-Op1")

        assert new_start == 1
        assert job_schedule.tasks["J2-Op1"].start == 1

    def test_edit_refreshes_flags(self, job_schedule: Schedule) -> None:
        job_schedule.tasks["J1-Op2"].start = 1
        assert not detect_conflicts(job_schedule).is_clean
        service = SchedulingService(job_schedule)

        _, report = service.compress_task("J1-Op2", CompressionMode.EARLIEST)

        assert report.is_clean
        assert not job_schedule.tasks["J1-Op2"].is_violation
