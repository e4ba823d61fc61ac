"""Scheduling service: runs solvers against the live schedule and stores results as layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from ganttline.exceptions import InstanceValidationError
from ganttline.layers import Layer, LayerManager, TaskOverride, diff_snapshots
from ganttline.logger import changes_enabled, get_logger
from ganttline.models import Precedence, Schedule

from .compression import compress
from .config import CompressionMode, DispatchRule, SchedulingConfig
from .conflicts import ConflictReport, detect_conflicts
from .core import Instance, Operation, Solution, SolverResult
from .cpm import CpmResult, ProjectTask, compute_cpm, critical_path, project_finish
from .dispatch import solve, solve_multiple

logger = get_logger()


@dataclass
class InstanceMapping:
    """A job-shop instance built from the schedule, with the task ID of every operation."""

    instance: Instance
    task_ids: list[list[str]] = field(default_factory=list)  # [job][op] -> task id
    machine_ids: list[str] = field(default_factory=list)  # machine index -> machine id


class SchedulingService:
    """Runs dispatch rules and CPM and records each run as a new layer.

    Solver runs never modify the base schedule: solutions are applied to a
    copy, diffed against the base and stored as sparse overrides. Only
    compress_task edits the base directly.
    """

    def __init__(
        self,
        schedule: Schedule,
        layers: LayerManager | None = None,
        config: SchedulingConfig | None = None,
    ) -> None:
        self.schedule = schedule
        self.config = config or SchedulingConfig()
        self.layers = layers or LayerManager(max_undo_steps=self.config.layers.max_undo_steps)

    def to_instance(self) -> InstanceMapping:
        """Convert the schedule's jobs into a job-shop instance.

        Machines are indexed in row order. Tasks without a job or a machine
        are skipped with a warning, as are jobs left with no operations.
        """
        machines = self.schedule.sorted_machines()
        machine_index = {m.id: i for i, m in enumerate(machines)}

        jobs: list[list[Operation]] = []
        task_ids: list[list[str]] = []
        job_names: list[str] = []
        for job in self.schedule.jobs.values():
            ops: list[Operation] = []
            ids: list[str] = []
            for task_id in job.operation_ids:
                task = self.schedule.tasks.get(task_id)
                if task is None:
                    continue
                if task.machine_id is None or task.machine_id not in machine_index:
                    logger.warning(f"Task {task_id} has no machine; left out of the instance")
                    continue
                ops.append(Operation(machine_index[task.machine_id], task.duration))
                ids.append(task_id)
            if ops:
                jobs.append(ops)
                task_ids.append(ids)
                job_names.append(job.name or job.id)

        placed = {task_id for job in self.schedule.jobs.values() for task_id in job.operation_ids}
        for task_id in self.schedule.tasks:
            if task_id not in placed:
                logger.warning(f"Task {task_id} has no job; left out of the instance")

        instance = Instance(
            machine_count=len(machines),
            jobs=jobs,
            name=self.schedule.name,
            time_unit=self.schedule.time_unit,
            machine_names=[m.name or m.id for m in machines],
            job_names=job_names,
        )
        return InstanceMapping(instance, task_ids, [m.id for m in machines])

    def _solution_layer(self, mapping: InstanceMapping, result: SolverResult) -> Layer:
        if not result.success or result.solution is None:
            raise InstanceValidationError(result.errors)
        assert result.rule is not None

        before = self.schedule.snapshot()
        working = self.schedule.copy()
        apply_solution(working, mapping, result.solution)
        overrides = diff_snapshots(before, working.snapshot())

        count = sum(1 for layer in self.layers.layers if layer.algorithm == result.rule.value)
        layer = self.layers.create_layer(
            f"{result.rule.value} Solution #{count + 1}",
            algorithm=result.rule.value,
            overrides=overrides,
            description=result.rule.label,
        )
        metrics = result.validation.metrics.as_dict() if result.validation else {}
        metrics["elapsed_ms"] = result.elapsed_seconds * 1000
        self.layers.update_layer_metrics(layer.id, metrics)
        if changes_enabled():
            logger.changes(
                f"{layer.name}: makespan {result.makespan}, {len(overrides)} tasks moved"
            )
        if self.config.layers.activate_new_layers:
            self.layers.set_active_layer(layer.id)
        return layer

    def apply_rule(self, rule: DispatchRule | None = None) -> Layer:
        """Solve with one rule (default from config) and store the result as a layer.

        Raises:
            InstanceValidationError: If the schedule does not form a valid instance
        """
        rule = rule or self.config.solver.default_rule
        mapping = self.to_instance()
        result = solve(mapping.instance, rule, compress=self.config.solver.compress)
        return self._solution_layer(mapping, result)

    def apply_best(self) -> Layer:
        """Solve with every configured rule and store the best result as a layer."""
        mapping = self.to_instance()
        result = solve_multiple(
            mapping.instance, self.config.solver.rules, compress=self.config.solver.compress
        )
        return self._solution_layer(mapping, result)

    def apply_cpm(
        self,
        tasks: list[ProjectTask],
        dependencies: list[Precedence],
        deadline: date | None = None,
    ) -> tuple[Layer, dict[str, CpmResult]]:
        """Run CPM and store a layer moving every task to its early start."""
        results = compute_cpm(tasks, dependencies, deadline)
        overrides = {
            task.id: TaskOverride(start_date=results[task.id].early_start)
            for task in tasks
            if results[task.id].early_start != task.start_date
        }
        layer = self.layers.create_layer("CPM", algorithm="CPM", overrides=overrides)

        finish = project_finish(results)
        start = min((r.early_start for r in results.values()), default=None)
        metrics: dict[str, float] = {"critical_tasks": float(len(critical_path(results)))}
        if finish is not None and start is not None:
            metrics["project_duration_days"] = float((finish - start).days + 1)
        self.layers.update_layer_metrics(layer.id, metrics)
        if self.config.layers.activate_new_layers:
            self.layers.set_active_layer(layer.id)
        return layer, results

    def compress_task(
        self, task_id: str, mode: CompressionMode | None = None
    ) -> tuple[int | None, ConflictReport]:
        """Compress one task of the base schedule, then refresh its conflict flags.

        The mode defaults to the configured compression mode.
        """
        new_start = compress(self.schedule, task_id, mode or self.config.compression.mode)
        return new_start, detect_conflicts(self.schedule)

    def effective_schedule(self, layers: list[Layer] | None = None) -> Schedule:
        """A copy of the base schedule with layer overrides applied to every task."""
        view = self.schedule.copy()
        for task_id, task in list(view.tasks.items()):
            view.tasks[task_id] = self.layers.effective_task(task, layers)
        return view

    def check_layer(self, layer_id: str) -> ConflictReport:
        """Conflicts in the base schedule as seen through one layer."""
        layer = self.layers.get_layer(layer_id)
        return detect_conflicts(self.effective_schedule([layer]))


def apply_solution(schedule: Schedule, mapping: InstanceMapping, solution: Solution) -> None:
    """Write solution start times onto the mapped tasks."""
    for ids, ops in zip(mapping.task_ids, solution.jobs):
        for task_id, op in zip(ids, ops):
            if op.start is not None:
                schedule.tasks[task_id].start = op.start
