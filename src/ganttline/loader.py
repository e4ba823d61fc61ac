"""Import and export of instances, solutions, schedules and project files."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

import pydantic
import yaml

from .exceptions import ImportFormatError
from .logger import get_logger
from .models import Job, Machine, Precedence, Schedule, Task
from .scheduler.core import Instance, Operation, ScheduledOperation, Solution
from .scheduler.cpm import ProjectTask
from .scheduler.service import SchedulingService
from .schemas import PayloadSchema, ProjectSchema

logger = get_logger()


@dataclass
class ImportResult:
    """A parsed payload. ``solution`` is set only for solution payloads."""

    instance: Instance
    solution: Solution | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def is_solution(self) -> bool:
        return self.solution is not None


def _format_pydantic_errors(exc: pydantic.ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(part) for part in err['loc']) or 'payload'}: {err['msg']}"
        for err in exc.errors()
    ]


def _check_data(data: list[list[list[int]]], errors: list[str]) -> bool:
    """Check operation shapes. Returns True if the payload carries start times."""
    pairs = triples = 0
    for j, ops in enumerate(data):
        for o, op in enumerate(ops):
            if len(op) < 2:  # noqa: PLR2004 - [machine, duration] is the minimum shape
                errors.append(f"Job {j} operation {o}: expected [machine, duration], got {op}")
            elif len(op) == 2:  # noqa: PLR2004
                pairs += 1
            else:
                triples += 1
    if pairs and triples:
        errors.append(
            f"Ambiguous payload: {pairs} operations without start times and {triples} with"
        )
    return triples > 0 and not pairs


def _pad_names(names: list[str], count: int, label: str, warnings: list[str]) -> list[str]:
    if len(names) < count:
        warnings.append(f"{count - len(names)} {label} names missing; using defaults")
        names = names + [f"{label} {i + 1}" for i in range(len(names), count)]
    return names[:count] if len(names) > count else names


def parse_payload(text: str) -> ImportResult:
    """Parse an instance or solution from JSON text.

    Raises:
        ImportFormatError: With every problem found; nothing is returned on error
    """
    errors: list[str] = []
    warnings: list[str] = []

    try:
        raw: Any = json.loads(text)
    except json.JSONDecodeError as e:
        raise ImportFormatError([f"Malformed JSON: {e}"]) from e
    if not isinstance(raw, dict):
        raise ImportFormatError(["Payload must be a JSON object"])

    try:
        payload = PayloadSchema.model_validate(raw)
    except pydantic.ValidationError as e:
        raise ImportFormatError(_format_pydantic_errors(e)) from e

    if payload.data is None:
        raise ImportFormatError(["Missing Data"])

    is_solution = _check_data(payload.data, errors)
    if errors:
        raise ImportFormatError(errors, warnings)

    machine_count = payload.machine_count
    if machine_count is None:
        machine_count = max((op[0] for ops in payload.data for op in ops), default=-1) + 1
        warnings.append(f"MachineCount missing; inferred {machine_count} from Data")

    job_count = len(payload.data)
    instance = Instance(
        machine_count=machine_count,
        jobs=[[Operation(op[0], op[1]) for op in ops] for ops in payload.data],
        name=payload.name or "",
        time_unit=payload.time_unit or "units",
        machine_names=_pad_names(payload.machine_names or [], machine_count, "Machine", warnings),
        job_names=_pad_names(payload.job_names or [], job_count, "Job", warnings),
        declared_job_count=payload.job_count,
    )

    solution = None
    if is_solution:
        solution = Solution(
            jobs=[[ScheduledOperation(op[0], op[1], op[2]) for op in ops] for ops in payload.data],
            makespan=payload.makespan,
            solver=payload.solver or "",
            status=payload.status or "Feasible",
        )

    for warning in warnings:
        logger.warning(warning)
    return ImportResult(instance, solution, warnings)


def load_payload(path: Path | str) -> ImportResult:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    return parse_payload(path.read_text())


def load_instance(path: Path | str) -> Instance:
    """Load an instance; a solution file yields its underlying instance."""
    return load_payload(path).instance


def load_solution(path: Path | str) -> tuple[Instance, Solution]:
    """Load a solution and the instance it solves.

    Raises:
        ImportFormatError: If the file holds no start times
    """
    result = load_payload(path)
    if result.solution is None:
        raise ImportFormatError([f"{path} contains an instance, not a solution"], result.warnings)
    return result.instance, result.solution


def instance_payload(instance: Instance) -> PayloadSchema:
    return PayloadSchema(
        name=instance.name,
        machine_count=instance.machine_count,
        job_count=instance.job_count,
        time_unit=instance.time_unit,
        machine_names=[instance.machine_name(i) for i in range(instance.machine_count)],
        job_names=[instance.job_name(j) for j in range(instance.job_count)],
        data=[[[op.machine, op.duration] for op in ops] for ops in instance.jobs],
    )


def dump_instance(instance: Instance) -> str:
    return json.dumps(instance_payload(instance).dump(), indent=2)


def dump_solution(instance: Instance, solution: Solution) -> str:
    """Serialize a solution as ``[machine, duration, start]`` triples."""
    payload = instance_payload(instance)
    payload.data = [
        [[op.machine, op.duration, op.start or 0] for op in ops] for ops in solution.jobs
    ]
    payload.makespan = solution.computed_makespan()
    payload.status = solution.status
    payload.solver = solution.solver or None
    return json.dumps(payload.dump(), indent=2)


def import_schedule(result: ImportResult) -> Schedule:
    """Build a live schedule from a parsed payload.

    Machines become ``M1..Mn``, jobs ``J1..Jn`` and operations ``J<j>-Op<o>``.
    Instance payloads lay each job's operations out back to back; solution
    payloads keep their start times. Job order is carried by the jobs'
    operation lists.
    """
    instance = result.instance
    schedule = Schedule(name=instance.name, time_unit=instance.time_unit)
    for i in range(instance.machine_count):
        schedule.add_machine(Machine(f"M{i + 1}", instance.machine_name(i), row_index=i))

    for j, ops in enumerate(instance.jobs):
        job = schedule.add_job(Job(f"J{j + 1}", instance.job_name(j)))
        cursor = 0
        for o, op in enumerate(ops):
            start = cursor
            if result.solution is not None:
                start = result.solution.jobs[j][o].start or 0
            schedule.add_task(
                Task(
                    id=f"J{j + 1}-Op{o + 1}",
                    name=f"J{j + 1}-Op{o + 1}",
                    duration=op.duration,
                    start=start,
                    machine_id=f"M{op.machine + 1}",
                    job_id=job.id,
                    row_index=op.machine,
                )
            )
            cursor = start + op.duration

    logger.changes(
        f"Imported {len(schedule.tasks)} tasks on {len(schedule.machines)} machines "
        f"in {len(schedule.jobs)} jobs"
    )
    return schedule


def export_solution(schedule: Schedule) -> tuple[Instance, Solution]:
    """The schedule's current start times as a job-shop solution."""
    mapping = SchedulingService(schedule).to_instance()
    jobs = [
        [
            ScheduledOperation(op.machine, op.duration, schedule.tasks[task_id].start)
            for op, task_id in zip(ops, ids)
        ]
        for ops, ids in zip(mapping.instance.jobs, mapping.task_ids)
    ]
    solution = Solution(jobs=jobs, solver="manual")
    solution.makespan = solution.computed_makespan()
    return mapping.instance, solution


def load_project(path: Path | str) -> tuple[list[ProjectTask], list[Precedence], date | None]:
    """Load a CPM project file (YAML or JSON).

    Returns:
        Tuple of (tasks, dependencies, deadline)

    Raises:
        FileNotFoundError: If the file doesn't exist
        ImportFormatError: If the file is malformed
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Project file not found: {path}")

    try:
        with path.open() as f:
            data: dict[str, Any] = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ImportFormatError([f"Malformed project file: {e}"]) from e
    if not data:
        raise ImportFormatError(["Empty project file"])

    try:
        project = ProjectSchema.model_validate(data)
    except pydantic.ValidationError as e:
        raise ImportFormatError(_format_pydantic_errors(e)) from e

    tasks = [ProjectTask(t.id, t.start, t.duration, t.name) for t in project.tasks]
    known = {t.id for t in tasks}
    missing = [
        f"Dependency {d.source} -> {d.target} references an unknown task"
        for d in project.dependencies
        if d.source not in known or d.target not in known
    ]
    if missing:
        raise ImportFormatError(missing)

    dependencies = [Precedence(d.source, d.target, d.type, d.lag) for d in project.dependencies]
    return tasks, dependencies, project.deadline
