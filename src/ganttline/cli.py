"""Command-line interface for ganttline."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Annotated

import typer
import yaml

from . import __version__, context
from .config import GanttlineConfig, discover_config
from .exceptions import GanttlineError
from .loader import (
    dump_solution,
    export_solution,
    import_schedule,
    load_instance,
    load_payload,
    load_project,
    load_solution,
)
from .logger import setup_logger
from .scheduler import (
    CompressionMode,
    DispatchRule,
    SchedulingService,
    auto_fix,
    compute_cpm,
    critical_path,
    detect_conflicts,
    solve,
    solve_multiple,
    validate,
)

app = typer.Typer(
    name="ganttline",
    help="Job-shop dispatch scheduling, feasibility checks and critical path analysis",
    add_completion=False,
)


def _load_config() -> GanttlineConfig:
    try:
        return discover_config(context.get_config_path())
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"ganttline {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            help="Verbosity level: 0=silent (default), 1=show changes, 2=show all checks, 3=debug",
            min=0,
            max=3,
        ),
    ] = 0,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to config file (default: ganttline.yaml)"),
    ] = None,
    version: Annotated[
        bool,
        typer.Option(
            "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
        ),
    ] = False,
) -> None:
    """Global options for ganttline commands."""
    setup_logger(verbose)
    context.set_config_path(config)


@app.command("solve")
def solve_command(
    instance_file: Annotated[Path, typer.Argument(help="Instance JSON file")],
    *,
    rule: Annotated[
        DispatchRule | None,
        typer.Option("--rule", "-r", help="Dispatch rule (default from config)"),
    ] = None,
    best: Annotated[
        bool, typer.Option("--best", help="Try every configured rule and keep the best")
    ] = False,
    compress: Annotated[
        bool, typer.Option("--compress", help="Left-shift operations after dispatching")
    ] = False,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write the solution JSON here")
    ] = None,
) -> None:
    """Solve a job-shop instance with dispatch rules."""
    if rule is not None and best:
        typer.echo("Error: Cannot specify both --rule and --best", err=True)
        raise typer.Exit(1)

    config = _load_config()
    try:
        instance = load_instance(instance_file)
    except (FileNotFoundError, GanttlineError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    do_compress = compress or config.solver.compress
    if best:
        result = solve_multiple(instance, config.solver.rules, compress=do_compress)
    else:
        result = solve(instance, rule or config.solver.default_rule, compress=do_compress)

    if not result.success or result.solution is None:
        for error in result.errors:
            typer.echo(f"Error: {error}", err=True)
        raise typer.Exit(1)

    rule_name = result.rule.value if result.rule else "?"
    text = dump_solution(instance, result.solution)
    if output:
        output.write_text(text)
        typer.echo(f"{rule_name}: makespan {result.makespan}, solution written to {output}")
    else:
        typer.echo(text)
    if result.validation:
        typer.echo(result.validation.summary(), err=True)


@app.command("validate")
def validate_command(
    instance_file: Annotated[Path, typer.Argument(help="Instance JSON file")],
    solution_file: Annotated[Path, typer.Argument(help="Solution JSON file")],
) -> None:
    """Check a solution against an instance and report metrics."""
    try:
        instance = load_instance(instance_file)
        _, solution = load_solution(solution_file)
    except (FileNotFoundError, GanttlineError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    result = validate(instance, solution)
    typer.echo(result.summary())
    for name, value in result.metrics.as_dict().items():
        typer.echo(f"  {name}: {value:g}")
    for error in result.errors:
        typer.echo(f"Error: {error}", err=True)
    for warning in result.warnings:
        typer.echo(f"Warning: {warning}", err=True)
    if not result.is_valid:
        raise typer.Exit(1)


@app.command("check")
def check_command(
    solution_file: Annotated[Path, typer.Argument(help="Solution JSON file")],
    *,
    fix: Annotated[
        bool, typer.Option("--fix", help="Shift tasks forward to satisfy job order")
    ] = False,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write the fixed solution JSON here")
    ] = None,
) -> None:
    """List conflicts in a solution loaded as an editable schedule."""
    try:
        schedule = import_schedule(load_payload(solution_file))
    except (FileNotFoundError, GanttlineError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    if fix:
        fixed = auto_fix(schedule)
        for task_id, (old, new) in fixed.moved.items():
            typer.echo(f"Moved {task_id}: {old} -> {new}")
        report = fixed.report
    else:
        report = detect_conflicts(schedule)

    if output:
        output.write_text(dump_solution(*export_solution(schedule)))

    for message in report.messages():
        typer.echo(message)
    if report.is_clean:
        typer.echo("No conflicts")
    else:
        raise typer.Exit(1)


@app.command("compress")
def compress_command(
    solution_file: Annotated[Path, typer.Argument(help="Solution JSON file")],
    task_id: Annotated[str, typer.Argument(help="Task to move, e.g. J1-Op2")],
    *,
    mode: Annotated[
        CompressionMode | None,
        typer.Option("--mode", "-m", help="Direction (default from config)"),
    ] = None,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write the edited solution JSON here")
    ] = None,
) -> None:
    """Move one task to its earliest or latest feasible position."""
    config = _load_config()
    try:
        schedule = import_schedule(load_payload(solution_file))
        service = SchedulingService(schedule, config=config.scheduling)
        new_start, report = service.compress_task(task_id, mode)
    except (FileNotFoundError, GanttlineError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    if new_start is None:
        typer.echo(f"{task_id} unchanged at {schedule.tasks[task_id].start}")
    else:
        typer.echo(f"{task_id} moved to {new_start}")
    for message in report.messages():
        typer.echo(message)

    if output:
        output.write_text(dump_solution(*export_solution(schedule)))


@app.command("cpm")
def cpm_command(
    project_file: Annotated[Path, typer.Argument(help="Project YAML/JSON file")],
    *,
    deadline: Annotated[
        str | None, typer.Option("--deadline", help="Project deadline (YYYY-MM-DD)")
    ] = None,
) -> None:
    """Run critical path analysis on a project file."""
    config = _load_config()
    try:
        tasks, dependencies, file_deadline = load_project(project_file)
    except (FileNotFoundError, GanttlineError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    finish_by = file_deadline or config.cpm.deadline
    if deadline:
        try:
            finish_by = date.fromisoformat(deadline)
        except ValueError as e:
            typer.echo(f"Error: Invalid deadline: {deadline}", err=True)
            raise typer.Exit(1) from e

    results = compute_cpm(tasks, dependencies, finish_by)
    typer.echo(f"{'Task':<16} {'ES':<10} {'EF':<10} {'LS':<10} {'LF':<10} {'TF':>4} {'FF':>4}")
    for task in tasks:
        r = results[task.id]
        marker = " *" if r.is_critical else ""
        typer.echo(
            f"{task.id:<16} {r.early_start} {r.early_finish} {r.late_start} {r.late_finish} "
            f"{r.total_float:>4} {r.free_float:>4}{marker}"
        )
    typer.echo(f"Critical path: {' -> '.join(critical_path(results)) or '(none)'}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
