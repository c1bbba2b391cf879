from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
import yaml
from pydantic import ValidationError

from casetools.config import CaseConfig
from casetools.data.io import jsonl_read
from casetools.errors import ConfigurationError, MeshNotReadyError, SchedulerQueryError, SubmissionError
from casetools.monitor.archive import archive_logs
from casetools.monitor.logs import follow, latest_log, list_logs, log_globs, tail
from casetools.monitor.markers import FAILED, IN_PROGRESS, NOT_FOUND, SUCCEEDED
from casetools.monitor.status import mesh_status, solver_status
from casetools.monitor.tables import logs_table, queue_table
from casetools.schemas.models import SubmissionRecord
from casetools.slurm.render import render_job_script
from casetools.slurm.scheduler import Scheduler
from casetools.workflow.logbook import configure_console
from casetools.workflow.orchestrator import SUBMISSIONS_FILE, WorkflowOrchestrator
from casetools.workflow.run import CHECK_ONLY, FULL, MESH_ONLY, SOLVER_ONLY

CONTEXT = {"help_option_names": ["-h", "--help"]}

submit_app = typer.Typer(
    help="Validate the case and submit mesh -> solver jobs with dependency chaining.",
    add_completion=False,
    context_settings=CONTEXT,
)
monitor_app = typer.Typer(
    help="Check job queue, logs, mesh and solver status; archive old logs.",
    add_completion=False,
    context_settings=CONTEXT,
)


# -----------------------------
# Shared helpers
# -----------------------------

def _load_config(case_dir: Path, config_file: Optional[Path]) -> CaseConfig:
    try:
        return CaseConfig.load(case_dir, config_file)
    except (ValueError, FileNotFoundError, yaml.YAMLError) as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)


def _make_scheduler(config: CaseConfig) -> Scheduler:
    return Scheduler(config.scheduler)


def _header(title: str) -> None:
    bar = "=" * 40
    typer.secho(bar, fg=typer.colors.BLUE)
    typer.secho(title, fg=typer.colors.BLUE)
    typer.secho(bar, fg=typer.colors.BLUE)


def _cyan(text: str) -> None:
    typer.secho(text, fg=typer.colors.CYAN)


def _rel(config: CaseConfig, path: Path) -> str:
    try:
        return str(Path(path).relative_to(config.case_dir))
    except ValueError:
        return str(path)


# -----------------------------
# case-submit
# -----------------------------

@submit_app.command()
def submit(
    mesh_only: bool = typer.Option(False, "--mesh-only", help="Submit only the mesh generation job"),
    solver_only: bool = typer.Option(False, "--solver-only", help="Submit only the solver job (mesh must exist)"),
    check_only: bool = typer.Option(False, "--check-only", help="Check configuration without submitting"),
    case_dir: Path = typer.Option(Path("."), "--case-dir", "-C", help="Case root directory"),
    config_file: Optional[Path] = typer.Option(None, "--config", help="Case config (default: <case>/case.yaml)"),
    render_scripts: bool = typer.Option(False, "--render-scripts", help="Write missing job scripts from templates first"),
):
    """
    Submit the case workflow. With no mode flag, submits the mesh job and a
    solver job that starts only if the mesh job succeeds (and is cancelled
    by the scheduler if it fails).
    """
    chosen = [m for m, on in ((MESH_ONLY, mesh_only), (SOLVER_ONLY, solver_only), (CHECK_ONLY, check_only)) if on]
    if len(chosen) > 1:
        raise typer.BadParameter(f"Choose at most one mode flag, got: {', '.join('--' + m for m in chosen)}")
    mode = chosen[0] if chosen else FULL

    config = _load_config(case_dir, config_file)
    log = configure_console()

    if render_scripts:
        for role in ("mesh", "solver"):
            written = render_job_script(role, config)
            if written:
                typer.secho(f"Wrote {_rel(config, written)}", fg=typer.colors.GREEN)

    orchestrator = WorkflowOrchestrator(config, scheduler=_make_scheduler(config), logger=log)
    try:
        run = orchestrator.run(mode)
    except (ConfigurationError, MeshNotReadyError, SubmissionError):
        # diagnostics were already written to the console and workflow log
        raise typer.Exit(code=1)

    if mode == CHECK_ONLY and run.report is not None and not run.report.ok:
        raise typer.Exit(code=1)


def submit_main() -> None:
    submit_app()


# -----------------------------
# case-monitor
# -----------------------------

@monitor_app.callback(invoke_without_command=True)
def monitor(
    ctx: typer.Context,
    case_dir: Path = typer.Option(Path("."), "--case-dir", "-C", help="Case root directory"),
    config_file: Optional[Path] = typer.Option(None, "--config", help="Case config (default: <case>/case.yaml)"),
):
    """Job monitoring. With no command, shows the job queue."""
    ctx.obj = _load_config(case_dir, config_file)
    if ctx.invoked_subcommand is None:
        _show_queue(ctx.obj)


def _show_queue(config: CaseConfig) -> None:
    _header("SLURM Job Queue")
    scheduler = _make_scheduler(config)
    if not scheduler.available(config.scheduler.query):
        typer.secho("Error: Not on a SLURM system", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    names = [job.name for job in config.jobs.values()]
    try:
        mine = scheduler.queue()
        case_jobs = scheduler.queue(names=names)
    except SchedulerQueryError as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    _cyan("Your running/pending jobs:")
    typer.echo(queue_table(mine))
    typer.echo("")
    _cyan(f"Case jobs ({', '.join(names)}):")
    typer.echo(queue_table(case_jobs))


@monitor_app.command("status")
def status_cmd(ctx: typer.Context):
    """Show current job queue status."""
    _show_queue(ctx.obj)


@monitor_app.command("logs")
def logs_cmd(ctx: typer.Context, limit: int = typer.Option(5, "--limit", "-n", min=1, help="Files per category")):
    """List available log files, newest first."""
    config: CaseConfig = ctx.obj
    _header("Available Log Files")
    if not config.log_path.is_dir():
        typer.secho("No logs directory found", fg=typer.colors.YELLOW)
        return

    labels = {"mesh": "Mesh generation logs", "solver": "Solver logs", "workflow": "Workflow logs"}
    for kind, pattern in log_globs(config).items():
        _cyan(f"{labels[kind]}:")
        table = logs_table(list_logs(config.log_path, pattern, limit=limit))
        typer.echo(table if table else f"  No {kind} logs found")
        typer.echo("")

    records, skipped = [], 0
    for raw in jsonl_read(config.log_path / SUBMISSIONS_FILE):
        try:
            records.append(SubmissionRecord.model_validate(raw))
        except ValidationError:
            skipped += 1

    if records:
        _cyan("Recent submissions:")
        for rec in reversed(records[-limit:]):
            jobs = ", ".join(f"{j.role}={j.job_id}" for j in rec.jobs) or "-"
            typer.echo(f"  {rec.started}  {rec.mode:<11} {rec.status:<9} {jobs}")
    if skipped:
        typer.secho(f"  Skipped {skipped} unreadable record(s) in {SUBMISSIONS_FILE}", fg=typer.colors.YELLOW)


def _tail_latest(config: CaseConfig, kind: str, title: str, lines: int, no_follow: bool) -> None:
    path = latest_log(config, kind)
    if path is None:
        typer.secho(f"No {kind} log files found", fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)

    _header(f"{title}: {path.name}")
    _cyan(f"File: {path}")
    for line in tail(path, lines):
        typer.echo(line)
    if no_follow:
        return

    _cyan("Press Ctrl+C to exit")
    try:
        for line in follow(path):
            typer.echo(line)
    except KeyboardInterrupt:
        return


@monitor_app.command("mesh-log")
def mesh_log_cmd(
    ctx: typer.Context,
    lines: int = typer.Option(20, "--lines", "-n"),
    no_follow: bool = typer.Option(False, "--no-follow", help="Print the tail and exit"),
):
    """Tail the latest mesh generation log."""
    _tail_latest(ctx.obj, "mesh", "Mesh Generation Log", lines, no_follow)


@monitor_app.command("solver-log")
def solver_log_cmd(
    ctx: typer.Context,
    lines: int = typer.Option(20, "--lines", "-n"),
    no_follow: bool = typer.Option(False, "--no-follow", help="Print the tail and exit"),
):
    """Tail the latest solver log."""
    _tail_latest(ctx.obj, "solver", "Solver Log", lines, no_follow)


@monitor_app.command("mesh-status")
def mesh_status_cmd(ctx: typer.Context):
    """Check mesh generation status."""
    config: CaseConfig = ctx.obj
    _header("Mesh Generation Status")
    st = mesh_status(config)

    if st.mesh_present:
        typer.secho(f"✓ Mesh exists in {config.mesh_dir}/", fg=typer.colors.GREEN)
    else:
        typer.secho(f"✗ Mesh not found in {config.mesh_dir}/", fg=typer.colors.YELLOW)
        typer.echo("  Run mesh generation first")

    if st.log_path is not None:
        typer.echo("")
        _cyan(f"Mesh quality summary ({st.log_path.name}):")
        if st.stale:
            typer.secho("  Status: stale log (reports Mesh OK, but the mesh directory is missing)",
                        fg=typer.colors.YELLOW)
        elif st.state == SUCCEEDED:
            typer.secho("  Status: Mesh OK", fg=typer.colors.GREEN)
        elif st.state == FAILED:
            typer.secho("  Status: Mesh check FAILED", fg=typer.colors.RED)
        else:
            typer.secho("  Status: Unknown (check log)", fg=typer.colors.YELLOW)
        counts = st.counts
        if "cells" in counts:
            typer.echo(f"  Cells: {counts['cells']}")
            typer.echo(f"  Points: {counts.get('points', '?')}")
            typer.echo(f"  Faces: {counts.get('faces', '?')}")
    elif st.state == NOT_FOUND:
        typer.secho("  No mesh log found; status not yet available", fg=typer.colors.YELLOW)

    if st.processor_dirs:
        typer.echo("")
        typer.secho(f"! Warning: Found {st.processor_dirs} processor directories", fg=typer.colors.YELLOW)
        typer.echo("  These should be cleaned up after mesh reconstruction")


@monitor_app.command("solver-status")
def solver_status_cmd(ctx: typer.Context, window: int = typer.Option(5, "--window", help="Recent iterations to show")):
    """Check solver progress and residuals."""
    config: CaseConfig = ctx.obj
    _header("Solver Status")
    st = solver_status(config, window=window)

    if st.state == NOT_FOUND:
        typer.secho("No solver log files found", fg=typer.colors.YELLOW)
        typer.echo("Solver has not been run yet")
        return

    _cyan(f"Log file: {st.log_path.name}")
    typer.echo("")
    if st.running is True:
        typer.secho("Status: RUNNING", fg=typer.colors.GREEN)
    elif st.running is False:
        typer.secho("Status: NOT RUNNING (completed or not started)", fg=typer.colors.YELLOW)
    else:
        typer.secho("Status: UNKNOWN (process probe unavailable)", fg=typer.colors.YELLOW)

    typer.echo("")
    _cyan("Latest iterations:")
    if st.recent:
        for line in st.recent:
            typer.echo(f"  {line}")
    else:
        typer.echo("  No residual data found")

    typer.echo("")
    _cyan("Solution convergence:")
    if st.state == SUCCEEDED:
        typer.secho("  Solver completed", fg=typer.colors.GREEN)
        if st.execution_time:
            typer.echo(f"  {st.execution_time}")
    elif st.state == FAILED:
        typer.secho("  Solution diverged (singularity detected)", fg=typer.colors.RED)
    elif st.state == IN_PROGRESS:
        typer.secho("  In progress or incomplete", fg=typer.colors.YELLOW)

    if st.post_entries is not None:
        typer.echo("")
        _cyan(f"Post-processing data ({config.post_dir}/):")
        if not st.post_entries:
            typer.echo("  Empty")
        for entry in st.post_entries:
            suffix = "/" if entry.is_dir else f" ({entry.size} bytes)"
            typer.echo(f"  {entry.name}{suffix}")


@monitor_app.command("clean-logs")
def clean_logs_cmd(
    ctx: typer.Context,
    days: Optional[int] = typer.Option(None, "--days", help="Retention window in days (default from config)"),
):
    """Archive logs older than the retention window. Nothing is deleted."""
    config: CaseConfig = ctx.obj
    _header("Clean Old Logs")
    if not config.log_path.is_dir():
        typer.echo("No logs directory found")
        return

    retention = config.retention_days if days is None else days
    result = archive_logs(config.log_path, retention_days=retention)
    if result.count:
        typer.secho(f"Archived {result.count} old log files to {_rel(config, result.archive_dir)}",
                    fg=typer.colors.GREEN)
    else:
        typer.secho(f"No logs older than {retention} days found", fg=typer.colors.YELLOW)


def monitor_main() -> None:
    monitor_app()


if __name__ == "__main__":
    submit_main()
