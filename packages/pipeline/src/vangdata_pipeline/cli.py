"""
cli.py — Click CLI entrypoint for backfill workers and the scheduler.

Usage:
    vangdata-pipeline backfill create src-vangtoday --days 7
    vangdata-pipeline backfill create src-sjc --from 2025-01-01 --to 2025-01-07 --types SJL1L10 --run
    vangdata-pipeline backfill run <job-id>
    vangdata-pipeline backfill list --status running
    vangdata-pipeline backfill show <job-id>
    vangdata-pipeline backfill logs <job-id> --level error
    vangdata-pipeline backfill pause|resume|cancel|delete <job-id>
    vangdata-pipeline backfill drain
    vangdata-pipeline sources
    vangdata-pipeline scheduler tick
    vangdata-pipeline scheduler run <automation-id>
"""

from __future__ import annotations

import asyncio
import functools
import json
from collections.abc import Callable
from typing import Any

import click
import structlog

from vangdata_shared.config import settings
from vangdata_shared.constants import JOB_STATUSES
from vangdata_shared.errors import VangdataError
from vangdata_shared.models.backfill import JobFilters

from vangdata_pipeline.utils.logging import configure_logging

log = structlog.get_logger(__name__)

STATUS_MARKS = {
    "pending": "·",
    "running": "⟳",
    "paused": "‖",
    "completed": "✓",
    "failed": "✗",
    "cancelled": "⊘",
}


def _domain_errors(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Report domain errors as a clean CLI failure instead of a traceback."""

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except VangdataError as exc:
            raise click.ClickException(f"{exc.code}: {exc.message}") from exc

    return wrapper


@click.group()
@click.option(
    "--log-level",
    default=settings.log_level,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level",
)
@click.option(
    "--log-format",
    default=settings.log_format,
    type=click.Choice(["json", "console"]),
    help="Log renderer",
)
def main(log_level: str, log_format: str) -> None:
    """vangdata backfill workers and automation scheduler."""
    configure_logging(log_level=log_level, log_format=log_format)


# ---------------------------------------------------------------------------
# backfill
# ---------------------------------------------------------------------------

@main.group()
def backfill() -> None:
    """Create, run and control historical backfill jobs."""


@backfill.command("create")
@click.argument("source_id")
@click.option("--days", type=int, help="Full-historical window ending today (1-30)")
@click.option("--from", "start_date", help="Date-range start (YYYY-MM-DD)")
@click.option("--to", "end_date", help="Date-range end (YYYY-MM-DD)")
@click.option(
    "--types",
    "types",
    multiple=True,
    help="External type code; repeat for several. Default: all enabled types",
)
@click.option("--run", "run_now", is_flag=True, help="Execute the job right away")
@_domain_errors
def backfill_create(
    source_id: str,
    days: int | None,
    start_date: str | None,
    end_date: str | None,
    types: tuple[str, ...],
    run_now: bool,
) -> None:
    """Create a backfill job for SOURCE_ID."""
    from vangdata_pipeline.backfill.manager import BackfillManager

    selection: str | list[str] = list(types) if types else "all"
    if start_date or end_date:
        if days is not None:
            raise click.UsageError("--days cannot be combined with --from/--to")
        job_type = "date_range"
        config: dict[str, Any] = {"start_date": start_date, "end_date": end_date, "types": selection}
    else:
        job_type = "full_historical"
        config = {"days": days if days is not None else 30, "types": selection}

    job_id = BackfillManager().create_job(source_id, job_type, config, requester="cli")
    click.echo(f"Created job {job_id}")
    if run_now:
        _run_job(job_id)


@backfill.command("run")
@click.argument("job_id")
@_domain_errors
def backfill_run(job_id: str) -> None:
    """Run JOB_ID in the foreground until it completes, pauses or fails."""
    _run_job(job_id)


def _run_job(job_id: str) -> None:
    from vangdata_pipeline.backfill.executor import BackfillExecutor

    status = asyncio.run(BackfillExecutor(job_id).run())
    if status is None:
        raise click.ClickException(f"Job {job_id} not found")
    click.echo(f"Job {job_id}: {status}")


@backfill.command("list")
@click.option("--status", type=click.Choice(list(JOB_STATUSES)))
@click.option("--source", "source_id")
@click.option("--job-type", type=click.Choice(["full_historical", "date_range"]))
@click.option("--limit", default=20, show_default=True, type=int)
@_domain_errors
def backfill_list(
    status: str | None,
    source_id: str | None,
    job_type: str | None,
    limit: int,
) -> None:
    """List jobs, newest first."""
    from vangdata_pipeline.backfill.manager import BackfillManager

    jobs = BackfillManager().list_jobs(
        JobFilters(status=status, source_id=source_id, job_type=job_type, limit=limit)
    )
    if not jobs:
        click.echo("No backfill jobs found.")
        return
    for job in jobs:
        click.echo(
            f"  {STATUS_MARKS.get(job.status, '?')} {job.id}  "
            f"{job.source_id:20s} {job.job_type:16s} {job.status:10s} "
            f"{job.progress_percent:6.1f}%  {job.records_inserted} rows"
        )


@backfill.command("show")
@click.argument("job_id")
@_domain_errors
def backfill_show(job_id: str) -> None:
    """Print one job as JSON."""
    from vangdata_pipeline.backfill.manager import BackfillManager

    job = BackfillManager().require_job(job_id)
    click.echo(json.dumps(job.model_dump(mode="json"), indent=2, ensure_ascii=False))


@backfill.command("logs")
@click.argument("job_id")
@click.option("--level", type=click.Choice(["info", "warn", "error"]))
@click.option("--limit", default=50, show_default=True, type=int)
@_domain_errors
def backfill_logs(job_id: str, level: str | None, limit: int) -> None:
    """Show a job's log entries, newest first."""
    from vangdata_pipeline.backfill.manager import BackfillManager

    entries = BackfillManager().get_job_logs(job_id, log_level=level, limit=limit)
    for entry in entries:
        stamp = entry.created_at.isoformat()[:19] if entry.created_at else ""
        click.echo(f"  {stamp}  {entry.log_level:5s}  {entry.message}")


@backfill.command("pause")
@click.argument("job_id")
@_domain_errors
def backfill_pause(job_id: str) -> None:
    """Pause a running job at its next chunk boundary."""
    from vangdata_pipeline.backfill.manager import BackfillManager

    BackfillManager().pause_job(job_id)
    click.echo(f"Job {job_id} paused")


@backfill.command("resume")
@click.argument("job_id")
@click.option("--run", "run_now", is_flag=True, help="Execute the resumed job right away")
@_domain_errors
def backfill_resume(job_id: str, run_now: bool) -> None:
    """Return a paused job to pending."""
    from vangdata_pipeline.backfill.manager import BackfillManager

    BackfillManager().resume_job(job_id)
    click.echo(f"Job {job_id} resumed")
    if run_now:
        _run_job(job_id)


@backfill.command("cancel")
@click.argument("job_id")
@_domain_errors
def backfill_cancel(job_id: str) -> None:
    """Cancel a pending, running or paused job."""
    from vangdata_pipeline.backfill.manager import BackfillManager

    BackfillManager().cancel_job(job_id)
    click.echo(f"Job {job_id} cancelled")


@backfill.command("delete")
@click.argument("job_id")
@click.confirmation_option(prompt="Delete this job and all of its logs?")
@_domain_errors
def backfill_delete(job_id: str) -> None:
    """Delete a completed, failed or cancelled job and its logs."""
    from vangdata_pipeline.backfill.manager import BackfillManager

    BackfillManager().delete_job(job_id)
    click.echo(f"Job {job_id} deleted")


@backfill.command("drain")
@_domain_errors
def backfill_drain() -> None:
    """Run every pending job, oldest first."""
    from vangdata_pipeline.backfill.executor import drain_pending_jobs

    results = asyncio.run(drain_pending_jobs())
    if not results:
        click.echo("No pending jobs.")
        return
    for job_id, status in results.items():
        click.echo(f"  {STATUS_MARKS.get(status or '', '?')} {job_id}  {status}")


# ---------------------------------------------------------------------------
# sources
# ---------------------------------------------------------------------------

@main.command("sources")
@_domain_errors
def sources_list() -> None:
    """List enabled crawler sources by priority."""
    from vangdata_pipeline.sources import SOURCE_TYPES
    from vangdata_pipeline.sources.catalogue import SourceCatalogue

    rows = SourceCatalogue().list_enabled()
    if not rows:
        click.echo("No enabled sources.")
        return
    for row in rows:
        limit = row.rate_limit_per_minute or settings.backfill_default_rate_limit
        backfill_ok = "backfill" if row.api_type in SOURCE_TYPES else "live only"
        click.echo(f"  {row.id:20s} {row.api_type:12s} {limit:4d}/min  {backfill_ok}")


# ---------------------------------------------------------------------------
# scheduler
# ---------------------------------------------------------------------------

@main.group()
def scheduler() -> None:
    """Automation scheduler."""


@scheduler.command("tick")
@_domain_errors
def scheduler_tick() -> None:
    """Run every active automation due this hour."""
    from vangdata_pipeline.scheduler.automation import AutomationScheduler

    result = asyncio.run(AutomationScheduler().tick())
    click.echo(json.dumps(result.to_dict()))


@scheduler.command("run")
@click.argument("automation_id")
@_domain_errors
def scheduler_run(automation_id: str) -> None:
    """Run one automation now, ignoring its schedule."""
    from vangdata_pipeline.scheduler.automation import AutomationScheduler

    result = asyncio.run(AutomationScheduler().run_automation(automation_id, triggered_by="cli"))
    click.echo(json.dumps(result.to_dict(), ensure_ascii=False))


if __name__ == "__main__":
    main()
