"""codeshift status / purge — job overview and chunk clean-up."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table

from codeshift.cli.common import console, load_cli_config, open_db, vec_table_for
from codeshift.cli.errors import err_job_not_found, err_no_db, err_purge_target
from codeshift.db.models import JOB_FAILED, JOB_READY, Job
from codeshift.db.repository import Repository

_STATUS_STYLE = {
    JOB_READY: "[green]ready[/]",
    JOB_FAILED: "[red]failed[/]",
}


def status_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to .codeshift.db."),
    ] = None,
    status: Annotated[
        str | None,
        typer.Option("--status", help="Only jobs in this state."),
    ] = None,
) -> None:
    """List ingest jobs with their status, files and chunks."""
    cfg = load_cli_config(db)
    if not Path(cfg.db_path).exists():
        console.print(
            Panel(
                "[yellow]No database found.[/]\n"
                "  Run:  codeshift ingest --source DIR --session NAME",
                title="[bold]Jobs[/]",
                expand=False,
            )
        )
        return

    conn = open_db(cfg.db_path)
    try:
        jobs = Repository(conn).list_jobs(status)
    finally:
        conn.close()

    if not jobs:
        console.print(Panel("[dim]No jobs yet.[/]", title="[bold]Jobs[/]", expand=False))
        return

    table = Table(title=f"Jobs ({cfg.db_path})")
    table.add_column("Session", style="bold")
    table.add_column("Job", style="dim")
    table.add_column("Status")
    table.add_column("Files", justify="right")
    table.add_column("Chunks", justify="right")
    table.add_column("Updated", style="dim")
    for job in jobs:
        table.add_row(
            job.session_id,
            job.id[:8],
            _status_label(job),
            f"{job.processed_files}/{job.total_files}",
            str(job.total_chunks),
            (job.updated_at or "")[:16],
        )
    console.print(table)


def _status_label(job: Job) -> str:
    if job.is_cancelled:
        return "[yellow]cancelled[/]"
    label = _STATUS_STYLE.get(job.status, job.status)
    if job.status == JOB_FAILED and job.error_message:
        label += f" [dim]({job.error_message[:40]})[/]"
    return label


def purge_cmd(
    job_id: Annotated[
        str | None,
        typer.Option("--job", help="Delete this job's chunks and embeddings."),
    ] = None,
    cancelled: Annotated[
        bool,
        typer.Option("--cancelled", help="Delete the chunks of every cancelled job."),
    ] = False,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to .codeshift.db."),
    ] = None,
) -> None:
    """Delete stored chunks by job id, or for all cancelled jobs."""
    if bool(job_id) == cancelled:
        console.print(err_purge_target())
        raise typer.Exit(1)

    cfg = load_cli_config(db)
    if not Path(cfg.db_path).exists():
        console.print(err_no_db(cfg.db_path))
        raise typer.Exit(1)

    conn = open_db(cfg.db_path)
    try:
        repo = Repository(conn)
        vec_table = vec_table_for(conn, cfg)
        if cancelled:
            removed = repo.purge_cancelled_jobs(vec_table)
            console.print(f"[green]✓[/] Purged {removed} chunk(s) of cancelled jobs")
            return
        if repo.get_job(job_id) is None:
            console.print(err_job_not_found(job_id))
            raise typer.Exit(1)
        removed = repo.delete_by_job(job_id, vec_table)
        console.print(f"[green]✓[/] Purged {removed} chunk(s) of job {job_id}")
    finally:
        conn.close()
