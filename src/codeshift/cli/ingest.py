"""codeshift ingest — chunk and embed a local source tree into the database.

The directory becomes a job whose files are ``file://`` descriptors; the
job then runs through the same pipeline the background worker uses
(acquire → chunk → embed → persist), in-process.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.progress import Progress, SpinnerColumn, TextColumn

from codeshift.cli.common import console, load_cli_config, open_db, vec_table_for
from codeshift.cli.errors import err_failure, err_session_exists, err_source_dir
from codeshift.db.models import JOB_READY, FileDescriptor
from codeshift.db.repository import Repository
from codeshift.errors import CodeshiftError
from codeshift.ingest.acquirer import is_skippable, iter_files
from codeshift.ingest.worker import build_worker


def collect_descriptors(source: Path) -> list[FileDescriptor]:
    """Describe every non-binary file under *source* as a ``file://`` entry."""
    return [
        FileDescriptor(relative_path=rel, fetch_url=path.resolve().as_uri())
        for path, rel in iter_files(source)
        if not is_skippable(rel)
    ]


def ingest_cmd(
    source: Annotated[
        Path,
        typer.Option("--source", "-s", help="Root directory of the code to ingest."),
    ],
    session: Annotated[
        str,
        typer.Option("--session", help="Session name the chunks are stored under."),
    ],
    user: Annotated[
        str,
        typer.Option("--user", help="Owning user id."),
    ] = "local",
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to .codeshift.db (created if missing)."),
    ] = None,
    replace: Annotated[
        bool,
        typer.Option("--replace", help="Drop an existing job for the session first."),
    ] = False,
) -> None:
    """Ingest a source directory into the codeshift chunk store."""
    if not source.is_dir():
        console.print(err_source_dir(str(source)))
        raise typer.Exit(1)

    cfg = load_cli_config(db)
    descriptors = collect_descriptors(source)
    if not descriptors:
        console.print(f"[yellow]No ingestible files found in[/] {source}")
        raise typer.Exit(0)

    conn = open_db(cfg.db_path)
    try:
        repo = Repository(conn)
        existing = repo.get_job_by_session(session)
        if existing is not None:
            if not replace:
                console.print(err_session_exists(session))
                raise typer.Exit(1)
            repo.delete_job(existing.id, vec_table_for(conn, cfg))
            console.print(f"  [yellow]↻ Replacing session '{session}'[/]")

        job = repo.create_job(session, user, descriptors)
        console.print(f"[bold]→ {source}[/]  ({len(descriptors)} file(s), job {job.id})")

        worker = build_worker(conn, cfg)
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console,
        ) as prog:
            prog.add_task("Chunking and embedding…", total=None)
            try:
                final = asyncio.run(worker.process_job(job))
            except CodeshiftError as exc:
                console.print(err_failure(exc))
                raise typer.Exit(1) from exc
    finally:
        conn.close()

    if final is None or final.status != JOB_READY:
        message = final.error_message if final is not None else "job could not be claimed"
        console.print(f"  [red]✗ Ingest failed:[/] {message}")
        raise typer.Exit(1)

    console.print(
        f"  [green]✓[/] {final.total_chunks} chunk(s) from "
        f"{final.processed_files}/{final.total_files} file(s)"
    )
