"""codeshift worker — run the background ingest worker in the foreground."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from codeshift.cli.common import console, load_cli_config
from codeshift.ingest.worker import run_worker


def worker_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to .codeshift.db."),
    ] = None,
    poll_interval: Annotated[
        float | None,
        typer.Option("--poll-interval", help="Seconds between polls when idle."),
    ] = None,
) -> None:
    """Process pending ingest jobs until interrupted (Ctrl-C / SIGTERM)."""
    cfg = load_cli_config(db)
    if poll_interval is not None:
        if poll_interval <= 0:
            console.print("[red]Error:[/] --poll-interval must be > 0.")
            raise typer.Exit(1)
        cfg.worker.poll_interval = poll_interval

    console.print(
        f"[bold]codeshift worker[/] on {cfg.db_path} "
        f"[dim](poll {cfg.worker.poll_interval:g}s, Ctrl-C to stop)[/]"
    )
    run_worker(cfg)
    console.print("[dim]Worker stopped.[/]")
