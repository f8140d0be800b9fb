"""codeshift translate — migrate an ingested session to another language.

Usage:
  codeshift translate --session demo --from javascript --to typescript [--output out/]

Flags:
  --session TEXT   Session whose chunks are the source code (required)
  --from / --to    Source and target language (or say 'from X to Y' in --command)
  --command TEXT   Extra instruction; also used as the retrieval query
  --output DIR     Write migrated files under DIR; path traversal blocked
  --force          Overwrite existing files in --output
  --json           Print the result as JSON instead of a table
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from codeshift.cli.common import console, load_cli_config, open_db, vec_table_for
from codeshift.cli.errors import (
    err_failure,
    err_no_api_key,
    err_no_db,
    err_output_exists,
    err_output_path_unsafe,
    err_pair_required,
)
from codeshift.config import CodeshiftConfig
from codeshift.db.repository import Repository
from codeshift.errors import CodeshiftError
from codeshift.generate.orchestrator import Orchestrator, TranslationResult, parse_command
from codeshift.generate.writer import write_outputs
from codeshift.ingest.embedder import Embedder
from codeshift.rag.llm_client import LiteLLMClient, validate_api_key


def translate_cmd(
    session: Annotated[
        str,
        typer.Option("--session", help="Session whose ingested code is migrated."),
    ],
    source_lang: Annotated[
        str | None,
        typer.Option("--from", help="Source language, e.g. javascript."),
    ] = None,
    target_lang: Annotated[
        str | None,
        typer.Option("--to", help="Target language, e.g. typescript."),
    ] = None,
    command: Annotated[
        str,
        typer.Option("--command", "-c", help="Migration instruction / retrieval query."),
    ] = "",
    user: Annotated[
        str | None,
        typer.Option("--user", help="Restrict retrieval to this user's chunks."),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Directory to write migrated files into."),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite existing files in --output."),
    ] = False,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the public JSON result."),
    ] = False,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to .codeshift.db."),
    ] = None,
) -> None:
    """Translate an ingested session from one language to another."""
    if not (source_lang and target_lang) and parse_command(command) is None:
        console.print(err_pair_required())
        raise typer.Exit(1)

    cfg = load_cli_config(db)
    if not Path(cfg.db_path).exists():
        console.print(err_no_db(cfg.db_path))
        raise typer.Exit(1)

    try:
        validate_api_key(cfg.generation.model)
    except EnvironmentError as exc:
        console.print(err_no_api_key(cfg.generation.model))
        raise typer.Exit(1) from exc

    try:
        result = _run(cfg, session, command, source_lang, target_lang, user)
    except CodeshiftError as exc:
        console.print(err_failure(exc))
        raise typer.Exit(1) from exc

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        _show_result(result, session)

    if output is not None:
        try:
            written = write_outputs(result, output, overwrite=force)
        except ValueError as exc:
            console.print(err_output_path_unsafe(str(exc)))
            raise typer.Exit(1) from exc
        except FileExistsError as exc:
            console.print(err_output_exists(str(exc)))
            raise typer.Exit(1) from exc
        if not as_json:
            console.print(f"[green]✓[/] Wrote {len(written)} file(s) to {output}")


def _run(
    cfg: CodeshiftConfig,
    session: str,
    command: str,
    source_lang: str | None,
    target_lang: str | None,
    user: str | None,
) -> TranslationResult:
    conn = open_db(cfg.db_path)
    try:
        orchestrator = Orchestrator(
            Repository(conn),
            Embedder(cfg.embedding),
            LiteLLMClient(cfg.generation),
            cfg,
            vec_table_for(conn, cfg),
        )
        return asyncio.run(
            orchestrator.translate(
                session,
                command,
                source_lang=source_lang,
                target_lang=target_lang,
                user_id=user,
            )
        )
    finally:
        conn.close()


def _show_result(result: TranslationResult, session: str) -> None:
    table = Table(title=f"{session}: {result.source_lang} → {result.target_lang}")
    table.add_column("Source")
    table.add_column("Migrated")
    table.add_column("Attempts", justify="right")
    table.add_column("Status")
    for file in result.files:
        status = "[yellow]demo[/]" if file.is_demo else "[green]✓[/]"
        table.add_row(file.filename, file.migrated_filename, str(file.attempts), status)
    console.print(table)

    if result.summary:
        console.print(f"[bold]Summary:[/] {escape(result.summary)}")
    for warning in result.warnings:
        console.print(f"[yellow]⚠[/] {escape(warning)}", highlight=False)
    for recommendation in result.recommendations:
        console.print(f"[dim]•[/] {escape(recommendation)}", highlight=False)
