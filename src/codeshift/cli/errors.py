"""codeshift rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from codeshift.cli.errors import err_no_api_key, err_no_db
    console.print(err_no_api_key("gemini"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape

from codeshift.rag.llm_client import api_key_env, provider_of


def err_no_api_key(model: str) -> str:
    """No API key for the provider of *model*.

    Example:
        No API key for 'gemini'. Set:  export GEMINI_API_KEY=...
    """
    provider = provider_of(model)
    env_var = api_key_env(model) or f"{provider.upper()}_API_KEY"
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=..."
    )


def err_no_db(db_path: str) -> str:
    """No database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{escape(db_path)}'.\n"
        "  Run:  codeshift ingest --source DIR --session NAME"
    )


def err_source_dir(source: str) -> str:
    """--source is not a readable directory."""
    return (
        f"[red]Error:[/] Source '{escape(source)}' is not a directory.\n"
        "  Pass the root directory of the code to migrate."
    )


def err_session_exists(session: str) -> str:
    """A job for *session* is already stored."""
    return (
        f"[red]Error:[/] Session '{escape(session)}' has already been ingested.\n"
        "  Use another --session name, or re-run with --replace to ingest it again."
    )


def err_pair_required() -> str:
    """Neither --from/--to nor a 'from X to Y' command was given."""
    return (
        "[red]Error:[/] Source and target languages are required.\n"
        "  Pass:  --from javascript --to typescript\n"
        "  Or:    --command \"Convert the code from JavaScript to TypeScript\""
    )


def err_output_path_unsafe(detail: str) -> str:
    """A migrated filename escapes the --output directory."""
    return (
        f"[red]Error:[/] {escape(detail)}\n"
        "  Choose another --output directory."
    )


def err_output_exists(detail: str) -> str:
    """An output file already exists."""
    return (
        f"[red]Error:[/] {escape(detail)}\n"
        "  Re-run with --force to overwrite, or pick an empty --output directory."
    )


def err_config(detail: str) -> str:
    """codeshift.yaml or the global config is invalid."""
    return (
        f"[red]Error:[/] Invalid configuration.\n  {escape(detail)}\n"
        "  Fix codeshift.yaml (or ~/.codeshift/config.yaml) and try again."
    )


def err_job_not_found(job_id: str) -> str:
    """--job names no stored job."""
    return (
        f"[red]Error:[/] Job '{escape(job_id)}' not found.\n"
        "  Run:  codeshift status  to see all jobs."
    )


def err_purge_target() -> str:
    """purge needs exactly one of --job / --cancelled."""
    return (
        "[red]Error:[/] Specify what to purge.\n"
        "  Use:  codeshift purge --job ID   or   codeshift purge --cancelled"
    )


def err_failure(exc: Exception) -> str:
    """Catch-all for a CodeshiftError raised out of a command."""
    return f"[red]Error:[/] {escape(str(exc))}"
