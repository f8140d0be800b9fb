"""codeshift CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from codeshift.cli.detect import detect_cmd, languages_cmd, recipes_cmd
from codeshift.cli.ingest import ingest_cmd
from codeshift.cli.init import init_cmd
from codeshift.cli.status import purge_cmd, status_cmd
from codeshift.cli.translate import translate_cmd
from codeshift.cli.worker import worker_cmd

# Third-party loggers that are noisy at INFO.
_QUIET_LOGGERS = ("LiteLLM", "LiteLLM Router", "LiteLLM Proxy", "httpx", "httpcore")


def _installed_version() -> str:
    try:
        return importlib.metadata.version("codeshift")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"codeshift {_installed_version()}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Route library logging through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


app = typer.Typer(
    name="codeshift",
    help=(
        "codeshift — LLM-assisted code migration.\n\n"
        "  codeshift ingest     Chunk and embed a source tree under a session.\n"
        "  codeshift translate  Migrate a session's code to another language."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """codeshift — LLM-assisted code migration."""
    configure_logging(verbose)


app.command("init")(init_cmd)
app.command("ingest")(ingest_cmd)
app.command("translate")(translate_cmd)
app.command("detect")(detect_cmd)
app.command("languages")(languages_cmd)
app.command("recipes")(recipes_cmd)
app.command("status")(status_cmd)
app.command("purge")(purge_cmd)
app.command("worker")(worker_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed codeshift version."""
    typer.echo(f"codeshift {_installed_version()}")


if __name__ == "__main__":
    app()
