"""codeshift detect / languages / recipes — inspection commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from codeshift.cli.common import console
from codeshift.generate.recipes import all_recipes, available_recipes
from codeshift.ingest.detector import LanguageDetector, supported_languages


def detect_cmd(
    file: Annotated[Path, typer.Argument(help="File to classify.")],
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the detection result as JSON."),
    ] = False,
) -> None:
    """Detect the framework and syntax of a file."""
    if not file.is_file():
        console.print(f"[red]Error:[/] '{file}' is not a file.")
        raise typer.Exit(1)

    content = file.read_text(encoding="utf-8", errors="replace")
    result = LanguageDetector().detect(file.name, content)

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return

    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Language", f"{result.display_name} [dim]({result.tag})[/]")
    table.add_row("Framework", f"{result.framework or '-'}  [dim]{result.framework_confidence:.2f}[/]")
    table.add_row("Syntax", f"{result.syntax or '-'}  [dim]{result.syntax_confidence:.2f}[/]")
    table.add_row("Extension", result.extension or "-")
    console.print(table)


def languages_cmd() -> None:
    """List the supported language options."""
    table = Table(title="Supported languages")
    table.add_column("Value", style="bold")
    table.add_column("Label")
    table.add_column("Tag", style="dim")
    for option in supported_languages():
        table.add_row(option.value, option.label, option.tag)
    console.print(table)


def recipes_cmd(
    source_lang: Annotated[
        str | None,
        typer.Option("--from", help="Only recipes for this source language."),
    ] = None,
    target_lang: Annotated[
        str | None,
        typer.Option("--to", help="Only recipes for this target language."),
    ] = None,
) -> None:
    """List registered migration recipes."""
    if bool(source_lang) != bool(target_lang):
        console.print("[red]Error:[/] --from and --to must be given together.")
        raise typer.Exit(1)

    recipes = (
        available_recipes(source_lang, target_lang)
        if source_lang and target_lang
        else all_recipes()
    )
    if not recipes:
        console.print(f"[yellow]No recipes for {source_lang} → {target_lang}.[/]")
        return

    table = Table(title="Migration recipes")
    table.add_column("Key", style="bold")
    table.add_column("Pair")
    table.add_column("Description")
    table.add_column("Output", style="dim")
    for recipe in recipes:
        pair = f"{'/'.join(recipe.sources)} → {'/'.join(recipe.targets)}"
        table.add_row(recipe.key, pair, recipe.description, "code" if recipe.raw_code else "json")
    console.print(table)
