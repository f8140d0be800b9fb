"""codeshift init — prepare a directory for ingest and translate.

Creates:
  .codeshift.db            — empty database with schema
  codeshift.yaml           — project config with the commented defaults
  ~/.codeshift/config.yaml — global model config (created once, mode 0o600)

An existing .gitignore gets the database and scratch entries appended.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from codeshift.cli.common import console, open_db, vec_table_for
from codeshift.cli.errors import err_config
from codeshift.config import PROJECT_CONFIG_NAME, ConfigError, ensure_global_config, load_config

_PROJECT_TEMPLATE = """\
# codeshift project configuration. Every key is optional.
database:
  path: .codeshift.db

retrieval:
  top_k: 20

generation:
  retry_delays: [5, 10, 15]

worker:
  poll_interval: 5
"""

_GITIGNORE_ENTRIES = (".codeshift.db", ".codeshift.db-wal", ".codeshift.db-shm")


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Option("--dir", help="Directory to initialise (default: current)."),
    ] = Path("."),
) -> None:
    """Create the project config and an empty database."""
    if not project_dir.is_dir():
        console.print(f"[red]Error:[/] '{project_dir}' is not a directory.")
        raise typer.Exit(1)

    config_path = project_dir / PROJECT_CONFIG_NAME
    if config_path.exists():
        console.print(f"  [dim]-[/] {config_path} (kept)")
    else:
        config_path.write_text(_PROJECT_TEMPLATE, encoding="utf-8")
        console.print(f"  [green]✓[/] {config_path}")

    try:
        cfg = load_config(project_dir)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    db_path = project_dir / cfg.db_path
    conn = open_db(db_path)
    try:
        table = vec_table_for(conn, cfg)
    finally:
        conn.close()
    console.print(f"  [green]✓[/] {db_path} (vector table {table})")

    _update_gitignore(project_dir)

    global_path = ensure_global_config()
    console.print(f"  [green]✓[/] {global_path} (global config)")

    console.print("\nNext steps:")
    console.print("  1. codeshift ingest --source DIR --session NAME")
    console.print("  2. codeshift translate --session NAME --from X --to Y")


def _update_gitignore(project_dir: Path) -> None:
    """Append the database files to .gitignore when the file exists."""
    gitignore = project_dir / ".gitignore"
    if not gitignore.exists():
        return
    existing = gitignore.read_text(encoding="utf-8").splitlines()
    missing = [entry for entry in _GITIGNORE_ENTRIES if entry not in existing]
    if missing:
        with gitignore.open("a", encoding="utf-8") as f:
            f.write("\n# codeshift\n")
            f.writelines(f"{entry}\n" for entry in missing)
