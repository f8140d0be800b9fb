"""Helpers shared by the codeshift commands: config, database, console."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import typer
from rich.console import Console

from codeshift.cli.errors import err_config
from codeshift.config import CodeshiftConfig, ConfigError, load_config
from codeshift.db.connection import Database
from codeshift.db.schema import initialize
from codeshift.db.vectors import ensure_vec_table, model_to_slug

console = Console()


def load_cli_config(db: Path | None = None) -> CodeshiftConfig:
    """Load the layered config; a ``--db`` flag beats every config layer."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    if db is not None:
        cfg.db_path = str(db)
    return cfg


def open_db(db_path: Path | str) -> sqlite3.Connection:
    conn = Database(db_path).connect()
    initialize(conn)
    return conn


def vec_table_for(conn: sqlite3.Connection, cfg: CodeshiftConfig) -> str:
    """Create (if needed) and return the vector table of the configured model."""
    return ensure_vec_table(
        conn, model_to_slug(cfg.embedding.model), cfg.embedding.dimensions
    )
