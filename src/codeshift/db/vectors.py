"""sqlite-vec tables, one per embedding model.

Vectors from different models are never compared, so each model gets its own
``vec_chunks_<slug>`` vec0 table keyed by the chunk rowid.
"""

from __future__ import annotations

import re
import sqlite3

_SLUG_RE = re.compile(r"[a-z0-9_]+")
_DIMS_RE = re.compile(r"float\[(\d+)\]")


def model_to_slug(model: str) -> str:
    """Lower-case *model* and replace anything but letters and digits with ``_``.

    ``"gemini/text-embedding-004"`` becomes ``"gemini_text_embedding_004"``.
    """
    return re.sub(r"[^a-z0-9]", "_", model.lower())


def vec_table_name(model_slug: str) -> str:
    return f"vec_chunks_{model_slug}"


def table_dimensions(conn: sqlite3.Connection, table: str) -> int | None:
    """Declared vector length of *table*; None when the table does not exist."""
    row = conn.execute(
        "SELECT sql FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
    ).fetchone()
    if row is None:
        return None
    found = _DIMS_RE.search(row[0] or "")
    return int(found.group(1)) if found else None


def ensure_vec_table(conn: sqlite3.Connection, model_slug: str, dimensions: int) -> str:
    """Return the vec table for *model_slug*, creating it on first use.

    Args:
        conn: Connection with sqlite-vec loaded.
        model_slug: Output of model_to_slug(); it becomes part of the table name.
        dimensions: Vector length of the model.

    Raises:
        ValueError: Unsafe slug, non-positive *dimensions*, or the table
            already exists with another vector length.
    """
    if not _SLUG_RE.fullmatch(model_slug):
        raise ValueError(f"Model slug {model_slug!r} is not a safe table suffix.")
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    table = vec_table_name(model_slug)
    stored = table_dimensions(conn, table)
    if stored is None:
        conn.execute(f"CREATE VIRTUAL TABLE {table} USING vec0(embedding float[{dimensions}])")
        conn.commit()
    elif stored != dimensions:
        raise ValueError(
            f"Vec table '{table}' stores {stored}-dim vectors; "
            f"the configured model produces {dimensions}."
        )
    return table
