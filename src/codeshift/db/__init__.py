"""codeshift database layer — jobs, code chunks and their embeddings."""

from codeshift.db.connection import Database
from codeshift.db.migrations import MIGRATIONS, run_migrations
from codeshift.db.repository import Repository
from codeshift.db.schema import initialize
from codeshift.db.vectors import ensure_vec_table, model_to_slug, vec_table_name

__all__ = [
    "Database",
    "Repository",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "ensure_vec_table",
    "model_to_slug",
    "vec_table_name",
]
