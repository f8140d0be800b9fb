"""Forward-only schema migrations for jobs, job files and chunks."""

from __future__ import annotations

import sqlite3

# Created before any migration so the applied version can be read.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS jobs (
    id                      TEXT PRIMARY KEY,
    session_id              TEXT NOT NULL UNIQUE,
    user_id                 TEXT NOT NULL,
    status                  TEXT NOT NULL DEFAULT 'pending'
                            CHECK (status IN ('pending', 'processing', 'ready', 'failed')),
    total_files             INTEGER NOT NULL DEFAULT 0,
    processed_files         INTEGER NOT NULL DEFAULT 0,
    total_chunks            INTEGER NOT NULL DEFAULT 0,
    error_message           TEXT,
    error_detail            TEXT,
    created_at              DATETIME NOT NULL DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now')),
    updated_at              DATETIME NOT NULL DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now')),
    processing_started_at   DATETIME,
    processing_completed_at DATETIME
);

CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status, created_at);
CREATE INDEX IF NOT EXISTS idx_jobs_user ON jobs(user_id);

CREATE TABLE IF NOT EXISTS job_files (
    job_id          TEXT NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
    relative_path   TEXT NOT NULL,
    fetch_url       TEXT NOT NULL,
    PRIMARY KEY (job_id, relative_path)
);

CREATE TABLE IF NOT EXISTS chunks (
    job_id          TEXT NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
    session_id      TEXT NOT NULL,
    user_id         TEXT NOT NULL,
    file_path       TEXT NOT NULL,
    file_name       TEXT NOT NULL,
    file_extension  TEXT NOT NULL,
    kind            TEXT NOT NULL,
    name            TEXT NOT NULL,
    content         TEXT NOT NULL,
    start_line      INTEGER NOT NULL CHECK (start_line >= 1),
    end_line        INTEGER NOT NULL,
    ast_node_type   TEXT,
    metadata        TEXT NOT NULL DEFAULT '{}',
    created_at      DATETIME NOT NULL DEFAULT (datetime('now')),
    CHECK (end_line >= start_line),
    UNIQUE (job_id, file_path, start_line, end_line, kind, name)
);

CREATE INDEX IF NOT EXISTS idx_chunks_session ON chunks(session_id, user_id, file_path, start_line);
CREATE INDEX IF NOT EXISTS idx_chunks_job ON chunks(job_id);
"""

# Append-only list of (version, script). executescript() commits first.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]


def current_version(conn: sqlite3.Connection) -> int:
    """Highest applied migration, 0 for a fresh database."""
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()
    (version,) = conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_version").fetchone()
    return int(version)


def run_migrations(conn: sqlite3.Connection) -> None:
    """Bring the schema up to the newest version; applied versions are skipped.

    The vec0 tables live outside this list; see ensure_vec_table().
    """
    applied = current_version(conn)
    for version, script in MIGRATIONS:
        if version <= applied:
            continue
        conn.executescript(script)
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))
        conn.commit()
