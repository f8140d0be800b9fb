"""Tests for schema initialization and the migration runner."""

from __future__ import annotations

import sqlite3

import pytest

from codeshift.db.migrations import MIGRATIONS, current_version, run_migrations
from codeshift.db.schema import CURRENT_VERSION, initialize


def _tables(conn) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    return {r[0] for r in rows}


def test_initialize_creates_tables(tmp_db):
    assert {"schema_version", "jobs", "job_files", "chunks"} <= _tables(tmp_db)


def test_current_version_recorded(tmp_db):
    version = tmp_db.execute("SELECT MAX(version) FROM schema_version").fetchone()[0]
    assert version == CURRENT_VERSION == MIGRATIONS[-1][0]
    assert current_version(tmp_db) == CURRENT_VERSION


def test_initialize_idempotent(tmp_db):
    initialize(tmp_db)
    run_migrations(tmp_db)
    count = tmp_db.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert count == len(MIGRATIONS)


def test_migrations_are_ascending():
    versions = [v for v, _ in MIGRATIONS]
    assert versions == sorted(versions)
    assert len(set(versions)) == len(versions)


def test_session_is_unique(tmp_db):
    tmp_db.execute("INSERT INTO jobs (id, session_id, user_id) VALUES ('a', 's', 'u')")
    with pytest.raises(sqlite3.IntegrityError, match="UNIQUE"):
        tmp_db.execute("INSERT INTO jobs (id, session_id, user_id) VALUES ('b', 's', 'u')")


def test_job_status_check_constraint(tmp_db):
    with pytest.raises(sqlite3.IntegrityError, match="CHECK"):
        tmp_db.execute(
            "INSERT INTO jobs (id, session_id, user_id, status) VALUES ('a', 's', 'u', 'bogus')"
        )
