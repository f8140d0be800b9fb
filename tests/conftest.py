"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from codeshift.db.connection import Database
from codeshift.db.repository import Repository
from codeshift.db.schema import initialize


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".codeshift.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    """Repository over the tmp_db connection."""
    return Repository(tmp_db)
