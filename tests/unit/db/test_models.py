"""Tests for the db domain models."""

from __future__ import annotations

import pytest

from codeshift.db.models import CHUNK_KINDS, Chunk, Job


def _chunk(**overrides) -> Chunk:
    fields = dict(
        file_path="a.py",
        file_name="a.py",
        file_extension=".py",
        kind="function",
        name="f",
        content="def f():\n    pass",
        start_line=1,
        end_line=2,
    )
    fields.update(overrides)
    return Chunk(**fields)


def test_chunk_defaults() -> None:
    chunk = _chunk()
    assert chunk.metadata_dict == {}
    assert chunk.line_count == 2
    assert chunk.key == ("a.py", 1, 2, "function", "f")
    assert chunk.rowid is None


def test_chunk_metadata_dict_parses_json() -> None:
    chunk = _chunk(metadata='{"language": "python", "complexity": 3}')
    assert chunk.metadata_dict["language"] == "python"


@pytest.mark.parametrize("start,end", [(0, 1), (3, 2), (-1, 4)])
def test_chunk_rejects_bad_spans(start: int, end: int) -> None:
    with pytest.raises(ValueError, match="invalid chunk span"):
        _chunk(start_line=start, end_line=end)


def test_chunk_rejects_unknown_kind() -> None:
    with pytest.raises(ValueError, match="unknown chunk kind"):
        _chunk(kind="method")


def test_chunk_kinds_include_framework_construct() -> None:
    assert "framework-construct" in CHUNK_KINDS
    assert "other" in CHUNK_KINDS


def test_job_terminal_and_cancelled_flags() -> None:
    assert not Job("j", "s", "u").is_terminal
    assert Job("j", "s", "u", status="ready").is_terminal
    failed = Job("j", "s", "u", status="failed", error_message="boom")
    assert failed.is_terminal and not failed.is_cancelled
    assert Job("j", "s", "u", status="failed", error_message="cancelled").is_cancelled
