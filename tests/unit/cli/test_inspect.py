"""Tests for codeshift detect / languages / recipes."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from codeshift.cli.main import app

runner = CliRunner()

REACT_TSX = """\
import React, { useState } from 'react';

interface Props { label: string }

export function Counter({ label }: Props) {
  const [count, setCount] = useState(0);
  return (
    <div className="counter">
      <Button onClick={() => setCount(count + 1)}>{label}</Button>
    </div>
  );
}
"""


# ---------------------------------------------------------------------------
# detect
# ---------------------------------------------------------------------------


def test_detect_json(tmp_path: Path) -> None:
    file = tmp_path / "Counter.tsx"
    file.write_text(REACT_TSX, encoding="utf-8")

    result = runner.invoke(app, ["detect", str(file), "--json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["framework"] == "react"
    assert data["syntax"] == "tsx"


def test_detect_table(tmp_path: Path) -> None:
    file = tmp_path / "Counter.tsx"
    file.write_text(REACT_TSX, encoding="utf-8")

    result = runner.invoke(app, ["detect", str(file)])

    assert result.exit_code == 0, result.output
    assert "react-ts" in result.output
    assert "Framework" in result.output


def test_detect_missing_file(tmp_path: Path) -> None:
    result = runner.invoke(app, ["detect", str(tmp_path / "nope.js")])
    assert result.exit_code == 1
    assert "is not a file" in result.output


# ---------------------------------------------------------------------------
# languages
# ---------------------------------------------------------------------------


def test_languages_lists_options() -> None:
    result = runner.invoke(app, ["languages"])
    assert result.exit_code == 0
    assert "javascript" in result.output
    assert "react-ts" in result.output


# ---------------------------------------------------------------------------
# recipes
# ---------------------------------------------------------------------------


def test_recipes_all() -> None:
    result = runner.invoke(app, ["recipes"])
    assert result.exit_code == 0
    assert "js-function-to-ts" in result.output
    assert "python2-print-to-python3" in result.output


def test_recipes_for_pair() -> None:
    result = runner.invoke(app, ["recipes", "--from", "typescript", "--to", "javascript"])
    assert result.exit_code == 0
    assert "ts-module-to-js" in result.output
    assert "js-function-to-ts" not in result.output


def test_recipes_unknown_pair() -> None:
    result = runner.invoke(app, ["recipes", "--from", "rust", "--to", "go"])
    assert result.exit_code == 0
    assert "No recipes" in result.output


def test_recipes_requires_both_languages() -> None:
    result = runner.invoke(app, ["recipes", "--from", "rust"])
    assert result.exit_code == 1
    assert "must be given together" in result.output
