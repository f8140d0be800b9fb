"""Fixtures shared by the CLI tests."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from codeshift.cli.common import console
from codeshift.config import CodeshiftConfig, EmbeddingCfg, WorkerCfg

DIMS = 4


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run the command from *tmp_path* with a small-vector codeshift.yaml."""
    for var in ("CODESHIFT_GENERATION_MODEL", "CODESHIFT_EMBEDDING_MODEL", "CODESHIFT_DB"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr("codeshift.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    monkeypatch.chdir(tmp_path)
    (tmp_path / "codeshift.yaml").write_text(
        yaml.dump(
            {
                "embedding": {"dimensions": DIMS},
                "worker": {"scratch_dir": str(tmp_path / "scratch")},
            }
        ),
        encoding="utf-8",
    )
    return tmp_path


@pytest.fixture
def project_config(project: Path) -> CodeshiftConfig:
    """The config the commands will load inside *project*."""
    return CodeshiftConfig(
        db_path=".codeshift.db",
        embedding=EmbeddingCfg(dimensions=DIMS),
        worker=WorkerCfg(scratch_dir=str(project / "scratch")),
    )


@pytest.fixture(autouse=True)
def wide_console(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep rich tables on one line per row so assertions see whole cells."""
    monkeypatch.setattr(console, "width", 200)
