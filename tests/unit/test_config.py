"""Tests for codeshift config loader."""

from __future__ import annotations

import os
import stat
import warnings
from pathlib import Path

import pytest
import yaml

from codeshift.config import (
    CodeshiftConfig,
    ConfigError,
    GenerationCfg,
    ensure_global_config,
    load_config,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in ("CODESHIFT_GENERATION_MODEL", "CODESHIFT_EMBEDDING_MODEL", "CODESHIFT_DB"):
        monkeypatch.delenv(var, raising=False)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


def _missing_global(tmp_path: Path) -> Path:
    return tmp_path / "nonexistent" / "config.yaml"


# ---------------------------------------------------------------------------
# Defaults with no config files present
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path) -> None:
    cfg = load_config(project_dir=tmp_path, global_config_path=_missing_global(tmp_path))

    assert cfg.db_path == ".codeshift.db"
    assert cfg.embedding.model == "gemini/text-embedding-004"
    assert cfg.embedding.dimensions == 768
    assert cfg.generation.model == "gemini/gemini-2.0-flash"
    assert cfg.generation.timeout == 60.0
    assert cfg.generation.retry_timeout == 30.0
    assert cfg.generation.retry_delays == [5.0, 10.0, 15.0]
    assert cfg.retrieval.top_k == 20
    assert cfg.retrieval.min_similarity == 0.05
    assert cfg.retrieval.fallback_similarity == 0.1
    assert cfg.chunking.small_file_lines == 500
    assert cfg.worker.poll_interval == 5.0
    assert cfg.worker.reclaim_after == 1800.0
    assert cfg.validation.analytics_min_chars == 15_000


def test_generation_defaults_are_independent_lists() -> None:
    a, b = GenerationCfg(), GenerationCfg()
    a.retry_delays.append(99.0)
    assert b.retry_delays == [5.0, 10.0, 15.0]


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_global_overrides_defaults(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"generation": {"model": "openai/gpt-4o-mini"}})

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.generation.model == "openai/gpt-4o-mini"
    assert cfg.embedding.model == "gemini/text-embedding-004"


def test_global_empty_file(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text("# nothing here\n", encoding="utf-8")

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.generation.model == "gemini/gemini-2.0-flash"


def test_project_overrides_global(tmp_path: Path) -> None:
    global_cfg = tmp_path / "global.yaml"
    _write_yaml(global_cfg, {"generation": {"model": "openai/gpt-4o-mini"}})
    _write_yaml(tmp_path / "codeshift.yaml", {"generation": {"model": "openai/gpt-4o"}})

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.generation.model == "openai/gpt-4o"


def test_project_partial_override_keeps_global_fields(tmp_path: Path) -> None:
    global_cfg = tmp_path / "global.yaml"
    _write_yaml(global_cfg, {"retrieval": {"top_k": 30, "min_similarity": 0.2}})
    _write_yaml(tmp_path / "codeshift.yaml", {"retrieval": {"top_k": 5}})

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.retrieval.top_k == 5
    assert cfg.retrieval.min_similarity == 0.2


def test_project_sections(tmp_path: Path) -> None:
    _write_yaml(
        tmp_path / "codeshift.yaml",
        {
            "database": {"path": "custom.db"},
            "generation": {"retry_delays": [1, 2], "retry_jitter": 0},
            "worker": {"poll_interval": 1, "progress_every": 3},
            "validation": {"analytics_min_chars": 100},
        },
    )
    cfg = load_config(project_dir=tmp_path, global_config_path=_missing_global(tmp_path))

    assert cfg.db_path == "custom.db"
    assert cfg.generation.retry_delays == [1.0, 2.0]
    assert cfg.generation.retry_jitter == 0.0
    assert cfg.worker.poll_interval == 1.0
    assert cfg.worker.progress_every == 3
    assert cfg.validation.analytics_min_chars == 100


def test_env_overrides_project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write_yaml(tmp_path / "codeshift.yaml", {"generation": {"model": "openai/gpt-4o"}})
    monkeypatch.setenv("CODESHIFT_GENERATION_MODEL", "anthropic/claude-3-haiku")
    monkeypatch.setenv("CODESHIFT_EMBEDDING_MODEL", "openai/text-embedding-3-small")
    monkeypatch.setenv("CODESHIFT_DB", "env.db")

    cfg = load_config(project_dir=tmp_path, global_config_path=_missing_global(tmp_path))
    assert cfg.generation.model == "anthropic/claude-3-haiku"
    assert cfg.embedding.model == "openai/text-embedding-3-small"
    assert cfg.db_path == "env.db"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("key", ["api_key", "openai_api_key", "github_token", "password", "secret"])
def test_global_config_rejects_api_keys(tmp_path: Path, key: str) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"generation": {key: "x"}})

    with pytest.raises(ConfigError, match="forbidden key"):
        load_config(project_dir=tmp_path, global_config_path=global_cfg)


def test_global_config_allows_token_like_settings(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"generation": {"max_tokens": 1024}})

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.generation.max_tokens == 1024


def test_unknown_section_warns(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "codeshift.yaml", {"mystery": {"x": 1}})

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        cfg = load_config(project_dir=tmp_path, global_config_path=_missing_global(tmp_path))

    assert isinstance(cfg, CodeshiftConfig)
    assert any("mystery" in str(w.message) for w in caught)


@pytest.mark.parametrize(
    "data",
    [
        {"retrieval": {"top_k": 0}},
        {"generation": {"timeout": 0}},
        {"generation": {"retry_jitter": -1}},
        {"embedding": {"dimensions": -5}},
        {"worker": {"poll_interval": 0}},
    ],
)
def test_out_of_range_values_raise(tmp_path: Path, data: dict) -> None:
    _write_yaml(tmp_path / "codeshift.yaml", data)
    with pytest.raises(ConfigError):
        load_config(project_dir=tmp_path, global_config_path=_missing_global(tmp_path))


def test_config_error_is_value_error() -> None:
    assert issubclass(ConfigError, ValueError)


# ---------------------------------------------------------------------------
# ensure_global_config
# ---------------------------------------------------------------------------


def test_ensure_global_config_creates_private_file(tmp_path: Path) -> None:
    target = tmp_path / "home" / ".codeshift" / "config.yaml"
    path = ensure_global_config(target)

    assert path == target
    assert path.exists()
    if os.name == "posix":
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        assert stat.S_IMODE(path.parent.stat().st_mode) == 0o700
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert data["generation"]["model"] == "gemini/gemini-2.0-flash"


def test_ensure_global_config_keeps_existing(tmp_path: Path) -> None:
    target = tmp_path / "config.yaml"
    target.write_text("generation:\n  model: openai/gpt-4o\n", encoding="utf-8")

    ensure_global_config(target)
    assert "openai/gpt-4o" in target.read_text(encoding="utf-8")


def test_generated_global_config_loads_cleanly(tmp_path: Path) -> None:
    target = ensure_global_config(tmp_path / "cfg" / "config.yaml")
    cfg = load_config(project_dir=tmp_path, global_config_path=target)
    assert cfg.embedding.dimensions == 768
