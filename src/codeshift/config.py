"""codeshift configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (CODESHIFT_GENERATION_MODEL, CODESHIFT_EMBEDDING_MODEL,
     CODESHIFT_DB)
  3. Per-project codeshift.yaml  (current working directory)
  4. Global ~/.codeshift/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import tempfile
import warnings
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".codeshift"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
PROJECT_CONFIG_NAME: str = "codeshift.yaml"

DEFAULT_DB: str = ".codeshift.db"

# Key names that look like credentials; refused in the global config.
# Does NOT match legitimate keys like max_tokens or batch_size.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["database", "embedding", "generation", "retrieval", "chunking", "worker", "validation"]
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding provider configuration (codeshift.yaml: embedding:)."""

    model: str = "gemini/text-embedding-004"
    dimensions: int = 768
    batch_size: int = 32
    timeout: float = 30.0
    num_retries: int = 2


@dataclass
class GenerationCfg:
    """LLM generation configuration (codeshift.yaml: generation:).

    Attributes:
        model: LiteLLM model string (provider/model format).
        timeout: Seconds allowed for the first call of a file.
        retry_timeout: Seconds allowed for each retry.
        retry_delays: Sleep before each retry; its length bounds the retry count.
        retry_jitter: Upper bound of the uniform jitter added to each delay.
    """

    model: str = "gemini/gemini-2.0-flash"
    timeout: float = 60.0
    retry_timeout: float = 30.0
    retry_delays: list[float] = field(default_factory=lambda: [5.0, 10.0, 15.0])
    retry_jitter: float = 1.0
    max_tokens: int = 8_192
    temperature: float = 0.0


@dataclass
class RetrievalCfg:
    """Retriever configuration (codeshift.yaml: retrieval:)."""

    top_k: int = 20
    min_similarity: float = 0.05
    fallback_similarity: float = 0.1


@dataclass
class ChunkingCfg:
    """Chunker configuration (codeshift.yaml: chunking:)."""

    small_file_lines: int = 500


@dataclass
class WorkerCfg:
    """Background worker configuration (codeshift.yaml: worker:)."""

    poll_interval: float = 5.0
    error_backoff: float = 10.0
    scratch_dir: str = field(
        default_factory=lambda: str(Path(tempfile.gettempdir()) / "codeshift")
    )
    metadata_attempts: int = 5
    metadata_delay: float = 1.0
    progress_every: int = 10
    reclaim_after: float = 1_800.0
    fetch_timeout: float = 30.0


@dataclass
class ValidationCfg:
    """Quality validator configuration (codeshift.yaml: validation:)."""

    analytics_min_chars: int = 15_000


@dataclass
class CodeshiftConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    db_path: str = DEFAULT_DB
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    worker: WorkerCfg = field(default_factory=WorkerCfg)
    validation: ValidationCfg = field(default_factory=ValidationCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _key_paths(obj: Any, prefix: str = "") -> Iterator[tuple[str, str]]:
    """Yield ``(dotted_path, key)`` for every mapping key nested in *obj*."""
    if not isinstance(obj, dict):
        return
    for key, value in obj.items():
        dotted = f"{prefix}.{key}" if prefix else str(key)
        yield dotted, str(key)
        yield from _key_paths(value, dotted)


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* names a credential anywhere in its tree."""
    for dotted, key in _key_paths(data):
        if not _API_KEY_RE.search(key):
            continue
        env_var = key.upper().replace("-", "_")
        raise ConfigError(
            f"Global config '{source}' contains a forbidden key '{dotted}'.\n"
            "  Credentials belong in the environment, never in a config file.\n"
            f"  Delete '{dotted}' from {source.name}, then:\n"
            f"    export {env_var}=<value>"
        )


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Warn about top-level sections codeshift does not read."""
    for key in sorted(set(data) - _KNOWN_SECTIONS, key=str):
        warnings.warn(
            f"Unknown config section '{key}' in '{source}' is ignored.",
            UserWarning,
            stacklevel=4,
        )


def _check_positive(name: str, value: float) -> None:
    if value <= 0:
        raise ConfigError(f"{name} must be > 0, got {value}")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _merge_layer(lower: dict[str, Any], upper: dict[str, Any]) -> dict[str, Any]:
    """Overlay *upper* on *lower*; nested sections merge key by key."""
    merged = {**lower}
    for key, value in upper.items():
        below = merged.get(key)
        both_sections = isinstance(below, dict) and isinstance(value, dict)
        merged[key] = _merge_layer(below, value) if both_sections else value
    return merged


def _read_yaml(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file '{path}' must contain a mapping at the top level.")
    return data


def _cfg_from_dict(data: dict[str, Any]) -> CodeshiftConfig:
    """Build a *CodeshiftConfig* from a merged raw YAML dict."""
    cfg = CodeshiftConfig()

    if "database" in data:
        cfg.db_path = str(data["database"].get("path", cfg.db_path))

    if "embedding" in data:
        e = data["embedding"]
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
            batch_size=int(e.get("batch_size", cfg.embedding.batch_size)),
            timeout=float(e.get("timeout", cfg.embedding.timeout)),
            num_retries=int(e.get("num_retries", cfg.embedding.num_retries)),
        )
        _check_positive("embedding.dimensions", cfg.embedding.dimensions)
        _check_positive("embedding.batch_size", cfg.embedding.batch_size)

    if "generation" in data:
        g = data["generation"]
        cfg.generation = GenerationCfg(
            model=str(g.get("model", cfg.generation.model)),
            timeout=float(g.get("timeout", cfg.generation.timeout)),
            retry_timeout=float(g.get("retry_timeout", cfg.generation.retry_timeout)),
            retry_delays=[
                float(d) for d in g.get("retry_delays", cfg.generation.retry_delays)
            ],
            retry_jitter=float(g.get("retry_jitter", cfg.generation.retry_jitter)),
            max_tokens=int(g.get("max_tokens", cfg.generation.max_tokens)),
            temperature=float(g.get("temperature", cfg.generation.temperature)),
        )
        _check_positive("generation.timeout", cfg.generation.timeout)
        _check_positive("generation.retry_timeout", cfg.generation.retry_timeout)
        if cfg.generation.retry_jitter < 0:
            raise ConfigError("generation.retry_jitter must be >= 0")

    if "retrieval" in data:
        r = data["retrieval"]
        cfg.retrieval = RetrievalCfg(
            top_k=int(r.get("top_k", cfg.retrieval.top_k)),
            min_similarity=float(r.get("min_similarity", cfg.retrieval.min_similarity)),
            fallback_similarity=float(
                r.get("fallback_similarity", cfg.retrieval.fallback_similarity)
            ),
        )
        _check_positive("retrieval.top_k", cfg.retrieval.top_k)

    if "chunking" in data:
        c = data["chunking"]
        cfg.chunking = ChunkingCfg(
            small_file_lines=int(c.get("small_file_lines", cfg.chunking.small_file_lines)),
        )

    if "worker" in data:
        w = data["worker"]
        cfg.worker = WorkerCfg(
            poll_interval=float(w.get("poll_interval", cfg.worker.poll_interval)),
            error_backoff=float(w.get("error_backoff", cfg.worker.error_backoff)),
            scratch_dir=str(w.get("scratch_dir", cfg.worker.scratch_dir)),
            metadata_attempts=int(w.get("metadata_attempts", cfg.worker.metadata_attempts)),
            metadata_delay=float(w.get("metadata_delay", cfg.worker.metadata_delay)),
            progress_every=int(w.get("progress_every", cfg.worker.progress_every)),
            reclaim_after=float(w.get("reclaim_after", cfg.worker.reclaim_after)),
            fetch_timeout=float(w.get("fetch_timeout", cfg.worker.fetch_timeout)),
        )
        _check_positive("worker.poll_interval", cfg.worker.poll_interval)
        _check_positive("worker.metadata_attempts", cfg.worker.metadata_attempts)

    if "validation" in data:
        v = data["validation"]
        cfg.validation = ValidationCfg(
            analytics_min_chars=int(
                v.get("analytics_min_chars", cfg.validation.analytics_min_chars)
            ),
        )

    return cfg


def _apply_env_overrides(cfg: CodeshiftConfig) -> CodeshiftConfig:
    """Apply CODESHIFT_* environment variable overrides (layer 2)."""
    if model := os.environ.get("CODESHIFT_GENERATION_MODEL"):
        cfg.generation.model = model
    if model := os.environ.get("CODESHIFT_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if db := os.environ.get("CODESHIFT_DB"):
        cfg.db_path = db
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> CodeshiftConfig:
    """Load the layered configuration.

    The global file is read first, then ``codeshift.yaml`` from *project_dir*
    (default: the current directory), then CODESHIFT_* variables. Command-line
    flags are the caller's business.

    Args:
        project_dir: Directory holding ``codeshift.yaml``.
        global_config_path: Alternative global file, mainly for tests.

    Raises:
        ConfigError: The global file names a credential, a file is not a
            mapping, or a numeric setting is out of range.
    """
    global_path = global_config_path or _GLOBAL_CONFIG_PATH
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME

    merged: dict[str, Any] = {}
    for path, is_global in ((global_path, True), (project_path, False)):
        if not path.exists():
            continue
        layer = _read_yaml(path)
        if is_global:
            _check_no_api_keys(layer, path)
        _warn_unknown_keys(layer, path)
        merged = _merge_layer(merged, layer)

    return _apply_env_overrides(_cfg_from_dict(merged))


_GLOBAL_TEMPLATE = """\
# codeshift global configuration: model defaults only.
# Provider credentials come from the environment, for example
#   export GEMINI_API_KEY=...
#   export OPENAI_API_KEY=...

embedding:
  model: gemini/text-embedding-004
  dimensions: 768

generation:
  model: gemini/gemini-2.0-flash
"""


def ensure_global_config(global_config_path: Path | None = None) -> Path:
    """Write a private default ``~/.codeshift/config.yaml`` unless one exists.

    The directory is created 0o700 and the file 0o600.
    """
    target = global_config_path or _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    if not target.exists():
        target.write_text(_GLOBAL_TEMPLATE, encoding="utf-8")
        target.chmod(0o600)
    return target
