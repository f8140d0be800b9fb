"""Generation Orchestrator: per-file migration with retry, validation and demos.

Flow for one request:
  1. Normalise the command (canonical "Convert … from X to Y.")
  2. Retrieve context chunks for the session
  3. Group chunks by file; drop static assets and files of other languages
  4. For each file: compose → call (60s) → retry transients on [5, 10, 15]s
     with a 30s timeout → parse → validate → assemble
  5. Any per-file failure becomes that file's deterministic demo

Per-file state: pending → calling → {succeeded, transient_failure,
fatal_failure}; transient_failure loops to calling while retries remain,
then becomes fatal_failure → demo_substituted. Files never affect each other.
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
import random
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from codeshift.config import CodeshiftConfig
from codeshift.db.models import Chunk
from codeshift.db.repository import Repository
from codeshift.errors import (
    GenerationError,
    GenerationFatal,
    GenerationTransient,
    QualityRejection,
    RetrievalEmpty,
    classify_provider_error,
)
from codeshift.generate import ecosystem
from codeshift.generate.cache import TranslationCache, fingerprint
from codeshift.generate.demos import demo_for
from codeshift.generate.output import EXTENSIONS, assemble
from codeshift.generate.parser import ParsedResponse, parse_response
from codeshift.generate.prompt import PromptComposer
from codeshift.generate.recipes import normalise_language
from codeshift.generate.validator import check_quality, is_analytics_pair
from codeshift.ingest.embedder import Embedder
from codeshift.rag.retriever import Retriever

logger = logging.getLogger(__name__)


class LLM(Protocol):
    async def generate(self, prompt: str, timeout: float) -> str: ...


# ------------------------------------------------------------------
# Language tables
# ------------------------------------------------------------------

DISPLAY_NAMES: dict[str, str] = {
    "javascript": "JavaScript",
    "typescript": "TypeScript",
    "python": "Python",
    "python2": "Python 2",
    "python3": "Python 3",
    "java": "Java",
    "cpp": "C++",
    "csharp": "C#",
    "php": "PHP",
    "ruby": "Ruby",
    "go": "Go",
    "rust": "Rust",
    "jsx": "JSX",
    "tsx": "TSX",
    "nodejs": "Node.js",
    "elasticsearch": "Elasticsearch",
    "postgresql": "PostgreSQL",
    "mysql": "MySQL",
}

# Extensions a file must carry to count as source for the pair. Languages
# missing here accept any non-asset file.
SOURCE_EXTENSIONS: dict[str, frozenset[str]] = {
    "javascript": frozenset({".js", ".mjs", ".cjs", ".jsx"}),
    "jsx": frozenset({".jsx", ".js"}),
    "typescript": frozenset({".ts", ".tsx", ".mts", ".cts"}),
    "tsx": frozenset({".tsx"}),
    "react": frozenset({".js", ".jsx", ".ts", ".tsx"}),
    "nodejs": frozenset({".js", ".mjs", ".cjs", ".ts"}),
    "express": frozenset({".js", ".mjs", ".cjs", ".ts"}),
    "angular": frozenset({".ts", ".html"}),
    "vue": frozenset({".vue", ".js", ".ts"}),
    "python": frozenset({".py"}),
    "python2": frozenset({".py"}),
    "python3": frozenset({".py"}),
    "java": frozenset({".java"}),
    "csharp": frozenset({".cs"}),
    "cpp": frozenset({".cpp", ".cc", ".cxx", ".hpp", ".h"}),
    "c": frozenset({".c", ".h"}),
    "php": frozenset({".php"}),
    "laravel": frozenset({".php"}),
    "ruby": frozenset({".rb"}),
    "go": frozenset({".go"}),
    "rust": frozenset({".rs"}),
    "kotlin": frozenset({".kt"}),
    "swift": frozenset({".swift"}),
    "scala": frozenset({".scala"}),
    "elasticsearch": frozenset({".json", ".ndjson"}),
    "opensearch": frozenset({".json", ".ndjson"}),
}

# extension → asset type name; skipped unless the pair names that type.
STATIC_ASSETS: dict[str, str] = {
    ".html": "html", ".htm": "html",
    ".css": "css", ".scss": "css", ".sass": "css", ".less": "css",
    ".json": "json",
    ".md": "markdown", ".markdown": "markdown",
    ".png": "image", ".jpg": "image", ".jpeg": "image", ".gif": "image",
    ".svg": "image", ".ico": "image", ".webp": "image", ".bmp": "image",
    ".woff": "font", ".woff2": "font", ".ttf": "font", ".otf": "font", ".eot": "font",
    ".mp3": "media", ".mp4": "media", ".wav": "media", ".webm": "media", ".mov": "media",
    ".zip": "archive", ".tar": "archive", ".gz": "archive", ".tgz": "archive",
    ".rar": "archive", ".7z": "archive",
}

_COMMAND_PAIR_RE = re.compile(
    r"\bfrom\s+([\w.+#-]+(?:\s[23])?)\s+to\s+([\w.+#-]+(?:\s[23])?)", re.IGNORECASE
)


def display_name(language: str) -> str:
    normalised = normalise_language(language)
    return DISPLAY_NAMES.get(normalised, language.strip().title())


def migration_command(source: str, target: str) -> str:
    """Canonical command for the pair, e.g. 'Convert … from JavaScript to C#.'"""
    return (
        f"Convert the following code from {display_name(source)} "
        f"to {display_name(target)}."
    )


def parse_command(command: str) -> tuple[str, str] | None:
    """Extract (source, target) from a free-form 'from X to Y' command."""
    match = _COMMAND_PAIR_RE.search(command)
    if match is None:
        return None
    return match.group(1).rstrip("."), match.group(2).rstrip(".")


def is_eligible(file_path: str, source: str, target: str) -> bool:
    """Decide whether *file_path* takes part in a source → target migration."""
    extension = posixpath.splitext(file_path.lower())[1]
    src = normalise_language(source)
    tgt = normalise_language(target)

    allowed = SOURCE_EXTENSIONS.get(src)
    if allowed is not None and extension in allowed:
        return True

    asset = STATIC_ASSETS.get(extension)
    if asset is not None:
        return asset in (src, tgt)
    return allowed is None


# ------------------------------------------------------------------
# Result model
# ------------------------------------------------------------------


@dataclass
class FileResult:
    """Outcome of migrating one source file."""

    filename: str
    migrated_filename: str
    content: str
    is_demo: bool = False
    attempts: int = 0
    summary: str = ""
    changes: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "migratedFilename": self.migrated_filename,
            "content": self.content,
            "isDemo": self.is_demo,
        }


@dataclass
class TranslationResult:
    """Aggregate of all file results for one request."""

    source_lang: str
    target_lang: str
    summary: str = ""
    files: list[FileResult] = field(default_factory=list)
    changes: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    @property
    def migrated_code(self) -> str:
        return self.files[0].content if self.files else ""

    @property
    def is_demo(self) -> bool:
        return any(f.is_demo for f in self.files)

    def to_dict(self) -> dict[str, Any]:
        """Public JSON shape of the result."""
        return {
            "migratedCode": self.migrated_code,
            "summary": self.summary,
            "changes": list(self.changes),
            "files": [f.to_dict() for f in self.files],
            "warnings": list(self.warnings),
            "recommendations": list(self.recommendations),
            "isDemo": self.is_demo,
        }


def _unique(items: Sequence[str]) -> list[str]:
    return list(dict.fromkeys(i for i in items if i))


# ------------------------------------------------------------------
# Orchestrator
# ------------------------------------------------------------------


class Orchestrator:
    """Drive per-file migrations for a session.

    Args:
        repo: Chunk store (for retrieval and cache revisions).
        embedder: Embeds retrieval queries.
        llm: Any object with ``async generate(prompt, timeout) -> str``.
        config: Full codeshift config (generation, retrieval, validation).
        vec_table: sqlite-vec table holding the chunk embeddings.
        cache: Optional request-fingerprint cache.
    """

    def __init__(
        self,
        repo: Repository,
        embedder: Embedder,
        llm: LLM,
        config: CodeshiftConfig | None = None,
        vec_table: str | None = None,
        cache: TranslationCache[TranslationResult] | None = None,
    ) -> None:
        self.repo = repo
        self.llm = llm
        self.config = config or CodeshiftConfig()
        self.cache = cache
        self.retriever = Retriever(repo, embedder, self.config.retrieval, vec_table)
        self.composer = PromptComposer(
            analytics_min_chars=self.config.validation.analytics_min_chars
        )

    async def translate(
        self,
        session_id: str,
        command: str = "",
        *,
        source_lang: str | None = None,
        target_lang: str | None = None,
        user_id: str | None = None,
    ) -> TranslationResult:
        """Migrate the session's code and return the aggregate result.

        Raises:
            ValueError: If neither the options nor the command name a pair.
        """
        if not (source_lang and target_lang):
            pair = parse_command(command)
            if pair is None:
                raise ValueError(
                    "Source and target languages are required "
                    "(pass them explicitly or say 'from X to Y' in the command)."
                )
            source_lang, target_lang = pair

        if self.cache is None:
            return await self._translate(session_id, command, source_lang, target_lang, user_id)

        key = fingerprint(
            session_id,
            user_id,
            command,
            normalise_language(source_lang),
            normalise_language(target_lang),
            self.repo.session_revision(session_id),
        )
        return await self.cache.get_or_build(
            key,
            lambda: self._translate(session_id, command, source_lang, target_lang, user_id),
        )

    async def _translate(
        self,
        session_id: str,
        command: str,
        source: str,
        target: str,
        user_id: str | None,
    ) -> TranslationResult:
        canonical = migration_command(source, target)
        instruction = canonical
        if command.strip() and command.strip() != canonical:
            instruction = f"{canonical}\nAdditional instructions: {command.strip()}"

        try:
            scored = await self.retriever.retrieve(session_id, command or canonical, user_id)
        except RetrievalEmpty as exc:
            logger.warning("Session %s has no chunks; returning demo output", session_id)
            return self._demo_result(source, target, f"{exc} Returned a demo translation.")

        groups = self._group_by_file([s.chunk for s in scored])
        eligible = {path: chunks for path, chunks in groups.items() if is_eligible(path, source, target)}
        skipped = [path for path in groups if path not in eligible]
        if skipped:
            logger.info("Skipped %d file(s) not eligible for %s → %s", len(skipped), source, target)
        if not eligible:
            logger.warning("No %s files among the retrieved chunks of session %s", source, session_id)
            return self._demo_result(
                source,
                target,
                f"No {display_name(source)} files were found in session '{session_id}'. "
                "Returned a demo translation.",
            )

        files: list[FileResult] = []
        for path, chunks in eligible.items():
            files.append(await self._translate_file(path, chunks, instruction, source, target))

        return self._aggregate(source, target, files, [c for cs in eligible.values() for c in cs])

    # ------------------------------------------------------------------
    # Per-file pipeline
    # ------------------------------------------------------------------

    @staticmethod
    def _group_by_file(chunks: list[Chunk]) -> dict[str, list[Chunk]]:
        groups: dict[str, list[Chunk]] = {}
        for chunk in chunks:
            groups.setdefault(chunk.file_path, []).append(chunk)
        return groups

    async def _translate_file(
        self,
        file_path: str,
        chunks: list[Chunk],
        command: str,
        source: str,
        target: str,
    ) -> FileResult:
        """Run the per-file state machine. Never raises a GenerationError."""
        recipe = self.composer.select_recipe(chunks, source, target)
        prompt = self.composer.compose(command, chunks, source, target, recipe)
        analytics = is_analytics_pair(source, target)

        calls: list[float] = []
        try:
            raw = await self._call_with_retry(prompt, file_path, calls)
            parsed = parse_response(raw)
            code = self._select_code(parsed, file_path)
            check_quality(
                code,
                recipe,
                analytics=analytics,
                min_chars=self.config.validation.analytics_min_chars,
            )
        except QualityRejection as exc:
            logger.warning("Output for %s rejected: %s", file_path, ", ".join(exc.failed_checks))
            return self._demo_file(file_path, source, target, len(calls), f"Quality check failed: {exc}")
        except GenerationError as exc:
            logger.warning("Generation failed for %s: %s", file_path, exc)
            return self._demo_file(file_path, source, target, len(calls), str(exc))

        assembled = assemble(file_path, target, code)
        logger.info("Migrated %s → %s (%d attempt(s))", file_path, assembled.target_filename, len(calls))
        return FileResult(
            filename=file_path,
            migrated_filename=assembled.target_filename,
            content=assembled.content,
            attempts=len(calls),
            summary=parsed.summary,
            changes=parsed.changes,
            warnings=parsed.warnings,
            recommendations=parsed.recommendations,
        )

    async def _call_with_retry(self, prompt: str, file_path: str, calls: list[float]) -> str:
        """Call the LLM, retrying transient failures on the configured delays.

        Args:
            prompt: Composed prompt.
            file_path: Source file, for logging.
            calls: Receives the timeout of every call made, so the caller
                can count attempts even when this raises.

        Raises:
            GenerationTransient: Every attempt failed transiently.
            GenerationFatal: A non-transient failure (no further retries).
        """
        cfg = self.config.generation
        timeout = cfg.timeout
        while True:
            calls.append(timeout)
            attempt = len(calls)
            try:
                return await self._call(prompt, timeout)
            except GenerationTransient as exc:
                if attempt > len(cfg.retry_delays):
                    raise GenerationTransient(
                        f"Gave up after {attempt} attempt(s): {exc}"
                    ) from exc
                delay = cfg.retry_delays[attempt - 1] + random.uniform(0, max(cfg.retry_jitter, 0))
                logger.warning(
                    "Transient LLM failure for %s (attempt %d): %s; retrying in %.1fs",
                    file_path,
                    attempt,
                    exc,
                    delay,
                )
                await asyncio.sleep(delay)
                timeout = cfg.retry_timeout

    async def _call(self, prompt: str, timeout: float) -> str:
        try:
            return await asyncio.wait_for(self.llm.generate(prompt, timeout), timeout=timeout)
        except GenerationError:
            raise
        except asyncio.TimeoutError as exc:
            raise GenerationTransient(f"LLM call timed out after {timeout:g}s") from exc
        except Exception as exc:  # foreign LLM collaborators raise their own types
            kind = classify_provider_error(exc)
            if kind == "transient":
                raise GenerationTransient(str(exc)) from exc
            raise GenerationFatal(str(exc), kind=kind) from exc

    @staticmethod
    def _select_code(parsed: ParsedResponse, file_path: str) -> str:
        # A multi-file answer may name this file explicitly.
        name = posixpath.basename(file_path)
        for entry in parsed.files:
            if entry["filename"] and posixpath.basename(entry["filename"]) == name:
                return entry["content"]
        return parsed.code

    # ------------------------------------------------------------------
    # Demo substitution and aggregation
    # ------------------------------------------------------------------

    def _demo_file(
        self, file_path: str, source: str, target: str, attempts: int, reason: str
    ) -> FileResult:
        demo = demo_for(source, target, posixpath.basename(file_path))
        assembled = assemble(file_path, target, demo.code)
        logger.warning("Substituted demo output for %s", file_path)
        return FileResult(
            filename=file_path,
            migrated_filename=assembled.target_filename,
            content=assembled.content,
            is_demo=True,
            attempts=attempts,
            summary=demo.summary,
            changes=demo.changes,
            warnings=[f"{file_path}: demo output substituted ({reason})"],
        )

    def _demo_result(self, source: str, target: str, warning: str) -> TranslationResult:
        extension = EXTENSIONS.get(normalise_language(source), ".txt")
        file = self._demo_file(f"example{extension}", source, target, 0, "no source available")
        return TranslationResult(
            source_lang=source,
            target_lang=target,
            summary=file.summary,
            files=[file],
            changes=list(file.changes),
            warnings=[warning],
        )

    def _aggregate(
        self,
        source: str,
        target: str,
        files: list[FileResult],
        chunks: list[Chunk],
    ) -> TranslationResult:
        dependencies: list[str] = []
        for chunk in chunks:
            dependencies.extend(chunk.metadata_dict.get("dependencies") or [])
        patterns = ecosystem.detect_patterns(c.content for c in chunks)

        demos = sum(1 for f in files if f.is_demo)
        if len(files) == 1 and files[0].summary:
            summary = files[0].summary
        else:
            summary = (
                f"Migrated {len(files)} file(s) from {display_name(source)} "
                f"to {display_name(target)}"
            )
            if demos:
                summary += f" ({demos} demo fallback(s))"

        return TranslationResult(
            source_lang=source,
            target_lang=target,
            summary=summary,
            files=files,
            changes=_unique([c for f in files for c in f.changes]),
            warnings=_unique(
                [w for f in files for w in f.warnings]
                + ecosystem.warnings(source, target, patterns)
            ),
            recommendations=_unique(
                [r for f in files for r in f.recommendations]
                + ecosystem.recommendations(source, target, dependencies)
            ),
        )
