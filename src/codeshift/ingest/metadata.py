"""Chunk metadata: language, complexity, dependencies, exports, provider."""

from __future__ import annotations

import json
import re

from codeshift.db.models import Chunk

_MAX_COMPLEXITY = 10

_DEPENDENCY_PATTERNS = (
    re.compile(r"import\s+.*?from\s+['\"]([^'\"]+)['\"]"),
    re.compile(r"^\s*import\s+['\"]([^'\"]+)['\"]"),
    re.compile(r"require\(\s*['\"]([^'\"]+)['\"]\s*\)"),
    re.compile(r"^\s*from\s+([\w.]+)\s+import\b"),
    re.compile(r"^\s*import\s+([\w.]+)\s*(?:as\s+\w+)?\s*;?\s*$"),
    re.compile(r"^\s*using\s+(?:static\s+)?([\w.]+)\s*;"),
)

_EXPORT_PATTERNS = (
    re.compile(
        r"export\s+(?:default\s+)?(?:async\s+)?"
        r"(?:const|let|var|function\*?|class|interface|type|enum)\s+(\w+)"
    ),
    re.compile(r"module\.exports\.(\w+)\s*="),
    re.compile(r"exports\.(\w+)\s*="),
)


def complexity(line_count: int) -> int:
    """Line-proportional complexity score, capped at 10."""
    return min(round(line_count / 10), _MAX_COMPLEXITY)


def extract_dependencies(content: str) -> list[str]:
    """Imported module names, unique, in first-seen order."""
    found: list[str] = []
    for line in content.splitlines():
        for pattern in _DEPENDENCY_PATTERNS:
            match = pattern.search(line)
            if match and match.group(1) not in found:
                found.append(match.group(1))
                break
    return found


def extract_exports(content: str) -> list[str]:
    """Exported names, unique, in first-seen order."""
    found: list[str] = []
    for line in content.splitlines():
        for pattern in _EXPORT_PATTERNS:
            for match in pattern.finditer(line):
                if match.group(1) not in found:
                    found.append(match.group(1))
    return found


def describe(chunk: Chunk, language: str) -> dict:
    """Static metadata of *chunk*; the embedder adds provider fields later."""
    return {
        "language": language,
        "complexity": complexity(chunk.line_count),
        "dependencies": extract_dependencies(chunk.content),
        "exports": extract_exports(chunk.content),
    }


def attach(chunk: Chunk, language: str) -> Chunk:
    chunk.metadata = json.dumps(describe(chunk, language), sort_keys=True)
    return chunk


def mark_embedding(chunk: Chunk, provider_id: str, fallback: bool) -> Chunk:
    """Record the embedding provider and fallback flag in *chunk*'s metadata."""
    data = chunk.metadata_dict
    data["embedding_provider_id"] = provider_id
    if fallback:
        data["fallback"] = True
    else:
        data.pop("fallback", None)
    chunk.metadata = json.dumps(data, sort_keys=True)
    return chunk
