"""Output Assembler: derive the target filename for a migrated file.

``assemble`` is a pure function of (source filename, target language, body).
JS/TS pairs look at the body to choose between the plain and JSX-bearing
extension; every other pair swaps in the target's canonical extension.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath

from codeshift.generate.recipes import normalise_language

EXTENSIONS: dict[str, str] = {
    "javascript": ".js",
    "nodejs": ".js",
    "jsx": ".jsx",
    "react": ".jsx",
    "typescript": ".ts",
    "tsx": ".tsx",
    "python": ".py",
    "python2": ".py",
    "python3": ".py",
    "java": ".java",
    "kotlin": ".kt",
    "scala": ".scala",
    "csharp": ".cs",
    "cpp": ".cpp",
    "c": ".c",
    "go": ".go",
    "rust": ".rs",
    "ruby": ".rb",
    "php": ".php",
    "laravel": ".php",
    "swift": ".swift",
    "dart": ".dart",
    "vue": ".vue",
    "svelte": ".svelte",
    "angular": ".ts",
    "graphql": ".graphql",
    "sql": ".sql",
    "postgresql": ".sql",
    "mysql": ".sql",
    "sqlite": ".sql",
    "mssql": ".sql",
    "oracle": ".sql",
    "relational": ".sql",
    "mongodb": ".js",
    "elasticsearch": ".json",
    "json": ".json",
    "yaml": ".yaml",
    "html": ".html",
    "css": ".css",
    "shell": ".sh",
    "bash": ".sh",
}

_JS_TARGETS = frozenset({"javascript", "jsx", "nodejs"})
_TS_TARGETS = frozenset({"typescript", "tsx"})
_SCRIPT_EXTENSIONS = frozenset({".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs"})

# Markup after something that cannot end an expression operand, so
# comparisons such as ``a < b`` and generics such as ``Array<T>`` do not count.
_JSX_PATTERNS = (
    re.compile(r"(?<![\w$)\]])<[A-Z][\w.]*(?:\s[^<>]*)?/?>"),
    re.compile(r"(?<![\w$)\]])<[a-z][\w-]*(?:\s[^<>]*)?/?>"),
    re.compile(r"</[A-Za-z][\w.-]*\s*>"),
    re.compile(r"\bclassName\s*="),
    re.compile(r"\bonClick\s*="),
    re.compile(r">\s*\{[^{}]*\}\s*<"),
    re.compile(r"\.map\s*\([^)]*=>\s*\(?\s*<[A-Za-z]"),
)


@dataclass(frozen=True)
class AssembledFile:
    target_filename: str
    content: str


def is_jsx_bearing(body: str) -> bool:
    """True when *body* contains any JSX markup pattern."""
    return any(pattern.search(body) for pattern in _JSX_PATTERNS)


def canonical_extension(language: str) -> str | None:
    return EXTENSIONS.get(normalise_language(language))


def target_filename(source_filename: str, target_lang: str, body: str = "") -> str:
    """Derive the migrated filename for *source_filename*.

    Directory components are kept. Unknown target languages keep the
    source extension.
    """
    path = PurePosixPath(source_filename)
    suffix = path.suffix.lower()
    target = normalise_language(target_lang)

    if suffix in _SCRIPT_EXTENSIONS and target in _JS_TARGETS:
        # .tsx/.jsx are JSX by construction; .ts/.js depend on the body
        jsx = suffix in (".tsx", ".jsx") or target == "jsx" or is_jsx_bearing(body)
        new_suffix = ".jsx" if jsx else ".js"
    elif suffix in _SCRIPT_EXTENSIONS and target in _TS_TARGETS:
        jsx = suffix in (".tsx", ".jsx") or target == "tsx" or is_jsx_bearing(body)
        new_suffix = ".tsx" if jsx else ".ts"
    else:
        new_suffix = canonical_extension(target) or path.suffix

    if not path.suffix:
        return f"{source_filename}{new_suffix}"
    return str(path.with_suffix(new_suffix))


def assemble(source_filename: str, target_lang: str, body: str) -> AssembledFile:
    return AssembledFile(
        target_filename=target_filename(source_filename, target_lang, body),
        content=body,
    )
