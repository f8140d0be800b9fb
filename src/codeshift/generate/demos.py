"""Deterministic demo translations used when generation fails.

A demo is a safety net, never normal output: the orchestrator substitutes
one for a file whose LLM call failed for good or whose output was rejected,
and flags that file ``isDemo``. Bodies depend only on the language pair and
the source filename.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from codeshift.generate.recipes import normalise_language

_HASH_COMMENT = frozenset({"python", "python2", "python3", "ruby", "r", "shell", "bash", "yaml"})
_DASH_COMMENT = frozenset({"sql", "postgresql", "mysql", "sqlite", "mssql", "oracle", "lua"})
_NO_COMMENT = frozenset({"json"})


@dataclass(frozen=True)
class DemoTranslation:
    code: str
    summary: str
    changes: list[str] = field(default_factory=list)


def comment_prefix(language: str) -> str:
    """Line-comment marker for *language* ('//' unless known otherwise)."""
    language = normalise_language(language)
    if language in _HASH_COMMENT:
        return "#"
    if language in _DASH_COMMENT:
        return "--"
    if language in _NO_COMMENT:
        return ""
    return "//"


_JS_TO_TS = """\
function greet(name: string): string {
  return `Hello, ${name}`;
}

const greeting: string = greet("World");
console.log(greeting);
"""

_TS_TO_JS = """\
function greet(name) {
  return `Hello, ${name}`;
}

const greeting = greet("World");
console.log(greeting);
"""

_TSX_TO_JSX = """\
import React from "react";

export default function Placeholder({ title = "Untitled" }) {
  return <div className="placeholder">{title}</div>;
}
"""

_PY2_TO_PY3 = """\
def main():
    for i in range(3):
        print(i)
    print("done")


if __name__ == "__main__":
    main()
"""

_ES_TO_PG = """\
CREATE TABLE IF NOT EXISTS dim_document (
    document_id BIGSERIAL PRIMARY KEY,
    external_id TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS fact_event (
    event_id BIGSERIAL,
    document_id BIGINT NOT NULL REFERENCES dim_document (document_id),
    occurred_at TIMESTAMPTZ NOT NULL,
    PRIMARY KEY (event_id, occurred_at)
) PARTITION BY RANGE (occurred_at);
"""

_BODIES: dict[tuple[str, str], tuple[str, list[str]]] = {
    ("javascript", "typescript"): (
        _JS_TO_TS,
        ["Added parameter type annotations", "Added return type annotations"],
    ),
    ("typescript", "javascript"): (
        _TS_TO_JS,
        ["Removed type annotations"],
    ),
    ("tsx", "jsx"): (
        _TSX_TO_JSX,
        ["Removed prop types", "Kept JSX markup"],
    ),
    ("python2", "python3"): (
        _PY2_TO_PY3,
        ["Converted print statements to print()", "Replaced xrange with range"],
    ),
    ("elasticsearch", "postgresql"): (
        _ES_TO_PG,
        ["Modelled the index as dimension and fact tables"],
    ),
}

# Pairs that share a demo body with a registered pair.
_DEMO_ALIASES: dict[tuple[str, str], tuple[str, str]] = {
    ("jsx", "tsx"): ("javascript", "typescript"),
    ("javascript", "tsx"): ("javascript", "typescript"),
    ("typescript", "jsx"): ("typescript", "javascript"),
    ("tsx", "javascript"): ("tsx", "jsx"),
    ("python2", "python"): ("python2", "python3"),
    ("elasticsearch", "sql"): ("elasticsearch", "postgresql"),
}


def has_demo(source: str, target: str) -> bool:
    """True when the pair has a registered (non-generic) demo body."""
    return _resolve(source, target) in _BODIES


def _resolve(source: str, target: str) -> tuple[str, str]:
    pair = (normalise_language(source), normalise_language(target))
    return _DEMO_ALIASES.get(pair, pair)


def demo_for(source: str, target: str, filename: str) -> DemoTranslation:
    """Return the demo translation of *filename* for the pair."""
    prefix = comment_prefix(target)
    header = (
        f"{prefix} Demo output: automatic migration of {filename} "
        f"from {source} to {target} was unavailable.\n"
        if prefix
        else ""
    )
    body = _BODIES.get(_resolve(source, target))
    if body is None:
        note = f"{prefix} Manual migration required.\n" if prefix else ""
        return DemoTranslation(
            code=header + note,
            summary=f"Demo migration placeholder for {filename} ({source} → {target})",
            changes=[],
        )
    code, changes = body
    return DemoTranslation(
        code=header + code,
        summary=f"Demo migration from {source} to {target} for {filename}",
        changes=list(changes),
    )
