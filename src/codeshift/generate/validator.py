"""Quality validator for generated code.

Every pair: the output must be non-empty and must not contain the recipe's
forbidden constructs (e.g. ``React.createElement`` for JSX-preserving
pairs). Analytics database pairs additionally need a minimum size and the
structural checklist below.
"""

from __future__ import annotations

import re

from codeshift.errors import QualityRejection
from codeshift.generate.recipes import Recipe, normalise_language

SEARCH_INDEX_LANGUAGES = frozenset({"elasticsearch", "opensearch", "solr"})
RELATIONAL_LANGUAGES = frozenset(
    {"postgresql", "mysql", "sqlite", "sql", "mssql", "oracle", "relational"}
)

# label → pattern; the labels are also listed in the analytics prompt.
ANALYTICS_CHECKS: dict[str, re.Pattern[str]] = {
    "dimension tables": re.compile(
        r"CREATE\s+TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?[\w.\"]*\bdim_\w+", re.IGNORECASE
    ),
    "fact tables": re.compile(
        r"CREATE\s+TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?[\w.\"]*\bfact_\w+", re.IGNORECASE
    ),
    "materialized views": re.compile(
        r"CREATE\s+(?:OR\s+REPLACE\s+)?MATERIALIZED\s+VIEW", re.IGNORECASE
    ),
    "functions": re.compile(r"CREATE\s+(?:OR\s+REPLACE\s+)?FUNCTION", re.IGNORECASE),
    "triggers": re.compile(
        r"CREATE\s+(?:OR\s+REPLACE\s+)?(?:CONSTRAINT\s+)?TRIGGER", re.IGNORECASE
    ),
    "indexes": re.compile(r"CREATE\s+(?:UNIQUE\s+)?INDEX", re.IGNORECASE),
    "partitioning": re.compile(r"PARTITION\s+BY", re.IGNORECASE),
}

_CREATE_TABLE_RE = re.compile(r"CREATE\s+TABLE", re.IGNORECASE)


def is_analytics_pair(source: str, target: str) -> bool:
    """True for search-index → relational migrations."""
    return (
        normalise_language(source) in SEARCH_INDEX_LANGUAGES
        and normalise_language(target) in RELATIONAL_LANGUAGES
    )


def analytics_failures(code: str, min_chars: int = 15_000) -> list[str]:
    """Return the analytics checks *code* fails (empty list = pass)."""
    failed: list[str] = []
    if len(code) < min_chars:
        failed.append(f"minimum size ({len(code)} < {min_chars} characters)")
    for label, pattern in ANALYTICS_CHECKS.items():
        if not pattern.search(code):
            failed.append(label)
    if len(_CREATE_TABLE_RE.findall(code)) < 2:
        failed.append("more than one table (single denormalized table)")
    return failed


def check_quality(
    code: str,
    recipe: Recipe | None = None,
    *,
    analytics: bool = False,
    min_chars: int = 15_000,
) -> None:
    """Validate *code* for the recipe in use.

    Args:
        code: Migrated code.
        recipe: Recipe chosen for the file; its ``forbidden`` substrings and
            ``analytics`` flag apply.
        analytics: Force the analytics checklist (pair-level detection).
        min_chars: Size floor for analytics output.

    Raises:
        QualityRejection: With the list of failed checks.
    """
    failed: list[str] = []
    if not code.strip():
        failed.append("non-empty output")
    if recipe is not None:
        failed.extend(f"must not contain {s}" for s in recipe.forbidden if s in code)
    if analytics or (recipe is not None and recipe.analytics):
        failed.extend(analytics_failures(code, min_chars))
    if failed:
        raise QualityRejection(
            f"Output failed {len(failed)} quality check(s): {', '.join(failed)}",
            failed_checks=failed,
        )
