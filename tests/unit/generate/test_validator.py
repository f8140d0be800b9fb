"""Tests for the generated-code quality validator."""

from __future__ import annotations

import pytest

from codeshift.errors import QualityRejection
from codeshift.generate.recipes import REGISTRY
from codeshift.generate.validator import (
    ANALYTICS_CHECKS,
    analytics_failures,
    check_quality,
    is_analytics_pair,
)

WAREHOUSE_SQL = """\
CREATE TABLE IF NOT EXISTS analytics.dim_user (id BIGINT PRIMARY KEY);
CREATE TABLE fact_sales (id BIGINT, ts TIMESTAMPTZ) PARTITION BY RANGE (ts);
CREATE MATERIALIZED VIEW daily_sales AS SELECT date_trunc('day', ts) AS day FROM fact_sales;
CREATE OR REPLACE FUNCTION touch() RETURNS trigger AS $$ BEGIN RETURN NEW; END $$ LANGUAGE plpgsql;
CREATE TRIGGER sales_touch AFTER INSERT ON fact_sales FOR EACH ROW EXECUTE FUNCTION touch();
CREATE INDEX idx_sales_ts ON fact_sales (ts);
"""


def test_plain_code_passes():
    assert check_quality("const a = 1;") is None


def test_empty_output_rejected():
    with pytest.raises(QualityRejection) as excinfo:
        check_quality("   \n")
    assert excinfo.value.failed_checks == ["non-empty output"]
    assert excinfo.value.kind == "invalid"


def test_forbidden_construct_rejected():
    recipe = REGISTRY.get("jsx-component-to-tsx")
    code = "export const App = () => React.createElement('div', null, 'hi');"
    with pytest.raises(QualityRejection) as excinfo:
        check_quality(code, recipe)
    assert excinfo.value.failed_checks == ["must not contain React.createElement"]


def test_forbidden_construct_ignored_without_recipe():
    check_quality("React.createElement('div')")


# ---------------------------------------------------------------------------
# Analytics pairs
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("source", "target", "expected"),
    [
        ("Elasticsearch", "PostgreSQL", True),
        ("es", "pg", True),
        ("opensearch", "mysql", True),
        ("elasticsearch", "mongodb", False),
        ("postgresql", "elasticsearch", False),
    ],
)
def test_is_analytics_pair(source, target, expected):
    assert is_analytics_pair(source, target) is expected


def test_warehouse_schema_passes_checklist():
    assert analytics_failures(WAREHOUSE_SQL, min_chars=10) == []


def test_warehouse_schema_below_size_floor():
    failures = analytics_failures(WAREHOUSE_SQL)
    assert len(failures) == 1
    assert failures[0].startswith("minimum size (")


def test_single_table_fails_every_check():
    failures = analytics_failures("CREATE TABLE docs (body TEXT);", min_chars=10)
    assert failures == [*ANALYTICS_CHECKS, "more than one table (single denormalized table)"]


def test_check_quality_analytics_flag():
    with pytest.raises(QualityRejection) as excinfo:
        check_quality("SELECT 1;", analytics=True, min_chars=5)
    assert "indexes" in excinfo.value.failed_checks
    assert "partitioning" in excinfo.value.failed_checks


def test_check_quality_analytics_recipe():
    recipe = REGISTRY.get("elasticsearch-to-relational-analytics")
    check_quality(WAREHOUSE_SQL, recipe, min_chars=10)
    with pytest.raises(QualityRejection):
        check_quality(WAREHOUSE_SQL, recipe, min_chars=100_000)
