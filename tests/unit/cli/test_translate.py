"""Tests for codeshift translate."""

from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from codeshift.cli.common import open_db, vec_table_for
from codeshift.cli.main import app
from codeshift.db.models import Chunk
from codeshift.db.repository import Repository

runner = CliRunner()

TYPED_ADD = "export function add(a: number, b: number): number {\n  return a + b;\n}"
ANSWER = "```json\n" + json.dumps({"migratedCode": TYPED_ADD, "summary": "Typed add"}) + "\n```"
PAIR = ["--from", "javascript", "--to", "typescript"]


# ---------------------------------------------------------------------------
# Fakes and helpers
# ---------------------------------------------------------------------------


class FakeLLM:
    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.prompts: list[str] = []

    async def generate(self, prompt: str, timeout: float) -> str:
        self.prompts.append(prompt)
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


class FakeEmbedder:
    async def embed_query(self, text: str) -> list[float]:
        return [1.0, 0.0, 0.0, 0.0]


@contextmanager
def _providers(llm: FakeLLM):
    with (
        patch("codeshift.cli.translate.validate_api_key"),
        patch("codeshift.cli.translate.Embedder", return_value=FakeEmbedder()),
        patch("codeshift.cli.translate.LiteLLMClient", return_value=llm),
    ):
        yield


def _chunk(path: str, content: str) -> Chunk:
    return Chunk(
        file_path=path,
        file_name=path.rsplit("/", 1)[-1],
        file_extension="." + path.rsplit(".", 1)[-1],
        kind="function",
        name="add",
        content=content,
        start_line=1,
        end_line=content.count("\n") + 1,
        embedding=[1.0, 0.0, 0.0, 0.0],
    )


@pytest.fixture
def session(project: Path, project_config) -> str:
    conn = open_db(project / ".codeshift.db")
    try:
        repo = Repository(conn)
        job = repo.create_job("demo", "local")
        repo.put_chunks(
            [_chunk("src/math.js", "function add(a, b) {\n  return a + b;\n}")],
            job,
            vec_table_for(conn, project_config),
        )
    finally:
        conn.close()
    return "demo"


def _translate(*args: str):
    return runner.invoke(app, ["translate", "--session", "demo", *args])


# ---------------------------------------------------------------------------
# Argument and environment errors
# ---------------------------------------------------------------------------


def test_translate_requires_pair(project) -> None:
    result = _translate("--command", "make it nicer")
    assert result.exit_code == 1
    assert "Source and target languages are required" in result.output


def test_translate_without_db(project) -> None:
    result = _translate(*PAIR)
    assert result.exit_code == 1
    assert "No database found" in result.output


def test_translate_without_api_key(project, session) -> None:
    with patch(
        "codeshift.cli.translate.validate_api_key",
        side_effect=EnvironmentError("GEMINI_API_KEY is not set"),
    ):
        result = _translate(*PAIR)
    assert result.exit_code == 1
    assert "No API key for 'gemini'" in result.output


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


def test_translate_table(project, session) -> None:
    llm = FakeLLM(ANSWER)
    with _providers(llm):
        result = _translate(*PAIR)

    assert result.exit_code == 0, result.output
    assert "src/math.ts" in result.output
    assert "Summary: Typed add" in result.output
    assert len(llm.prompts) == 1


def test_translate_json(project, session) -> None:
    with _providers(FakeLLM(ANSWER)):
        result = _translate(*PAIR, "--json")

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["migratedCode"] == TYPED_ADD
    assert data["isDemo"] is False
    assert data["files"][0]["migratedFilename"] == "src/math.ts"


def test_translate_pair_from_command(project, session) -> None:
    llm = FakeLLM(ANSWER)
    with _providers(llm):
        result = _translate("--command", "Convert from JavaScript to TypeScript", "--json")

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["files"][0]["migratedFilename"] == "src/math.ts"


def test_translate_failure_writes_demo(project, session) -> None:
    out = project / "out"
    with _providers(FakeLLM(RuntimeError("You exceeded your current quota"))):
        result = _translate(*PAIR, "--output", str(out))

    assert result.exit_code == 0, result.output
    written = (out / "src" / "math.ts").read_text(encoding="utf-8")
    assert written.startswith("// Demo output")


# ---------------------------------------------------------------------------
# --output
# ---------------------------------------------------------------------------


def test_translate_writes_output(project, session) -> None:
    out = project / "out"
    with _providers(FakeLLM(ANSWER)):
        result = _translate(*PAIR, "--output", str(out))

    assert result.exit_code == 0, result.output
    assert (out / "src" / "math.ts").read_text(encoding="utf-8") == TYPED_ADD
    assert "Wrote 1 file(s)" in result.output


def test_translate_output_overwrite_protection(project, session) -> None:
    out = project / "out"
    target = out / "src" / "math.ts"
    target.parent.mkdir(parents=True)
    target.write_text("keep me", encoding="utf-8")

    with _providers(FakeLLM(ANSWER)):
        refused = _translate(*PAIR, "--output", str(out))
    assert refused.exit_code == 1
    assert "--force" in refused.output
    assert target.read_text(encoding="utf-8") == "keep me"

    with _providers(FakeLLM(ANSWER)):
        forced = _translate(*PAIR, "--output", str(out), "--force")
    assert forced.exit_code == 0, forced.output
    assert target.read_text(encoding="utf-8") == TYPED_ADD


def test_translate_output_blocks_traversal(project, project_config) -> None:
    conn = open_db(project / ".codeshift.db")
    try:
        repo = Repository(conn)
        job = repo.create_job("demo", "local")
        repo.put_chunks(
            [_chunk("../evil.js", "function add(a, b) {}")], job, vec_table_for(conn, project_config)
        )
    finally:
        conn.close()

    out = project / "out"
    with _providers(FakeLLM(ANSWER)):
        result = _translate(*PAIR, "--output", str(out))

    assert result.exit_code == 1
    assert "traversal" in result.output
    assert not (project / "evil.ts").exists()
