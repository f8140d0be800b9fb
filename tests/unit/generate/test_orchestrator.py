"""Tests for the generation orchestrator: retries, demos, aggregation and caching."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from codeshift.config import CodeshiftConfig
from codeshift.db.models import Chunk
from codeshift.db.vectors import ensure_vec_table
from codeshift.errors import GenerationTransient
from codeshift.generate.cache import TranslationCache
from codeshift.generate.orchestrator import (
    Orchestrator,
    display_name,
    is_eligible,
    migration_command,
    parse_command,
)

TYPED_ADD = "export function add(a: number, b: number): number {\n  return a + b;\n}"


# ---------------------------------------------------------------------------
# Fakes and helpers
# ---------------------------------------------------------------------------


class FakeLLM:
    """Answers from a script; an Exception entry is raised instead of returned."""

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.prompts: list[str] = []
        self.timeouts: list[float] = []

    async def generate(self, prompt: str, timeout: float) -> str:
        self.prompts.append(prompt)
        self.timeouts.append(timeout)
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


class FakeEmbedder:
    def __init__(self) -> None:
        self.queries: list[str] = []

    async def embed_query(self, text: str) -> list[float]:
        self.queries.append(text)
        return [1.0, 0.0]


def _json_answer(code: str, **extra) -> str:
    return "```json\n" + json.dumps({"migratedCode": code, **extra}) + "\n```"


def _chunk(path: str, content: str, start: int = 1, deps: list[str] | None = None) -> Chunk:
    return Chunk(
        file_path=path,
        file_name=path.rsplit("/", 1)[-1],
        file_extension="." + path.rsplit(".", 1)[-1],
        kind="function",
        name=f"c{start}",
        content=content,
        start_line=start,
        end_line=start + content.count("\n"),
        metadata=json.dumps({"dependencies": deps or []}),
        embedding=[1.0, 0.0],
    )


@pytest.fixture
def vec_table(tmp_db):
    return ensure_vec_table(tmp_db, "test_model", 2)


@pytest.fixture
def config():
    cfg = CodeshiftConfig()
    cfg.generation.retry_jitter = 0.0
    return cfg


@pytest.fixture
def sleep():
    with patch("codeshift.generate.orchestrator.asyncio.sleep", new_callable=AsyncMock) as mock:
        yield mock


def _store(repo, vec_table, session: str, chunks: list[Chunk]) -> None:
    job = repo.get_job_by_session(session) or repo.create_job(session, "u1")
    repo.put_chunks(chunks, job, vec_table)


def _session(repo, vec_table, session: str = "s1") -> None:
    _store(
        repo,
        vec_table,
        session,
        [
            _chunk("src/math.js", "const axios = require('axios');", 1, deps=["axios"]),
            _chunk("src/math.js", "function add(a, b) {\n  return a + b;\n}", 2),
            _chunk("README.md", "# Math helpers"),
            _chunk("styles.css", "body { margin: 0; }"),
        ],
    )


def _orchestrator(repo, llm, config, cache=None) -> Orchestrator:
    return Orchestrator(repo, FakeEmbedder(), llm, config, cache=cache)


def _translate(orchestrator: Orchestrator, session: str = "s1", **kwargs):
    kwargs.setdefault("source_lang", "javascript")
    kwargs.setdefault("target_lang", "typescript")
    return asyncio.run(orchestrator.translate(session, **kwargs))


# ---------------------------------------------------------------------------
# Command and eligibility helpers
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("command", "expected"),
    [
        ("Please convert this from Python 2 to Python 3.", ("Python 2", "Python 3")),
        ("migrate from C# to C++", ("C#", "C++")),
        ("Convert the following code from JavaScript to TypeScript.", ("JavaScript", "TypeScript")),
        ("translate this code", None),
    ],
)
def test_parse_command(command, expected):
    assert parse_command(command) == expected


def test_migration_command_uses_display_names():
    assert migration_command("js", "c#") == "Convert the following code from JavaScript to C#."
    assert display_name("cobol") == "Cobol"


@pytest.mark.parametrize(
    ("path", "source", "target", "expected"),
    [
        ("src/app.js", "javascript", "typescript", True),
        ("README.md", "javascript", "typescript", False),
        ("logo.png", "javascript", "typescript", False),
        ("src/app.ts", "javascript", "python", False),
        ("mapping.json", "elasticsearch", "postgresql", True),
        ("app.component.html", "angular", "react", True),
        ("index.html", "html", "react", True),
        ("main.cob", "cobol", "java", True),
    ],
)
def test_is_eligible(path, source, target, expected):
    assert is_eligible(path, source, target) is expected


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


def test_translate_success(repo, vec_table, config, sleep):
    _session(repo, vec_table)
    llm = FakeLLM(_json_answer(TYPED_ADD, summary="Typed add", changes=["Added types"]))

    result = _translate(_orchestrator(repo, llm, config))

    assert [f.filename for f in result.files] == ["src/math.js"]
    [file] = result.files
    assert file.migrated_filename == "src/math.ts"
    assert file.content == TYPED_ADD
    assert file.attempts == 1
    assert not file.is_demo
    assert result.summary == "Typed add"
    assert result.changes == ["Added types"]
    assert llm.timeouts == [60.0]
    assert "File: src/math.js" in llm.prompts[0]
    assert "README.md" not in llm.prompts[0]
    sleep.assert_not_awaited()

    payload = result.to_dict()
    assert payload["migratedCode"] == TYPED_ADD
    assert payload["isDemo"] is False
    assert payload["files"] == [
        {
            "filename": "src/math.js",
            "migratedFilename": "src/math.ts",
            "content": TYPED_ADD,
            "isDemo": False,
        }
    ]


def test_translate_pair_from_command(repo, vec_table, config, sleep):
    _session(repo, vec_table)
    llm = FakeLLM(_json_answer(TYPED_ADD))
    orchestrator = _orchestrator(repo, llm, config)
    command = "Convert from JavaScript to TypeScript and keep comments"

    result = asyncio.run(orchestrator.translate("s1", command))

    assert result.source_lang == "JavaScript"
    assert result.files[0].migrated_filename == "src/math.ts"
    assert orchestrator.retriever.embedder.queries == [command]
    assert "Additional instructions: " + command in llm.prompts[0]


def test_translate_requires_pair(repo, config):
    orchestrator = _orchestrator(repo, FakeLLM(), config)
    with pytest.raises(ValueError, match="Source and target languages are required"):
        asyncio.run(orchestrator.translate("s1", "make it better"))


def test_multi_file_answer_selects_matching_file(repo, vec_table, config, sleep):
    _session(repo, vec_table)
    answer = _json_answer(
        "// wrong file",
        files=[
            {"filename": "other.js", "migratedFilename": "other.ts", "content": "// other"},
            {"filename": "math.js", "migratedFilename": "math.ts", "content": TYPED_ADD},
        ],
    )
    result = _translate(_orchestrator(repo, FakeLLM(answer), config))
    assert result.files[0].content == TYPED_ADD


def test_ecosystem_advice_aggregated(repo, vec_table, config, sleep):
    _session(repo, vec_table)
    _store(repo, vec_table, "s1", [_chunk("src/server.js", "app.use(cors());", 1)])
    llm = FakeLLM("<?php\nfunction add($a, $b) { return $a + $b; }", "<?php\napp();")

    result = _translate(_orchestrator(repo, llm, config), source_lang="nodejs", target_lang="php")

    assert [f.migrated_filename for f in result.files] == ["src/math.php", "src/server.php"]
    assert result.summary == "Migrated 2 file(s) from Node.js to PHP"
    assert result.recommendations == [
        "Consider a framework such as Laravel or Symfony for the PHP side",
        "Use Guzzle HTTP instead of axios: Use the Guzzle HTTP client",
    ]
    assert result.warnings[0].startswith("Node.js event-driven architecture")
    assert any(w.startswith("middleware pattern requires") for w in result.warnings)


# ---------------------------------------------------------------------------
# Retries
# ---------------------------------------------------------------------------


def test_transient_failure_retried(repo, vec_table, config, sleep):
    _session(repo, vec_table)
    llm = FakeLLM(
        GenerationTransient("rate limited"),
        RuntimeError("model overloaded"),
        asyncio.TimeoutError(),
        _json_answer(TYPED_ADD),
    )

    result = _translate(_orchestrator(repo, llm, config))

    assert not result.is_demo
    assert result.files[0].attempts == 4
    assert llm.timeouts == [60.0, 30.0, 30.0, 30.0]
    assert [c.args[0] for c in sleep.await_args_list] == [5.0, 10.0, 15.0]


def test_transient_exhaustion_becomes_demo(repo, vec_table, config, sleep):
    _session(repo, vec_table)
    llm = FakeLLM(*[GenerationTransient("503 Service Unavailable") for _ in range(4)])

    result = _translate(_orchestrator(repo, llm, config))

    [file] = result.files
    assert file.is_demo
    assert file.attempts == 4
    assert file.migrated_filename == "src/math.ts"
    assert file.content.startswith("// Demo output: automatic migration of math.js")
    assert len(llm.prompts) == 4
    assert sleep.await_count == 3
    assert any("Gave up after 4 attempt(s)" in w for w in result.warnings)
    assert result.to_dict()["isDemo"] is True


@pytest.mark.parametrize(
    "error",
    [RuntimeError("You exceeded your current quota"), RuntimeError("invalid request: bad model")],
)
def test_fatal_failure_not_retried(repo, vec_table, config, sleep, error):
    _session(repo, vec_table)
    llm = FakeLLM(error)

    result = _translate(_orchestrator(repo, llm, config))

    assert result.is_demo
    assert len(llm.prompts) == 1
    sleep.assert_not_awaited()


def test_empty_answer_becomes_demo(repo, vec_table, config, sleep):
    _session(repo, vec_table)
    llm = FakeLLM("   ")
    result = _translate(_orchestrator(repo, llm, config))
    assert result.is_demo
    assert len(llm.prompts) == 1


def test_quality_rejection_becomes_demo(repo, vec_table, config, sleep):
    _session(repo, vec_table)
    llm = FakeLLM(_json_answer("export const add = () => React.createElement('span');"))

    result = _translate(_orchestrator(repo, llm, config))

    [file] = result.files
    assert file.is_demo
    assert file.attempts == 1
    assert "React.createElement" not in file.content
    assert any("Quality check failed" in w for w in result.warnings)


def test_one_failed_file_does_not_affect_others(repo, vec_table, config, sleep):
    _session(repo, vec_table)
    _store(repo, vec_table, "s1", [_chunk("src/util.js", "function twice(x) {\n  return 2 * x;\n}", 1)])
    llm = FakeLLM(_json_answer(TYPED_ADD), RuntimeError("insufficient credits"))

    result = _translate(_orchestrator(repo, llm, config))

    assert [(f.filename, f.is_demo) for f in result.files] == [
        ("src/math.js", False),
        ("src/util.js", True),
    ]
    assert result.migrated_code == TYPED_ADD
    assert result.is_demo
    assert result.summary == (
        "Migrated 2 file(s) from JavaScript to TypeScript (1 demo fallback(s))"
    )


# ---------------------------------------------------------------------------
# Sessions without usable code
# ---------------------------------------------------------------------------


def test_empty_session_returns_demo_result(repo, config, sleep):
    llm = FakeLLM()
    result = _translate(_orchestrator(repo, llm, config), session="nope")

    assert llm.prompts == []
    assert [f.filename for f in result.files] == ["example.js"]
    assert result.is_demo
    assert result.warnings[0].startswith("Session 'nope' has no stored chunks.")


def test_no_eligible_files_returns_demo_result(repo, vec_table, config, sleep):
    _store(repo, vec_table, "s2", [_chunk("README.md", "# docs")])
    llm = FakeLLM()

    result = _translate(_orchestrator(repo, llm, config), session="s2")

    assert llm.prompts == []
    assert result.is_demo
    assert result.warnings == [
        "No JavaScript files were found in session 's2'. Returned a demo translation."
    ]


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------


def test_cache_reuses_result_until_session_changes(repo, vec_table, config, sleep):
    _session(repo, vec_table)
    llm = FakeLLM(_json_answer(TYPED_ADD), _json_answer(TYPED_ADD), _json_answer("// util"))
    orchestrator = _orchestrator(repo, llm, config, cache=TranslationCache())

    first = _translate(orchestrator)
    second = _translate(orchestrator)
    assert second is first
    assert len(llm.prompts) == 1

    _store(repo, vec_table, "s1", [_chunk("src/util.js", "function twice(x) {}", 1)])
    third = _translate(orchestrator)
    assert third is not first
    assert len(llm.prompts) == 3


def test_concurrent_identical_requests_share_calls(repo, vec_table, config, sleep):
    _session(repo, vec_table)
    llm = FakeLLM(_json_answer(TYPED_ADD))
    orchestrator = _orchestrator(repo, llm, config, cache=TranslationCache())

    async def run():
        return await asyncio.gather(
            orchestrator.translate("s1", source_lang="javascript", target_lang="typescript"),
            orchestrator.translate("s1", source_lang="javascript", target_lang="typescript"),
        )

    first, second = asyncio.run(run())
    assert first is second
    assert len(llm.prompts) == 1
