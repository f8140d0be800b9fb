"""Tests for the background JobWorker."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from codeshift.config import CodeshiftConfig, WorkerCfg
from codeshift.db.models import JOB_FAILED, JOB_READY, FileDescriptor
from codeshift.db.vectors import ensure_vec_table
from codeshift.ingest.acquirer import SourceAcquirer
from codeshift.ingest.chunker import CodeChunker
from codeshift.ingest.embedder import EmbeddedText
from codeshift.ingest.worker import JobWorker, build_worker

DIMS = 4


class FakeFetcher:
    def __init__(self, bodies: dict[str, bytes]) -> None:
        self.bodies = bodies

    async def fetch(self, url: str) -> bytes:
        if url not in self.bodies:
            raise RuntimeError(f"404 for {url}")
        return self.bodies[url]


class FakeEmbedder:
    provider_id = "fake/embed"
    dimensions = DIMS

    def __init__(self, fallback: bool = False, on_embed=None) -> None:
        self.fallback = fallback
        self.on_embed = on_embed
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[EmbeddedText]:
        self.calls.append(texts)
        if self.on_embed is not None:
            self.on_embed()
        return [EmbeddedText([1.0, 0.0, 0.0, float(i)], self.fallback) for i in range(len(texts))]


BODIES = {
    "mem://app": b"function main() {\n  return 1;\n}\n",
    "mem://util": b"def helper():\n    return 2\n",
    "mem://readme": b"# Project\n",
}


@pytest.fixture
def vec_table(tmp_db):
    return ensure_vec_table(tmp_db, "fake_embed", DIMS)


def _worker(repo, vec_table, tmp_path: Path, embedder=None, bodies=BODIES) -> JobWorker:
    acquirer = SourceAcquirer(
        FakeFetcher(bodies), repo.list_job_files, tmp_path / "scratch", attempts=1
    )
    return JobWorker(
        repo,
        acquirer,
        CodeChunker(),
        embedder or FakeEmbedder(),
        WorkerCfg(progress_every=1),
        vec_table,
    )


def _files(*names: str) -> list[FileDescriptor]:
    urls = {"src/app.js": "mem://app", "lib/util.py": "mem://util", "README.md": "mem://readme"}
    return [FileDescriptor(name, urls[name]) for name in names]


def test_process_job_stores_chunks(repo, vec_table, tmp_path: Path) -> None:
    job = repo.create_job("s1", "u1", _files("src/app.js", "lib/util.py", "README.md"))
    worker = _worker(repo, vec_table, tmp_path)

    done = asyncio.run(worker.process_job(job))

    assert done.status == JOB_READY
    assert done.total_chunks == 2
    assert done.processed_files == 3
    assert done.total_files == 3
    chunks = repo.list_by_session("s1", vec_table=vec_table)
    assert [c.file_path for c in chunks] == ["lib/util.py", "src/app.js"]
    meta = chunks[0].metadata_dict
    assert meta["embedding_provider_id"] == "fake/embed"
    assert "fallback" not in meta
    assert worker.current == frozenset()
    assert list((tmp_path / "scratch").iterdir()) == []


def test_fallback_vectors_are_flagged(repo, vec_table, tmp_path: Path) -> None:
    job = repo.create_job("s1", "u1", _files("src/app.js"))
    worker = _worker(repo, vec_table, tmp_path, embedder=FakeEmbedder(fallback=True))
    asyncio.run(worker.process_job(job))
    [chunk] = repo.list_by_session("s1")
    assert chunk.metadata_dict["fallback"] is True


def test_job_without_code_files_is_ready_and_empty(repo, vec_table, tmp_path: Path) -> None:
    job = repo.create_job("s1", "u1", _files("README.md"))
    embedder = FakeEmbedder()
    done = asyncio.run(_worker(repo, vec_table, tmp_path, embedder=embedder).process_job(job))
    assert done.status == JOB_READY
    assert done.total_chunks == 0
    assert embedder.calls == []


def test_acquire_failure_fails_job(repo, vec_table, tmp_path: Path) -> None:
    job = repo.create_job("s1", "u1", _files("src/app.js"))
    worker = _worker(repo, vec_table, tmp_path, bodies={})

    done = asyncio.run(worker.process_job(job))

    assert done.status == JOB_FAILED
    assert done.error_detail == "AcquireError"
    assert not done.is_cancelled
    assert repo.count_by_job(job.id) == 0


def test_cancellation_during_embedding_stores_nothing(repo, vec_table, tmp_path: Path) -> None:
    job = repo.create_job("s1", "u1", _files("src/app.js"))
    embedder = FakeEmbedder(on_embed=lambda: repo.cancel_job(job.id))

    done = asyncio.run(_worker(repo, vec_table, tmp_path, embedder=embedder).process_job(job))

    assert done.is_cancelled
    assert repo.count_by_job(job.id) == 0
    assert list((tmp_path / "scratch").iterdir()) == []


def test_cancelled_before_start(repo, vec_table, tmp_path: Path) -> None:
    job = repo.create_job("s1", "u1", _files("src/app.js"))
    worker = _worker(repo, vec_table, tmp_path)
    repo.cancel_job(job.id)

    # A cancelled job cannot be claimed at all.
    assert asyncio.run(worker.process_job(job)) is None
    assert repo.get_job(job.id).is_cancelled


def test_lost_claim_returns_none(repo, vec_table, tmp_path: Path) -> None:
    job = repo.create_job("s1", "u1", _files("src/app.js"))
    repo.claim_job(job.id)
    assert asyncio.run(_worker(repo, vec_table, tmp_path).process_job(job)) is None


def test_run_once(repo, vec_table, tmp_path: Path) -> None:
    worker = _worker(repo, vec_table, tmp_path)
    assert asyncio.run(worker.run_once()) is False

    job = repo.create_job("s1", "u1", _files("src/app.js"))
    assert asyncio.run(worker.run_once()) is True
    assert repo.get_job(job.id).status == JOB_READY
    # Jobs with chunks are never claimable again.
    assert asyncio.run(worker.run_once()) is False


def test_run_exits_when_stopped(repo, vec_table, tmp_path: Path) -> None:
    worker = _worker(repo, vec_table, tmp_path)

    async def main() -> None:
        worker.stop()
        await asyncio.wait_for(worker.run(), timeout=5)

    asyncio.run(main())
    assert worker.stopped


def test_build_worker(tmp_db) -> None:
    config = CodeshiftConfig()
    config.embedding.dimensions = DIMS
    worker = build_worker(tmp_db, config)
    assert worker.vec_table == "vec_chunks_gemini_text_embedding_004"
    assert worker.chunker.small_file_lines == config.chunking.small_file_lines
    assert worker.embedder.provider_id == config.embedding.model
