"""Background worker: claims pending jobs and turns archives into stored chunks.

One job at a time per worker. Several workers may share a database; the
atomic ``claim_job`` update plus the in-memory ``current`` set keep a job
from being processed twice. Cancellation is an external status write that
the worker notices between files and between phases.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sqlite3
from pathlib import Path

from codeshift.config import CodeshiftConfig, WorkerCfg
from codeshift.db.connection import Database
from codeshift.db.models import JOB_FAILED, JOB_READY, Chunk, Job
from codeshift.db.repository import Repository
from codeshift.db.schema import initialize
from codeshift.db.vectors import ensure_vec_table, model_to_slug
from codeshift.errors import JobCancelled, JobStateError
from codeshift.ingest.acquirer import SourceAcquirer, iter_files
from codeshift.ingest.chunker import CodeChunker, is_code_file
from codeshift.ingest.embedder import Embedder
from codeshift.ingest.fetcher import UrlFetcher
from codeshift.ingest.metadata import mark_embedding

logger = logging.getLogger(__name__)


class JobWorker:
    """Cooperative poll loop over the Job store.

    Args:
        repo: Job and Chunk store.
        acquirer: Materializes a job's files into a scratch tree.
        chunker: Splits one file into chunks.
        embedder: Embeds chunk contents.
        config: Worker section of the codeshift config.
        vec_table: sqlite-vec table receiving the embeddings.
    """

    def __init__(
        self,
        repo: Repository,
        acquirer: SourceAcquirer,
        chunker: CodeChunker,
        embedder: Embedder,
        config: WorkerCfg | None = None,
        vec_table: str = "",
    ) -> None:
        self.repo = repo
        self.acquirer = acquirer
        self.chunker = chunker
        self.embedder = embedder
        self.config = config or WorkerCfg()
        self.vec_table = vec_table
        self._current: set[str] = set()
        self._stop = asyncio.Event()

    @property
    def current(self) -> frozenset[str]:
        """Job ids this worker is processing right now."""
        return frozenset(self._current)

    def stop(self) -> None:
        """Ask run() to exit after the job in progress (if any)."""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    # ------------------------------------------------------------------
    # Poll loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Poll for claimable jobs until stop() is called."""
        logger.info("Worker started (poll every %.1fs)", self.config.poll_interval)
        while not self._stop.is_set():
            try:
                handled = await self.run_once()
            except Exception:  # the loop survives any single poll failure
                logger.exception(
                    "Worker loop error; backing off %.1fs", self.config.error_backoff
                )
                await self._idle(self.config.error_backoff)
                continue
            if not handled:
                await self._idle(self.config.poll_interval)
        logger.info("Worker stopped")

    async def run_once(self) -> bool:
        """Process the oldest claimable job. Returns False when there was none."""
        job = self.repo.next_claimable_job(
            exclude=self._current, reclaim_after=self.config.reclaim_after
        )
        if job is None:
            return False
        await self.process_job(job)
        return True

    async def _idle(self, seconds: float) -> None:
        # Wakes early when stop() is called.
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    # ------------------------------------------------------------------
    # One job
    # ------------------------------------------------------------------

    async def process_job(self, job: Job) -> Job | None:
        """Claim *job* and run acquire → chunk → embed → persist.

        Returns:
            The job as stored afterwards, or None if the claim was lost.
        """
        if job.id in self._current:
            return None
        if not self.repo.claim_job(job.id, reclaim_after=self.config.reclaim_after):
            logger.info("Job %s was claimed elsewhere; skipping", job.id)
            return None

        self._current.add(job.id)
        logger.info("Claimed job %s (session %s)", job.id, job.session_id)
        try:
            total = await self._ingest(job)
            self._finish(job, total)
        except JobCancelled:
            logger.info("Job %s cancelled; scratch released", job.id)
        except Exception as exc:  # any other failure ends the job, never the worker
            logger.error("Job %s failed: %s", job.id, exc, exc_info=True)
            self._fail(job, exc)
        finally:
            self._current.discard(job.id)
        return self.repo.get_job(job.id)

    async def _ingest(self, job: Job) -> int:
        self._check_cancelled(job)
        async with self.acquirer.scratch(job) as root:
            self._check_cancelled(job)
            chunks = await self._chunk_tree(job, root)

            self._check_cancelled(job)
            await self._embed(chunks)

            self._check_cancelled(job)
            inserted = self.repo.put_chunks(chunks, job, self.vec_table)
            logger.info(
                "Job %s: stored %d chunk(s) (%d already present)",
                job.id,
                inserted,
                len(chunks) - inserted,
            )
        return self.repo.count_by_job(job.id)

    async def _chunk_tree(self, job: Job, root: Path) -> list[Chunk]:
        files = list(iter_files(root))
        self._progress(job, 0, total_files=len(files))

        chunks: list[Chunk] = []
        every = max(1, self.config.progress_every)
        for index, (path, relative) in enumerate(files, start=1):
            self._check_cancelled(job)
            if is_code_file(relative):
                try:
                    chunks.extend(
                        await asyncio.to_thread(self.chunker.chunk_file, path, relative)
                    )
                except OSError as exc:
                    logger.warning("Job %s: cannot read %s: %s", job.id, relative, exc)
            else:
                logger.debug("Job %s: %s is not a code file", job.id, relative)
            if index % every == 0:
                self._progress(job, index)

        self._progress(job, len(files))
        logger.info("Job %s: %d file(s) → %d chunk(s)", job.id, len(files), len(chunks))
        return chunks

    async def _embed(self, chunks: list[Chunk]) -> None:
        if not chunks:
            return
        results = await self.embedder.embed([c.content for c in chunks])
        fallbacks = 0
        for chunk, result in zip(chunks, results):
            chunk.embedding = result.vector
            mark_embedding(chunk, self.embedder.provider_id, result.fallback)
            fallbacks += result.fallback
        if fallbacks:
            logger.warning("%d of %d chunk(s) use fallback vectors", fallbacks, len(chunks))

    # ------------------------------------------------------------------
    # Status writes
    # ------------------------------------------------------------------

    def _check_cancelled(self, job: Job) -> None:
        current = self.repo.get_job(job.id)
        if current is None or current.is_cancelled:
            raise JobCancelled(f"Job {job.id} was cancelled.")

    def _progress(self, job: Job, processed: int, total_files: int | None = None) -> None:
        try:
            self.repo.update_progress(job.id, processed, total_files=total_files)
        except JobStateError:
            self._check_cancelled(job)
            raise

    def _finish(self, job: Job, total_chunks: int) -> None:
        try:
            self.repo.update_progress(
                job.id, self._processed(job), total_chunks=total_chunks
            )
            self.repo.update_status(job.id, JOB_READY)
        except JobStateError:
            self._check_cancelled(job)
            raise
        logger.info("Job %s ready with %d chunk(s)", job.id, total_chunks)

    def _processed(self, job: Job) -> int:
        current = self.repo.get_job(job.id)
        return current.processed_files if current else 0

    def _fail(self, job: Job, exc: Exception) -> None:
        try:
            self.repo.update_status(
                job.id,
                JOB_FAILED,
                error=str(exc) or type(exc).__name__,
                error_detail=type(exc).__name__,
            )
        except JobStateError as state_exc:
            logger.warning("Could not mark job %s failed: %s", job.id, state_exc)


# ------------------------------------------------------------------
# Wiring
# ------------------------------------------------------------------


def build_worker(conn: sqlite3.Connection, config: CodeshiftConfig) -> JobWorker:
    """Wire a JobWorker and its collaborators from *config* over *conn*."""
    initialize(conn)
    vec_table = ensure_vec_table(
        conn, model_to_slug(config.embedding.model), config.embedding.dimensions
    )
    repo = Repository(conn)
    acquirer = SourceAcquirer(
        UrlFetcher(timeout=config.worker.fetch_timeout),
        repo.list_job_files,
        scratch_base=config.worker.scratch_dir,
        attempts=config.worker.metadata_attempts,
        delay=config.worker.metadata_delay,
    )
    return JobWorker(
        repo,
        acquirer,
        CodeChunker(small_file_lines=config.chunking.small_file_lines),
        Embedder(config.embedding),
        config.worker,
        vec_table,
    )


async def _serve(config: CodeshiftConfig) -> None:
    conn = Database(config.db_path).connect()
    worker = build_worker(conn, config)
    loop = asyncio.get_running_loop()
    signals = (signal.SIGINT, signal.SIGTERM)
    for sig in signals:
        loop.add_signal_handler(sig, worker.stop)
    try:
        await worker.run()
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)
        conn.close()


def run_worker(config: CodeshiftConfig) -> None:
    """Run the background worker until SIGINT or SIGTERM."""
    asyncio.run(_serve(config))
