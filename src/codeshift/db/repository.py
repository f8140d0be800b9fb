"""Repository for all codeshift database operations.

Single interface for: jobs, job files, code chunks and their vec embeddings.
Vec tables are model-managed (ensure_vec_table); the repository reads and
writes them but never creates them.
"""

from __future__ import annotations

import json
import sqlite3
import uuid

from codeshift.db.models import (
    CANCELLED_MESSAGE,
    JOB_FAILED,
    JOB_PENDING,
    JOB_PROCESSING,
    JOB_STATUSES,
    TERMINAL_STATUSES,
    Chunk,
    FileDescriptor,
    Job,
)
from codeshift.errors import JobStateError, StoreConflict, StoreError

_NOW = "strftime('%Y-%m-%d %H:%M:%f', 'now')"

# Processing jobs whose worker went silent for longer than the bound parameter (seconds).
_STALE = (
    "(processing_started_at IS NULL "
    "OR (julianday('now') - julianday(processing_started_at)) * 86400.0 > ?)"
)

# Status order for monotonic transitions; ready and failed share the top rank.
_RANK = {JOB_PENDING: 0, JOB_PROCESSING: 1, "ready": 2, JOB_FAILED: 2}

_JOB_COLUMNS = """
    id, session_id, user_id, status, total_files, processed_files, total_chunks,
    error_message, error_detail, created_at, updated_at,
    processing_started_at, processing_completed_at
"""

_CHUNK_COLUMNS = """
    c.rowid AS rowid, c.job_id, c.session_id, c.user_id, c.file_path, c.file_name,
    c.file_extension, c.kind, c.name, c.content, c.start_line, c.end_line,
    c.ast_node_type, c.metadata, c.created_at
"""


class Repository:
    """Data access layer for jobs and code chunks.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see codeshift.db.schema.initialize).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def create_job(
        self,
        session_id: str,
        user_id: str,
        files: list[FileDescriptor] | None = None,
        job_id: str | None = None,
    ) -> Job:
        """Insert a new pending job, optionally with its file descriptors.

        Args:
            session_id: Session the job belongs to (one job per session).
            user_id: Owning user.
            files: File descriptors to record with the job.
            job_id: Explicit id; a UUID4 is generated when omitted.

        Returns:
            The persisted Job.

        Raises:
            StoreError: If a job already exists for *session_id*.
        """
        job_id = job_id or str(uuid.uuid4())
        try:
            self._conn.execute(
                "INSERT INTO jobs (id, session_id, user_id, total_files) VALUES (?, ?, ?, ?)",
                (job_id, session_id, user_id, len(files or [])),
            )
            self._conn.commit()
        except sqlite3.IntegrityError as exc:
            self._conn.rollback()
            raise StoreError(f"Job for session '{session_id}' already exists.") from exc
        if files:
            self.add_job_files(job_id, files)
        job = self.get_job(job_id)
        assert job is not None
        return job

    def get_job(self, job_id: str) -> Job | None:
        """Return a job by id, or None if not found."""
        row = self._conn.execute(
            f"SELECT {_JOB_COLUMNS} FROM jobs WHERE id = ?", (job_id,)
        ).fetchone()
        return _row_to_job(row) if row else None

    def get_job_by_session(self, session_id: str) -> Job | None:
        """Return the job for *session_id*, or None if not found."""
        row = self._conn.execute(
            f"SELECT {_JOB_COLUMNS} FROM jobs WHERE session_id = ?", (session_id,)
        ).fetchone()
        return _row_to_job(row) if row else None

    def list_jobs(self, status: str | None = None) -> list[Job]:
        """Return jobs ordered by creation time (oldest first).

        Args:
            status: Only return jobs in this status when given.
        """
        if status is None:
            rows = self._conn.execute(
                f"SELECT {_JOB_COLUMNS} FROM jobs ORDER BY created_at, rowid"
            ).fetchall()
        else:
            rows = self._conn.execute(
                f"SELECT {_JOB_COLUMNS} FROM jobs WHERE status = ? ORDER BY created_at, rowid",
                (status,),
            ).fetchall()
        return [_row_to_job(r) for r in rows]

    def add_job_files(self, job_id: str, files: list[FileDescriptor]) -> None:
        """Record file descriptors for *job_id* and refresh its total_files."""
        self._conn.executemany(
            """
            INSERT INTO job_files (job_id, relative_path, fetch_url) VALUES (?, ?, ?)
            ON CONFLICT(job_id, relative_path) DO UPDATE SET fetch_url = excluded.fetch_url
            """,
            [(job_id, f.relative_path, f.fetch_url) for f in files],
        )
        self._conn.execute(
            f"""
            UPDATE jobs SET
                total_files = (SELECT COUNT(*) FROM job_files WHERE job_id = ?),
                updated_at = {_NOW}
            WHERE id = ?
            """,
            (job_id, job_id),
        )
        self._conn.commit()

    def list_job_files(self, job_id: str) -> list[FileDescriptor]:
        """Return the file descriptors of *job_id* in insertion order."""
        rows = self._conn.execute(
            "SELECT relative_path, fetch_url FROM job_files WHERE job_id = ? ORDER BY rowid",
            (job_id,),
        ).fetchall()
        return [FileDescriptor(r["relative_path"], r["fetch_url"]) for r in rows]

    def next_claimable_job(
        self, exclude: set[str] | frozenset[str] = frozenset(), reclaim_after: float = 1800
    ) -> Job | None:
        """Return the oldest job a worker may claim, or None.

        A job is claimable when it has no chunks yet and is either pending or
        has been processing for longer than *reclaim_after* seconds (its worker
        presumably died). Ids in *exclude* are skipped.
        """
        rows = self._conn.execute(
            f"""
            SELECT {_JOB_COLUMNS} FROM jobs
            WHERE total_chunks = 0
              AND (status = 'pending' OR (status = 'processing' AND {_STALE}))
            ORDER BY created_at, rowid
            """,
            (reclaim_after,),
        ).fetchall()
        for row in rows:
            if row["id"] not in exclude:
                return _row_to_job(row)
        return None

    def claim_job(self, job_id: str, reclaim_after: float = 1800) -> bool:
        """Atomically move *job_id* to processing.

        Returns:
            True if this caller won the claim; False if another worker holds it
            or the job is terminal or missing.
        """
        cur = self._conn.execute(
            f"""
            UPDATE jobs SET
                status = 'processing',
                processing_started_at = {_NOW},
                updated_at = {_NOW}
            WHERE id = ?
              AND (status = 'pending' OR (status = 'processing' AND {_STALE}))
            """,
            (job_id, reclaim_after),
        )
        self._conn.commit()
        return cur.rowcount == 1

    def update_status(
        self,
        job_id: str,
        status: str,
        error: str | None = None,
        error_detail: str | None = None,
    ) -> Job:
        """Move *job_id* to *status*.

        Transitions are monotonic (pending → processing → ready | failed) and
        terminal jobs reject every further write.

        Raises:
            ValueError: If *status* is not a known job status.
            JobStateError: If the job is missing, terminal, or the transition
                would move backwards.
        """
        if status not in JOB_STATUSES:
            raise ValueError(f"Unknown job status '{status}'.")
        job = self.get_job(job_id)
        if job is None:
            raise JobStateError(f"Job '{job_id}' does not exist.")
        if job.is_terminal:
            raise JobStateError(f"Job '{job_id}' is already {job.status}.")
        if _RANK[status] < _RANK[job.status]:
            raise JobStateError(
                f"Job '{job_id}' cannot move from {job.status} to {status}."
            )

        completed = _NOW if status in TERMINAL_STATUSES else "processing_completed_at"
        started = (
            f"COALESCE(processing_started_at, {_NOW})"
            if status == JOB_PROCESSING
            else "processing_started_at"
        )
        cur = self._conn.execute(
            f"""
            UPDATE jobs SET
                status = ?,
                error_message = COALESCE(?, error_message),
                error_detail = COALESCE(?, error_detail),
                processing_started_at = {started},
                processing_completed_at = {completed},
                updated_at = {_NOW}
            WHERE id = ? AND status NOT IN ('ready', 'failed')
            """,
            (status, error, error_detail, job_id),
        )
        self._conn.commit()
        if cur.rowcount != 1:
            # Lost a race with a concurrent terminal write (e.g. a cancel).
            raise JobStateError(f"Job '{job_id}' became terminal during the update.")
        updated = self.get_job(job_id)
        assert updated is not None
        return updated

    def update_progress(
        self,
        job_id: str,
        processed_files: int,
        total_chunks: int | None = None,
        total_files: int | None = None,
    ) -> None:
        """Record worker progress for a non-terminal job.

        Raises:
            JobStateError: If the job is terminal (e.g. cancelled) or missing.
        """
        cur = self._conn.execute(
            f"""
            UPDATE jobs SET
                processed_files = ?,
                total_chunks = COALESCE(?, total_chunks),
                total_files = COALESCE(?, total_files),
                updated_at = {_NOW}
            WHERE id = ? AND status NOT IN ('ready', 'failed')
            """,
            (processed_files, total_chunks, total_files, job_id),
        )
        self._conn.commit()
        if cur.rowcount != 1:
            raise JobStateError(f"Job '{job_id}' is terminal or missing.")

    def cancel_job(self, job_id: str) -> bool:
        """Signal cancellation: mark a non-terminal job failed with 'cancelled'.

        Returns:
            True if the job was cancelled; False if it was already terminal
            or does not exist.
        """
        cur = self._conn.execute(
            f"""
            UPDATE jobs SET
                status = 'failed',
                error_message = ?,
                processing_completed_at = {_NOW},
                updated_at = {_NOW}
            WHERE id = ? AND status NOT IN ('ready', 'failed')
            """,
            (CANCELLED_MESSAGE, job_id),
        )
        self._conn.commit()
        return cur.rowcount == 1

    def delete_job(self, job_id: str, vec_table: str | None = None) -> None:
        """Delete a job with its files, chunks and (if given) their embeddings."""
        self.delete_by_job(job_id, vec_table)
        self._conn.execute("DELETE FROM jobs WHERE id = ?", (job_id,))
        self._conn.commit()

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def insert_chunk(self, chunk: Chunk, job: Job, vec_table: str) -> int:
        """Insert one chunk and its embedding atomically.

        Returns:
            The new chunk rowid.

        Raises:
            StoreConflict: If a chunk with the same key already exists for the job.
            StoreError: If the chunk has no embedding or the write fails.
        """
        if chunk.embedding is None:
            raise StoreError(
                f"Chunk {chunk.file_path}:{chunk.start_line}-{chunk.end_line} has no embedding."
            )
        try:
            cur = self._conn.execute(
                """
                INSERT INTO chunks (
                    job_id, session_id, user_id, file_path, file_name, file_extension,
                    kind, name, content, start_line, end_line, ast_node_type, metadata
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(job_id, file_path, start_line, end_line, kind, name) DO NOTHING
                """,
                (
                    job.id,
                    job.session_id,
                    job.user_id,
                    chunk.file_path,
                    chunk.file_name,
                    chunk.file_extension,
                    chunk.kind,
                    chunk.name,
                    chunk.content,
                    chunk.start_line,
                    chunk.end_line,
                    chunk.ast_node_type,
                    chunk.metadata,
                ),
            )
            if cur.rowcount == 0:
                self._conn.rollback()
                raise StoreConflict(
                    f"Chunk {chunk.file_path}:{chunk.start_line}-{chunk.end_line} "
                    f"({chunk.kind} {chunk.name}) already stored for job {job.id}."
                )
            rowid = cur.lastrowid
            # Row and vector commit together so readers never see a chunk without one.
            self._conn.execute(
                f"INSERT INTO {vec_table}(rowid, embedding) VALUES (?, ?)",
                (rowid, json.dumps(chunk.embedding)),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise StoreError(f"Failed to store chunk for {chunk.file_path}: {exc}") from exc
        chunk.rowid = rowid
        chunk.job_id, chunk.session_id, chunk.user_id = job.id, job.session_id, job.user_id
        return rowid

    def put_chunks(self, chunks: list[Chunk], job: Job, vec_table: str) -> int:
        """Idempotently persist *chunks* for *job*.

        Duplicate keys are skipped. Returns the number of chunks inserted.
        """
        inserted = 0
        for chunk in chunks:
            try:
                self.insert_chunk(chunk, job, vec_table)
            except StoreConflict:
                continue
            inserted += 1
        return inserted

    def list_by_session(
        self,
        session_id: str,
        user_id: str | None = None,
        vec_table: str | None = None,
    ) -> list[Chunk]:
        """Return a session's chunks ordered by file path then start line.

        Args:
            session_id: Primary filter.
            user_id: Secondary filter, applied when given.
            vec_table: When given, each chunk's ``embedding`` is attached.
        """
        params: list[object] = [session_id]
        where = "c.session_id = ?"
        if user_id is not None:
            where += " AND c.user_id = ?"
            params.append(user_id)

        if vec_table:
            sql = f"""
                SELECT {_CHUNK_COLUMNS},
                    CASE WHEN v.rowid IS NULL THEN NULL
                         ELSE vec_to_json(v.embedding) END AS embedding
                FROM chunks c LEFT JOIN {vec_table} v ON v.rowid = c.rowid
                WHERE {where}
                ORDER BY c.file_path, c.start_line, c.rowid
            """
        else:
            sql = f"""
                SELECT {_CHUNK_COLUMNS}, NULL AS embedding
                FROM chunks c
                WHERE {where}
                ORDER BY c.file_path, c.start_line, c.rowid
            """
        return [_row_to_chunk(r) for r in self._conn.execute(sql, params).fetchall()]

    def count_by_job(self, job_id: str) -> int:
        """Return the number of chunks stored for *job_id*."""
        return self._conn.execute(
            "SELECT COUNT(*) FROM chunks WHERE job_id = ?", (job_id,)
        ).fetchone()[0]

    def delete_by_job(self, job_id: str, vec_table: str | None = None) -> int:
        """Delete every chunk of *job_id* and its embeddings.

        When *vec_table* is None, embeddings are removed from every
        ``vec_chunks_*`` table. Returns the number of chunks deleted.
        """
        rowids = [
            r[0]
            for r in self._conn.execute(
                "SELECT rowid FROM chunks WHERE job_id = ?", (job_id,)
            ).fetchall()
        ]
        if rowids:
            tables = [vec_table] if vec_table else self._vec_tables()
            placeholders = ",".join("?" * len(rowids))
            for table in tables:
                self._conn.execute(
                    f"DELETE FROM [{table}] WHERE rowid IN ({placeholders})",  # noqa: S608
                    rowids,
                )
        cur = self._conn.execute("DELETE FROM chunks WHERE job_id = ?", (job_id,))
        self._conn.commit()
        return cur.rowcount

    def session_revision(self, session_id: str) -> tuple[int, int]:
        """Return (chunk count, max chunk rowid) for *session_id*.

        Changes whenever chunks are added to or removed from the session.
        """
        row = self._conn.execute(
            "SELECT COUNT(*), COALESCE(MAX(rowid), 0) FROM chunks WHERE session_id = ?",
            (session_id,),
        ).fetchone()
        return int(row[0]), int(row[1])

    def purge_cancelled_jobs(self, vec_table: str | None = None) -> int:
        """Delete the chunks of every cancelled job. Returns chunks deleted."""
        job_ids = [
            r[0]
            for r in self._conn.execute(
                "SELECT id FROM jobs WHERE status = 'failed' AND error_message = ?",
                (CANCELLED_MESSAGE,),
            ).fetchall()
        ]
        return sum(self.delete_by_job(job_id, vec_table) for job_id in job_ids)

    def _vec_tables(self) -> list[str]:
        return [
            r[0]
            for r in self._conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' "
                # vec0 shadow tables share the prefix but are plain tables.
                "AND name LIKE 'vec_chunks_%' AND sql LIKE 'CREATE VIRTUAL TABLE%'"
            ).fetchall()
        ]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_job(row: sqlite3.Row) -> Job:
    return Job(
        id=row["id"],
        session_id=row["session_id"],
        user_id=row["user_id"],
        status=row["status"],
        total_files=row["total_files"],
        processed_files=row["processed_files"],
        total_chunks=row["total_chunks"],
        error_message=row["error_message"],
        error_detail=row["error_detail"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        processing_started_at=row["processing_started_at"],
        processing_completed_at=row["processing_completed_at"],
    )


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    embedding = row["embedding"]
    return Chunk(
        rowid=row["rowid"],
        job_id=row["job_id"],
        session_id=row["session_id"],
        user_id=row["user_id"],
        file_path=row["file_path"],
        file_name=row["file_name"],
        file_extension=row["file_extension"],
        kind=row["kind"],
        name=row["name"],
        content=row["content"],
        start_line=row["start_line"],
        end_line=row["end_line"],
        ast_node_type=row["ast_node_type"],
        metadata=row["metadata"],
        created_at=row["created_at"],
        embedding=json.loads(embedding) if embedding else None,
    )
