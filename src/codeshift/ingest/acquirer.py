"""Source Acquirer — materializes a job's archive into a private scratch tree.

Security requirements:
- Scratch roots are created with mode 0o700 and removed on every exit path
  (success, failure, cancellation).
- Archive paths are normalised to POSIX form; absolute paths and paths that
  escape the scratch root are rejected per file.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import posixpath
import shutil
import tempfile
from collections.abc import AsyncIterator, Callable, Iterator
from pathlib import Path
from typing import Protocol

from codeshift.db.models import FileDescriptor, Job
from codeshift.errors import AcquireError
from codeshift.ingest.fetcher import sanitise_url

logger = logging.getLogger(__name__)

# Binary or static assets never worth fetching for chunking.
BINARY_EXTENSIONS: frozenset[str] = frozenset(
    [
        # images
        ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".tiff", ".psd",
        # fonts
        ".woff", ".woff2", ".ttf", ".otf", ".eot",
        # audio / video
        ".mp3", ".wav", ".ogg", ".flac", ".mp4", ".avi", ".mov", ".mkv", ".webm",
        # archives
        ".zip", ".tar", ".gz", ".tgz", ".bz2", ".xz", ".7z", ".rar", ".jar", ".war",
        # executables / compiled
        ".exe", ".dll", ".so", ".dylib", ".bin", ".class", ".pyc", ".o", ".a", ".wasm",
        # documents
        ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
    ]
)


class Fetcher(Protocol):
    async def fetch(self, url: str) -> bytes: ...


def normalise_relative_path(path: str) -> str:
    """Return *path* as a clean relative POSIX path.

    Raises:
        ValueError: If the path is empty, absolute, or escapes its root.
    """
    cleaned = path.replace("\\", "/").strip()
    if not cleaned or cleaned.startswith("/") or (len(cleaned) > 1 and cleaned[1] == ":"):
        raise ValueError(f"Absolute or empty archive path '{path}'.")
    normalised = posixpath.normpath(cleaned)
    if normalised in (".", "..") or normalised.startswith("../"):
        raise ValueError(f"Archive path '{path}' escapes the scratch root.")
    return normalised


def is_skippable(path: str) -> bool:
    """True for directory entries and binary/static assets."""
    if path.endswith(("/", "\\")):
        return True
    return posixpath.splitext(path.lower())[1] in BINARY_EXTENSIONS


def iter_files(root: Path) -> Iterator[tuple[Path, str]]:
    """Yield (absolute path, relative POSIX path) in sorted walk order."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in sorted(filenames):
            absolute = Path(dirpath) / filename
            yield absolute, absolute.relative_to(root).as_posix()


class SourceAcquirer:
    """Fetch a job's files into ``<scratch_base>/<session_id>-<random>``.

    Args:
        fetcher: Object-storage collaborator with ``async fetch(url) -> bytes``.
        file_source: Returns the job's file descriptors by job id.
        scratch_base: Parent directory for scratch roots.
        attempts: How many times to poll *file_source* while it is empty.
        delay: Base poll delay; attempt *n* waits ``n * delay`` seconds.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        file_source: Callable[[str], list[FileDescriptor]],
        scratch_base: Path | str | None = None,
        attempts: int = 5,
        delay: float = 1.0,
    ) -> None:
        self.fetcher = fetcher
        self.file_source = file_source
        self.scratch_base = Path(scratch_base) if scratch_base else None
        self.attempts = max(1, attempts)
        self.delay = delay

    async def acquire(self, job: Job) -> Path:
        """Materialize *job*'s files and return the scratch root.

        Raises:
            AcquireError: If no file descriptors appear or no file could be
                written. The scratch root is already released in that case.
        """
        files = await self._wait_for_files(job)
        root = self._make_root(job)
        try:
            written = 0
            for descriptor in files:
                if await self._materialize(root, descriptor):
                    written += 1
            if written == 0:
                raise AcquireError(
                    f"No files could be materialized for job {job.id} ({len(files)} listed)."
                )
            logger.info("Job %s: materialized %d/%d file(s)", job.id, written, len(files))
            return root
        except BaseException:
            self.release(root)
            raise

    @contextlib.asynccontextmanager
    async def scratch(self, job: Job) -> AsyncIterator[Path]:
        """Async context manager around acquire()/release()."""
        root = await self.acquire(job)
        try:
            yield root
        finally:
            self.release(root)

    @staticmethod
    def release(root: Path) -> None:
        shutil.rmtree(root, ignore_errors=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _wait_for_files(self, job: Job) -> list[FileDescriptor]:
        # The job row can be committed before its file list finishes writing.
        for attempt in range(1, self.attempts + 1):
            files = self.file_source(job.id)
            if files:
                return files
            if attempt < self.attempts:
                logger.info(
                    "Job %s has no file metadata yet (attempt %d/%d)",
                    job.id,
                    attempt,
                    self.attempts,
                )
                await asyncio.sleep(attempt * self.delay)
        raise AcquireError(f"Job {job.id} has no file metadata after {self.attempts} attempts.")

    def _make_root(self, job: Job) -> Path:
        if self.scratch_base is not None:
            self.scratch_base.mkdir(parents=True, exist_ok=True)
        root = tempfile.mkdtemp(
            prefix=f"{job.session_id}-",
            dir=str(self.scratch_base) if self.scratch_base else None,
        )
        os.chmod(root, 0o700)
        return Path(root)

    async def _materialize(self, root: Path, descriptor: FileDescriptor) -> bool:
        if is_skippable(descriptor.relative_path):
            logger.debug("Skipping %s (directory or binary asset)", descriptor.relative_path)
            return False
        try:
            relative = normalise_relative_path(descriptor.relative_path)
            target = (root / relative).resolve()
            if not target.is_relative_to(root.resolve()):
                raise ValueError(f"Archive path '{descriptor.relative_path}' escapes the root.")
            body = await self.fetcher.fetch(descriptor.fetch_url)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(body)
        except Exception as exc:  # one bad file never fails the archive
            logger.warning(
                "Skipping %s (%s): %s",
                descriptor.relative_path,
                sanitise_url(descriptor.fetch_url),
                exc,
            )
            return False
        return True
