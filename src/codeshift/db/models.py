"""Domain models for the codeshift database layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field

# Job lifecycle: pending → processing → ready | failed. failed and ready are terminal.
JOB_PENDING = "pending"
JOB_PROCESSING = "processing"
JOB_READY = "ready"
JOB_FAILED = "failed"

JOB_STATUSES: frozenset[str] = frozenset([JOB_PENDING, JOB_PROCESSING, JOB_READY, JOB_FAILED])
TERMINAL_STATUSES: frozenset[str] = frozenset([JOB_READY, JOB_FAILED])

CANCELLED_MESSAGE = "cancelled"

CHUNK_KINDS: frozenset[str] = frozenset(
    [
        "function",
        "class",
        "interface",
        "enum",
        "variable",
        "import",
        "export",
        "file",
        "script",
        "template",
        "style",
        "framework-construct",
        "other",
    ]
)


@dataclass
class FileDescriptor:
    """One archive entry: where it goes in the scratch tree and where to fetch it."""

    relative_path: str
    fetch_url: str


@dataclass
class Job:
    id: str
    session_id: str
    user_id: str
    status: str = JOB_PENDING
    total_files: int = 0
    processed_files: int = 0
    total_chunks: int = 0
    error_message: str | None = None
    error_detail: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    processing_started_at: str | None = None
    processing_completed_at: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_cancelled(self) -> bool:
        return self.status == JOB_FAILED and self.error_message == CANCELLED_MESSAGE


@dataclass
class Chunk:
    """A contiguous span of source lines (1-based, inclusive).

    ``content`` is always the verbatim lines ``start_line..end_line`` joined
    with ``\\n``. ``metadata`` is a JSON string; use ``metadata_dict`` to read it.
    """

    file_path: str
    file_name: str
    file_extension: str
    kind: str
    name: str
    content: str
    start_line: int
    end_line: int
    ast_node_type: str | None = None
    metadata: str = field(default_factory=lambda: "{}")
    job_id: str | None = None
    session_id: str | None = None
    user_id: str | None = None
    embedding: list[float] | None = None
    created_at: str | None = None
    rowid: int | None = None  # set after insert; None for unsaved chunks

    def __post_init__(self) -> None:
        if not 1 <= self.start_line <= self.end_line:
            raise ValueError(
                f"invalid chunk span {self.start_line}-{self.end_line} in {self.file_path}"
            )
        if self.kind not in CHUNK_KINDS:
            raise ValueError(f"unknown chunk kind {self.kind!r}")

    @property
    def metadata_dict(self) -> dict:
        return json.loads(self.metadata)

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1

    @property
    def key(self) -> tuple[str, int, int, str, str]:
        """Uniqueness key within a job."""
        return (self.file_path, self.start_line, self.end_line, self.kind, self.name)
