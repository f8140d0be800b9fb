"""Exception taxonomy for the migration core.

Recovery is local first (fallbacks), then retry, then per-file demo
substitution. Only AcquireError and StoreError fail a whole job.
"""

from __future__ import annotations

import asyncio
import re


class CodeshiftError(Exception):
    """Base class for all codeshift errors."""


# ------------------------------------------------------------------
# Ingest side
# ------------------------------------------------------------------


class AcquireError(CodeshiftError):
    """No file of the archive could be materialized into the scratch tree."""


class ParseError(CodeshiftError):
    """Grammar loading or parsing failed; the caller falls back to line chunking."""


class EmbedProviderError(CodeshiftError):
    """The embedding provider failed or returned an unusable vector."""


class JobCancelled(CodeshiftError):
    """The job was cancelled by an external status write."""


# ------------------------------------------------------------------
# Store side
# ------------------------------------------------------------------


class StoreError(CodeshiftError):
    """Irrecoverable Chunk Store / Job store failure."""


class StoreConflict(CodeshiftError):
    """A chunk with the same uniqueness key already exists."""


class JobStateError(StoreError):
    """Write against a terminal job, or an illegal status transition."""


class RetrievalEmpty(CodeshiftError):
    """The session has no stored chunks."""


# ------------------------------------------------------------------
# Generation side
# ------------------------------------------------------------------


class GenerationError(CodeshiftError):
    """Base class for LLM generation failures."""


class GenerationTransient(GenerationError):
    """Timeout / overload / 5xx. Retried by the orchestrator."""


class GenerationFatal(GenerationError):
    """Non-retryable provider error or unusable output.

    Attributes:
        kind: 'quota', 'invalid' or 'empty'.
    """

    def __init__(self, message: str, kind: str = "invalid") -> None:
        super().__init__(message)
        self.kind = kind


class QualityRejection(GenerationFatal):
    """Output failed the pair-specific structural checks."""

    def __init__(self, message: str, failed_checks: list[str] | None = None) -> None:
        super().__init__(message, kind="invalid")
        self.failed_checks = list(failed_checks or [])


# ------------------------------------------------------------------
# Provider error classification
# ------------------------------------------------------------------

_QUOTA_RE = re.compile(r"quota|billing|insufficient", re.IGNORECASE)
_TRANSIENT_RE = re.compile(
    r"overloaded|unavailable|timed? ?out|timeout|temporarily|try again", re.IGNORECASE
)


def classify_provider_error(exc: BaseException) -> str:
    """Map a provider exception to 'transient', 'quota' or 'invalid'.

    Uses the ``status_code`` attribute that litellm exceptions carry, falling
    back to the exception message for providers that do not set one.
    """
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return "transient"

    message = str(exc)
    status = getattr(exc, "status_code", None)

    if _QUOTA_RE.search(message):
        return "quota"
    if status == 429:
        return "transient"
    if status in (408, 409) or (isinstance(status, int) and status >= 500):
        return "transient"
    if _TRANSIENT_RE.search(message) or "503" in message:
        return "transient"
    return "invalid"
