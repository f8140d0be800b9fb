"""Cosine-similarity retriever with file-diversity balancing.

Algorithm for one query:
  1. Embed the query with the same model used at ingest.
  2. Load the session's chunks (session + user; session only if that is empty).
  3. Score every chunk by cosine similarity; missing or zero-norm vectors
     score ``fallback_similarity``.
  4. Keep the top ``top_k`` whose similarity exceeds ``min_similarity``.
  5. If that selection covers fewer than two files (none at all included)
     but the session has several, rebuild it with at most
     ceil(top_k / files) chunks per file, ignoring the floor.
  6. If nothing survived in a single-file session, return its first
     ``top_k`` stored chunks.

Output order is similarity desc, then file path, then start line.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from itertools import groupby

from codeshift.config import RetrievalCfg
from codeshift.db.models import Chunk
from codeshift.db.repository import Repository
from codeshift.errors import RetrievalEmpty
from codeshift.ingest.embedder import Embedder

logger = logging.getLogger(__name__)


@dataclass
class ScoredChunk:
    """A retrieved chunk together with its cosine similarity to the query."""

    chunk: Chunk
    similarity: float


def cosine_similarity(a: list[float] | None, b: list[float] | None) -> float | None:
    """Cosine of the angle between *a* and *b*.

    Returns None when either vector is missing, empty, zero-norm, or the
    lengths differ.
    """
    if not a or not b or len(a) != len(b):
        return None
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return None
    return dot / (norm_a * norm_b)


def _order(scored: ScoredChunk) -> tuple[float, str, int]:
    return (-scored.similarity, scored.chunk.file_path, scored.chunk.start_line)


class Retriever:
    """Select prompt context for a session.

    Args:
        repo: Chunk store.
        embedder: Embeds the query text.
        config: Retrieval section of the codeshift config.
        vec_table: sqlite-vec table holding the chunk embeddings.
    """

    def __init__(
        self,
        repo: Repository,
        embedder: Embedder,
        config: RetrievalCfg | None = None,
        vec_table: str | None = None,
    ) -> None:
        self.repo = repo
        self.embedder = embedder
        self.config = config or RetrievalCfg()
        self.vec_table = vec_table

    def load(self, session_id: str, user_id: str | None = None) -> list[Chunk]:
        """Return the session's chunks, dropping the user filter if it matches nothing.

        Raises:
            RetrievalEmpty: If the session has no chunks at all.
        """
        chunks = self.repo.list_by_session(session_id, user_id, self.vec_table)
        if not chunks and user_id is not None:
            logger.info(
                "No chunks for session %s and user %s; retrying by session only",
                session_id,
                user_id,
            )
            chunks = self.repo.list_by_session(session_id, None, self.vec_table)
        if not chunks:
            raise RetrievalEmpty(f"Session '{session_id}' has no stored chunks.")
        return chunks

    async def retrieve(
        self, session_id: str, query: str, user_id: str | None = None
    ) -> list[ScoredChunk]:
        """Return the context chunks for *query*, best first.

        Raises:
            RetrievalEmpty: If the session has no chunks.
        """
        chunks = self.load(session_id, user_id)
        query_vector = await self.embedder.embed_query(query)
        scored = sorted((self._score(query_vector, c) for c in chunks), key=_order)
        return self.select(scored)

    def select(self, scored: list[ScoredChunk]) -> list[ScoredChunk]:
        """Apply threshold, balancing and fallback to *scored* (already sorted)."""
        top_k = self.config.top_k
        selected = [s for s in scored[:top_k] if s.similarity > self.config.min_similarity]

        session_files = {s.chunk.file_path for s in scored}
        selected_files = {s.chunk.file_path for s in selected}
        if len(selected_files) < 2 and len(session_files) > 1:
            selected = self._rebalance(scored, len(session_files))
            logger.debug(
                "Rebalanced context across %d file(s)",
                len({s.chunk.file_path for s in selected}),
            )

        if not selected:
            # Single-file session with nothing above the floor.
            logger.info("No chunk cleared the similarity floor; using the first %d", top_k)
            by_store_order = sorted(
                scored, key=lambda s: (s.chunk.file_path, s.chunk.start_line)
            )
            selected = sorted(by_store_order[:top_k], key=_order)
        return selected

    def _score(self, query_vector: list[float], chunk: Chunk) -> ScoredChunk:
        similarity = cosine_similarity(query_vector, chunk.embedding)
        if similarity is None:
            similarity = self.config.fallback_similarity
        return ScoredChunk(chunk, similarity)

    def _rebalance(self, scored: list[ScoredChunk], file_count: int) -> list[ScoredChunk]:
        top_k = self.config.top_k
        per_file = math.ceil(top_k / file_count)

        by_file = sorted(scored, key=lambda s: (s.chunk.file_path, _order(s)))
        groups = [
            list(group)[:per_file]
            for _, group in groupby(by_file, key=lambda s: s.chunk.file_path)
        ]
        # Files with the strongest best match contribute first.
        groups.sort(key=lambda g: _order(g[0]))

        picked: list[ScoredChunk] = []
        for group in groups:
            for item in group:
                if len(picked) == top_k:
                    break
                picked.append(item)
        return sorted(picked, key=_order)
