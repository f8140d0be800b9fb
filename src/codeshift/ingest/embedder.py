"""Batch embeddings through LiteLLM with a deterministic fallback vector.

A provider error, a timeout, or a vector of the wrong length never aborts an
ingest: the affected inputs get a pseudo-random vector seeded from the text's
SHA-256 and are flagged ``fallback=True``.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import random
from dataclasses import dataclass

import litellm

from codeshift.config import EmbeddingCfg
from codeshift.errors import EmbedProviderError

logger = logging.getLogger(__name__)

litellm.suppress_debug_info = True


@dataclass(frozen=True)
class EmbeddedText:
    vector: list[float]
    fallback: bool = False


def fallback_vector(text: str, dimensions: int) -> list[float]:
    """Deterministic vector in [-1, 1]^dimensions seeded by SHA-256(*text*)."""
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
    rng = random.Random(int(digest[:16], 16))
    return [rng.uniform(-1.0, 1.0) for _ in range(dimensions)]


class Embedder:
    """Embed texts in batches of ``config.batch_size``.

    Args:
        config: Embedding section of the codeshift config.
    """

    def __init__(self, config: EmbeddingCfg | None = None) -> None:
        self.config = config or EmbeddingCfg()

    @property
    def provider_id(self) -> str:
        return self.config.model

    @property
    def dimensions(self) -> int:
        return self.config.dimensions

    async def embed(self, texts: list[str]) -> list[EmbeddedText]:
        """Return one EmbeddedText per input, in input order."""
        results: list[EmbeddedText] = []
        size = max(1, self.config.batch_size)
        for offset in range(0, len(texts), size):
            batch = texts[offset : offset + size]
            try:
                vectors = await self._embed_batch(batch)
            except EmbedProviderError as exc:
                logger.warning(
                    "Embedding provider failed for %d text(s); using fallback vectors: %s",
                    len(batch),
                    exc,
                )
                vectors = [None] * len(batch)
            for text, vector in zip(batch, vectors):
                if vector is None or len(vector) != self.config.dimensions:
                    results.append(EmbeddedText(fallback_vector(text, self.config.dimensions), True))
                else:
                    results.append(EmbeddedText(vector, False))
        return results

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single retrieval query."""
        (result,) = await self.embed([text])
        return result.vector

    async def _embed_batch(self, batch: list[str]) -> list[list[float] | None]:
        """Call the provider for one batch.

        Raises:
            EmbedProviderError: On provider failure, timeout or a response
                whose size differs from the batch.
        """
        try:
            response = await asyncio.wait_for(
                litellm.aembedding(
                    model=self.config.model,
                    input=batch,
                    num_retries=self.config.num_retries,
                ),
                timeout=self.config.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise EmbedProviderError(
                f"Embedding call timed out after {self.config.timeout}s"
            ) from exc
        except Exception as exc:  # litellm raises provider-specific exception types
            raise EmbedProviderError(f"{type(exc).__name__}: {exc}") from exc

        data = sorted(response.data, key=_item_index)
        if len(data) != len(batch):
            raise EmbedProviderError(
                f"Provider returned {len(data)} embeddings for {len(batch)} inputs"
            )
        return [_item_vector(item) for item in data]


def _item_index(item) -> int:
    if isinstance(item, dict):
        return item.get("index", 0)
    return getattr(item, "index", 0)


def _item_vector(item) -> list[float] | None:
    vector = item.get("embedding") if isinstance(item, dict) else getattr(item, "embedding", None)
    return list(vector) if vector else None
