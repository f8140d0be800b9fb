"""Tests for the LiteLLM embedder and its fallback vectors."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from codeshift.config import EmbeddingCfg
from codeshift.ingest.embedder import Embedder, fallback_vector

_AEMBEDDING = "codeshift.ingest.embedder.litellm.aembedding"


def _response(*vectors: list[float]) -> SimpleNamespace:
    # Deliberately reversed to check the index sort.
    items = [{"index": i, "embedding": v} for i, v in enumerate(vectors)]
    return SimpleNamespace(data=list(reversed(items)))


@pytest.fixture
def embedder() -> Embedder:
    return Embedder(EmbeddingCfg(model="test/embed", dimensions=3, batch_size=2))


def test_fallback_vector_is_deterministic() -> None:
    a = fallback_vector("hello", 8)
    assert a == fallback_vector("hello", 8)
    assert a != fallback_vector("world", 8)
    assert len(a) == 8
    assert all(-1.0 <= x <= 1.0 for x in a)


def test_embed_orders_by_index(embedder: Embedder) -> None:
    mock = AsyncMock(return_value=_response([1.0, 0.0, 0.0], [0.0, 1.0, 0.0]))
    with patch(_AEMBEDDING, mock):
        results = asyncio.run(embedder.embed(["a", "b"]))

    assert [r.vector for r in results] == [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]
    assert not any(r.fallback for r in results)
    kwargs = mock.call_args.kwargs
    assert kwargs["model"] == "test/embed"
    assert kwargs["input"] == ["a", "b"]


def test_embed_batches(embedder: Embedder) -> None:
    mock = AsyncMock(
        side_effect=[
            _response([1.0, 0.0, 0.0], [0.0, 1.0, 0.0]),
            _response([0.0, 0.0, 1.0]),
        ]
    )
    with patch(_AEMBEDDING, mock):
        results = asyncio.run(embedder.embed(["a", "b", "c"]))

    assert mock.await_count == 2
    assert [call.kwargs["input"] for call in mock.call_args_list] == [["a", "b"], ["c"]]
    assert results[2].vector == [0.0, 0.0, 1.0]


def test_provider_error_uses_fallback(embedder: Embedder) -> None:
    with patch(_AEMBEDDING, AsyncMock(side_effect=RuntimeError("503 unavailable"))):
        results = asyncio.run(embedder.embed(["a"]))

    assert results[0].fallback is True
    assert results[0].vector == fallback_vector("a", 3)


def test_timeout_uses_fallback(embedder: Embedder) -> None:
    with patch(_AEMBEDDING, AsyncMock(side_effect=asyncio.TimeoutError())):
        results = asyncio.run(embedder.embed(["a"]))
    assert results[0].fallback is True


def test_wrong_length_vector_falls_back_per_item(embedder: Embedder) -> None:
    with patch(_AEMBEDDING, AsyncMock(return_value=_response([1.0, 0.0], [0.0, 1.0, 0.0]))):
        results = asyncio.run(embedder.embed(["short", "ok"]))

    assert results[0].fallback is True
    assert len(results[0].vector) == 3
    assert results[1].fallback is False


def test_count_mismatch_falls_back_for_batch(embedder: Embedder) -> None:
    with patch(_AEMBEDDING, AsyncMock(return_value=_response([1.0, 0.0, 0.0]))):
        results = asyncio.run(embedder.embed(["a", "b"]))
    assert [r.fallback for r in results] == [True, True]


def test_embed_query(embedder: Embedder) -> None:
    with patch(_AEMBEDDING, AsyncMock(return_value=_response([0.5, 0.5, 0.0]))):
        vector = asyncio.run(embedder.embed_query("find the router"))
    assert vector == [0.5, 0.5, 0.0]
    assert embedder.provider_id == "test/embed"
    assert embedder.dimensions == 3
