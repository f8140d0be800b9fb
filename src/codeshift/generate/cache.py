"""Request-fingerprint cache in front of the Orchestrator.

Concurrent requests with the same fingerprint share one in-flight build.
Only successful builds are stored; a failed build is raised to every
waiter and the next request starts a fresh build.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def fingerprint(
    session_id: str,
    user_id: str | None,
    command: str,
    source_lang: str | None,
    target_lang: str | None,
    revision: tuple[int, int],
) -> str:
    """SHA-256 over the request fields and the session's chunk revision."""
    payload = json.dumps(
        [session_id, user_id, command, source_lang, target_lang, list(revision)],
        ensure_ascii=False,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class TranslationCache(Generic[T]):
    """In-process single-flight cache keyed by request fingerprint."""

    def __init__(self) -> None:
        self._results: dict[str, T] = {}
        self._inflight: dict[str, asyncio.Future[T]] = {}

    def __len__(self) -> int:
        return len(self._results)

    def __contains__(self, key: str) -> bool:
        return key in self._results

    def clear(self) -> None:
        self._results.clear()

    async def get_or_build(self, key: str, build: Callable[[], Awaitable[T]]) -> T:
        """Return the cached value for *key*, building it at most once at a time."""
        if key in self._results:
            logger.debug("Translation cache hit: %s", key[:12])
            return self._results[key]

        pending = self._inflight.get(key)
        if pending is not None:
            logger.debug("Joining in-flight translation: %s", key[:12])
            return await asyncio.shield(pending)

        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            value = await build()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Retrieved here so an unawaited future does not log a warning.
            future.exception()
            raise
        else:
            self._results[key] = value
            future.set_result(value)
            return value
        finally:
            self._inflight.pop(key, None)
