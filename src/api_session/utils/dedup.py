"""In-flight sharing of identical read requests."""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _consume_exception(fut: asyncio.Future[Any]) -> None:
    """Avoid 'Future exception was never retrieved' when nobody joined."""
    if not fut.cancelled():
        fut.exception()


class RequestDeduplicator:
    """Collapses concurrent identical requests into one exchange.

    Only the first caller for a key runs the request; callers arriving while
    it is in flight await the same result. Nothing is kept once it settles.
    """

    def __init__(self) -> None:
        self._inflight: dict[str, asyncio.Future[Any]] = {}
        self._total = 0
        self._deduplicated = 0

    @staticmethod
    def is_dedupable(method: str) -> bool:
        """Only GET requests are shared; everything else may have side effects."""
        return method.upper() == "GET"

    @staticmethod
    def make_key(method: str, url: str, body: Any = None, params: Any = None) -> str:
        """Generate a deterministic request key."""
        body_str = json.dumps(body, sort_keys=True, default=str) if body else ""
        params_str = json.dumps(params, sort_keys=True, default=str) if params else ""
        raw = f"{method.upper()}|{url}|{params_str}|{body_str}"
        return hashlib.sha256(raw.encode()).hexdigest()

    async def run(self, key: str, work: Callable[[], Awaitable[T]]) -> T:
        self._total += 1

        existing = self._inflight.get(key)
        if existing is not None:
            self._deduplicated += 1
            logger.debug(f"Joined in-flight request {key[:12]}")
            return await asyncio.shield(existing)

        fut: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        fut.add_done_callback(_consume_exception)
        self._inflight[key] = fut

        try:
            result = await work()
        except asyncio.CancelledError:
            fut.cancel()
            raise
        except Exception as e:
            fut.set_exception(e)
            raise
        else:
            fut.set_result(result)
            return result
        finally:
            self._inflight.pop(key, None)

    def is_in_flight(self, key: str) -> bool:
        return key in self._inflight

    @property
    def stats(self) -> dict[str, int]:
        return {
            "total": self._total,
            "deduplicated": self._deduplicated,
            "active": len(self._inflight),
        }
