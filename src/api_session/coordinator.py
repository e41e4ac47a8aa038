"""Single-flight token refresh with a FIFO wait queue.

The first caller to report a 401 while no refresh is running becomes the
initiator and performs the refresh. Callers reporting a 401 while that refresh
is in flight are queued and replayed, in arrival order, once it completes.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import httpx

from api_session.auth import AuthManager
from api_session.models.request import DEFAULT_CONTENT_TYPE, RequestOptions
from api_session.store import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, CredentialStore
from api_session.transport import HttpTransport
from api_session.utils.errors import RefreshFailedError, SessionExpiredError

logger = logging.getLogger(__name__)

SessionExpiredHandler = Callable[[], None]


class RefreshPhase(str, Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


@dataclass
class PendingCaller:
    """A caller waiting on the in-flight refresh.

    The future resolves with the new access token, or fails with the error
    every waiter of the cycle receives.
    """
    future: asyncio.Future[str]
    url: str
    options: RequestOptions


class RefreshCoordinator:
    """Owns the refresh state machine for one credential set.

    ``_phase`` and ``_queue`` are only read or written while holding
    ``_lock``. Bound to the event loop it is first used on.
    """

    def __init__(
        self,
        auth: AuthManager,
        store: CredentialStore,
        transport: HttpTransport,
        refresh_timeout: float = 10.0,
    ) -> None:
        self._auth = auth
        self._store = store
        self._transport = transport
        self._refresh_timeout = refresh_timeout
        self._lock = asyncio.Lock()
        self._phase = RefreshPhase.IDLE
        self._queue: deque[PendingCaller] = deque()
        self._on_session_expired: SessionExpiredHandler | None = None

    @property
    def phase(self) -> RefreshPhase:
        return self._phase

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    def register_session_expired_handler(self, callback: SessionExpiredHandler) -> None:
        """Set the callback fired once per failed refresh cycle."""
        if self._on_session_expired is not None and self._on_session_expired is not callback:
            logger.warning("Replacing previously registered session-expired handler")
        self._on_session_expired = callback

    async def handle_unauthorized(
        self,
        url: str,
        options: RequestOptions,
        response: httpx.Response | None = None,
    ) -> httpx.Response:
        """Resolve a 401 for one caller.

        Args:
            url: The URL that returned 401.
            options: Snapshot of the request that returned 401.
            response: The 401 response, attached to the initiator's
                SessionExpiredError if the refresh fails.

        Returns:
            The response of the request replayed with the new access token.

        Raises:
            SessionExpiredError: If the refresh this caller depends on failed.
            NetworkError: If the replay itself could not be sent.
        """
        snapshot = RequestOptions.snapshot(options)
        pending = await self._join_or_initiate(url, snapshot)

        if pending is not None:
            token = await pending.future
            return await self._replay(pending.url, pending.options, token)

        token = await self._run_refresh(response)
        return await self._replay(url, snapshot, token)

    async def force_refresh(self) -> str:
        """Refresh the access token now, joining a refresh already in flight.

        Returns:
            The new access token.
        """
        pending = await self._join_or_initiate("", RequestOptions())
        if pending is not None:
            return await pending.future
        return await self._run_refresh(None)

    async def _join_or_initiate(self, url: str, snapshot: RequestOptions) -> PendingCaller | None:
        """Queue the caller if a refresh is running; otherwise make it the initiator.

        Returns None when the caller became the initiator.
        """
        async with self._lock:
            if self._phase is RefreshPhase.IDLE:
                self._phase = RefreshPhase.REFRESHING
                return None

            pending = PendingCaller(
                future=asyncio.get_running_loop().create_future(),
                url=url,
                options=snapshot,
            )
            self._queue.append(pending)
            logger.debug(f"Refresh in flight, queued {url or 'forced refresh'} (position {len(self._queue)})")
            return pending

    async def _run_refresh(self, response: httpx.Response | None) -> str:
        """Perform the refresh as initiator and drain the queue either way."""
        logger.info("Access token rejected, refreshing")
        try:
            token = await asyncio.wait_for(self._refresh(), timeout=self._refresh_timeout)
        except asyncio.TimeoutError:
            error = RefreshFailedError(f"Token refresh timed out after {self._refresh_timeout:g}s")
            await self._fail(error)
            raise SessionExpiredError(response=response) from error
        except RefreshFailedError as error:
            await self._fail(error)
            raise SessionExpiredError(response=response) from error
        except asyncio.CancelledError:
            await self._abandon()
            raise
        except Exception as e:
            error = RefreshFailedError(f"Token refresh failed: {e}")
            error.__cause__ = e
            await self._fail(error)
            raise SessionExpiredError(response=response) from error

        waiters = await self._finish()
        for pending in waiters:
            if not pending.future.done():
                pending.future.set_result(token)
        logger.info(f"Access token refreshed, replaying {len(waiters)} queued request(s)")
        return token

    async def _refresh(self) -> str:
        refresh_token = await self._store.get_token(REFRESH_TOKEN_KEY)
        result = await self._auth.request_refresh(refresh_token)

        await self._store.set_token(ACCESS_TOKEN_KEY, result.access)
        if result.refresh:
            await self._store.set_token(REFRESH_TOKEN_KEY, result.refresh)
        return result.access

    async def _finish(self) -> list[PendingCaller]:
        """Return to IDLE and hand back every queued caller, in FIFO order."""
        async with self._lock:
            waiters = list(self._queue)
            self._queue.clear()
            self._phase = RefreshPhase.IDLE
        return waiters

    async def _fail(self, error: RefreshFailedError) -> None:
        waiters = await self._finish()
        logger.warning(f"{error}; expiring session, {len(waiters)} queued request(s) dropped")
        for pending in waiters:
            if not pending.future.done():
                expired = SessionExpiredError()
                expired.__cause__ = error
                pending.future.set_exception(expired)
        self._notify_session_expired()

    async def _abandon(self) -> None:
        # Lock acquisition must not be interrupted by the pending cancellation.
        waiters = await asyncio.shield(self._finish())
        for pending in waiters:
            if not pending.future.done():
                pending.future.set_exception(RefreshFailedError("Token refresh was cancelled"))

    def _notify_session_expired(self) -> None:
        if self._on_session_expired is None:
            return
        try:
            self._on_session_expired()
        except Exception:
            logger.exception("Session-expired handler raised")

    async def _replay(self, url: str, options: RequestOptions, token: str) -> httpx.Response:
        prepared = options.with_default_header("Content-Type", DEFAULT_CONTENT_TYPE)
        return await self._transport.send(url, prepared.with_bearer(token))
