"""Authenticated API client.

Handles header injection and 401 detection. Recovering from a 401 is left
entirely to RefreshCoordinator.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from functools import lru_cache
from typing import Any

import httpx

from api_session.auth import AuthManager
from api_session.config import Config, get_config
from api_session.coordinator import RefreshCoordinator, SessionExpiredHandler
from api_session.models.request import DEFAULT_CONTENT_TYPE, RequestOptions
from api_session.store import ACCESS_TOKEN_KEY, CredentialStore, FileCredentialStore
from api_session.transport import HttpTransport
from api_session.utils.dedup import RequestDeduplicator

logger = logging.getLogger(__name__)


class ApiClient:
    """HTTP client that keeps the session alive across access-token expiry."""

    def __init__(
        self,
        config: Config,
        *,
        store: CredentialStore | None = None,
        transport: HttpTransport | None = None,
        auth: AuthManager | None = None,
        coordinator: RefreshCoordinator | None = None,
    ) -> None:
        self._config = config
        self._store = store or FileCredentialStore(config.settings.token_file)
        self._transport = transport or HttpTransport(timeout=config.settings.request_timeout)
        self._auth = auth or AuthManager(config, self._store, self._transport)
        self._coordinator = coordinator or RefreshCoordinator(
            self._auth,
            self._store,
            self._transport,
            refresh_timeout=config.settings.refresh_timeout,
        )
        self._dedup = RequestDeduplicator() if config.settings.dedupe_reads else None

    @property
    def auth(self) -> AuthManager:
        return self._auth

    @property
    def coordinator(self) -> RefreshCoordinator:
        return self._coordinator

    def register_session_expired_handler(self, callback: SessionExpiredHandler) -> None:
        """Register the callback fired when the session cannot be restored."""
        self._coordinator.register_session_expired_handler(callback)

    async def perform_request(
        self,
        url: str,
        options: RequestOptions | Mapping[str, Any] | None = None,
    ) -> httpx.Response:
        """Make an authenticated API request.

        Args:
            url: Absolute URL, or a path resolved against the configured base URL.
            options: Method, headers, body and params. Never mutated.

        Returns:
            The response. Non-2xx statuses other than 401 are returned as-is.

        Raises:
            ValueError: If url is empty.
            SessionExpiredError: If a 401 could not be recovered by refreshing.
            NetworkError: If the transport failed.
        """
        if not url:
            raise ValueError("url must be a non-empty string")

        snapshot = RequestOptions.snapshot(options)
        full_url = self._config.url_for(url)

        if self._dedup is not None and RequestDeduplicator.is_dedupable(snapshot.method):
            key = RequestDeduplicator.make_key(snapshot.method, full_url, snapshot.body, snapshot.params)
            return await self._dedup.run(key, lambda: self._dispatch(full_url, snapshot))
        return await self._dispatch(full_url, snapshot)

    async def _dispatch(self, url: str, snapshot: RequestOptions) -> httpx.Response:
        prepared = await self._prepare(snapshot)
        response = await self._transport.send(url, prepared)

        if response.status_code == 401:
            logger.info(f"Got 401 from {snapshot.method.upper()} {url}")
            return await self._coordinator.handle_unauthorized(url, snapshot, response)

        return response

    async def _prepare(self, snapshot: RequestOptions) -> RequestOptions:
        """Attach the stored access token and default content type."""
        prepared = snapshot.with_default_header("Content-Type", DEFAULT_CONTENT_TYPE)

        token = await self._store.get_token(ACCESS_TOKEN_KEY)
        if token:
            prepared = prepared.with_default_header("Authorization", f"Bearer {token}")
        else:
            logger.debug("No access token stored, sending request unauthenticated")
        return prepared

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for GET requests."""
        return await self.perform_request(url, {"method": "GET", **kwargs})

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for POST requests."""
        return await self.perform_request(url, {"method": "POST", **kwargs})

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for PUT requests."""
        return await self.perform_request(url, {"method": "PUT", **kwargs})

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for PATCH requests."""
        return await self.perform_request(url, {"method": "PATCH", **kwargs})

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for DELETE requests."""
        return await self.perform_request(url, {"method": "DELETE", **kwargs})

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._transport.aclose()


@lru_cache(maxsize=1)
def get_client() -> ApiClient:
    """Process-wide client built from get_config()."""
    return ApiClient(get_config())


async def perform_request(
    url: str,
    options: RequestOptions | Mapping[str, Any] | None = None,
) -> httpx.Response:
    return await get_client().perform_request(url, options)


def register_session_expired_handler(callback: SessionExpiredHandler) -> None:
    get_client().register_session_expired_handler(callback)
