"""HTTP transport: performs exactly one exchange per call."""

from __future__ import annotations

import logging

import httpx

from api_session.models.request import RequestOptions
from api_session.utils.errors import NetworkError

logger = logging.getLogger(__name__)


class HttpTransport:
    """Thin async wrapper over httpx.AsyncClient.

    Does not retry and does not look at the status code.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        *,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self._http = http or httpx.AsyncClient(timeout=timeout)

    async def send(self, url: str, options: RequestOptions) -> httpx.Response:
        """Send one request and return the response, whatever its status.

        Raises:
            NetworkError: If httpx fails before a response is received.
        """
        body = options.body
        content = body if isinstance(body, (str, bytes)) else None
        json_body = None if content is not None else body

        try:
            response = await self._http.request(
                method=options.method.upper(),
                url=url,
                headers=options.headers,
                params=options.params,
                content=content,
                json=json_body,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Transport error on {options.method.upper()} {url}: {e}")
            raise NetworkError(f"{options.method.upper()} {url} failed: {e}") from e

        logger.debug(f"{options.method.upper()} {url} -> {response.status_code}")
        return response

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()
