"""Token endpoints: refresh, login, logout.

The refresh call here is a single exchange with no retry and no locking;
single-flight behavior lives in RefreshCoordinator.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from datetime import datetime

from pydantic import ValidationError

from api_session.config import Config
from api_session.models.auth import LoginResponse, RefreshResponse, TokenStatus
from api_session.models.request import RequestOptions
from api_session.store import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, CredentialStore
from api_session.transport import HttpTransport
from api_session.utils.errors import NetworkError, RefreshFailedError

logger = logging.getLogger(__name__)

_JSON_HEADERS = {"Content-Type": "application/json"}


def _error_detail(response) -> str:
    detail = response.text
    try:
        error_json = response.json()
        if isinstance(error_json, dict):
            detail = error_json.get("detail", error_json.get("error", response.text))
    except ValueError:
        pass
    return str(detail)


def jwt_expiry(token: str) -> datetime | None:
    """Read the ``exp`` claim of a JWT without verifying it.

    Returns None for tokens that are not JWTs or carry no expiry.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return None
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except (binascii.Error, ValueError):
        return None
    exp = claims.get("exp") if isinstance(claims, dict) else None
    if not isinstance(exp, (int, float)):
        return None
    return datetime.fromtimestamp(exp)


class AuthManager:
    """Talks to the auth endpoints of the remote API."""

    def __init__(self, config: Config, store: CredentialStore, transport: HttpTransport) -> None:
        self._config = config
        self._store = store
        self._transport = transport

    async def request_refresh(self, refresh_token: str | None) -> RefreshResponse:
        """Exchange a refresh token for a new access token.

        Does not touch the credential store; persisting the result is the
        caller's job.

        Raises:
            RefreshFailedError: On a missing refresh token, a non-2xx status,
                a malformed payload or a transport error.
        """
        if not refresh_token:
            raise RefreshFailedError("Token refresh failed: no refresh token stored")

        options = RequestOptions(method="POST", headers=dict(_JSON_HEADERS), body={"refresh": refresh_token})
        try:
            response = await self._transport.send(self._config.refresh_url, options)
        except NetworkError as e:
            raise RefreshFailedError(f"Token refresh failed: {e}") from e

        if not response.is_success:
            raise RefreshFailedError(
                f"Token refresh failed (HTTP {response.status_code}): {_error_detail(response)}"
            )

        try:
            return RefreshResponse(**response.json())
        except (ValueError, TypeError, ValidationError) as e:
            raise RefreshFailedError(f"Token refresh failed: malformed response ({e})") from e

    async def login(self, username: str, password: str) -> LoginResponse:
        """Authenticate with username/password and store both tokens."""
        options = RequestOptions(
            method="POST",
            headers=dict(_JSON_HEADERS),
            body={"username": username, "password": password},
        )
        response = await self._transport.send(self._config.login_url, options)

        if not response.is_success:
            raise RuntimeError(f"Login failed (HTTP {response.status_code}): {_error_detail(response)}")

        data = LoginResponse(**response.json())
        await self._store.set_token(ACCESS_TOKEN_KEY, data.access)
        await self._store.set_token(REFRESH_TOKEN_KEY, data.refresh)
        logger.info(f"Logged in as {username}")
        return data

    async def logout(self) -> None:
        """Revoke the refresh token server-side if possible, then clear local tokens.

        The server call is best-effort: a transport error or a rejection is
        logged and local tokens are cleared regardless.
        """
        refresh_token = await self._store.get_token(REFRESH_TOKEN_KEY)
        try:
            if refresh_token:
                options = RequestOptions(method="POST", headers=dict(_JSON_HEADERS), body={"refresh": refresh_token})
                response = await self._transport.send(self._config.logout_url, options)
                if not response.is_success:
                    logger.warning(f"Logout endpoint returned HTTP {response.status_code}")
        except NetworkError as e:
            logger.warning(f"Logout request failed: {e}")
        finally:
            await self._store.delete_token(ACCESS_TOKEN_KEY)
            await self._store.delete_token(REFRESH_TOKEN_KEY)

    async def get_status(self) -> TokenStatus:
        """Get the current token status."""
        access_token = await self._store.get_token(ACCESS_TOKEN_KEY)
        refresh_token = await self._store.get_token(REFRESH_TOKEN_KEY)

        if not access_token:
            return TokenStatus(has_access_token=False, has_refresh_token=bool(refresh_token), is_expired=True)

        expires_at = jwt_expiry(access_token)
        if expires_at is None:
            return TokenStatus(has_access_token=True, has_refresh_token=bool(refresh_token))

        now = datetime.now()
        is_expired = now > expires_at
        seconds_remaining = None if is_expired else int((expires_at - now).total_seconds())
        return TokenStatus(
            has_access_token=True,
            has_refresh_token=bool(refresh_token),
            is_expired=is_expired,
            expires_at=expires_at,
            seconds_remaining=seconds_remaining,
        )
