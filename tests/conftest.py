"""Shared fixtures for the api-session test suite."""
from __future__ import annotations

from unittest.mock import MagicMock

import httpx
import pytest

from api_session.client import ApiClient
from api_session.config import Config, Endpoints, Environment, Settings
from api_session.store import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, MemoryCredentialStore
from api_session.transport import HttpTransport

BASE_URL = "https://api.example.test"
REFRESH_URL = BASE_URL + "/api/auth/token/refresh/"


@pytest.fixture
def fake_settings() -> Settings:
    return Settings(
        environment="production",
        token_file="./test-tokens.json",
        refresh_timeout=2.0,
        request_timeout=5.0,
        dedupe_reads=False,
    )


@pytest.fixture
def fake_environments() -> dict[str, Environment]:
    return {
        "production": Environment(base_url=BASE_URL),
        "development": Environment(base_url="http://localhost:3001/"),
    }


@pytest.fixture
def fake_config(fake_settings, fake_environments) -> Config:
    return Config(settings=fake_settings, environments=fake_environments, endpoints=Endpoints())


@pytest.fixture
def store() -> MemoryCredentialStore:
    return MemoryCredentialStore({ACCESS_TOKEN_KEY: "T1", REFRESH_TOKEN_KEY: "R1"})


@pytest.fixture
def mock_client():
    """MagicMock standing in for ApiClient in CLI tests."""
    client = MagicMock()
    client.auth = MagicMock()
    client.coordinator = MagicMock()
    return client


class FakeApi:
    """Scriptable httpx.MockTransport handler.

    Business endpoints return 200 only for ``Bearer <valid_token>``; the
    refresh endpoint returns ``refresh_status`` with ``{"access": new_token}``
    after awaiting ``refresh_gate`` (if set).
    """

    def __init__(self, valid_token: str = "T2", new_token: str = "T2") -> None:
        self.valid_token = valid_token
        self.new_token = new_token
        self.rotated_refresh: str | None = None
        self.refresh_status = 200
        self.refresh_gate = None
        self.refresh_error: Exception | None = None
        self.refresh_calls: list[httpx.Request] = []
        self.request_gate = None
        self.fail_paths: set[str] = set()
        self.requests: list[httpx.Request] = []

    def authorization_of(self, path: str) -> list[str | None]:
        return [r.headers.get("authorization") for r in self.requests if r.url.path == path]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        if str(request.url) == REFRESH_URL:
            self.refresh_calls.append(request)
            if self.refresh_gate is not None:
                await self.refresh_gate.wait()
            if self.refresh_error is not None:
                raise self.refresh_error
            payload = {"access": self.new_token}
            if self.rotated_refresh:
                payload["refresh"] = self.rotated_refresh
            if self.refresh_status != 200:
                payload = {"detail": "Token is invalid or expired"}
            return httpx.Response(self.refresh_status, json=payload)

        self.requests.append(request)
        if self.request_gate is not None:
            await self.request_gate.wait()
        if request.headers.get("authorization") == f"Bearer {self.valid_token}":
            if request.url.path in self.fail_paths:
                raise httpx.ConnectError("connection reset", request=request)
            return httpx.Response(200, json={"path": request.url.path})
        return httpx.Response(401, json={"detail": "Given token not valid"})


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def make_client(fake_config, store, fake_api):
    """Build an ApiClient whose HTTP traffic goes to ``fake_api``."""
    def _make(config: Config | None = None) -> ApiClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(fake_api))
        return ApiClient(config or fake_config, store=store, transport=HttpTransport(http=http))
    return _make
