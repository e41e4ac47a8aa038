"""Configuration management for api-session.

Loads settings from .env and API environments/endpoints from api.yaml.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from dotenv import load_dotenv


class Environment(BaseModel):
    """A single deployment target of the remote API."""
    base_url: str


class Endpoints(BaseModel):
    """Auth endpoint paths, relative to the environment base URL."""
    refresh: str = "/api/auth/token/refresh/"
    login: str = "/api/auth/login/"
    logout: str = "/api/auth/logout/"


class Settings(BaseModel):
    """Application settings loaded from environment variables."""
    environment: str = Field(default="production", description="Key into api.yaml environments")
    base_url_override: str = Field(default="", description="Explicit base URL, wins over environment")
    token_file: str = Field(default="~/.api-session/tokens.json", description="Credential store path")
    refresh_timeout: float = Field(default=10.0, description="Upper bound for one refresh call, in seconds")
    request_timeout: float = Field(default=30.0, description="Transport timeout per request, in seconds")
    dedupe_reads: bool = Field(default=False, description="Share identical in-flight GET requests")


class Config(BaseModel):
    """Full application configuration."""
    settings: Settings
    environments: dict[str, Environment]
    endpoints: Endpoints = Field(default_factory=Endpoints)

    def get_environment(self, name: str | None = None) -> Environment:
        """Get an environment by name (defaults to the configured one)."""
        name = (name or self.settings.environment).lower()
        if name not in self.environments:
            available = ", ".join(sorted(self.environments.keys()))
            raise ValueError(f"Unknown environment '{name}'. Available: {available}")
        return self.environments[name]

    @property
    def base_url(self) -> str:
        if self.settings.base_url_override:
            return self.settings.base_url_override.rstrip("/")
        return self.get_environment().base_url.rstrip("/")

    @property
    def ws_base_url(self) -> str:
        """Websocket URL for the same host (https -> wss, http -> ws)."""
        url = self.base_url
        if url.startswith("https://"):
            return "wss://" + url[len("https://"):]
        if url.startswith("http://"):
            return "ws://" + url[len("http://"):]
        return url

    def url_for(self, path: str) -> str:
        """Resolve a path against the base URL; absolute URLs pass through."""
        if path.startswith(("http://", "https://")):
            return path
        return self.base_url + "/" + path.lstrip("/")

    @property
    def refresh_url(self) -> str:
        return self.url_for(self.endpoints.refresh)

    @property
    def login_url(self) -> str:
        return self.url_for(self.endpoints.login)

    @property
    def logout_url(self) -> str:
        return self.url_for(self.endpoints.logout)


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (where config/ lives)."""
    current = Path(__file__).resolve().parent
    for parent in [current, *current.parents]:
        if (parent / "config" / "api.yaml").exists():
            return parent
    # Fallback: cwd
    return Path.cwd()


def _load_api_file(project_root: Path) -> tuple[dict[str, Environment], Endpoints]:
    """Load environments and endpoint paths from api.yaml."""
    api_path = project_root / "config" / "api.yaml"
    if not api_path.exists():
        raise FileNotFoundError(f"API config not found at {api_path}")

    with open(api_path) as f:
        data = yaml.safe_load(f) or {}

    environments = {}
    for name, env_data in data.get("environments", {}).items():
        environments[name.lower()] = Environment(**env_data)
    endpoints = Endpoints(**data.get("endpoints", {}))
    return environments, endpoints


def _env(*keys: str, default: str = "") -> str:
    """Try multiple env var names, return the first one found."""
    for key in keys:
        val = os.environ.get(key, "")
        if val:
            return val.strip().strip('"')
    return default


def _load_settings() -> Settings:
    """Load settings from environment variables.

    Supports both API_SESSION_* and legacy camelCase names from .env.
    """
    return Settings(
        environment=_env("API_SESSION_ENV", "apiEnv", default="production").lower(),
        base_url_override=_env("API_SESSION_BASE_URL", "apiBaseUrl"),
        token_file=_env("API_SESSION_TOKEN_FILE", default="~/.api-session/tokens.json"),
        refresh_timeout=float(_env("API_SESSION_REFRESH_TIMEOUT", default="10")),
        request_timeout=float(_env("API_SESSION_REQUEST_TIMEOUT", default="30")),
        dedupe_reads=_env("API_SESSION_DEDUPE_READS", default="false").lower() in ("true", "1", "yes"),
    )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Load and cache the full application configuration."""
    project_root = _find_project_root()

    # Load .env from project root if it exists
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    settings = _load_settings()
    environments, endpoints = _load_api_file(project_root)

    return Config(settings=settings, environments=environments, endpoints=endpoints)
