"""Async credential storage for access and refresh tokens."""

from __future__ import annotations

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"


class CredentialStore(ABC):
    """Named token storage. Implementations must survive process restarts
    unless they are explicitly in-memory."""

    @abstractmethod
    async def get_token(self, name: str) -> str | None:
        raise NotImplementedError

    @abstractmethod
    async def set_token(self, name: str, value: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def delete_token(self, name: str) -> None:
        raise NotImplementedError


class MemoryCredentialStore(CredentialStore):
    def __init__(self, tokens: dict[str, str] | None = None) -> None:
        self._tokens: dict[str, str] = dict(tokens or {})

    async def get_token(self, name: str) -> str | None:
        return self._tokens.get(name)

    async def set_token(self, name: str, value: str) -> None:
        self._tokens[name] = value

    async def delete_token(self, name: str) -> None:
        self._tokens.pop(name, None)


class FileCredentialStore(CredentialStore):
    """Tokens kept in a JSON object on disk, written atomically."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    async def get_token(self, name: str) -> str | None:
        return self._read_all().get(name)

    async def set_token(self, name: str, value: str) -> None:
        tokens = self._read_all()
        tokens[name] = value
        self._write_all(tokens)

    async def delete_token(self, name: str) -> None:
        tokens = self._read_all()
        if tokens.pop(name, None) is not None:
            self._write_all(tokens)

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}

        raw = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise RuntimeError(f"Credential file {self._path} is invalid; expected a JSON object.")
        return raw

    def _write_all(self, tokens: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{self._path.name}.",
            suffix=".tmp",
            dir=self._path.parent,
        )
        tmp_path = Path(tmp_name)

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(tokens, handle, indent=2, sort_keys=True)
            os.replace(tmp_path, self._path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
