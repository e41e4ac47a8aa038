"""Immutable request snapshot passed between dispatcher, coordinator and transport."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CONTENT_TYPE = "application/json"


class RequestOptions(BaseModel):
    """Method, headers and body of one outgoing request.

    Instances are frozen. Header changes produce a new snapshot with its own
    header dict, so one caller's headers are never shared with another's.
    """
    model_config = ConfigDict(frozen=True)

    method: str = "GET"
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None
    params: dict[str, str] | None = None

    @classmethod
    def snapshot(cls, options: RequestOptions | Mapping[str, Any] | None) -> RequestOptions:
        """Take a private copy of caller-supplied options."""
        if options is None:
            return cls()
        if isinstance(options, RequestOptions):
            return options.model_copy(update={"headers": dict(options.headers)})
        data = dict(options)
        data["headers"] = dict(data.get("headers") or {})
        return cls.model_validate(data)

    def has_header(self, name: str) -> bool:
        return name in httpx.Headers(self.headers)

    def with_header(self, name: str, value: str) -> RequestOptions:
        """Return a copy with ``name`` set, replacing any case variant."""
        headers = {k: v for k, v in self.headers.items() if k.lower() != name.lower()}
        headers[name] = value
        return self.model_copy(update={"headers": headers})

    def with_default_header(self, name: str, value: str) -> RequestOptions:
        """Return a copy with ``name`` set only if the caller did not supply it."""
        if self.has_header(name):
            return self
        return self.with_header(name, value)

    def with_bearer(self, token: str) -> RequestOptions:
        return self.with_header("Authorization", f"Bearer {token}")
