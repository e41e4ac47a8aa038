"""Exception taxonomy and structured error output.

Responses with a non-2xx status other than 401 are returned to the caller
untouched; only the failures below are raised.
"""

from __future__ import annotations

import json
import sys

import httpx
from rich.console import Console

console = Console(stderr=True)


class ApiSessionError(RuntimeError):
    """Base class for errors raised by the request layer."""


class NetworkError(ApiSessionError):
    """The transport could not complete an HTTP exchange."""


class RefreshFailedError(ApiSessionError):
    """The refresh endpoint rejected the refresh token or was unreachable."""


class SessionExpiredError(ApiSessionError):
    """The session cannot be restored; the user has to log in again.

    ``response`` holds the original 401 for the caller that started the
    failed refresh, and is None for callers that were waiting on it.
    """

    def __init__(self, message: str = "Session expired", response: httpx.Response | None = None) -> None:
        super().__init__(message)
        self.response = response


# Actionable hints keyed by error substring
_ERROR_HINTS: list[tuple[str, str]] = [
    ("session expired", "Session expired: run `api-session auth login`"),
    ("no refresh token", "Not logged in: run `api-session auth login`"),
    ("401", "Token may be expired: run `api-session auth refresh`"),
    ("unauthorized", "Token may be expired: run `api-session auth refresh`"),
    ("refresh failed", "Refresh token rejected: run `api-session auth login`"),
    ("timeout", "Request timed out: try again or check network connectivity"),
    ("timed out", "Request timed out: try again or check network connectivity"),
    ("connection", "Connection error: check network connectivity"),
    ("unknown environment", "Environment not configured: check config/api.yaml"),
]

_ERROR_CODES: list[tuple[type[Exception], str]] = [
    (SessionExpiredError, "SESSION_EXPIRED"),
    (RefreshFailedError, "REFRESH_FAILED"),
    (NetworkError, "NETWORK_ERROR"),
]


def _get_hint(error_message: str) -> str | None:
    """Match an error message to an actionable hint."""
    lower = error_message.lower()
    for pattern, hint in _ERROR_HINTS:
        if pattern in lower:
            return hint
    return None


def _get_code(error: Exception) -> str:
    for exc_type, code in _ERROR_CODES:
        if isinstance(error, exc_type):
            return code

    message = str(error).lower()
    if "401" in message or "unauthorized" in message:
        return "AUTH_ERROR"
    if "timeout" in message or "timed out" in message:
        return "TIMEOUT"
    if "connection" in message:
        return "CONNECTION_ERROR"
    return "RUNTIME_ERROR"


def handle_error(error: Exception) -> None:
    """Handle an error with structured output to stdout and human-readable output to stderr.

    Outputs a JSON error object to stdout for scripts:
    {"error": true, "code": "SESSION_EXPIRED", "message": "...", "hint": "..."}

    Also prints a human-readable error to stderr.
    """
    message = str(error)
    hint = _get_hint(message)

    error_obj: dict[str, object] = {
        "error": True,
        "code": _get_code(error),
        "message": message,
    }
    if hint:
        error_obj["hint"] = hint

    json.dump(error_obj, sys.stdout)
    sys.stdout.write("\n")

    console.print(f"[red]Error:[/red] {message}")
    if hint:
        console.print(f"[dim]Hint: {hint}[/dim]")
