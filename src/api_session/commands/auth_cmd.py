"""CLI commands for session management."""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from rich.console import Console

from api_session.client import ApiClient
from api_session.config import get_config
from api_session.utils.errors import handle_error
from api_session.utils.output import OutputFormat, print_output

console = Console(stderr=True)
app = typer.Typer(name="auth", help="Manage the stored session.")


def _status_row(status) -> dict[str, object]:
    return {
        "has_access_token": status.has_access_token,
        "has_refresh_token": status.has_refresh_token,
        "is_expired": "unknown" if status.is_expired is None else status.is_expired,
        "expires_at": str(status.expires_at) if status.expires_at else "N/A",
        "seconds_remaining": status.seconds_remaining or 0,
    }


@app.command()
def login(
    username: Annotated[str, typer.Option("--username", "-u", prompt=True, help="Account username")],
    password: Annotated[str, typer.Option("--password", "-p", prompt=True, hide_input=True, help="Account password")],
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Log in and store access and refresh tokens."""
    client = ApiClient(get_config())

    async def _run() -> dict[str, object]:
        try:
            await client.auth.login(username, password)
            return _status_row(await client.auth.get_status())
        finally:
            await client.aclose()

    try:
        console.print(f"Logging in as [bold]{username}[/bold]...", style="yellow")
        result = asyncio.run(_run())
    except Exception as e:
        handle_error(e)
        raise typer.Exit(1)
    print_output({"status": "authenticated", **result}, output, title="Login")


@app.command()
def logout() -> None:
    """Revoke the refresh token and clear stored credentials."""
    client = ApiClient(get_config())

    async def _run() -> None:
        try:
            await client.auth.logout()
        finally:
            await client.aclose()

    asyncio.run(_run())
    console.print("[green]Logged out.[/green]")


@app.command()
def status(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Show stored token status."""
    client = ApiClient(get_config())

    async def _run():
        try:
            return await client.auth.get_status()
        finally:
            await client.aclose()

    print_output(_status_row(asyncio.run(_run())), output, title="Token Status")


@app.command()
def refresh(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Force an access token refresh using the stored refresh token."""
    client = ApiClient(get_config())

    async def _run() -> dict[str, object]:
        try:
            await client.coordinator.force_refresh()
            return {"status": "refreshed", **_status_row(await client.auth.get_status())}
        finally:
            await client.aclose()

    try:
        console.print("Refreshing access token...", style="yellow")
        result = asyncio.run(_run())
    except Exception as e:
        handle_error(e)
        raise typer.Exit(1)
    print_output(result, output, title="Token Refreshed")
