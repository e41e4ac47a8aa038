"""CLI commands for sending authenticated requests."""

from __future__ import annotations

import asyncio
import json
from typing import Annotated, Any, Optional

import typer
from rich.console import Console

from api_session.client import ApiClient
from api_session.config import get_config
from api_session.utils.errors import handle_error
from api_session.utils.output import OutputFormat, print_response

console = Console(stderr=True)
app = typer.Typer(name="request", help="Send authenticated requests to the API.")

DataOption = Annotated[Optional[str], typer.Option("--data", "-d", help="JSON request body")]
HeaderOption = Annotated[Optional[list[str]], typer.Option("--header", "-H", help="Extra header as 'Name: value'")]
OutputOption = Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")]


def _parse_headers(raw: list[str] | None) -> dict[str, str]:
    headers: dict[str, str] = {}
    for item in raw or []:
        name, sep, value = item.partition(":")
        if not sep or not name.strip():
            raise typer.BadParameter(f"Header must look like 'Name: value', got '{item}'")
        headers[name.strip()] = value.strip()
    return headers


def _parse_body(data: str | None) -> Any:
    if data is None:
        return None
    try:
        return json.loads(data)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"--data is not valid JSON: {e}")


def _send(method: str, path: str, data: str | None, header: list[str] | None, output: OutputFormat) -> None:
    options = {"method": method, "headers": _parse_headers(header), "body": _parse_body(data)}
    client = ApiClient(get_config())
    client.register_session_expired_handler(
        lambda: console.print("[red]Session expired.[/red] Run `api-session auth login`.")
    )

    async def _run():
        try:
            response = await client.perform_request(path, options)
            await response.aread()
            return response
        finally:
            await client.aclose()

    try:
        response = asyncio.run(_run())
    except Exception as e:
        handle_error(e)
        raise typer.Exit(1)

    print_response(response, output)
    if response.is_error:
        raise typer.Exit(1)


@app.command()
def get(
    path: Annotated[str, typer.Argument(help="API path or absolute URL")],
    header: HeaderOption = None,
    output: OutputOption = OutputFormat.JSON,
) -> None:
    """Send a GET request."""
    _send("GET", path, None, header, output)


@app.command()
def post(
    path: Annotated[str, typer.Argument(help="API path or absolute URL")],
    data: DataOption = None,
    header: HeaderOption = None,
    output: OutputOption = OutputFormat.JSON,
) -> None:
    """Send a POST request."""
    _send("POST", path, data, header, output)


@app.command()
def put(
    path: Annotated[str, typer.Argument(help="API path or absolute URL")],
    data: DataOption = None,
    header: HeaderOption = None,
    output: OutputOption = OutputFormat.JSON,
) -> None:
    """Send a PUT request."""
    _send("PUT", path, data, header, output)


@app.command()
def patch(
    path: Annotated[str, typer.Argument(help="API path or absolute URL")],
    data: DataOption = None,
    header: HeaderOption = None,
    output: OutputOption = OutputFormat.JSON,
) -> None:
    """Send a PATCH request."""
    _send("PATCH", path, data, header, output)


@app.command()
def delete(
    path: Annotated[str, typer.Argument(help="API path or absolute URL")],
    header: HeaderOption = None,
    output: OutputOption = OutputFormat.JSON,
) -> None:
    """Send a DELETE request."""
    _send("DELETE", path, None, header, output)
