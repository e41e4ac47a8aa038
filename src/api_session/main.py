"""api-session CLI entry point.

Log in once, then call the API without worrying about access-token expiry.
"""

from __future__ import annotations

import logging

import typer

from api_session.commands.auth_cmd import app as auth_app
from api_session.commands.request_cmd import app as request_app

app = typer.Typer(
    name="api-session",
    help="Authenticated API client with transparent access-token refresh.",
    no_args_is_help=True,
)

# Register command groups
app.add_typer(auth_app, name="auth")
app.add_typer(request_app, name="request")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """api-session: manage the stored session and send authenticated requests."""
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


if __name__ == "__main__":
    app()
