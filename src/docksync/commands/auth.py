"""Auth commands -- log in to GitHub and manage the stored token.

Provides the ``docksync auth`` sub-command group. ``login`` runs the OAuth
device flow and falls back to manual token instructions when the flow
fails; ``token`` stores a personal access token directly.

Typical workflow::

    docksync auth login          # device flow in the browser
    docksync auth status         # check who is logged in
    docksync auth token ghp_xxx  # or store a token by hand
"""

from __future__ import annotations

from typing import Optional

import typer

from docksync.auth import BrowserNotifier, DeviceAuthFlow, show_token_instructions
from docksync.client import GitHubClient
from docksync.config import load_config, resolve_config, save_config
from docksync.exceptions import DocksyncError
from docksync.output import error, info, success, suggest, warning


auth_app = typer.Typer(no_args_is_help=True)


def _lookup_login(token: str, proxy: Optional[str]) -> Optional[str]:
    """Return the GitHub login for *token*, or ``None`` if it cannot be verified."""
    try:
        with GitHubClient(token, proxy=proxy) as client:
            return client.resolve_identity().login
    except DocksyncError as exc:
        warning(f"Could not verify token: {exc}")
        return None


def _store_token(token: Optional[str]) -> None:
    config = load_config()
    config.github_token = token
    save_config(config)


@auth_app.command("login")
def auth_login() -> None:
    """Log in with GitHub using the device flow.

    Prints a verification URL and a short code, opens the browser when a
    graphical session is available, and waits for the authorization. On
    success the token is saved to the config file. If the flow fails for
    any reason, instructions for creating a token by hand are printed
    instead.

    Example::

        docksync auth login
    """
    proxy = resolve_config().proxy
    info("Starting GitHub authentication...")

    flow = DeviceAuthFlow(proxy=proxy, notifier=BrowserNotifier())
    try:
        token = flow.login()
    except DocksyncError as exc:
        error(f"Authentication failed: {exc}")
        info("")
        warning("Fallback: manual token creation")
        show_token_instructions(BrowserNotifier())
        raise typer.Exit(code=exc.exit_code) from None

    _store_token(token)
    success("Authentication successful!")

    login = _lookup_login(token, proxy)
    if login:
        info(f"Authenticated as: {login}")


@auth_app.command("token")
def auth_token(
    token: str = typer.Argument(help="GitHub personal access token."),
) -> None:
    """Store a GitHub token manually and verify it.

    The token needs the ``repo``, ``workflow`` and ``write:packages``
    scopes (``delete:packages`` to replace existing tags).

    Example::

        docksync auth token ghp_xxxxxxxxxxxx
    """
    token = token.strip()
    if not token:
        error("Token must not be empty.")
        raise typer.Exit(code=2)

    _store_token(token)
    success("Token saved successfully")

    login = _lookup_login(token, resolve_config().proxy)
    if login:
        info(f"Authenticated as: {login}")


@auth_app.command("logout")
def auth_logout() -> None:
    """Remove the stored token."""
    _store_token(None)
    success("Logged out successfully")


@auth_app.command("status")
def auth_status() -> None:
    """Show whether a token is configured and which account it belongs to."""
    config = resolve_config()
    if not config.github_token:
        error("Not authenticated")
        suggest("Run: docksync auth login")
        raise typer.Exit(code=3)

    success("Authenticated")
    login = _lookup_login(config.github_token, config.proxy)
    if login:
        info(f"Username: {login}")
    else:
        warning("Token may be invalid")
