"""Fallback path when the device flow cannot complete: create a token by hand.

Builds the GitHub "new personal access token" URL with the description and
scopes pre-filled and prints the steps to store the token with
``docksync auth token``.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote

from docksync.auth.notifier import Notifier
from docksync.output import info, suggest

logger = logging.getLogger(__name__)

TOKEN_PAGE_URL = "https://github.com/settings/tokens/new"
TOKEN_DESCRIPTION = "docker-sync-cli"
TOKEN_SCOPES = ("repo", "workflow", "write:packages")


def token_creation_url(
    description: str = TOKEN_DESCRIPTION,
    scopes: tuple[str, ...] = TOKEN_SCOPES,
) -> str:
    """Return the token-creation page URL with *description* and *scopes* pre-filled.

    Example::

        >>> token_creation_url()
        'https://github.com/settings/tokens/new?description=docker-sync-cli&scopes=repo,workflow,write:packages'
    """
    query_description = quote(description, safe="")
    query_scopes = ",".join(quote(s, safe=":") for s in scopes)
    return f"{TOKEN_PAGE_URL}?description={query_description}&scopes={query_scopes}"


def show_token_instructions(notifier: Optional[Notifier] = None) -> str:
    """Print the manual token steps and return the URL shown to the user.

    The notifier, when given, is asked to open the page; failures are
    ignored because the URL is printed anyway.
    """
    url = token_creation_url()
    info("Create a GitHub personal access token manually:")
    info(f"  1. Open: {url}")
    info("  2. The description and scopes are pre-filled")
    info("  3. Click 'Generate token' and copy it")
    suggest("Then run: docksync auth token YOUR_TOKEN")

    if notifier is not None:
        try:
            notifier.notify(url)
        except Exception as exc:
            logger.debug("Could not open %s: %s", url, exc)
    return url
