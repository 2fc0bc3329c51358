"""Pull command -- mirror images to GHCR and pull them locally."""

from __future__ import annotations

import typer

from docksync.client import GitHubClient
from docksync.config import resolve_config
from docksync.exit_codes import EXIT_AUTH_FAILURE
from docksync.fetch import DockerFetcher
from docksync.output import OutputManager, error, get_output, set_output, suggest
from docksync.sync import SyncOrchestrator


def pull_command(
    images: list[str] = typer.Argument(
        help="Images to sync, e.g. nginx:alpine redis:7 mysql:8.0."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress progress output."
    ),
) -> None:
    """Sync images through GitHub Actions, then pull them from the mirror.

    Images are processed one after the other. The first failure stops the
    batch; images synced before it are kept.

    Example::

        docksync pull nginx:alpine
        docksync pull redis:7 mysql:8.0 -q
    """
    if quiet:
        current = get_output()
        set_output(
            OutputManager(
                format=current.format,
                no_color=current.no_color,
                quiet=True,
                verbose=current.is_verbose,
            )
        )

    config = resolve_config()
    if not config.github_token:
        error("Authentication required")
        suggest("Run: docksync auth login")
        raise typer.Exit(code=EXIT_AUTH_FAILURE)

    with GitHubClient(config.github_token, proxy=config.proxy) as client:
        orchestrator = SyncOrchestrator(
            client=client,
            fetcher=DockerFetcher(),
            registry=config.default_registry,
        )
        orchestrator.sync(images)
