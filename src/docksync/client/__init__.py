"""GitHub REST client used by the sync orchestrator and ``config test-proxy``."""

from docksync.client.github import GitHubClient, probe_connection

__all__ = ["GitHubClient", "probe_connection"]
