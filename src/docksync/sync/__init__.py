"""Batch sync of Docker images through the remote GitHub Actions workflow."""

from docksync.sync.orchestrator import RemoteJobClient, SyncOrchestrator, error_lines

__all__ = ["RemoteJobClient", "SyncOrchestrator", "error_lines"]
