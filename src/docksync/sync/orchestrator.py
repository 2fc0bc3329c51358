"""Per-image sync protocol: ensure the pipeline, dispatch, follow the run, fetch.

One :class:`SyncOrchestrator` handles a batch of images strictly in order.
For every image it:

1. resolves the GitHub identity (memoised by the client),
2. makes sure the ``docker-sync`` repository and workflow are in place,
3. deletes an existing package version with the same tag so the run
   publishes a fresh one,
4. dispatches the workflow and polls the run until it completes, printing
   each finished step once,
5. pulls ``{registry}/{login}/{image}`` through the fetcher.

The first failure stops the batch; earlier images stay synced.
"""

from __future__ import annotations

import time
from typing import Iterable, Optional, Protocol

from docksync.exceptions import RunFailedError
from docksync.fetch import ArtifactFetcher
from docksync.models import (
    ArtifactVersion,
    ImageRef,
    PipelineRun,
    RemoteIdentity,
    RunStatus,
    StepRecord,
    SyncOutcome,
)
from docksync.output import (
    error_detail,
    get_output,
    info,
    progress,
    status,
    success,
)

RUN_POLL_INTERVAL = 3
DELETE_SETTLE_SECONDS = 2
ERROR_KEYWORDS = ("Error", "error", "denied", "failed")
ACTIVE_STATUSES = (RunStatus.QUEUED.value, RunStatus.IN_PROGRESS.value)


class RemoteJobClient(Protocol):
    """The GitHub operations the orchestrator depends on."""

    def resolve_identity(self) -> RemoteIdentity: ...

    def ensure_sync_pipeline(self, identity: RemoteIdentity) -> str: ...

    def dispatch_job(self, identity: RemoteIdentity, parameter: str) -> int: ...

    def get_run_status(self, run_id: int) -> PipelineRun: ...

    def get_run_steps(self, run_id: int) -> list[StepRecord]: ...

    def get_run_logs(self, run_id: int) -> str: ...

    def list_artifact_versions(self, name: str) -> Optional[list[ArtifactVersion]]: ...

    def artifact_version_exists(self, name: str, tag: str) -> bool: ...

    def delete_artifact_version(self, name: str, tag: str) -> bool: ...


def error_lines(logs: str) -> list[str]:
    """Return the log lines that mention an error, in order."""
    return [line for line in logs.splitlines() if any(k in line for k in ERROR_KEYWORDS)]


class SyncOrchestrator:
    """Drive images through the remote sync workflow and fetch the results.

    Args:
        client: A :class:`RemoteJobClient`, normally an open
            :class:`~docksync.client.github.GitHubClient`.
        fetcher: Retrieves the published image, normally a
            :class:`~docksync.fetch.DockerFetcher`.
        registry: Registry host the image is fetched from.
        poll_interval: Seconds between run status polls.
    """

    def __init__(
        self,
        client: RemoteJobClient,
        fetcher: ArtifactFetcher,
        registry: str,
        poll_interval: float = RUN_POLL_INTERVAL,
    ) -> None:
        self._client = client
        self._fetcher = fetcher
        self._registry = registry
        self._poll_interval = poll_interval

    def sync(self, images: Iterable[str]) -> list[SyncOutcome]:
        """Sync *images* one after the other and return their outcomes."""
        images = list(images)
        batch = len(images) > 1
        if batch:
            info(f"Preparing to sync {len(images)} images...")

        outcomes: list[SyncOutcome] = []
        for index, image in enumerate(images, start=1):
            if batch:
                info("")
                info(f"[{index}/{len(images)}] Processing image: {image}")
            outcomes.append(self.sync_image(image))

        if batch:
            info("")
            success(f"All {len(images)} images synced")
        return outcomes

    def sync_image(self, image: str) -> SyncOutcome:
        """Run the full sync protocol for a single image.

        Raises:
            InvalidUsageError: If *image* cannot be parsed.
            RunFailedError: If the workflow run does not succeed.
            DocksyncError: Any failure of the client or the fetcher.
        """
        image = image.strip()
        ref = ImageRef.parse(image)
        identity = self._client.resolve_identity()
        self._client.ensure_sync_pipeline(identity)

        reference = f"{self._registry}/{identity.login.lower()}/{image}"
        info(f"Checking {reference}")

        if self._client.artifact_version_exists(ref.name, ref.tag):
            info(f"{ref} already exists on GHCR, deleting it first...")
            self._client.delete_artifact_version(ref.name, ref.tag)
            time.sleep(DELETE_SETTLE_SECONDS)

        info("Starting the GitHub Actions sync...")
        progress("Large images can take a while to sync")
        run_id = self._client.dispatch_job(identity, image)
        info(f"Workflow started, run ID: {run_id}")

        run = self.monitor_run(run_id)

        success(f"Sync complete, pulling {reference}...")
        fetched = self._fetcher.fetch(reference)
        if fetched.pulled:
            get_output().print_data(reference)

        return SyncOutcome(
            image=image,
            reference=reference,
            run_id=run_id,
            conclusion=run.conclusion,
            fetch=fetched,
        )

    def monitor_run(self, run_id: int) -> PipelineRun:
        """Poll run *run_id* until it completes.

        While the run is queued or in progress, each step that completed
        successfully is printed once and the running step is shown on the
        spinner. There is no overall timeout.

        Returns:
            The completed, successful run.

        Raises:
            RunFailedError: If the run completes with any conclusion other
                than ``success``. Error lines from the logs are printed first.
        """
        printed: set[str] = set()

        with status("Waiting for the sync to finish...") as line:
            while True:
                run = self._client.get_run_status(run_id)

                if run.is_completed:
                    if run.succeeded:
                        success("Sync succeeded")
                        return run
                    break

                if run.status in ACTIVE_STATUSES:
                    for step in self._client.get_run_steps(run_id):
                        if step.is_successful:
                            if step.name not in printed:
                                printed.add(step.name)
                                success(f"  ✓ {step.name}")
                        elif step.status == RunStatus.IN_PROGRESS.value:
                            line.update(f"Running: {step.name}")
                else:
                    line.update(f"Status: {run.status}")

                time.sleep(self._poll_interval)

        self._report_failure(run_id)
        raise RunFailedError(
            f"GitHub Action sync failed: {run.terminal_status}",
            run_id=run_id,
            status=run.terminal_status,
        )

    def _report_failure(self, run_id: int) -> None:
        logs = self._client.get_run_logs(run_id)
        lines = error_lines(logs)
        if not lines:
            return
        error_detail("")
        error_detail("Error details:")
        for entry in lines:
            error_detail(entry)
