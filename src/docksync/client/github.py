"""Authenticated GitHub REST client for the sync repository, its workflow and packages.

:class:`GitHubClient` wraps :class:`httpx.Client` and exposes exactly the
calls the sync protocol needs:

- **Identity** -- :meth:`~GitHubClient.resolve_identity`, memoised per
  client instance.
- **Pipeline** -- :meth:`~GitHubClient.ensure_sync_pipeline` creates the
  ``docker-sync`` repository on first use and always overwrites the
  workflow file with the bundled template.
- **Runs** -- :meth:`~GitHubClient.dispatch_job`,
  :meth:`~GitHubClient.get_run_status`, :meth:`~GitHubClient.get_run_steps`
  and :meth:`~GitHubClient.get_run_logs`.
- **Packages** -- listing and deleting container package versions by tag.

Every request carries ``Authorization: Bearer <token>``, the GitHub v3
media type and a fixed ``User-Agent``. Transport failures surface as
:class:`~docksync.exceptions.NetworkError`; non-success answers surface as
:class:`~docksync.exceptions.AuthError` (401/403) or
:class:`~docksync.exceptions.RemoteError` with the response body kept
verbatim. Step and log retrieval never raise: they are cosmetic.

The dispatch endpoint does not return a run ID, so
:meth:`~GitHubClient.dispatch_job` takes the newest run of the workflow
after a short delay. Two dispatches racing against the same workflow can
therefore be mixed up.
"""

from __future__ import annotations

import base64
import time
from pathlib import Path
from typing import Any, Optional
from urllib.parse import quote

import httpx

from docksync.exceptions import AuthError, NetworkError, RemoteError
from docksync.models import (
    ArtifactVersion,
    PipelineRun,
    RemoteIdentity,
    RunStatus,
    StepRecord,
)
from docksync.output import debug, info, progress, success, suggest, warning

API_URL = "https://api.github.com"
USER_AGENT = "docker-sync-cli"
ACCEPT = "application/vnd.github.v3+json"
REQUEST_TIMEOUT = 30.0

REPO_NAME = "docker-sync"
REPO_DESCRIPTION = (
    "Docker image sync repository - automatically sync Docker Hub images to GHCR"
)
DEFAULT_BRANCH = "main"
WORKFLOW_FILE = "docker-sync.yml"
WORKFLOW_PATH = f".github/workflows/{WORKFLOW_FILE}"
WORKFLOW_INPUT = "docker_images"

WORKFLOW_SETTLE_SECONDS = 10
DISPATCH_RETRIES = 5
DISPATCH_RETRY_DELAY = 10
RUN_LOOKUP_DELAY = 2
PACKAGE_PAGE_SIZE = 100


TEMPLATE_DIR = Path(__file__).parent.parent / "templates"
"""Directory holding the bundled workflow (``docksync/templates/``)."""


def load_workflow_template() -> str:
    """Return the bundled workflow definition, uploaded verbatim."""
    return (TEMPLATE_DIR / WORKFLOW_FILE).read_text(encoding="utf-8")


class GitHubClient:
    """Synchronous client for the GitHub calls behind one sync session.

    Must be used as a context manager so that the underlying transport is
    opened and closed.

    Args:
        token: GitHub bearer token.
        proxy: Optional proxy URL. An unparsable proxy is reported and
            ignored, falling back to a direct connection.
        api_url: API root, overridable for GitHub Enterprise.
        transport: Optional :class:`httpx.BaseTransport` (tests pass an
            :class:`httpx.MockTransport`).

    Example::

        with GitHubClient(token) as client:
            identity = client.resolve_identity()
            client.ensure_sync_pipeline(identity)
            run_id = client.dispatch_job(identity, "nginx:alpine")
    """

    def __init__(
        self,
        token: str,
        proxy: Optional[str] = None,
        api_url: str = API_URL,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._token = token
        self._proxy = proxy
        self._api_url = api_url
        self._transport = transport
        self._identity: Optional[RemoteIdentity] = None
        self._client: Optional[httpx.Client] = None

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> GitHubClient:
        kwargs: dict[str, Any] = {
            "base_url": self._api_url,
            "timeout": REQUEST_TIMEOUT,
            "follow_redirects": True,
            "headers": {
                "Authorization": f"Bearer {self._token}",
                "Accept": ACCEPT,
                "User-Agent": USER_AGENT,
            },
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport
        if self._proxy:
            try:
                self._client = httpx.Client(proxy=self._proxy, **kwargs)
                debug(f"Using proxy: {self._proxy}")
                return self
            except ValueError as exc:
                warning(f"Invalid proxy '{self._proxy}': {exc}. Connecting directly.")
        self._client = httpx.Client(**kwargs)
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #

    def request(
        self,
        method: str,
        path: str,
        json_body: Optional[Any] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send an authenticated request and return the raw response.

        Raises:
            NetworkError: On connection, timeout or protocol failures.
        """
        assert self._client is not None, "Client not initialised -- use as context manager"
        try:
            return self._client.request(method, path, json=json_body, params=params)
        except httpx.HTTPError as exc:
            raise NetworkError(f"{method} {path} failed: {exc}") from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response, context: str) -> None:
        """Raise a typed exception for a non-success response, keeping the body."""
        if response.is_success:
            return
        body = response.text or f"HTTP {response.status_code}"
        if response.status_code in (401, 403):
            raise AuthError(f"{context}: {body}")
        raise RemoteError(f"{context}: {body}")

    # ------------------------------------------------------------------ #
    # Identity
    # ------------------------------------------------------------------ #

    def resolve_identity(self) -> RemoteIdentity:
        """Return the authenticated account, fetching it only once per client.

        Raises:
            AuthError: If GitHub rejects the token.
        """
        if self._identity is not None:
            return self._identity

        response = self.request("GET", "/user")
        if not response.is_success:
            body = response.text or f"HTTP {response.status_code}"
            raise AuthError(f"Failed to get user info: {body}")
        self._identity = RemoteIdentity.model_validate(response.json())
        return self._identity

    def repo_full_name(self, identity: Optional[RemoteIdentity] = None) -> str:
        """Return ``{login}/docker-sync`` for *identity* (default: the resolved one)."""
        login = (identity or self.resolve_identity()).login
        return f"{login}/{REPO_NAME}"

    # ------------------------------------------------------------------ #
    # Repository and workflow
    # ------------------------------------------------------------------ #

    def ensure_sync_pipeline(self, identity: RemoteIdentity) -> str:
        """Make sure the sync repository exists and carries the bundled workflow.

        A missing repository is created, receives the workflow and gets
        write permissions for Actions. An existing repository gets its
        workflow uploaded if missing, otherwise unconditionally overwritten.
        Both paths wait for GitHub to register the workflow.

        Returns:
            The repository full name.
        """
        repo = self.repo_full_name(identity)

        if self.repository_exists(repo):
            sha = self.get_workflow_sha(repo)
            if sha is None:
                info("Workflow file missing, creating it...")
            else:
                debug(f"Updating workflow file (sha {sha})")
            self.upload_workflow(repo, sha=sha)
        else:
            info("First run: creating the sync repository (this can take a moment)...")
            self.create_repository()
            self.upload_workflow(repo)
            self.set_actions_permissions(repo)
            success(f"Repository ready: https://github.com/{repo}")

        progress("Waiting for GitHub to register the workflow...")
        time.sleep(WORKFLOW_SETTLE_SECONDS)
        return repo

    def repository_exists(self, repo: str) -> bool:
        response = self.request("GET", f"/repos/{repo}")
        if response.status_code == 404:
            return False
        self._raise_for_status(response, f"Failed to look up repository {repo}")
        return True

    def create_repository(self) -> None:
        """Create the public ``docker-sync`` repository under the authenticated user."""
        payload = {
            "name": REPO_NAME,
            "description": REPO_DESCRIPTION,
            "private": False,
            "auto_init": True,
            "has_issues": False,
            "has_projects": False,
            "has_wiki": False,
        }
        response = self.request("POST", "/user/repos", json_body=payload)
        self._raise_for_status(response, "Failed to create repository")
        info(f"Repository created: https://github.com/{self.repo_full_name()}")

    def get_workflow_sha(self, repo: str) -> Optional[str]:
        """Return the blob SHA of the workflow file, or ``None`` if it does not exist."""
        response = self.request("GET", f"/repos/{repo}/contents/{WORKFLOW_PATH}")
        if response.status_code == 404:
            return None
        self._raise_for_status(response, "Failed to read workflow file")
        return response.json().get("sha")

    def upload_workflow(self, repo: str, sha: Optional[str] = None) -> None:
        """Create (no *sha*) or overwrite (with *sha*) the workflow file."""
        content = base64.b64encode(load_workflow_template().encode("utf-8")).decode("ascii")
        payload: dict[str, Any] = {
            "message": "Update docker sync workflow" if sha else "Add docker sync workflow",
            "content": content,
            "branch": DEFAULT_BRANCH,
        }
        if sha:
            payload["sha"] = sha

        response = self.request(
            "PUT", f"/repos/{repo}/contents/{WORKFLOW_PATH}", json_body=payload
        )
        action = "update" if sha else "upload"
        self._raise_for_status(response, f"Failed to {action} workflow")
        debug(f"Workflow {action}ed to {repo}/{WORKFLOW_PATH}")

    def set_actions_permissions(self, repo: str) -> bool:
        """Enable Actions and grant the workflow token write access.

        Failure is reported as a warning with the settings URL; it never
        aborts the sync.

        Returns:
            ``True`` if the workflow permissions were applied.
        """
        try:
            self.request(
                "PUT",
                f"/repos/{repo}/actions/permissions",
                json_body={"enabled": True, "allowed_actions": "all"},
            )
            response = self.request(
                "PUT",
                f"/repos/{repo}/actions/permissions/workflow",
                json_body={
                    "default_workflow_permissions": "write",
                    "can_approve_pull_request_reviews": True,
                },
            )
        except NetworkError as exc:
            detail = str(exc)
        else:
            if response.is_success:
                success("Actions permissions configured")
                return True
            detail = response.text

        warning(f"Could not set Actions permissions: {detail}")
        suggest(
            "Enable 'Read and write permissions' manually at "
            f"https://github.com/{repo}/settings/actions"
        )
        return False

    # ------------------------------------------------------------------ #
    # Runs
    # ------------------------------------------------------------------ #

    def dispatch_job(self, identity: RemoteIdentity, parameter: str) -> int:
        """Trigger the workflow with *parameter* as its image input and return the run ID.

        A 404 means GitHub has not registered a freshly uploaded workflow
        yet; it is retried up to :data:`DISPATCH_RETRIES` times,
        :data:`DISPATCH_RETRY_DELAY` seconds apart.

        Raises:
            RemoteError: On any other failure, or when no run can be found.
        """
        repo = self.repo_full_name(identity)
        path = f"/repos/{repo}/actions/workflows/{WORKFLOW_FILE}/dispatches"
        payload = {"ref": DEFAULT_BRANCH, "inputs": {WORKFLOW_INPUT: parameter}}

        retries = DISPATCH_RETRIES
        while True:
            response = self.request("POST", path, json_body=payload)
            if response.is_success:
                break
            if response.status_code == 404 and retries > 0:
                retries -= 1
                progress(
                    f"Waiting for the workflow to become available "
                    f"(retrying in {DISPATCH_RETRY_DELAY}s)..."
                )
                time.sleep(DISPATCH_RETRY_DELAY)
                continue
            self._raise_for_status(response, "Failed to trigger workflow")

        time.sleep(RUN_LOOKUP_DELAY)
        return self.latest_run_id(repo)

    def latest_run_id(self, repo: str) -> int:
        """Return the ID of the newest run of the sync workflow."""
        response = self.request(
            "GET",
            f"/repos/{repo}/actions/workflows/{WORKFLOW_FILE}/runs",
            params={"per_page": 1},
        )
        self._raise_for_status(response, "Failed to get workflow runs")
        runs = response.json().get("workflow_runs") or []
        if not runs:
            raise RemoteError("No workflow runs found")
        return int(runs[0]["id"])

    def get_run_status(self, run_id: int) -> PipelineRun:
        """Fetch a run and normalise it.

        Completed runs keep their conclusion (``success``, ``failure``,
        ``cancelled`` or anything else GitHub reports). Runs that are not
        completed keep their raw status and carry no conclusion.
        """
        response = self.request("GET", f"/repos/{self.repo_full_name()}/actions/runs/{run_id}")
        self._raise_for_status(response, "Failed to get run status")
        run = PipelineRun.model_validate(response.json())
        if run.status != RunStatus.COMPLETED.value and run.conclusion is not None:
            run = run.model_copy(update={"conclusion": None})
        return run

    def get_run_steps(self, run_id: int) -> list[StepRecord]:
        """Return the steps of the run's first job, or ``[]`` if they cannot be fetched."""
        jobs = self._list_jobs(run_id)
        if not jobs:
            return []
        steps = jobs[0].get("steps") or []
        try:
            return [StepRecord.model_validate(step) for step in steps]
        except ValueError as exc:
            debug(f"Ignoring malformed steps of run {run_id}: {exc}")
            return []

    def get_run_logs(self, run_id: int) -> str:
        """Return the concatenated logs of all jobs of the run.

        Jobs whose logs cannot be fetched are skipped. Returns an empty
        string if nothing could be fetched.
        """
        logs: list[str] = []
        for job in self._list_jobs(run_id):
            job_id = job.get("id")
            if job_id is None:
                continue
            try:
                response = self.request(
                    "GET", f"/repos/{self.repo_full_name()}/actions/jobs/{job_id}/logs"
                )
            except NetworkError as exc:
                debug(f"Skipping logs of job {job_id}: {exc}")
                continue
            if response.is_success:
                logs.append(response.text + "\n")
            else:
                debug(f"Skipping logs of job {job_id}: HTTP {response.status_code}")
        return "".join(logs)

    def _list_jobs(self, run_id: int) -> list[dict[str, Any]]:
        try:
            response = self.request(
                "GET", f"/repos/{self.repo_full_name()}/actions/runs/{run_id}/jobs"
            )
            if not response.is_success:
                debug(f"Listing jobs of run {run_id} returned HTTP {response.status_code}")
                return []
            return response.json().get("jobs") or []
        except (NetworkError, ValueError) as exc:
            debug(f"Listing jobs of run {run_id} failed: {exc}")
            return []

    # ------------------------------------------------------------------ #
    # Packages
    # ------------------------------------------------------------------ #

    def _package_path(self, name: str) -> str:
        login = self.resolve_identity().login
        return f"/users/{login}/packages/container/{quote(name, safe='')}"

    def list_artifact_versions(self, name: str) -> Optional[list[ArtifactVersion]]:
        """Return every version of container package *name*.

        Returns:
            The versions, or ``None`` if the package does not exist (404) or
            cannot be listed.
        """
        versions: list[ArtifactVersion] = []
        page = 1
        while True:
            response = self.request(
                "GET",
                f"{self._package_path(name)}/versions",
                params={"per_page": PACKAGE_PAGE_SIZE, "page": page},
            )
            if response.status_code == 404:
                return None
            if not response.is_success:
                warning(
                    f"Could not list versions of '{name}' "
                    f"(HTTP {response.status_code}), assuming none exist"
                )
                return None

            batch = response.json()
            versions.extend(ArtifactVersion.from_api(item) for item in batch)
            if len(batch) < PACKAGE_PAGE_SIZE:
                return versions
            page += 1

    def artifact_version_exists(self, name: str, tag: str) -> bool:
        """Return ``True`` if package *name* has a version tagged *tag*."""
        versions = self.list_artifact_versions(name)
        if not versions:
            return False
        return any(tag in version.tags for version in versions)

    def delete_artifact_version(self, name: str, tag: str) -> bool:
        """Delete the version of *name* tagged *tag*.

        If that version is the package's only one, the whole package is
        deleted, since GitHub refuses to delete the last version of a
        package.

        Returns:
            ``True`` if something was deleted.
        """
        versions = self.list_artifact_versions(name)
        if not versions:
            return False
        match = next((v for v in versions if tag in v.tags), None)
        if match is None:
            return False

        if len(versions) == 1:
            return self.delete_artifact(name)

        info(f"Deleting {name}:{tag}...")
        response = self.request("DELETE", f"{self._package_path(name)}/versions/{match.id}")
        return self._report_delete(response, f"{name}:{tag}")

    def delete_artifact(self, name: str) -> bool:
        """Delete container package *name* with all its versions."""
        info(f"Deleting {name}...")
        response = self.request("DELETE", self._package_path(name))
        return self._report_delete(response, name)

    @staticmethod
    def _report_delete(response: httpx.Response, label: str) -> bool:
        if response.is_success:
            success(f"Deleted '{label}'")
            return True
        if response.status_code == 404:
            warning(f"'{label}' does not exist")
        else:
            warning(f"Failed to delete '{label}': {response.text}")
        return False


def probe_connection(
    proxy: Optional[str],
    url: str = API_URL,
    timeout: float = 10.0,
) -> httpx.Response:
    """Send an unauthenticated GET to *url*, through *proxy* when given.

    Used by ``docksync config test-proxy``.

    Raises:
        NetworkError: If the proxy URL is invalid or the request fails.
    """
    try:
        return httpx.get(
            url,
            headers={"User-Agent": f"{USER_AGENT}-test"},
            proxy=proxy,
            timeout=timeout,
        )
    except ValueError as exc:
        raise NetworkError(f"Invalid proxy configuration: {exc}") from exc
    except httpx.HTTPError as exc:
        raise NetworkError(f"Connection failed: {exc}") from exc
