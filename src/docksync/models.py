"""Canonical Pydantic models shared across all docksync modules.

The models fall into three groups:

**Configuration** -- serialised as JSON in the user's config directory:
    :class:`AppConfig`.

**GitHub wire models** -- parsed from OAuth and REST API responses:
    :class:`DeviceGrant`, :class:`TokenResponse`, :class:`RemoteIdentity`,
    :class:`PipelineRun`, :class:`StepRecord`, and :class:`ArtifactVersion`.

**Sync results** -- produced by the orchestrator:
    :class:`ImageRef`, :class:`FetchResult`, and :class:`SyncOutcome`.

All models use Pydantic v2. Wire models ignore unknown keys because the
GitHub payloads are much larger than what docksync consumes.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from docksync.exceptions import InvalidUsageError


# --- Configuration ---


class AppConfig(BaseModel):
    """User configuration persisted at ``~/.config/docksync/config.json``.

    Loaded and saved by :func:`~docksync.config.load_config` and
    :func:`~docksync.config.save_config`. Environment variables can
    override the token, proxy and default registry; see
    :func:`~docksync.config.resolve_config`.
    """

    github_token: Optional[str] = Field(
        default=None, description="GitHub OAuth or personal access token"
    )
    ghcr_registry: str = Field(default="ghcr.io", description="Upstream GHCR host")
    nju_registry: str = Field(
        default="ghcr.nju.edu.cn", description="GHCR mirror reachable from mainland China"
    )
    default_registry: str = Field(
        default="ghcr.nju.edu.cn", description="Registry used for the final docker pull"
    )
    custom_registries: list[str] = Field(default_factory=list)
    proxy: Optional[str] = Field(
        default=None,
        description="Proxy URL for GitHub access (http://, https://, socks5://)",
    )

    def all_registries(self) -> list[str]:
        """Return the mirror, upstream and custom registries in preference order."""
        return [self.nju_registry, self.ghcr_registry, *self.custom_registries]


# --- OAuth device flow ---


class DeviceGrant(BaseModel):
    """Device/user code pair issued by the device authorization endpoint.

    Immutable once issued. ``interval`` is the minimum number of seconds
    between token polls and ``expires_in`` bounds the lifetime of
    ``device_code``.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    device_code: str
    user_code: str
    verification_uri: str = Field(
        validation_alias=AliasChoices("verification_uri", "verification_url")
    )
    expires_in: int = Field(default=900, ge=0)
    interval: int = Field(default=5, ge=1)


class TokenResponse(BaseModel):
    """Body of a token-exchange response: either a token or an error code."""

    model_config = ConfigDict(extra="ignore")

    access_token: Optional[str] = None
    token_type: Optional[str] = None
    scope: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None


# --- GitHub API ---


class RemoteIdentity(BaseModel):
    """The authenticated GitHub account."""

    model_config = ConfigDict(extra="ignore")

    login: str


class RunStatus(str, enum.Enum):
    """Workflow run statuses docksync reacts to."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class RunConclusion(str, enum.Enum):
    """Workflow run conclusions with a dedicated meaning."""

    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"


class PipelineRun(BaseModel):
    """One execution of the sync workflow.

    ``status`` and ``conclusion`` keep GitHub's raw strings so that values
    outside :class:`RunStatus` / :class:`RunConclusion` (``waiting``,
    ``timed_out``, ...) survive unchanged.
    """

    model_config = ConfigDict(extra="ignore")

    id: int
    status: str
    conclusion: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.status == RunStatus.COMPLETED.value

    @property
    def succeeded(self) -> bool:
        return self.is_completed and self.conclusion == RunConclusion.SUCCESS.value

    @property
    def terminal_status(self) -> str:
        """The conclusion if one is known, otherwise the raw status."""
        return self.conclusion or self.status


class StepRecord(BaseModel):
    """A single step of the sync job, re-fetched on every poll."""

    model_config = ConfigDict(extra="ignore")

    name: str = ""
    status: str = ""
    conclusion: Optional[str] = None

    @property
    def is_successful(self) -> bool:
        return self.status == "completed" and self.conclusion == "success"


class ArtifactVersion(BaseModel):
    """A version of a container package and the tags pointing at it."""

    id: int
    tags: frozenset[str] = Field(default_factory=frozenset)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ArtifactVersion:
        """Build a version from a GitHub ``package version`` object.

        Tags live under ``metadata.container.tags``; missing sections yield
        an empty tag set.
        """
        container = (data.get("metadata") or {}).get("container") or {}
        tags = container.get("tags") or []
        return cls(id=data["id"], tags=frozenset(str(t) for t in tags))


# --- Sync results ---


class ImageRef(BaseModel):
    """A Docker image split into package name and tag.

    Example::

        ImageRef.parse("nginx:alpine")   # name="nginx", tag="alpine"
        ImageRef.parse("redis")          # name="redis", tag="latest"
    """

    model_config = ConfigDict(frozen=True)

    name: str
    tag: str = "latest"

    @classmethod
    def parse(cls, image: str) -> ImageRef:
        """Parse *image*, treating the last ``:`` after the last ``/`` as the tag separator.

        Raises:
            InvalidUsageError: If the name or the tag is empty.
        """
        text = image.strip()
        colon = text.rfind(":")
        if colon > text.rfind("/"):
            name, tag = text[:colon], text[colon + 1 :]
        else:
            name, tag = text, "latest"
        if not name or not tag:
            raise InvalidUsageError(f"Invalid image reference: '{image}'")
        return cls(name=name, tag=tag)

    def __str__(self) -> str:
        return f"{self.name}:{self.tag}"


class FetchResult(BaseModel):
    """Outcome of handing a mirrored image to the artifact fetcher."""

    reference: str
    pulled: bool


class SyncOutcome(BaseModel):
    """Successful end state of one synced image."""

    image: str
    reference: str
    run_id: int
    conclusion: Optional[str] = None
    fetch: Optional[FetchResult] = None
