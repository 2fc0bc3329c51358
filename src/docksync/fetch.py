"""Pull a mirrored image onto the local machine once its workflow run succeeded."""

from __future__ import annotations

import subprocess
from typing import Protocol

from docksync.exceptions import FetchError
from docksync.models import FetchResult
from docksync.output import debug, info, warning


class ArtifactFetcher(Protocol):
    """Something that retrieves a published image by its full reference."""

    def fetch(self, reference: str) -> FetchResult: ...


class DockerFetcher:
    """Fetch images with the local ``docker`` CLI.

    When Docker is not installed nothing is pulled: the manual ``docker
    pull`` command is printed instead and the result is marked
    ``pulled=False``.
    """

    def __init__(self, executable: str = "docker") -> None:
        self._executable = executable

    def is_available(self) -> bool:
        """Return ``True`` if ``docker --version`` runs successfully."""
        try:
            result = subprocess.run(
                [self._executable, "--version"],
                capture_output=True,
                text=True,
            )
        except (FileNotFoundError, PermissionError) as exc:
            debug(f"Docker not available: {exc}")
            return False
        return result.returncode == 0

    def fetch(self, reference: str) -> FetchResult:
        if not self.is_available():
            warning("Docker was not found, pull the image manually:")
            info(f"   docker pull {reference}")
            return FetchResult(reference=reference, pulled=False)

        result = subprocess.run([self._executable, "pull", reference])
        if result.returncode != 0:
            raise FetchError(
                f"docker pull {reference} failed with exit code {result.returncode}"
            )
        return FetchResult(reference=reference, pulled=True)
