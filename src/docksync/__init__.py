"""docksync -- Mirror Docker Hub images to GHCR through GitHub Actions.

Users who cannot reach Docker Hub log in with GitHub once, then ask
docksync for an image. The tool keeps a ``docker-sync`` repository with a
bundled workflow under the user's account, dispatches that workflow with
the requested image, follows the run to completion and finally pulls the
mirrored image from the GHCR mirror registry.

Typical workflow::

    docksync auth login              # OAuth device flow
    docksync pull nginx:alpine       # sync + docker pull

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration store.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
