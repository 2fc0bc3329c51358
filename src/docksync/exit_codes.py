"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~docksync.exceptions.DocksyncError` subclass.
Shell wrappers can inspect the exit code to tell a rejected token from a
failed workflow run without parsing stderr.

Example::

    $ docksync pull nginx:alpine
    $ echo $?
    4   # EXIT_RUN_FAILED -- the sync workflow did not succeed
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments (e.g. an empty image name)."""

EXIT_AUTH_FAILURE = 3
"""Authentication failed: login aborted, token rejected or missing."""

EXIT_RUN_FAILED = 4
"""The remote sync workflow finished with a non-success conclusion."""

EXIT_REMOTE_ERROR = 5
"""The GitHub API returned an unexpected non-success response."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_FETCH_FAILED = 7
"""The local ``docker pull`` of the mirrored image failed."""
