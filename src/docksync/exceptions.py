"""Exception hierarchy for docksync.

All exceptions inherit from :class:`DocksyncError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`docksync.exit_codes`.
The top-level error handler in :func:`docksync.app.main` catches
``DocksyncError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    DocksyncError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- ConfigError         (exit 1)
    +-- AuthError           (exit 3)
    |   +-- DeviceFlowError
    |       +-- ProviderError
    |       +-- AccessDeniedError
    |       +-- DeviceCodeExpiredError
    |       +-- AuthorizationTimeoutError
    +-- RunFailedError      (exit 4)
    +-- RemoteError         (exit 5)
    +-- NetworkError        (exit 6)
    +-- FetchError          (exit 7)
"""

from docksync.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_FETCH_FAILED,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_REMOTE_ERROR,
    EXIT_RUN_FAILED,
)


class DocksyncError(Exception):
    """Base exception for all docksync errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`docksync.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(DocksyncError):
    """Raised for invalid CLI arguments such as an unparsable image reference."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(DocksyncError):
    """Raised for configuration problems (invalid JSON, unreadable config file)."""

    exit_code = EXIT_GENERIC_FAILURE


class AuthError(DocksyncError):
    """Raised when an authenticated call is rejected or no credential is available."""

    exit_code = EXIT_AUTH_FAILURE


class DeviceFlowError(AuthError):
    """Base class for terminal failures of the OAuth device authorization flow."""


class ProviderError(DeviceFlowError):
    """Raised when the OAuth provider rejects a request or returns an unknown error code."""


class AccessDeniedError(DeviceFlowError):
    """Raised when the user declines the authorization request."""


class DeviceCodeExpiredError(DeviceFlowError):
    """Raised when the device code expires before the user authorizes."""


class AuthorizationTimeoutError(DeviceFlowError):
    """Raised when the polling attempt budget is exhausted."""


class RunFailedError(DocksyncError):
    """Raised when a workflow run completes with a conclusion other than ``success``.

    Args:
        message: Human-readable error description.
        run_id: Identifier of the failed run.
        status: The run's terminal status (its conclusion, or ``completed``
            when GitHub reports none).
    """

    exit_code = EXIT_RUN_FAILED

    def __init__(self, message: str, run_id: int, status: str):
        super().__init__(message)
        self.run_id = run_id
        self.status = status


class RemoteError(DocksyncError):
    """Raised when the GitHub API answers with an unexpected non-success status."""

    exit_code = EXIT_REMOTE_ERROR


class NetworkError(DocksyncError):
    """Raised on transport-level failures (timeout, DNS resolution, connection refused)."""

    exit_code = EXIT_CONNECTION_ERROR


class FetchError(DocksyncError):
    """Raised when pulling the mirrored image with the local Docker CLI fails."""

    exit_code = EXIT_FETCH_FAILED
