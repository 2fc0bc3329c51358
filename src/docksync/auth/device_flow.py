"""GitHub login via the OAuth 2.0 Device Authorization Grant (:rfc:`8628`).

Works on headless terminals (SSH sessions, containers): the user opens a
URL on any device and types a short code while docksync polls the token
endpoint.

Flow:
    1. POST to the device-code endpoint to obtain a
       :class:`~docksync.models.DeviceGrant`.
    2. Print "Open {verification_uri} and enter code {user_code}" and ask
       the notifier to open the URL.
    3. Poll the token endpoint until the user authorizes, denies, the code
       expires, or the attempt budget runs out.

The attempt budget is ``expires_in // interval`` polls, fixed when polling
starts. A ``slow_down`` answer lengthens every later sleep by five seconds
without shrinking the budget, so slow-downs stretch the total wait rather
than cutting it short.

Non-success HTTP statuses from the token endpoint are treated like
``authorization_pending``: the poll is counted and the loop keeps waiting.
"""

from __future__ import annotations

import enum
import logging
import sys
import time
from typing import Optional

import httpx
from pydantic import ValidationError

from docksync.auth.notifier import Notifier
from docksync.exceptions import (
    AccessDeniedError,
    AuthorizationTimeoutError,
    DeviceCodeExpiredError,
    NetworkError,
    ProviderError,
)
from docksync.models import DeviceGrant, TokenResponse
from docksync.output import debug

logger = logging.getLogger(__name__)

CLIENT_ID = "Ov23li7Y8uyN0cW2UHeS"
SCOPES = ("repo", "workflow", "write:packages", "read:packages", "delete:packages")
DEVICE_CODE_URL = "https://github.com/login/device/code"
TOKEN_URL = "https://github.com/login/oauth/access_token"
GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"
USER_AGENT = "docker-sync-cli"
SLOW_DOWN_INCREMENT = 5
REQUEST_TIMEOUT = 30.0


class DeviceFlowState(str, enum.Enum):
    """States of a :class:`DeviceAuthFlow`."""

    REQUESTING = "requesting"
    AWAITING_USER_ACTION = "awaiting_user_action"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    DENIED = "denied"
    EXPIRED = "expired"
    PROVIDER_ERROR = "provider_error"
    TIMED_OUT = "timed_out"


class DeviceAuthFlow:
    """Obtain a GitHub access token through the device authorization grant.

    Each instance drives one login. The current position in the state
    machine is exposed as :attr:`state`.

    Args:
        client_id: OAuth app client ID.
        scopes: Requested OAuth scopes.
        proxy: Optional proxy URL for all requests.
        notifier: Optional best-effort notifier (e.g.
            :class:`~docksync.auth.notifier.BrowserNotifier`) invoked with
            the verification URI.
        device_code_url: Device authorization endpoint.
        token_url: Token endpoint.

    Example::

        flow = DeviceAuthFlow(notifier=BrowserNotifier())
        token = flow.login()
    """

    def __init__(
        self,
        client_id: str = CLIENT_ID,
        scopes: tuple[str, ...] = SCOPES,
        proxy: Optional[str] = None,
        notifier: Optional[Notifier] = None,
        device_code_url: str = DEVICE_CODE_URL,
        token_url: str = TOKEN_URL,
    ) -> None:
        self._client_id = client_id
        self._scopes = scopes
        self._proxy = proxy
        self._notifier = notifier
        self._device_code_url = device_code_url
        self._token_url = token_url
        self.state = DeviceFlowState.REQUESTING

    def login(self) -> str:
        """Run the whole flow and return the access token.

        Raises:
            NetworkError: On transport failures.
            DeviceFlowError: Any terminal failure of the flow
                (:class:`ProviderError`, :class:`AccessDeniedError`,
                :class:`DeviceCodeExpiredError`,
                :class:`AuthorizationTimeoutError`).
        """
        grant = self.request_device_grant()
        return self.await_authorization(grant)

    def request_device_grant(self) -> DeviceGrant:
        """POST the client ID and scopes to the device-code endpoint.

        Returns:
            The issued :class:`~docksync.models.DeviceGrant`.

        Raises:
            NetworkError: If the request cannot be sent.
            ProviderError: If the endpoint answers with a non-success status
                (body included verbatim) or an incomplete grant.
        """
        self.state = DeviceFlowState.REQUESTING
        response = self._post(
            self._device_code_url,
            {"client_id": self._client_id, "scope": " ".join(self._scopes)},
        )

        if not response.is_success:
            self.state = DeviceFlowState.PROVIDER_ERROR
            raise ProviderError(f"Failed to get device code: {response.text}")

        try:
            return DeviceGrant.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            self.state = DeviceFlowState.PROVIDER_ERROR
            raise ProviderError(f"Invalid device code response: {exc}") from exc

    def await_authorization(self, grant: DeviceGrant) -> str:
        """Show the user code, notify, and poll until the flow terminates.

        Args:
            grant: The grant returned by :meth:`request_device_grant`.

        Returns:
            The access token.
        """
        self.state = DeviceFlowState.AWAITING_USER_ACTION
        self._display_user_code(grant.verification_uri, grant.user_code)

        if self._notifier is not None:
            try:
                self._notifier.notify(grant.verification_uri)
            except Exception as exc:
                logger.warning("Could not open %s: %s", grant.verification_uri, exc)

        return self._poll_for_token(grant)

    def _display_user_code(self, verification_uri: str, user_code: str) -> None:
        """Print the verification URI and user code to stderr."""
        sys.stderr.write("\n")
        sys.stderr.write("Complete the following steps:\n")
        sys.stderr.write(f"  1. Open in a browser: {verification_uri}\n")
        sys.stderr.write(f"  2. Enter the code:    {user_code}\n")
        sys.stderr.write("  3. Authorize the application\n")
        sys.stderr.write("\nWaiting for authorization...\n")
        sys.stderr.flush()

    def _poll_for_token(self, grant: DeviceGrant) -> str:
        """Poll the token endpoint per :rfc:`8628` section 3.4.

        Sleeps before every attempt, never after the last one.

        Raises:
            AuthorizationTimeoutError: After ``expires_in // interval``
                attempts without a token.
            AccessDeniedError: On ``access_denied``.
            DeviceCodeExpiredError: On ``expired_token``.
            ProviderError: On any other error code or an unreadable body.
            NetworkError: On transport failures.
        """
        self.state = DeviceFlowState.POLLING
        interval = grant.interval
        max_attempts = grant.expires_in // grant.interval
        attempts = 0

        data = {
            "client_id": self._client_id,
            "device_code": grant.device_code,
            "grant_type": GRANT_TYPE,
        }

        while True:
            attempts += 1
            if attempts > max_attempts:
                self.state = DeviceFlowState.TIMED_OUT
                raise AuthorizationTimeoutError(
                    "Authentication timed out. Please try again."
                )

            time.sleep(interval)

            response = self._post(self._token_url, data)
            if not response.is_success:
                debug(f"Token poll returned HTTP {response.status_code}, still waiting")
                continue

            try:
                token = TokenResponse.model_validate(response.json())
            except (ValueError, ValidationError) as exc:
                self.state = DeviceFlowState.PROVIDER_ERROR
                raise ProviderError(f"Invalid token response: {exc}") from exc

            if token.access_token:
                self.state = DeviceFlowState.SUCCEEDED
                return token.access_token

            if token.error == "authorization_pending":
                continue
            if token.error == "slow_down":
                interval += SLOW_DOWN_INCREMENT
                debug(f"Provider asked to slow down, polling every {interval}s")
                continue
            if token.error == "expired_token":
                self.state = DeviceFlowState.EXPIRED
                raise DeviceCodeExpiredError("Device code expired. Please try again.")
            if token.error == "access_denied":
                self.state = DeviceFlowState.DENIED
                raise AccessDeniedError("Access denied by user.")
            if token.error:
                self.state = DeviceFlowState.PROVIDER_ERROR
                raise ProviderError(
                    f"Authentication error: {token.error} - {token.error_description or ''}"
                )

    def _post(self, url: str, data: dict[str, str]) -> httpx.Response:
        """POST form data with the fixed OAuth headers."""
        try:
            return httpx.post(
                url,
                data=data,
                headers={"Accept": "application/json", "User-Agent": USER_AGENT},
                timeout=REQUEST_TIMEOUT,
                proxy=self._proxy,
            )
        except httpx.HTTPError as exc:
            raise NetworkError(f"Request to {url} failed: {exc}") from exc
