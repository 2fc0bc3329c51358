"""Authentication subsystem for docksync.

Provides the OAuth device-flow login (:class:`DeviceAuthFlow`), the
best-effort :class:`BrowserNotifier`, and the manual token-creation
fallback (:func:`token_creation_url`, :func:`show_token_instructions`).
The resulting token is stored in the config file by
:mod:`docksync.commands.auth`.
"""

from docksync.auth.device_flow import DeviceAuthFlow, DeviceFlowState
from docksync.auth.manual_token import show_token_instructions, token_creation_url
from docksync.auth.notifier import BrowserNotifier, Notifier

__all__ = [
    "BrowserNotifier",
    "DeviceAuthFlow",
    "DeviceFlowState",
    "Notifier",
    "show_token_instructions",
    "token_creation_url",
]
