"""Best-effort notifiers that point the user at a verification URL.

A notifier is any object with a ``notify(url)`` method. Callers treat it
as fire-and-forget: :class:`~docksync.auth.device_flow.DeviceAuthFlow`
logs and discards any exception raised here.
"""

from __future__ import annotations

import logging
import os
import platform
import webbrowser
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Something that can bring a URL to the user's attention."""

    def notify(self, url: str) -> None: ...


class BrowserNotifier:
    """Open the URL in the local web browser.

    On Linux without a graphical session (no ``DISPLAY`` or
    ``WAYLAND_DISPLAY``) nothing is opened: the user is typically on an SSH
    session and opens the printed URL on another machine.
    """

    def notify(self, url: str) -> None:
        if not _has_graphical_session():
            logger.debug("No graphical session, not opening %s", url)
            return
        if not webbrowser.open(url):
            logger.debug("No usable browser found for %s", url)


def _has_graphical_session() -> bool:
    if platform.system() != "Linux":
        return True
    return bool(os.environ.get("DISPLAY") or os.environ.get("WAYLAND_DISPLAY"))
