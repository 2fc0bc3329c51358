"""Tests for the manual token fallback and the browser notifier."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from docksync.auth.manual_token import show_token_instructions, token_creation_url
from docksync.auth.notifier import BrowserNotifier
from docksync.output import OutputManager, set_output


class TestTokenCreationUrl:
    def test_default_url(self) -> None:
        assert token_creation_url() == (
            "https://github.com/settings/tokens/new"
            "?description=docker-sync-cli&scopes=repo,workflow,write:packages"
        )

    def test_description_is_encoded(self) -> None:
        url = token_creation_url(description="my sync", scopes=("repo",))
        assert url.endswith("?description=my%20sync&scopes=repo")


class TestShowTokenInstructions:
    def test_prints_url_and_next_step(self, capsys) -> None:
        set_output(OutputManager(no_color=True))
        url = show_token_instructions()

        err = capsys.readouterr().err
        assert url in err
        assert "docksync auth token YOUR_TOKEN" in err

    def test_notifier_opens_url(self) -> None:
        set_output(OutputManager(no_color=True, quiet=True))
        notifier = MagicMock()
        url = show_token_instructions(notifier)
        notifier.notify.assert_called_once_with(url)

    def test_notifier_failure_is_ignored(self) -> None:
        set_output(OutputManager(no_color=True, quiet=True))
        notifier = MagicMock()
        notifier.notify.side_effect = OSError("no browser")
        assert show_token_instructions(notifier).startswith("https://github.com/")


class TestBrowserNotifier:
    def test_headless_linux_does_not_open(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("docksync.auth.notifier.platform.system", lambda: "Linux")
        monkeypatch.delenv("DISPLAY", raising=False)
        monkeypatch.delenv("WAYLAND_DISPLAY", raising=False)
        with patch("docksync.auth.notifier.webbrowser.open") as mock_open:
            BrowserNotifier().notify("https://github.com/login/device")
        mock_open.assert_not_called()

    def test_graphical_linux_opens(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("docksync.auth.notifier.platform.system", lambda: "Linux")
        monkeypatch.setenv("DISPLAY", ":0")
        with patch("docksync.auth.notifier.webbrowser.open", return_value=True) as mock_open:
            BrowserNotifier().notify("https://github.com/login/device")
        mock_open.assert_called_once_with("https://github.com/login/device")

    def test_macos_opens(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("docksync.auth.notifier.platform.system", lambda: "Darwin")
        with patch("docksync.auth.notifier.webbrowser.open", return_value=True) as mock_open:
            BrowserNotifier().notify("https://example.com")
        mock_open.assert_called_once()
