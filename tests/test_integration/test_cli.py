"""Integration tests for the docksync command line.

Commands are invoked through the real root Typer app. Network access is
replaced by patching the GitHub client, the device flow and the proxy
probe where each command imports them.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest

from docksync import __version__
from docksync.app import app, main
from docksync.config import load_config, save_config
from docksync.exceptions import AccessDeniedError, NetworkError, RemoteError, RunFailedError
from docksync.models import AppConfig, RemoteIdentity


def _client_returning(login: str = "octo") -> MagicMock:
    client_cls = MagicMock()
    client_cls.return_value.__enter__.return_value.resolve_identity.return_value = RemoteIdentity(login=login)
    return client_cls


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


class TestRoot:
    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"docksync {__version__}" in result.output

    def test_help_lists_commands(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for name in ("pull", "auth", "config"):
            assert name in result.output


# ---------------------------------------------------------------------------
# auth
# ---------------------------------------------------------------------------


class TestAuthCommands:
    def test_token_is_saved_and_verified(self, cli_runner, isolated_config: Path) -> None:
        client_cls = _client_returning("octo")
        with patch("docksync.commands.auth.GitHubClient", client_cls):
            result = cli_runner.invoke(app, ["--no-color", "auth", "token", "ghp_manual"])

        assert result.exit_code == 0, result.output
        assert load_config().github_token == "ghp_manual"
        assert "Authenticated as: octo" in result.output
        client_cls.assert_called_once_with("ghp_manual", proxy=None)

    def test_token_verification_failure_still_saves(self, cli_runner, isolated_config: Path) -> None:
        client_cls = MagicMock()
        client_cls.return_value.__enter__.return_value.resolve_identity.side_effect = NetworkError("offline")
        with patch("docksync.commands.auth.GitHubClient", client_cls):
            result = cli_runner.invoke(app, ["--no-color", "auth", "token", "ghp_manual"])

        assert result.exit_code == 0
        assert load_config().github_token == "ghp_manual"
        assert "Could not verify token: offline" in result.output

    def test_login_success(self, cli_runner, isolated_config: Path) -> None:
        flow_cls = MagicMock()
        flow_cls.return_value.login.return_value = "gho_device"
        with patch("docksync.commands.auth.DeviceAuthFlow", flow_cls), \
                patch("docksync.commands.auth.BrowserNotifier"), \
                patch("docksync.commands.auth.GitHubClient", _client_returning("octo")):
            result = cli_runner.invoke(app, ["--no-color", "auth", "login"])

        assert result.exit_code == 0, result.output
        assert load_config().github_token == "gho_device"
        assert "Authentication successful!" in result.output

    def test_login_uses_configured_proxy(self, cli_runner, isolated_config: Path) -> None:
        save_config(AppConfig(proxy="http://127.0.0.1:7890"))
        flow_cls = MagicMock()
        flow_cls.return_value.login.return_value = "gho_device"
        with patch("docksync.commands.auth.DeviceAuthFlow", flow_cls), \
                patch("docksync.commands.auth.BrowserNotifier"), \
                patch("docksync.commands.auth.GitHubClient", _client_returning()):
            cli_runner.invoke(app, ["--no-color", "auth", "login"])

        assert flow_cls.call_args.kwargs["proxy"] == "http://127.0.0.1:7890"

    def test_login_failure_shows_manual_fallback(self, cli_runner, isolated_config: Path) -> None:
        flow_cls = MagicMock()
        flow_cls.return_value.login.side_effect = AccessDeniedError("Access denied by user.")
        with patch("docksync.commands.auth.DeviceAuthFlow", flow_cls), \
                patch("docksync.commands.auth.BrowserNotifier"):
            result = cli_runner.invoke(app, ["--no-color", "auth", "login"])

        assert result.exit_code == 3
        assert "Authentication failed: Access denied by user." in result.output
        assert "https://github.com/settings/tokens/new" in result.output
        assert "docksync auth token YOUR_TOKEN" in result.output
        assert load_config().github_token is None

    def test_logout(self, cli_runner, isolated_config: Path) -> None:
        save_config(AppConfig(github_token="gho_old", proxy="http://p:1"))
        result = cli_runner.invoke(app, ["--no-color", "auth", "logout"])

        assert result.exit_code == 0
        config = load_config()
        assert config.github_token is None
        assert config.proxy == "http://p:1"

    def test_status_unauthenticated(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["--no-color", "auth", "status"])
        assert result.exit_code == 3
        assert "Not authenticated" in result.output

    def test_status_authenticated(self, cli_runner, isolated_config: Path) -> None:
        save_config(AppConfig(github_token="gho_ok"))
        with patch("docksync.commands.auth.GitHubClient", _client_returning("octo")):
            result = cli_runner.invoke(app, ["--no-color", "auth", "status"])

        assert result.exit_code == 0
        assert "Username: octo" in result.output


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


class TestConfigCommands:
    def test_set_and_clear_proxy(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["--no-color", "config", "set-proxy", "socks5://127.0.0.1:1080"])
        assert result.exit_code == 0
        assert load_config().proxy == "socks5://127.0.0.1:1080"

        result = cli_runner.invoke(app, ["--no-color", "config", "clear-proxy"])
        assert result.exit_code == 0
        assert load_config().proxy is None

    def test_set_proxy_warns_on_unknown_scheme(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["--no-color", "config", "set-proxy", "127.0.0.1:7890"])
        assert result.exit_code == 0
        assert "Unrecognised proxy scheme" in result.output

    def test_show_masks_token(self, cli_runner, isolated_config: Path) -> None:
        save_config(AppConfig(github_token="gho_abcdefghijkl"))
        result = cli_runner.invoke(app, ["--no-color", "config", "show"])

        assert result.exit_code == 0
        assert "gho_abcdefghijkl" not in result.output
        assert "gho_...ijkl" in result.output

    def test_test_proxy_without_proxy(self, cli_runner, isolated_config: Path) -> None:
        with patch("docksync.commands.config.probe_connection") as probe:
            result = cli_runner.invoke(app, ["--no-color", "config", "test-proxy"])

        assert result.exit_code == 0
        assert "No proxy configured" in result.output
        probe.assert_not_called()

    def test_test_proxy_forbidden_is_ok(self, cli_runner, isolated_config: Path) -> None:
        save_config(AppConfig(proxy="http://127.0.0.1:7890"))
        with patch("docksync.commands.config.probe_connection", return_value=httpx.Response(403)):
            result = cli_runner.invoke(app, ["--no-color", "config", "test-proxy"])

        assert result.exit_code == 0
        assert "403 is expected" in result.output

    @pytest.mark.parametrize(
        ("message", "hint"),
        [
            ("Connection failed: timed out", "timed out"),
            ("Connection failed: [Errno 111] Connection refused", "cannot be reached"),
            ("Connection failed: socks handshake error", "SOCKS5"),
            ("Connection failed: Name or service not known", "DNS"),
        ],
    )
    def test_test_proxy_failure_hints(self, cli_runner, isolated_config: Path, message: str, hint: str) -> None:
        save_config(AppConfig(proxy="socks5://127.0.0.1:1080"))
        with patch("docksync.commands.config.probe_connection", side_effect=NetworkError(message)):
            result = cli_runner.invoke(app, ["--no-color", "config", "test-proxy"])

        assert result.exit_code == 6
        assert hint in result.output

    def test_test_proxy_dns_failure_from_transport(self, cli_runner, isolated_config: Path) -> None:
        save_config(AppConfig(proxy="http://proxy.invalid:7890"))
        error = httpx.ConnectError("[Errno -2] Name or service not known")
        with patch("docksync.client.github.httpx.get", side_effect=error):
            result = cli_runner.invoke(app, ["--no-color", "config", "test-proxy"])

        assert result.exit_code == 6
        assert "DNS resolution failed" in result.output
        assert "cannot be reached" not in result.output


# ---------------------------------------------------------------------------
# pull
# ---------------------------------------------------------------------------


class TestPullCommand:
    def test_requires_token(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["--no-color", "pull", "nginx:alpine"])
        assert result.exit_code == 3
        assert "docksync auth login" in result.output

    def test_runs_orchestrator(self, cli_runner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        save_config(AppConfig(github_token="gho_ok", proxy="http://p:1"))
        monkeypatch.setenv("DOCKSYNC_REGISTRY", "ghcr.io")
        client_cls = MagicMock()
        orchestrator_cls = MagicMock()
        with patch("docksync.commands.pull.GitHubClient", client_cls), \
                patch("docksync.commands.pull.SyncOrchestrator", orchestrator_cls):
            result = cli_runner.invoke(app, ["--no-color", "pull", "nginx:alpine", "redis:7"])

        assert result.exit_code == 0, result.output
        client_cls.assert_called_once_with("gho_ok", proxy="http://p:1")
        assert orchestrator_cls.call_args.kwargs["registry"] == "ghcr.io"
        orchestrator_cls.return_value.sync.assert_called_once_with(["nginx:alpine", "redis:7"])

    def test_run_failure_propagates(self, cli_runner, isolated_config: Path) -> None:
        save_config(AppConfig(github_token="gho_ok"))
        orchestrator_cls = MagicMock()
        orchestrator_cls.return_value.sync.side_effect = RunFailedError("failed", run_id=1, status="failure")
        with patch("docksync.commands.pull.GitHubClient"), \
                patch("docksync.commands.pull.SyncOrchestrator", orchestrator_cls):
            result = cli_runner.invoke(app, ["--no-color", "pull", "nginx:alpine"])

        assert isinstance(result.exception, RunFailedError)

    def test_pull_requires_an_image(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["pull"])
        assert result.exit_code == 2

    def test_bare_images_run_pull(self, cli_runner, isolated_config: Path) -> None:
        save_config(AppConfig(github_token="gho_ok"))
        orchestrator_cls = MagicMock()
        with patch("docksync.commands.pull.GitHubClient"), \
                patch("docksync.commands.pull.SyncOrchestrator", orchestrator_cls):
            result = cli_runner.invoke(app, ["--no-color", "nginx:alpine", "redis:7", "-q"])

        assert result.exit_code == 0, result.output
        orchestrator_cls.return_value.sync.assert_called_once_with(["nginx:alpine", "redis:7"])

    def test_bare_image_requires_token(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["--no-color", "nginx:alpine"])
        assert result.exit_code == 3
        assert "docksync auth login" in result.output

    def test_subcommands_are_not_treated_as_images(self, cli_runner, isolated_config: Path) -> None:
        with patch("docksync.commands.pull.SyncOrchestrator") as orchestrator_cls:
            result = cli_runner.invoke(app, ["--no-color", "config", "show"])

        assert result.exit_code == 0, result.output
        orchestrator_cls.assert_not_called()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


class TestMain:
    @pytest.fixture(autouse=True)
    def _no_signal_handlers(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("docksync.app._setup_signal_handlers", lambda: None)

    def test_domain_error_exit_code(self, isolated_config: Path, capsys) -> None:
        with patch("docksync.app.app", side_effect=RunFailedError("sync failed", run_id=3, status="cancelled")):
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 4
        assert "sync failed" in capsys.readouterr().err

    def test_remote_error_exit_code(self, isolated_config: Path) -> None:
        with patch("docksync.app.app", side_effect=RemoteError("HTTP 500")):
            with pytest.raises(SystemExit) as exc_info:
                main()
        assert exc_info.value.code == 5

    def test_unexpected_error_writes_crash_log(self, isolated_config: Path, capsys) -> None:
        with patch("docksync.app.app", side_effect=RuntimeError("kaboom")):
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 1
        logs = list((isolated_config / "data" / "docksync" / "logs").glob("crash-*.log"))
        assert len(logs) == 1
        assert "kaboom" in logs[0].read_text()

    def test_keyboard_interrupt(self, isolated_config: Path) -> None:
        with patch("docksync.app.app", side_effect=KeyboardInterrupt):
            with pytest.raises(SystemExit) as exc_info:
                main()
        assert exc_info.value.code == 130
