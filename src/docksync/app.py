"""Typer application and CLI entry point for docksync.

This module wires together the top-level Typer application and registers
the built-in commands (``pull``, ``auth``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
:class:`~docksync.exceptions.DocksyncError` instances end the process with
their exit code; any other exception is written to a crash log under the
data directory.

See Also:
    :mod:`docksync.config`: Configuration and environment overrides.
    :mod:`docksync.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import click
import typer
from typer.core import TyperGroup

from docksync import __version__
from docksync.commands.auth import auth_app
from docksync.commands.config import config_app
from docksync.commands.pull import pull_command
from docksync.exit_codes import EXIT_GENERIC_FAILURE


class PullByDefaultGroup(TyperGroup):
    """Root group that treats an unknown first argument as an image to pull.

    ``docksync nginx:alpine`` runs ``docksync pull nginx:alpine``.
    """

    def resolve_command(
        self, ctx: click.Context, args: list[str]
    ) -> tuple[Optional[str], Optional[click.Command], list[str]]:
        if args and args[0] not in self.commands and not args[0].startswith("-"):
            args = ["pull", *args]
        return super().resolve_command(ctx, args)


app = typer.Typer(
    name="docksync",
    cls=PullByDefaultGroup,
    help=(
        "Mirror Docker Hub images to GHCR through GitHub Actions, then pull them.\n\n"
        "[bold]docksync IMAGE...[/bold] is short for [bold]docksync pull IMAGE...[/bold]"
    ),
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)

app.command("pull")(pull_command)
app.add_typer(auth_app, name="auth", help="Authentication management.")
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"docksync {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~docksync.output.OutputManager` from
    CLI flags.
    """
    from docksync.output import OutputManager, set_output

    set_output(OutputManager(no_color=no_color, quiet=quiet, verbose=verbose))


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from docksync.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``docksync`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from docksync.exceptions import DocksyncError
        from docksync.output import error

        if isinstance(exc, DocksyncError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
