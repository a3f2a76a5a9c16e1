"""The ``authbroker`` command line.

:data:`app` is the root Typer application. The session commands
(``login``, ``logout``, ``whoami``, ``token``, ``delegate``) hang directly
off it, with ``profile`` and ``config`` as sub-command groups.
:func:`main` is the console-script entry point.

Global options are handled once in :func:`main_callback`: they pick the
stdout format, install the :class:`~authbroker.output.OutputManager`,
route the ``authbroker`` loggers to stderr and leave ``profile`` and
``force`` in ``ctx.obj`` for the commands.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from authbroker import __version__
from authbroker.exceptions import AuthbrokerError, ConfigError
from authbroker.exit_codes import EXIT_GENERIC_FAILURE
from authbroker.output import OutputFormat

EXIT_INTERRUPTED = 130

app = typer.Typer(
    name="authbroker",
    help="Log in to a hosted identity provider and hand out its tokens.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"authbroker {__version__}")
        raise typer.Exit()


def _output_format(json_output: bool, plain_output: bool) -> OutputFormat:
    """``--json``/``--plain``, else ``output.format`` from config.json."""
    if json_output:
        return OutputFormat.JSON
    if plain_output:
        return OutputFormat.PLAIN

    from authbroker.config import load_global_config

    try:
        return OutputFormat(load_global_config().output.format)
    except ConfigError:
        # A broken config.json must not stop ``config reset`` from running.
        return OutputFormat.AUTO


def _route_logging(console: Console, verbose: bool) -> None:
    """Send ``authbroker.*`` records to *console*; DEBUG with ``--verbose``, else WARNING."""
    logger = logging.getLogger("authbroker")
    logger.handlers.clear()
    handler = RichHandler(console=console, show_path=False, show_time=verbose)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit."
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", "-p", help="Profile to use (else AUTHBROKER_PROFILE, else the default)."
    ),
    json_output: bool = typer.Option(False, "--json", help="Write data as JSON."),
    plain_output: bool = typer.Option(False, "--plain", help="Write data as plain text."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colour."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print data and errors."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log each step of the flow."),
    force: bool = typer.Option(False, "--force", "-f", help="Do not ask for confirmation."),
) -> None:
    """Log in to a hosted identity provider and hand out its tokens."""
    from authbroker.output import OutputManager, set_output

    output = OutputManager(
        format=_output_format(json_output, plain_output), no_color=no_color, quiet=quiet
    )
    set_output(output)
    _route_logging(output.stderr_console, verbose)

    ctx.ensure_object(dict)
    ctx.obj.update(profile=profile, force=force)


def register_commands() -> None:
    """Attach the built-in commands to :data:`app`. Safe to call twice."""
    if getattr(app, "_authbroker_registered", False):
        return

    from authbroker.commands import session
    from authbroker.commands.config import config_app
    from authbroker.commands.profile import profile_app

    for name in ("login", "logout", "whoami", "token", "delegate"):
        app.command(name)(getattr(session, f"{name}_command"))
    app.add_typer(profile_app, name="profile", help="Manage provider tenant profiles.")
    app.add_typer(config_app, name="config", help="View and change user-wide settings.")
    app._authbroker_registered = True  # type: ignore[attr-defined]


def _interrupted(signum: int, frame: Any) -> None:
    sys.stderr.write("\nCancelled.\n")
    sys.exit(EXIT_INTERRUPTED)


def _write_crash_log() -> Path:
    """Save the traceback being handled under ``<data_dir>/logs/``."""
    from authbroker.config import atomic_write, get_data_dir

    path = get_data_dir() / "logs" / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    atomic_write(path, traceback.format_exc())
    return path


def main() -> None:
    """Console-script entry point.

    An :class:`~authbroker.exceptions.AuthbrokerError` that escapes a
    command is printed and becomes its exit code. Anything else is saved
    to a crash log and exits with :data:`EXIT_GENERIC_FAILURE`.
    """
    from authbroker.output import error

    signal.signal(signal.SIGINT, _interrupted)
    register_commands()
    try:
        app()
    except AuthbrokerError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except KeyboardInterrupt:
        _interrupted(signal.SIGINT, None)
    except Exception:
        error(f"Unexpected error. Debug log: {_write_crash_log()}")
        sys.exit(EXIT_GENERIC_FAILURE)
