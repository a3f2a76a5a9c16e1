"""Where authbroker's output goes, and what it looks like.

Data a caller may pipe (identity summaries, raw tokens, delegation
responses, profile tables) is written to stdout. Everything addressed to
the person at the terminal (login instructions, status lines, errors and
suggested next commands) is written to stderr, so
``authbroker token | xclip`` copies nothing but the token.

The stdout format is chosen once per invocation: ``--json`` or
``--plain`` win, then ``output.format`` from the global config, and
``auto`` picks Rich on a terminal and plain text otherwise. ``NO_COLOR``,
``TERM=dumb`` and ``--no-color`` turn colour off on both streams.

:func:`~authbroker.app.main_callback` installs one :class:`OutputManager`
with :func:`set_output`; commands call the module-level helpers.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text


class OutputFormat(str, Enum):
    """Format of stdout data. ``AUTO`` is resolved by :class:`OutputManager`."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Renders data to stdout and diagnostics to stderr for one invocation.

    Args:
        format: Requested stdout format; ``AUTO`` becomes ``RICH`` on a
            colour-capable terminal and ``PLAIN`` anywhere else.
        no_color: Force colour off, in addition to ``NO_COLOR``/``TERM=dumb``.
        quiet: Drop status lines and suggestions; errors still print.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
    ) -> None:
        self._no_color = no_color or _color_disabled_by_env()
        self._quiet = quiet
        self._format = _resolve_format(format, self._no_color)

        rich_stdout = self._format == OutputFormat.RICH
        self._stdout = Console(file=sys.stdout, no_color=self._no_color, force_terminal=rich_stdout)
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def stderr_console(self) -> Console:
        """The diagnostics console, shared with the logging handler."""
        return self._stderr

    # ------------------------------------------------------------------ #
    # Data output (stdout)
    # ------------------------------------------------------------------ #

    def print_data(self, text: str) -> None:
        """Write *text* to stdout as-is, whatever the format."""
        print(text, file=sys.stdout, flush=True)

    def format_response(self, data: Any) -> None:
        """Write a JSON-like value (dict, list, scalar) to stdout.

        JSON mode indents it, plain mode writes one ``key<TAB>value`` line
        per dict entry (nested values as compact JSON) and Rich mode
        syntax-highlights it. Strings that parse as JSON are treated as
        the parsed value.
        """
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except ValueError:
                self.print_data(data)
                return

        if self._format == OutputFormat.JSON:
            self.print_data(_dumps(data, indent=2))
        elif self._format == OutputFormat.PLAIN:
            for line in _plain_lines(data):
                self.print_data(line)
        elif isinstance(data, (dict, list)):
            self._stdout.print(Syntax(_dumps(data, indent=2), "json", word_wrap=True))
        else:
            self._stdout.print(str(data), markup=False)

    def print_table(
        self, headers: list[str], rows: list[list[str]], title: Optional[str] = None
    ) -> None:
        """Write rows to stdout: a Rich table, a JSON array of objects, or TSV.

        *title* is only shown by the Rich table.
        """
        if self._format == OutputFormat.JSON:
            self.print_data(_dumps([dict(zip(headers, row)) for row in rows], indent=2))
            return
        if self._format == OutputFormat.PLAIN:
            for row in [headers, *rows]:
                self.print_data("\t".join(row))
            return

        table = Table(*headers, title=title, header_style="bold cyan")
        for row in rows:
            table.add_row(*row)
        self._stdout.print(table)

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def _diagnostic(
        self,
        message: str,
        *,
        style: Optional[str] = None,
        label: Optional[str] = None,
        suppressible: bool = True,
    ) -> None:
        """Write one line to stderr.

        *label* is a bold prefix such as ``Error:``. With colour disabled
        the line goes through :func:`print` so no ANSI codes leak into logs.
        """
        if suppressible and self._quiet:
            return
        if self._no_color:
            print(f"{label} {message}" if label else message, file=sys.stderr, flush=True)
            return
        text = Text(message, style=style or "")
        if label:
            text = Text.assemble((label, f"bold {style}".strip()), " ", text)
        self._stderr.print(text, highlight=False)

    def info(self, message: str) -> None:
        """Status line; suppressed by ``--quiet``."""
        self._diagnostic(message)

    def success(self, message: str) -> None:
        self._diagnostic(message, style="green")

    def error(self, message: str) -> None:
        """Error line; printed even with ``--quiet``."""
        self._diagnostic(message, style="red", label="Error:", suppressible=False)

    def suggest(self, message: str) -> None:
        """Next step the user can take, e.g. the command that logs in."""
        self._diagnostic(f"→ {message}", style="dim")


def _dumps(data: Any, indent: Optional[int] = None) -> str:
    return json.dumps(data, indent=indent, ensure_ascii=False, default=str)


def _plain_lines(data: Any) -> list[str]:
    if isinstance(data, dict):
        return [
            f"{key}\t{_dumps(value) if isinstance(value, (dict, list)) else value}"
            for key, value in data.items()
        ]
    if isinstance(data, list):
        return [str(item) for item in data]
    return [str(data)]


def _color_disabled_by_env() -> bool:
    # NO_COLOR counts when set at all, even to an empty string.
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


def _stdout_is_terminal() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _resolve_format(requested: OutputFormat, no_color: bool) -> OutputFormat:
    if requested != OutputFormat.AUTO:
        return requested
    return OutputFormat.RICH if _stdout_is_terminal() and not no_color else OutputFormat.PLAIN


# ------------------------------------------------------------------ #
# The installed manager
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed manager, installing a default one if there is none."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the installed manager (tests call this between invocations)."""
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def print_data(text: str) -> None:
    get_output().print_data(text)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def error(message: str) -> None:
    get_output().error(message)


def suggest(message: str) -> None:
    get_output().suggest(message)
