"""Shared test fixtures for authbroker.

Provides isolated config environments, output state management, a CLI
runner, scripted in-memory surfaces for driving the login flow, and
helpers for building provider responses. These fixtures are discovered
by pytest and available to all test modules without explicit imports.
"""

from __future__ import annotations

import base64
import json
import logging
from pathlib import Path
from typing import Any, Callable, Iterable, Union
from urllib.parse import parse_qs, urlsplit

import pytest

from authbroker.output import OutputFormat, OutputManager, reset_output, set_output
from authbroker.surfaces.base import NavigableSurface


DOMAIN = "tenant.example.com"
CLIENT_ID = "client-abc"
CALLBACK = f"https://{DOMAIN}/mobile"


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager and CLI logging after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams and the
    test finishes, the cached references become stale. The CLI also
    installs a handler on the ``authbroker`` logger that must not leak
    into later tests using ``caplog``.
    """
    yield
    reset_output()
    logger = logging.getLogger("authbroker")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration and data to a temporary directory.

    Forces XDG path resolution, points XDG_CONFIG_HOME and XDG_DATA_HOME
    at subdirectories of tmp_path, clears all AUTHBROKER_* environment
    variables, forgets the cached device id, and changes the working
    directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    from authbroker import device
    from authbroker.config import PROFILE_ENV_OVERRIDES

    monkeypatch.setattr("authbroker.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in ["AUTHBROKER_PROFILE", *PROFILE_ENV_OVERRIDES]:
        monkeypatch.delenv(var, raising=False)

    device.reset_cache()
    monkeypatch.chdir(tmp_path)
    yield tmp_path
    device.reset_cache()


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for the test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True, no_color=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()


# ---------------------------------------------------------------------------
# Scripted surfaces
# ---------------------------------------------------------------------------

CLOSE = object()
"""Script entry that makes a :class:`ScriptedSurface` report the user closing it."""

ScriptEntry = Union[str, object, Callable[[str], str]]


class ScriptedSurface(NavigableSurface):
    """In-memory surface that plays back a fixed list of navigations.

    When loaded, each script entry is reported in order: a string is a
    navigation to that URL, a callable receives the loaded URL and returns
    the navigation URL, and :data:`CLOSE` reports the user closing the
    surface. An empty script never navigates.
    """

    def __init__(self, script: Iterable[ScriptEntry], interactive: bool) -> None:
        super().__init__(interactive=interactive)
        self.script = list(script)
        self.loaded: list[str] = []
        self.close_calls = 0

    async def _load(self, url: str) -> None:
        self.loaded.append(url)
        for entry in self.script:
            if entry is CLOSE:
                self._report_closed()
            elif callable(entry):
                self._report_navigation(entry(url))
            else:
                self._report_navigation(entry)  # type: ignore[arg-type]

    async def close(self) -> None:
        self.close_calls += 1
        await super().close()


class ScriptedFactory:
    """Surface factory that records every surface it creates."""

    def __init__(self, *script: ScriptEntry, interactive: bool = False) -> None:
        self.script = script
        self.interactive = interactive
        self.created: list[ScriptedSurface] = []

    def __call__(self) -> ScriptedSurface:
        surface = ScriptedSurface(self.script, self.interactive)
        self.created.append(surface)
        return surface


@pytest.fixture
def scripted() -> type[ScriptedFactory]:
    """The :class:`ScriptedFactory` class, for building surface factories."""
    return ScriptedFactory


@pytest.fixture
def close_marker() -> object:
    """The script entry that closes a scripted surface."""
    return CLOSE


# ---------------------------------------------------------------------------
# Provider response helpers
# ---------------------------------------------------------------------------


def make_jwt(claims: dict[str, Any]) -> str:
    """Build an unsigned JWT carrying *claims*."""

    def segment(data: dict[str, Any]) -> str:
        raw = json.dumps(data).encode("utf-8")
        return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")

    return f"{segment({'alg': 'none', 'typ': 'JWT'})}.{segment(claims)}.sig"


def state_of(url: str) -> str:
    """Return the ``state`` query parameter of a start URL."""
    return parse_qs(urlsplit(url).query)["state"][0]


@pytest.fixture
def jwt() -> Callable[[dict[str, Any]], str]:
    return make_jwt


@pytest.fixture
def echo_callback() -> Callable[..., Callable[[str], str]]:
    """Build a script entry that lands on the callback echoing the start URL's state.

    Keyword arguments become fragment parameters; ``access_token``
    defaults to ``"at-1"``.
    """

    def build(**params: str) -> Callable[[str], str]:
        params.setdefault("access_token", "at-1")

        def entry(url: str) -> str:
            fragment = "&".join(f"{k}={v}" for k, v in params.items())
            return f"{CALLBACK}#{fragment}&state={state_of(url)}"

        return entry

    return build
