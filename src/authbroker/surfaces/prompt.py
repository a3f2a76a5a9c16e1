"""Paste-back browser surface for interactive logins from a terminal.

A terminal cannot watch what the system browser navigates to, so this
surface asks the user instead: it opens the URL in the default browser
and waits for the user to paste the address bar once the provider has
redirected to the callback page. Each pasted line counts as one
navigation. An empty line or end-of-input closes the surface, which the
orchestrator reports as a user cancellation.

Reading from the terminal blocks, so each read runs on a daemon thread
and hands its result back to the event loop; the loop itself never
blocks, and an abandoned read cannot keep the process alive.
"""

from __future__ import annotations

import asyncio
import sys
import threading
import webbrowser
from typing import Callable

from authbroker.exceptions import PreconditionError
from authbroker.output import info, suggest
from authbroker.surfaces.base import NavigableSurface

DEFAULT_PROMPT = "Paste the URL your browser ended up on (empty to cancel): "


class PromptSurface(NavigableSurface):
    """Interactive surface that opens the system browser and reads URLs back.

    Args:
        open_browser: Open the URL with :mod:`webbrowser`. When ``False``
            the URL is only printed.
        input_func: Line reader, :func:`input` by default.
        prompt: Prompt shown before each read.
        require_tty: Refuse to run when stdin is not a terminal.
    """

    def __init__(
        self,
        open_browser: bool = True,
        input_func: Callable[[str], str] = input,
        prompt: str = DEFAULT_PROMPT,
        require_tty: bool = True,
    ) -> None:
        super().__init__(interactive=True)
        self._open_browser = open_browser
        self._input = input_func
        self._prompt = prompt
        self._require_tty = require_tty

    async def _load(self, url: str) -> None:
        if self._require_tty and not sys.stdin.isatty():
            raise PreconditionError(
                "Interactive login requires an interactive terminal "
                "(stdin must be a TTY)"
            )

        info("Continue the login in your browser:")
        info(f"  {url}")
        suggest("After logging in, copy the full address of the page you land on.")

        if self._open_browser:
            threading.Thread(target=webbrowser.open, args=(url,), daemon=True).start()

    async def next_navigation(self) -> str:
        if self._events.empty() and not self.closed:
            self._read_line()
        return await super().next_navigation()

    def _read_line(self) -> None:
        loop = asyncio.get_running_loop()

        def read() -> None:
            try:
                line = self._input(self._prompt)
            except EOFError:
                line = ""
            if not loop.is_closed():
                loop.call_soon_threadsafe(self._deliver, line.strip())

        threading.Thread(target=read, daemon=True).start()

    def _deliver(self, line: str) -> None:
        if line:
            self._report_navigation(line)
        else:
            self._report_closed()
