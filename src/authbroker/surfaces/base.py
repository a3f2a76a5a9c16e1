"""The navigable-surface capability the login flow drives.

A surface is anything that can load a URL and report where it ends up:
an embedded webview, a hidden browser, a headless HTTP redirect follower,
or a human pasting URLs back into a terminal. The orchestrator only sees
this interface.

Navigation completions are delivered through an :class:`asyncio.Queue`.
Implementations call :meth:`NavigableSurface._report_navigation` whenever
a navigation finishes and :meth:`NavigableSurface._report_closed` when the
user dismisses the surface; :meth:`NavigableSurface.next_navigation`
suspends the caller until one of those happens.

To add a surface, subclass :class:`NavigableSurface` and implement
:meth:`~NavigableSurface._load`. Override :meth:`~NavigableSurface.close`
to release resources, calling ``super().close()``.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, Optional, Union

SurfaceFactory = Callable[[], "NavigableSurface"]


class SurfaceClosedError(Exception):
    """Raised by :meth:`NavigableSurface.next_navigation` once the surface is closed."""


class _Closed:
    pass


_CLOSED = _Closed()


class NavigableSurface(ABC):
    """Base class for surfaces that load URLs and report navigation results.

    Args:
        interactive: Whether the surface is shown to the user. Silent
            surfaces must never ask the user for anything.
    """

    def __init__(self, interactive: bool = False) -> None:
        self.interactive = interactive
        self._events: asyncio.Queue[Union[str, _Closed]] = asyncio.Queue()
        self._closed = False
        self.current_url: Optional[str] = None

    @property
    def closed(self) -> bool:
        return self._closed

    async def navigate(self, url: str) -> None:
        """Start loading *url*. Completion is reported through :meth:`next_navigation`.

        Raises:
            SurfaceClosedError: If the surface has already been closed.
        """
        if self._closed:
            raise SurfaceClosedError("Cannot navigate a closed surface")
        await self._load(url)

    async def next_navigation(self) -> str:
        """Suspend until the next navigation completes and return its URL.

        Raises:
            SurfaceClosedError: If the surface was closed (for an interactive
                surface, the user dismissed it).
        """
        event = await self._events.get()
        if isinstance(event, _Closed):
            # Keep the marker so later waits fail the same way.
            self._events.put_nowait(event)
            raise SurfaceClosedError("Surface was closed before reaching the callback")
        self.current_url = event
        return event

    async def close(self) -> None:
        """Release the surface. Pending and future waits raise :class:`SurfaceClosedError`."""
        if not self._closed:
            self._closed = True
            self._events.put_nowait(_CLOSED)

    def _report_navigation(self, url: str) -> None:
        """Record that a navigation finished on *url*."""
        if not self._closed:
            self._events.put_nowait(url)

    def _report_closed(self) -> None:
        """Record that the user dismissed the surface."""
        if not self._closed:
            self._closed = True
            self._events.put_nowait(_CLOSED)

    @abstractmethod
    async def _load(self, url: str) -> None:
        """Begin loading *url*; report completion via :meth:`_report_navigation`."""
        ...
