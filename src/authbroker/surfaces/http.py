"""Headless HTTP surface -- follows redirects like a hidden browser would.

:class:`HttpSurface` loads a URL with :mod:`httpx`, follows ``3xx``
redirects by hand and reports the URL it finally lands on. It never shows
anything to the user, which makes it the natural *silent* surface: when
the provider already has a session for the browser-equivalent cookie jar
it redirects straight to the callback with tokens in the fragment; when it
wants the user to log in it lands on a login page instead.

Redirects are followed manually (rather than with ``follow_redirects``)
so that URL fragments survive: a ``Location`` without a fragment inherits
the fragment of the request URL, as browsers do.

When ``stop_at`` is given, a redirect to a URL with that scheme, host and
path is reported without being fetched, the way an embedded webview
intercepts its callback URL.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

import httpx

from authbroker.flow.redirect import matches_callback
from authbroker.surfaces.base import NavigableSurface

logger = logging.getLogger(__name__)

DEFAULT_MAX_REDIRECTS = 10


def _resolve_location(current: str, location: str) -> str:
    """Resolve a ``Location`` header against *current*, keeping the fragment."""
    target = urljoin(current, location)
    parts = urlsplit(target)
    if not parts.fragment:
        fragment = urlsplit(current).fragment
        if fragment:
            target = urlunsplit(parts._replace(fragment=fragment))
    return target


class HttpSurface(NavigableSurface):
    """A silent surface backed by an :class:`httpx.AsyncClient`.

    Args:
        client: Client to load pages with. When ``None`` a client is
            created and closed with the surface.
        stop_at: Callback URL to report without fetching.
        max_redirects: Longest redirect chain to follow.
        timeout: Per-request timeout for an owned client.
        verify_ssl: Certificate verification for an owned client.
        cookies: Cookie jar for an owned client (the provider session).

    Example::

        surface = HttpSurface(stop_at="https://tenant.example.com/mobile")
        await surface.navigate(start_url)
        landed_on = await surface.next_navigation()
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        stop_at: Optional[str] = None,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        timeout: float = 30.0,
        verify_ssl: bool = True,
        cookies: Optional[httpx.Cookies] = None,
    ) -> None:
        super().__init__(interactive=False)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            verify=verify_ssl,
            cookies=cookies,
            follow_redirects=False,
        )
        self._stop_at = stop_at
        self._max_redirects = max_redirects

    async def _load(self, url: str) -> None:
        current = url
        for _ in range(self._max_redirects + 1):
            if self._stop_at is not None and matches_callback(current, self._stop_at):
                break
            try:
                response = await self._client.get(current, follow_redirects=False)
            except httpx.HTTPError as exc:
                # A failed load still ends the navigation, on the URL that failed.
                logger.debug("Navigation to %s failed: %s", urlsplit(current).path, exc)
                break
            location = response.headers.get("location")
            if not response.is_redirect or not location:
                break
            current = _resolve_location(current, location)
        else:
            logger.debug("Stopped after %d redirects", self._max_redirects)
        self._report_navigation(current)

    async def close(self) -> None:
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()
        await super().close()
