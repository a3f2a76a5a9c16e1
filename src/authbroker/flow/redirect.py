"""Redirect parsing -- turn the URL a surface landed on into a login outcome.

:func:`parse_redirect` is a pure function: it never touches the network,
never mutates anything and returns equal outcomes for equal input. The
orchestrator relies on that to parse the silent and the interactive
results with the same code.

Implicit-flow providers put the result in the URL fragment
(``#access_token=...``); some put errors in the query string instead.
Both are read, with fragment values taking precedence.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qsl, urlsplit

from authbroker.models import ErrorResult, NotTerminal, RedirectOutcome, TokenResult


def matches_callback(url: str, callback_url: str) -> bool:
    """Return True when *url* is the callback: same scheme, host and path.

    Query and fragment are what gets parsed, so they are ignored here.
    """
    actual = urlsplit(url)
    expected = urlsplit(callback_url)
    return (
        actual.scheme == expected.scheme
        and actual.netloc == expected.netloc
        and actual.path == expected.path
    )


def redirect_params(url: str) -> dict[str, str]:
    """Return the query and fragment parameters of *url* merged into one dict."""
    parts = urlsplit(url)
    params = dict(parse_qsl(parts.query, keep_blank_values=True))
    params.update(parse_qsl(parts.fragment, keep_blank_values=True))
    return params


def _int_or_none(value: Optional[str]) -> Optional[int]:
    if value is None or not value.isdigit():
        return None
    return int(value)


def parse_redirect(url: str, callback_url: Optional[str] = None) -> RedirectOutcome:
    """Parse a redirect URL into a :data:`~authbroker.models.RedirectOutcome`.

    Args:
        url: The URL the navigable surface ended up on.
        callback_url: When given, URLs that do not match it (see
            :func:`matches_callback`) are reported as not terminal without
            looking at their parameters.

    Returns:
        :class:`~authbroker.models.ErrorResult` when an ``error`` field is
        present, :class:`~authbroker.models.TokenResult` when an
        ``access_token`` is present, otherwise
        :class:`~authbroker.models.NotTerminal`.
    """
    if callback_url is not None and not matches_callback(url, callback_url):
        return NotTerminal(url=url)

    params = redirect_params(url)

    if "error" in params:
        return ErrorResult(
            code=params["error"],
            description=params.get("error_description", ""),
            state=params.get("state"),
        )

    if params.get("access_token"):
        return TokenResult(
            access_token=params["access_token"],
            id_token=params.get("id_token") or None,
            token_type=params.get("token_type", "bearer"),
            expires_in=_int_or_none(params.get("expires_in")),
            state=params.get("state"),
            raw=params,
        )

    return NotTerminal(url=url)
