"""URL builders for the identity provider's endpoints.

Every URL the package talks to is rendered here so the patterns live in
one place:

* ``/authorize`` and ``/login/`` -- browser-navigated start URLs.
* ``/oauth/ro`` -- resource-owner direct grant (POST).
* ``/delegation`` -- delegation-token exchange (POST).
* ``/userinfo`` -- the user's provider profile (GET).
* ``/mobile`` -- the fixed callback the provider redirects back to.
"""

from __future__ import annotations

from urllib.parse import quote, urlencode


def _query(params: list[tuple[str, str]]) -> str:
    # Percent-encode everything, spaces as %20 rather than '+'.
    return urlencode(params, quote_via=quote)


def callback_url(domain: str) -> str:
    """Return the callback URL the provider redirects to after login."""
    return f"https://{domain}/mobile"


def authorize_url(
    domain: str,
    client_id: str,
    scope: str,
    redirect_uri: str,
    connection: str,
    state: str,
) -> str:
    """Return the direct-connection authorize URL for the implicit flow."""
    query = _query(
        [
            ("client_id", client_id),
            ("scope", scope),
            ("redirect_uri", redirect_uri),
            ("response_type", "token"),
            ("connection", connection),
            ("state", state),
        ]
    )
    return f"https://{domain}/authorize?{query}"


def login_widget_url(
    domain: str,
    client_id: str,
    scope: str,
    redirect_uri: str,
    state: str,
) -> str:
    """Return the provider-hosted login widget URL (used when no connection is given)."""
    query = _query(
        [
            ("client", client_id),
            ("scope", scope),
            ("redirect_uri", redirect_uri),
            ("response_type", "token"),
            ("state", state),
        ]
    )
    return f"https://{domain}/login/?{query}"


def resource_owner_url(domain: str) -> str:
    return f"https://{domain}/oauth/ro"


def delegation_url(domain: str) -> str:
    return f"https://{domain}/delegation"


def userinfo_url(domain: str, access_token: str) -> str:
    return f"https://{domain}/userinfo?{_query([('access_token', access_token)])}"
