"""Direct calls to the provider's token endpoints.

Two request/response exchanges that need no navigable surface:

* :func:`resource_owner_login` -- trade a username and password for tokens
  at ``/oauth/ro`` (the resource-owner password grant).
* :func:`request_delegation_token` -- trade an id_token for a token aimed at
  another application at ``/delegation``.
"""

from __future__ import annotations

from typing import Any, Optional

from authbroker import endpoints
from authbroker.client.http import ApiClient
from authbroker.exceptions import AuthorizationError, ProtocolError
from authbroker.models import BASIC_SCOPE, User

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"


async def resource_owner_login(
    http: ApiClient,
    domain: str,
    client_id: str,
    connection: str,
    username: str,
    password: str,
    scope: str = BASIC_SCOPE,
) -> User:
    """Log a user in with a username and password.

    Args:
        http: Client for the request.
        domain: Provider tenant domain.
        client_id: Application client identifier.
        connection: Database or directory connection to authenticate against.
        username: The user's login name.
        password: The user's password.
        scope: Requested scope.

    Returns:
        The authenticated :class:`~authbroker.models.User`.

    Raises:
        AuthorizationError: If the provider answers with an ``error``.
        ProtocolError: If the response has neither ``error`` nor
            ``access_token``.
        NetworkError: On transport failure.
    """
    data = await http.post_form(
        endpoints.resource_owner_url(domain),
        {
            "client_id": client_id,
            "connection": connection,
            "username": username,
            "password": password,
            "grant_type": "password",
            "scope": scope,
        },
    )
    if not isinstance(data, dict):
        raise ProtocolError("Token response is not a JSON object")
    if "error" in data:
        raise AuthorizationError(
            str(data["error"]), str(data.get("error_description", ""))
        )
    return User.from_token_response(data)


async def request_delegation_token(
    http: ApiClient,
    domain: str,
    client_id: str,
    id_token: str,
    target_client_id: str,
    options: Optional[dict[str, str]] = None,
) -> Any:
    """Exchange *id_token* for a delegation token for *target_client_id*.

    Extra *options* are sent as additional form fields; options with an
    empty value are left out.

    Returns:
        The provider's JSON response, unmodified.
    """
    form = {
        "grant_type": JWT_BEARER_GRANT,
        "id_token": id_token,
        "target": target_client_id,
        "client_id": client_id,
    }
    for key, value in (options or {}).items():
        if value:
            form[key] = value
    return await http.post_form(endpoints.delegation_url(domain), form)
