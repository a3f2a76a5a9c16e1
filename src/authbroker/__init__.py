"""authbroker -- OAuth2 implicit-flow login with silent re-authentication.

This package logs end users into a hosted identity provider. A login first
tries a *silent* round-trip through a hidden navigable surface (returning
users with a live provider session come straight back with tokens) and only
falls back to an *interactive* surface when the provider wants the user to
do something. The resulting identity can optionally be augmented with the
provider's user-info profile.

Typical usage::

    from authbroker import AuthClient

    async with AuthClient("tenant.example.com", "client-id") as client:
        user = await client.login(connection="github", scope="openid profile")
        print(user.profile["name"])

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and profile management.
    exceptions: Exception hierarchy with exit-code mapping.
    flow: The login orchestrator, redirect parser and profile augmenter.
    surfaces: Navigable surface capability and its terminal implementations.
"""

__version__ = "0.1.0"

from authbroker.flow.orchestrator import AuthClient  # noqa: E402
from authbroker.models import User  # noqa: E402

__all__ = ["AuthClient", "User", "__version__"]
