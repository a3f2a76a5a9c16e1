"""Session commands -- log in, inspect and use the stored identity.

Registered directly on the root app:

* ``login`` -- run the silent-then-interactive flow, or the
  username/password grant when ``--username`` is given.
* ``whoami`` -- show the identity stored for the active profile.
* ``token`` -- print the raw access token (or id_token) for piping.
* ``delegate`` -- exchange the id_token for another application's token.
* ``logout`` -- forget the stored identity.

Each command resolves the active profile, builds an
:class:`~authbroker.flow.orchestrator.AuthClient` for it and drives it
with :func:`asyncio.run`. Package errors become an error message and the
error's exit code.

Typical workflow::

    authbroker -p work login --connection github
    authbroker -p work whoami
    curl -H "Authorization: Bearer $(authbroker -p work token)" ...
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Coroutine, Optional, TypeVar

import typer

from authbroker import endpoints
from authbroker.client.http import ApiClient
from authbroker.exceptions import AuthbrokerError, InvalidUsageError
from authbroker.exit_codes import EXIT_AUTH_FAILURE
from authbroker.flow.orchestrator import AuthClient
from authbroker.models import Profile, User
from authbroker.output import error, format_response, info, print_data, success, suggest
from authbroker.storage import TokenStorage, create_storage
from authbroker.surfaces.base import NavigableSurface, SurfaceFactory

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def _active_profile(ctx: typer.Context) -> Profile:
    """Resolve the profile selected by ``--profile``, env vars or config."""
    from authbroker.config import resolve_profile

    cli_profile = ctx.obj.get("profile") if ctx.obj else None
    try:
        profile = resolve_profile(cli_profile)
    except AuthbrokerError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if profile is None:
        error("No profile selected.")
        suggest("Create one: authbroker profile add NAME --domain D --client-id C")
        raise typer.Exit(code=2)
    return profile


def _make_http(profile: Profile) -> ApiClient:
    return ApiClient(profile.request)


def _surface_factories(profile: Profile) -> tuple[SurfaceFactory, SurfaceFactory]:
    """Return the ``(silent, interactive)`` surface factories for *profile*."""
    from authbroker.config import load_global_config
    from authbroker.surfaces.http import HttpSurface
    from authbroker.surfaces.prompt import PromptSurface

    callback = endpoints.callback_url(profile.domain)
    open_browser = load_global_config().open_browser

    def silent() -> NavigableSurface:
        return HttpSurface(
            stop_at=callback,
            timeout=float(profile.request.timeout),
            verify_ssl=profile.request.verify_ssl,
        )

    def interactive() -> NavigableSurface:
        return PromptSurface(open_browser=open_browser)

    return silent, interactive


def _storage_for(profile: Profile) -> Optional[TokenStorage]:
    from authbroker.device import get_unique_id

    # One entry per profile so tenants do not overwrite each other.
    return create_storage(profile.storage, f"{profile.name}-{get_unique_id()}")


@asynccontextmanager
async def _auth_client(profile: Profile, silent: bool = True) -> AsyncIterator[AuthClient]:
    silent_factory, interactive_factory = _surface_factories(profile)
    flow = profile.flow.model_copy(update={"silent": profile.flow.silent and silent})
    async with _make_http(profile) as http:
        yield AuthClient(
            profile.domain,
            profile.client_id,
            silent_surface_factory=silent_factory,
            interactive_surface_factory=interactive_factory,
            http=http,
            token_storage=_storage_for(profile),
            flow=flow,
        )


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run *coro* to completion, turning package errors into an exit code."""
    try:
        return asyncio.run(coro)
    except AuthbrokerError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def _require_user(user: Optional[User], profile: Profile) -> User:
    if user is None:
        error(f'Not logged in to "{profile.name}".')
        suggest(f"Log in: authbroker -p {profile.name} login")
        raise typer.Exit(code=EXIT_AUTH_FAILURE)
    return user


def _parse_options(pairs: list[str]) -> dict[str, str]:
    """Turn ``key=value`` strings into a dict.

    Raises:
        InvalidUsageError: If an entry has no ``=``.
    """
    options: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise InvalidUsageError(f"Expected key=value, got: {pair}")
        options[key] = value
    return options


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def _login(
    profile: Profile,
    connection: Optional[str],
    scope: str,
    silent: bool,
    username: Optional[str],
    password_source: str,
) -> User:
    async with _auth_client(profile, silent=silent) as client:
        if username is None:
            return await client.login(connection=connection, scope=scope)

        from authbroker.config import resolve_credential

        if not connection:
            raise InvalidUsageError("--username requires a connection (--connection or profile)")
        password = resolve_credential(password_source)
        return await client.login_with_password(connection, username, password, scope)


def login_command(
    ctx: typer.Context,
    connection: Optional[str] = typer.Option(
        None, "--connection", help="Connection to log in with (default: the profile's)."
    ),
    scope: Optional[str] = typer.Option(
        None, "--scope", help="'openid' or 'openid profile' (default: the profile's)."
    ),
    username: Optional[str] = typer.Option(
        None, "--username", "-u", help="Log in directly with a username and password."
    ),
    password_source: str = typer.Option(
        "prompt",
        "--password-source",
        help="Password source for --username: env:VAR, file:/path, prompt.",
    ),
    no_silent: bool = typer.Option(
        False, "--no-silent", help="Skip the silent attempt and go straight to the browser."
    ),
) -> None:
    """Log in and store the identity for the active profile.

    Without ``--username`` the silent attempt runs first; if the provider
    has no live session the login page is opened in the browser and the
    address you land on is pasted back.

    Example::

        authbroker login
        authbroker -p work login --connection github --scope "openid profile"
        authbroker login --connection db --username me --password-source env:PW
    """
    profile = _active_profile(ctx)
    user = _run(
        _login(
            profile,
            connection or profile.connection,
            scope or profile.scope,
            not no_silent,
            username,
            password_source,
        )
    )

    who = user.profile.get("name") or user.profile.get("email") or user.profile.get("sub")
    success(f"Logged in{f' as {who}' if who else ''}.")
    format_response(user.profile)


async def _restore(profile: Profile) -> Optional[User]:
    async with _auth_client(profile) as client:
        return client.restore()


def whoami_command(ctx: typer.Context) -> None:
    """Show the identity stored for the active profile.

    Example::

        authbroker whoami
        authbroker --json whoami
    """
    profile = _active_profile(ctx)
    user = _require_user(_run(_restore(profile)), profile)
    format_response(user.profile)


def token_command(
    ctx: typer.Context,
    id_token: bool = typer.Option(False, "--id-token", help="Print the id_token instead."),
) -> None:
    """Print the stored access token (or id_token) to stdout.

    Example::

        authbroker token
        authbroker token --id-token
    """
    profile = _active_profile(ctx)
    user = _require_user(_run(_restore(profile)), profile)
    value = user.id_token if id_token else user.access_token
    if not value:
        error("The stored login has no id_token.")
        raise typer.Exit(code=EXIT_AUTH_FAILURE)
    print_data(value)


async def _delegate(
    profile: Profile, target: str, options: dict[str, str]
) -> Any:
    async with _auth_client(profile) as client:
        client.restore()
        return await client.get_delegation_token(target, options)


def delegate_command(
    ctx: typer.Context,
    target: str = typer.Argument(help="Client id of the target application."),
    option: list[str] = typer.Option(
        [], "--option", "-o", help="Extra form field as key=value (repeatable)."
    ),
    id_token: Optional[str] = typer.Option(
        None, "--id-token", help="Use this id_token instead of the stored one."
    ),
) -> None:
    """Request a delegation token for another application.

    Prints the provider's JSON response as-is.

    Example::

        authbroker delegate OTHER_CLIENT_ID
        authbroker delegate OTHER_CLIENT_ID -o scope=openid -o api_type=firebase
    """
    profile = _active_profile(ctx)
    try:
        options = _parse_options(option)
    except InvalidUsageError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    if id_token:
        options["id_token"] = id_token

    format_response(_run(_delegate(profile, target, options)))


async def _logout(profile: Profile) -> None:
    async with _auth_client(profile) as client:
        await client.logout()


def logout_command(ctx: typer.Context) -> None:
    """Forget the identity stored for the active profile.

    Example::

        authbroker logout
    """
    profile = _active_profile(ctx)
    _run(_logout(profile))
    success(f'Logged out of "{profile.name}".')
    if profile.storage == "none":
        info("This profile does not persist logins; nothing was stored.")

