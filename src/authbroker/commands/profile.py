"""Profile commands -- manage provider tenants.

Provides the ``authbroker profile`` sub-command group. A profile names one
tenant domain and application client id, plus the defaults used by
``authbroker login`` (connection, scope, token storage, flow deadlines).

Typical workflow::

    authbroker profile add work --domain tenant.example.com --client-id abc123
    authbroker profile list
    authbroker -p work login
"""

from __future__ import annotations

from typing import Optional

import typer

from authbroker.output import error, format_response, info, print_table, success, suggest


profile_app = typer.Typer(no_args_is_help=True)


@profile_app.command("add")
def profile_add(
    ctx: typer.Context,
    name: str = typer.Argument(help="Profile name."),
    domain: str = typer.Option(..., "--domain", "-d", help="Tenant domain, e.g. tenant.example.com."),
    client_id: str = typer.Option(..., "--client-id", "-c", help="Application client id."),
    connection: Optional[str] = typer.Option(
        None, "--connection", help="Default connection (omit to show the login widget)."
    ),
    scope: str = typer.Option("openid", "--scope", help="'openid' or 'openid profile'."),
    storage: str = typer.Option(
        "file", "--storage", help="Token storage: file, settings or none."
    ),
    default: bool = typer.Option(
        False, "--default", help="Make this the default profile."
    ),
) -> None:
    """Create or replace a profile.

    Overwriting an existing profile asks for confirmation unless
    ``--force`` is active. The first profile created becomes the default.

    Raises:
        typer.Exit: With code 2 if the values fail validation.

    Example::

        authbroker profile add work --domain tenant.example.com --client-id abc123
        authbroker profile add work -d tenant.example.com -c abc123 --scope "openid profile"
    """
    from pydantic import ValidationError

    from authbroker.config import (
        list_profiles,
        load_global_config,
        profile_exists,
        save_global_config,
        save_profile,
    )
    from authbroker.models import Profile

    force = ctx.obj.get("force", False) if ctx.obj else False
    if profile_exists(name) and not force:
        if not typer.confirm(f'Profile "{name}" exists. Replace it?'):
            info("Cancelled.")
            raise typer.Exit()

    try:
        profile = Profile(
            name=name,
            domain=domain,
            client_id=client_id,
            connection=connection,
            scope=scope,
            storage=storage,
        )
    except ValidationError as exc:
        error(f"Invalid profile: {exc}")
        raise typer.Exit(code=2) from None

    config = load_global_config()
    first = config.default_profile is None and list_profiles() == []
    save_profile(profile)
    success(f'Profile "{name}" saved.')

    # The first profile becomes the default so single-tenant setups need no -p.
    if default or first:
        config.default_profile = name
        save_global_config(config)
        info(f'"{name}" is now the default profile.')

    suggest(f"Log in: authbroker -p {name} login")


@profile_app.command("list")
def profile_list() -> None:
    """List all profiles.

    Profiles that fail to load are shown with an ``error`` domain.

    Example::

        authbroker profile list
        authbroker --json profile list
    """
    from authbroker.config import list_profiles, load_global_config, load_profile

    names = list_profiles()
    if not names:
        info("No profiles configured.")
        suggest("Create one: authbroker profile add NAME --domain D --client-id C")
        return

    default_name = load_global_config().default_profile
    rows: list[list[str]] = []
    for name in names:
        marker = "*" if name == default_name else ""
        try:
            profile = load_profile(name)
        except Exception:
            rows.append([name, "error", "-", "-", marker])
            continue
        rows.append(
            [name, profile.domain, profile.client_id, profile.connection or "-", marker]
        )

    print_table(
        ["Profile", "Domain", "Client ID", "Connection", "Default"],
        rows,
        title="Profiles",
    )


@profile_app.command("show")
def profile_show(
    name: str = typer.Argument(help="Profile name."),
) -> None:
    """Show one profile's settings.

    Example::

        authbroker profile show work
    """
    from authbroker.config import load_profile
    from authbroker.exceptions import ConfigError

    try:
        profile = load_profile(name)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=2) from None
    format_response(profile.model_dump(mode="json"))


@profile_app.command("remove")
def profile_remove(
    ctx: typer.Context,
    name: str = typer.Argument(help="Profile name."),
) -> None:
    """Delete a profile.

    The identity stored for it, if any, is left alone; run
    ``authbroker -p NAME logout`` first to clear it.

    Example::

        authbroker profile remove work --force
    """
    from authbroker.config import delete_profile, load_global_config, profile_exists, save_global_config

    if not profile_exists(name):
        error(f'Profile "{name}" not found.')
        raise typer.Exit(code=2)

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        if not typer.confirm(f'Remove profile "{name}"?'):
            info("Cancelled.")
            raise typer.Exit()

    delete_profile(name)

    config = load_global_config()
    if config.default_profile == name:
        config.default_profile = None
        save_global_config(config)

    success(f'Profile "{name}" removed.')
