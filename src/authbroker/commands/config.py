"""``authbroker config`` -- the user-wide settings in ``config.json``.

Keys are the fields of :class:`~authbroker.models.GlobalConfig`, with dots
for nested sections::

    authbroker config get open_browser
    authbroker config set default_profile work
    authbroker config set output.format json
    authbroker config set open_browser false
    authbroker config unset default_profile
"""

from __future__ import annotations

from typing import Any

import typer
from pydantic import BaseModel, ValidationError

from authbroker.exceptions import AuthbrokerError, InvalidUsageError
from authbroker.models import GlobalConfig
from authbroker.output import error, format_response, info, print_data, success


config_app = typer.Typer(no_args_is_help=True)


def _split_key(key: str) -> tuple[list[str], str]:
    """Check *key* against the GlobalConfig field tree.

    Returns the section path and the leaf field name.

    Raises:
        InvalidUsageError: If a part of *key* is not a field, or the key
            names a whole section instead of a value.
    """
    *sections, leaf = key.split(".")
    model: type[BaseModel] = GlobalConfig
    for part in sections:
        field = model.model_fields.get(part)
        annotation = field.annotation if field else None
        if not (isinstance(annotation, type) and issubclass(annotation, BaseModel)):
            raise InvalidUsageError(f"Unknown config key: {key}")
        model = annotation
    field = model.model_fields.get(leaf)
    if field is None:
        raise InvalidUsageError(f"Unknown config key: {key}")
    if isinstance(field.annotation, type) and issubclass(field.annotation, BaseModel):
        raise InvalidUsageError(f"{key} is a section; set one of its keys instead")
    return sections, leaf


def _store(key: str, value: Any) -> Any:
    """Write *value* at *key*, validate the whole config and save it.

    Returns the value as pydantic coerced it (``"false"`` becomes ``False``).
    """
    from authbroker.config import load_global_config, save_global_config

    sections, leaf = _split_key(key)
    data = load_global_config().model_dump()
    node = data
    for part in sections:
        node = node[part]
    node[leaf] = value

    try:
        config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        raise InvalidUsageError(
            f"Invalid value for {key}: {exc.errors()[0]['msg']}"
        ) from None

    save_global_config(config)
    stored: Any = config
    for part in [*sections, leaf]:
        stored = getattr(stored, part)
    return stored


def _render(value: Any) -> str:
    """Spell a setting the way ``config set`` accepts it back."""
    if value is None:
        return "none"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _fail(exc: AuthbrokerError) -> typer.Exit:
    error(str(exc))
    return typer.Exit(code=exc.exit_code)


@config_app.command("show")
def config_show() -> None:
    """Print every setting and where the file lives.

    Example::

        authbroker --json config show
    """
    from authbroker.config import get_config_dir, load_global_config

    try:
        config = load_global_config()
    except AuthbrokerError as exc:
        raise _fail(exc) from None
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("get")
def config_get(key: str = typer.Argument(help="Setting name, e.g. output.format.")) -> None:
    """Print one setting."""
    from authbroker.config import load_global_config

    try:
        sections, leaf = _split_key(key)
        value: Any = load_global_config()
    except AuthbrokerError as exc:
        raise _fail(exc) from None
    for part in [*sections, leaf]:
        value = getattr(value, part)
    print_data(_render(value))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Setting name, e.g. output.format."),
    value: str = typer.Argument(help="New value; 'none' clears an optional setting."),
) -> None:
    """Change one setting.

    The value is validated against the setting's type before anything is
    written, so ``config set open_browser maybe`` leaves the file alone.
    """
    try:
        stored = _store(key, None if value.lower() == "none" else value)
    except AuthbrokerError as exc:
        raise _fail(exc) from None
    success(f"{key} = {_render(stored)}")


@config_app.command("unset")
def config_unset(key: str = typer.Argument(help="Setting name.")) -> None:
    """Return one setting to its default."""
    try:
        sections, leaf = _split_key(key)
        model: Any = GlobalConfig()
        for part in sections:
            model = getattr(model, part)
        stored = _store(key, getattr(model, leaf))
    except AuthbrokerError as exc:
        raise _fail(exc) from None
    success(f"{key} = {_render(stored)} (default)")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Return every setting to its default. Profiles are kept.

    Asks first unless ``--force`` is active.
    """
    from authbroker.config import save_global_config

    if not (ctx.obj or {}).get("force", False):
        if not typer.confirm("Reset all settings to their defaults?"):
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Settings reset to defaults.")
