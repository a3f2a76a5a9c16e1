"""Files authbroker keeps on disk, and which profile a command runs against.

Layout (XDG Base Directory on Linux/BSD, ``~/.authbroker/`` elsewhere)::

    <config_dir>/config.json             GlobalConfig
    <config_dir>/profiles/<name>.json    one Profile per tenant application
    <config_dir>/settings.json           SettingsTokenStorage entries
    <data_dir>/tokens/<identifier>.txt   FileTokenStorage entries
    <data_dir>/device_id                 installation identifier
    <data_dir>/logs/                     crash logs

Every write goes through :func:`atomic_write`, so a crash never leaves a
half-written profile or token behind.

The active profile is chosen by :func:`resolve_profile`: the ``--profile``
flag, then ``AUTHBROKER_PROFILE``, then ``default_profile`` from the global
config. Fields of the chosen profile can be overridden per invocation with
the variables in :data:`PROFILE_ENV_OVERRIDES`, which is how CI jobs point
one profile at a staging tenant or force a connection.
"""

from __future__ import annotations

import contextlib
import getpass
import json
import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from authbroker.exceptions import ConfigError
from authbroker.models import GlobalConfig, Profile

_APP_NAME = "authbroker"
_CONFIG_FILENAME = "config.json"

# kind -> (XDG variable, default under $HOME, fallback under ~/.authbroker)
_DIRS: dict[str, tuple[str, tuple[str, ...], tuple[str, ...]]] = {
    "config": ("XDG_CONFIG_HOME", (".config",), ()),
    "data": ("XDG_DATA_HOME", (".local", "share"), ("data",)),
}

#: Environment variables that override a field of the active profile.
PROFILE_ENV_OVERRIDES: dict[str, str] = {
    "AUTHBROKER_DOMAIN": "domain",
    "AUTHBROKER_CLIENT_ID": "client_id",
    "AUTHBROKER_CONNECTION": "connection",
    "AUTHBROKER_SCOPE": "scope",
}

M = TypeVar("M", bound=BaseModel)


# --- Directories ---


def _is_xdg_platform() -> bool:
    """Return True on Linux and the BSDs, where XDG directories apply."""
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(kind: str) -> Path:
    env_var, xdg_default, fallback = _DIRS[kind]
    if _is_xdg_platform():
        base = os.environ.get(env_var) or Path.home().joinpath(*xdg_default)
        path = Path(base) / _APP_NAME
    else:
        path = Path.home().joinpath(f".{_APP_NAME}", *fallback)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    ``$XDG_CONFIG_HOME/authbroker`` (default ``~/.config/authbroker``) on
    Linux/BSD, ``~/.authbroker`` elsewhere.
    """
    return _app_dir("config")


def get_data_dir() -> Path:
    """Return the data directory (tokens, device id, crash logs), creating it if necessary.

    ``$XDG_DATA_HOME/authbroker`` (default ``~/.local/share/authbroker``) on
    Linux/BSD, ``~/.authbroker/data`` elsewhere.
    """
    return _app_dir("data")


def get_profiles_dir() -> Path:
    path = get_config_dir() / "profiles"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Replace *path* with *data* in one rename.

    The temporary file lives next to *path* so ``os.replace`` is atomic,
    and it is created private (``0o600``); *mode*, when given, is applied
    before any content is written. The temporary file is removed on any
    failure.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            if mode is not None:
                os.chmod(tmp_name, mode)
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise


def _read_json(path: Path, what: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc


def _validate(model: type[M], data: Any, what: str) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid {what}: {exc}") from exc


def _write_model(path: Path, model: BaseModel) -> None:
    atomic_write(path, model.model_dump_json(indent=2) + "\n")


# --- Global config ---


def load_global_config() -> GlobalConfig:
    """Load ``config.json``; defaults when the file does not exist.

    Raises:
        ConfigError: If the file is not valid JSON or fails validation.
    """
    path = get_config_dir() / _CONFIG_FILENAME
    if not path.is_file():
        return GlobalConfig()
    return _validate(GlobalConfig, _read_json(path, "global config"), f"global config at {path}")


def save_global_config(config: GlobalConfig) -> None:
    _write_model(get_config_dir() / _CONFIG_FILENAME, config)


# --- Profiles ---


def _profile_path(name: str) -> Path:
    return get_profiles_dir() / f"{name}.json"


def list_profiles() -> list[str]:
    """Return the names of all stored profiles, sorted."""
    return sorted(p.stem for p in get_profiles_dir().glob("*.json") if p.is_file())


def profile_exists(name: str) -> bool:
    return _profile_path(name).is_file()


def load_profile(name: str) -> Profile:
    """Load the profile stored as ``profiles/<name>.json``.

    Raises:
        ConfigError: If the profile does not exist, is not valid JSON or
            fails validation.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    return _validate(Profile, _read_json(path, f"profile '{name}'"), f"profile '{name}' at {path}")


def save_profile(profile: Profile) -> None:
    _write_model(_profile_path(profile.name), profile)


def delete_profile(name: str) -> None:
    """Delete a stored profile.

    Raises:
        ConfigError: If the profile does not exist.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    path.unlink()


# --- Active profile ---


def resolve_profile(cli_profile: Optional[str] = None) -> Optional[Profile]:
    """Return the profile a command should use, or ``None`` if none is selected.

    The name comes from *cli_profile*, else ``AUTHBROKER_PROFILE``, else the
    global ``default_profile``. Set variables from
    :data:`PROFILE_ENV_OVERRIDES` then replace the matching fields; the
    result is validated like a stored profile and is never written back.

    Raises:
        ConfigError: If the named profile cannot be loaded, or an override
            makes it invalid (for example a domain with a scheme).
    """
    name = cli_profile or os.environ.get("AUTHBROKER_PROFILE") or load_global_config().default_profile
    if not name:
        return None

    profile = load_profile(name)
    overrides = {
        field: os.environ[var] for var, field in PROFILE_ENV_OVERRIDES.items() if os.environ.get(var)
    }
    if not overrides:
        return profile

    data = profile.model_dump()
    data.update(overrides)
    names = ", ".join(var for var, field in PROFILE_ENV_OVERRIDES.items() if field in overrides)
    return _validate(Profile, data, f"profile '{name}' with {names} applied")


# --- Credential sources ---


def resolve_credential(source: str) -> str:
    """Read a secret (the password of a direct login) from *source*.

    Sources: ``env:VAR``, ``file:/path`` (content stripped of surrounding
    whitespace) and ``prompt`` (hidden terminal input, TTY only).

    Raises:
        ConfigError: If the source is unknown or cannot be read.
    """
    kind, _, target = source.partition(":")

    if kind == "env" and target:
        value = os.environ.get(target)
        if value is None:
            raise ConfigError(f"Environment variable '{target}' is not set (source: {source})")
        return value

    if kind == "file" and target:
        path = Path(target).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path}")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError("Cannot prompt for the password: stdin is not a TTY")
        return getpass.getpass("Password: ")

    raise ConfigError(f"Unknown credential source: {source} (use env:VAR, file:/path or prompt)")
