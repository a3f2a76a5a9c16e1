"""Token persistence strategies.

The login flow hands its identity to a :class:`TokenStorage` so the next
process can pick it up again. Two interchangeable strategies are provided:

- :class:`FileTokenStorage` -- one private file per identifier under
  ``<data_dir>/tokens/``, written atomically with ``0o600`` permissions.
- :class:`SettingsTokenStorage` -- one key in a shared JSON key-value
  settings file under the config directory.

Both return an empty string from :meth:`TokenStorage.retrieve` when nothing
has been stored; storing an empty string clears the entry.

See Also:
    :func:`~authbroker.device.get_unique_id` -- the default identifier.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from authbroker.config import atomic_write, get_config_dir, get_data_dir
from authbroker.exceptions import ConfigError

_SETTINGS_FILENAME = "settings.json"


class TokenStorage(ABC):
    """A place to keep one opaque token string between runs."""

    @abstractmethod
    def retrieve(self) -> str:
        """Return the stored value, or ``""`` when nothing is stored."""
        ...

    @abstractmethod
    def store(self, value: str) -> None:
        """Replace the stored value. ``""`` clears it."""
        ...


def _tokens_dir() -> Path:
    """Return the token directory, creating it if needed."""
    path = get_data_dir() / "tokens"
    path.mkdir(parents=True, exist_ok=True)
    return path


class FileTokenStorage(TokenStorage):
    """Keep the token in a private file named after *identifier*.

    Args:
        identifier: File stem, typically the device id.

    Example::

        storage = FileTokenStorage("3f2a...")
        storage.store("token")
        assert storage.retrieve() == "token"
    """

    def __init__(self, identifier: str) -> None:
        self._path = _tokens_dir() / f"{identifier}.txt"

    @property
    def path(self) -> Path:
        return self._path

    def retrieve(self) -> str:
        if not self._path.is_file():
            return ""
        return self._path.read_text(encoding="utf-8")

    def store(self, value: str) -> None:
        if not value:
            if self._path.is_file():
                self._path.unlink()
            return
        atomic_write(self._path, value, mode=0o600)


class SettingsTokenStorage(TokenStorage):
    """Keep the token under *identifier* in a shared key-value settings file.

    Args:
        identifier: Settings key, typically the device id.
        path: Settings file; defaults to ``<config_dir>/settings.json``.
    """

    def __init__(self, identifier: str, path: Optional[Path] = None) -> None:
        self._identifier = identifier
        self._path = path or get_config_dir() / _SETTINGS_FILENAME

    def _load(self) -> dict[str, str]:
        if not self._path.is_file():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, ValueError) as exc:
            raise ConfigError(f"Invalid settings file at {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Invalid settings file at {self._path}: not an object")
        return data

    def retrieve(self) -> str:
        value = self._load().get(self._identifier)
        return value if isinstance(value, str) else ""

    def store(self, value: str) -> None:
        settings = self._load()
        if value:
            settings[self._identifier] = value
        else:
            settings.pop(self._identifier, None)
        atomic_write(self._path, json.dumps(settings, indent=2) + "\n", mode=0o600)


def create_storage(kind: str, identifier: str) -> Optional[TokenStorage]:
    """Return the storage strategy named *kind* (``file``, ``settings`` or ``none``).

    Raises:
        ConfigError: For an unknown *kind*.
    """
    if kind == "file":
        return FileTokenStorage(identifier)
    if kind == "settings":
        return SettingsTokenStorage(identifier)
    if kind == "none":
        return None
    raise ConfigError(f"Unknown token storage '{kind}': expected file, settings or none")
