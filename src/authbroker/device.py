"""Stable per-installation device identifier.

The identifier is an opaque hex string created once and kept in
``<data_dir>/device_id``. It names the token storage entry; nothing parses
it.
"""

from __future__ import annotations

import uuid
from typing import Optional

from authbroker.config import atomic_write, get_data_dir

_DEVICE_ID_FILENAME = "device_id"

_cached_id: Optional[str] = None


def get_unique_id() -> str:
    """Return this installation's identifier, creating it on first use."""
    global _cached_id
    if _cached_id:
        return _cached_id

    path = get_data_dir() / _DEVICE_ID_FILENAME
    device_id = path.read_text(encoding="utf-8").strip() if path.is_file() else ""
    if not device_id:
        device_id = uuid.uuid4().hex
        atomic_write(path, device_id + "\n", mode=0o600)

    _cached_id = device_id
    return device_id


def reset_cache() -> None:
    """Forget the in-process identifier so the next call re-reads the file."""
    global _cached_id
    _cached_id = None
