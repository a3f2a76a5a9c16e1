"""Anti-forgery ``state`` values for authorization requests."""

from __future__ import annotations

import secrets
import string

from authbroker.models import STATE_LENGTH

_ALPHABET = string.ascii_lowercase


def generate_state() -> str:
    """Return a fresh 16-character state of lowercase ASCII letters.

    Drawn from :mod:`secrets`, so values are unpredictable across calls.
    """
    return "".join(secrets.choice(_ALPHABET) for _ in range(STATE_LENGTH))
