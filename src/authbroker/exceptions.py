"""Exception hierarchy for authbroker.

All exceptions inherit from :class:`AuthbrokerError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`authbroker.exit_codes`.
The top-level error handler in :func:`authbroker.app.main` catches
``AuthbrokerError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

The split mirrors the three ways a login can go wrong: the provider (or
the user) said no, the transport broke, or the provider answered with
something that is not a valid protocol response.

Subclass hierarchy::

    AuthbrokerError (exit 1)
    +-- InvalidUsageError        (exit 2)
    +-- AuthorizationError       (exit 3)
    |   +-- LoginTimeoutError    (exit 3)
    +-- ProtocolError            (exit 5)
    +-- NetworkError             (exit 6)
    +-- AugmentationError        (exit 6)
    +-- PreconditionError        (exit 2)
    |   +-- LoginInProgressError (exit 2)
    +-- ConfigError              (exit 1)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from authbroker.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_PROTOCOL_ERROR,
)

if TYPE_CHECKING:
    from authbroker.models import User


class AuthbrokerError(Exception):
    """Base exception for all authbroker errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`authbroker.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(AuthbrokerError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class AuthorizationError(AuthbrokerError):
    """Raised when the provider rejects the login or the user abandons it.

    The provider's ``error`` and ``error_description`` values are kept
    verbatim on :attr:`code` and :attr:`description` so callers can branch
    on them (``access_denied``, ``login_required``, ``user_cancelled`` ...).

    Args:
        code: The OAuth2 error code.
        description: Optional human-readable description from the provider.
    """

    exit_code = EXIT_AUTH_FAILURE

    def __init__(self, code: str, description: str = ""):
        message = f"Authorization failed: {code}"
        if description:
            message += f" - {description}"
        super().__init__(message)
        self.code = code
        self.description = description


class LoginTimeoutError(AuthorizationError):
    """Raised when the interactive surface never reaches the callback in time."""

    def __init__(self, timeout: float):
        super().__init__(
            "login_timeout",
            f"No callback received within {timeout:g} seconds",
        )
        self.timeout = timeout


class ProtocolError(AuthbrokerError):
    """Raised when a provider response is missing fields the protocol requires.

    Examples: a token response with neither ``access_token`` nor ``error``,
    a non-JSON body where JSON was expected, or a callback whose ``state``
    does not match the one that was sent.
    """

    exit_code = EXIT_PROTOCOL_ERROR


class NetworkError(AuthbrokerError):
    """Raised on transport failures and unexpected HTTP status codes.

    Args:
        message: Error description.
        status_code: The HTTP status code, when a response was received.
    """

    exit_code = EXIT_CONNECTION_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AugmentationError(AuthbrokerError):
    """Raised when the user-info profile could not be fetched or merged.

    The basic identity obtained before augmentation is attached as
    :attr:`user` and is left unchanged.

    Args:
        message: Error description.
        user: The identity as it was before augmentation was attempted.
    """

    exit_code = EXIT_CONNECTION_ERROR

    def __init__(self, message: str, user: Optional["User"] = None):
        super().__init__(message)
        self.user = user


class PreconditionError(AuthbrokerError):
    """Raised when an operation is called in a state that does not allow it."""

    exit_code = EXIT_INVALID_USAGE


class LoginInProgressError(PreconditionError):
    """Raised when ``login()`` is called while another login is still running."""


class ConfigError(AuthbrokerError):
    """Raised for configuration problems (missing profiles, invalid JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE
