"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~authbroker.exceptions.AuthbrokerError` subclass.
Shell wrappers can inspect the exit code to tell a denied login apart from
a network outage without parsing stderr.

Example::

    $ authbroker login --connection github
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the provider rejected the login
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or a precondition was not met."""

EXIT_AUTH_FAILURE = 3
"""The provider denied the login or the user cancelled it."""

EXIT_PROTOCOL_ERROR = 5
"""The provider answered with a response that does not follow the protocol."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused, HTTP error)."""
