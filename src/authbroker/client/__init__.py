"""HTTP client for the provider's JSON endpoints.

Exports :class:`ApiClient`, an :class:`httpx.AsyncClient` wrapper that
maps transport and protocol failures onto the package's exceptions.
"""

from authbroker.client.http import ApiClient

__all__ = ["ApiClient"]
