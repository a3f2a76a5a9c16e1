"""Asynchronous HTTP glue for the provider's JSON endpoints.

:class:`ApiClient` wraps :class:`httpx.AsyncClient` and turns every way a
call can go wrong into one of the package's error kinds:

* transport failures (timeouts, DNS, refused connections) ->
  :class:`~authbroker.exceptions.NetworkError`
* non-2xx responses that do not carry an OAuth ``error`` body ->
  :class:`~authbroker.exceptions.NetworkError` with ``status_code``
* bodies that are not JSON -> :class:`~authbroker.exceptions.ProtocolError`

Nothing is retried. OAuth error bodies (``{"error": ...}``) are returned
to the caller, which decides what they mean.

Must be closed after use, either with :meth:`ApiClient.aclose` or as an
async context manager.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import urlsplit

import httpx

from authbroker.exceptions import NetworkError, ProtocolError
from authbroker.models import RequestConfig

logger = logging.getLogger(__name__)


class ApiClient:
    """JSON-over-HTTP client with error mapping.

    Args:
        config: Timeout and SSL settings.
        transport: Optional custom transport (``httpx.MockTransport`` in
            tests).

    Example::

        async with ApiClient() as http:
            data = await http.post_form("https://tenant.example.com/oauth/ro", {...})
    """

    def __init__(
        self,
        config: Optional[RequestConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        config = config or RequestConfig()
        self._client = httpx.AsyncClient(
            timeout=config.timeout,
            verify=config.verify_ssl,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    async def aclose(self) -> None:
        await self._client.aclose()

    async def post_form(self, url: str, data: dict[str, str]) -> Any:
        """POST *data* form-encoded and return the decoded JSON body.

        Raises:
            NetworkError: On transport failure, or a non-2xx status whose
                body is not an OAuth error object.
            ProtocolError: If the body is not valid JSON.
        """
        response = await self._send("POST", url, data=data)
        return self._decode(response, allow_oauth_error=True)

    async def get_json(self, url: str) -> Any:
        """GET *url* and return the decoded JSON body.

        Raises:
            NetworkError: On transport failure or a non-2xx status.
            ProtocolError: If the body is not valid JSON.
        """
        response = await self._send("GET", url)
        return self._decode(response, allow_oauth_error=False)

    async def _send(
        self, method: str, url: str, data: Optional[dict[str, str]] = None
    ) -> httpx.Response:
        # Only the path is logged; query strings may carry tokens.
        logger.debug("%s %s", method, urlsplit(url).path)
        try:
            return await self._client.request(method, url, data=data)
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Request timed out: {method} {urlsplit(url).path}") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"Connection failed: {exc}") from exc

    def _decode(self, response: httpx.Response, allow_oauth_error: bool) -> Any:
        try:
            body = response.json()
        except ValueError:
            body = None
            decoded = False
        else:
            decoded = True

        if not response.is_success:
            if allow_oauth_error and isinstance(body, dict) and "error" in body:
                return body
            raise NetworkError(
                f"HTTP {response.status_code} from {urlsplit(str(response.request.url)).path}",
                status_code=response.status_code,
            )

        if not decoded:
            raise ProtocolError(
                f"Expected a JSON response from {urlsplit(str(response.request.url)).path}"
            )
        return body
