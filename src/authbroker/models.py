"""Canonical Pydantic models shared across all authbroker modules.

This is the single source of truth for data shapes in the project. Every
other module imports from here rather than defining its own models. The
models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`RequestConfig`, :class:`FlowConfig`, :class:`OutputConfig`,
    :class:`GlobalConfig`, and :class:`Profile`.

**Flow models** -- produced and consumed while a login runs:
    :class:`AuthorizationRequest`, the :data:`RedirectOutcome` variants
    (:class:`TokenResult`, :class:`ErrorResult`, :class:`NotTerminal`),
    :class:`FlowPhase`, and the resulting identity :class:`User`.

All models use Pydantic v2. :class:`User` is the only model mutated after
construction, and only through :meth:`User.merge_profile`.
"""

from __future__ import annotations

import base64
import binascii
import enum
import json
import re
from typing import Any, Literal, Optional, Union
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator

from authbroker import endpoints
from authbroker.exceptions import AuthorizationError, ProtocolError

STATE_LENGTH = 16
_STATE_PATTERN = re.compile(r"^[a-z]{16}$")

BASIC_SCOPE = "openid"
PROFILE_SCOPE = "openid profile"


# --- Configuration ---


class RequestConfig(BaseModel):
    """HTTP settings for calls made outside the navigable surfaces."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class FlowConfig(BaseModel):
    """Deadlines and failure policy for the login flow.

    ``interactive_timeout`` may be ``None`` to wait for the user forever;
    the user can still cancel by closing the interactive surface.
    """

    silent_timeout: float = Field(
        default=30.0, description="Seconds to wait for the silent surface's first navigation"
    )
    interactive_timeout: Optional[float] = Field(
        default=300.0, description="Seconds to wait for the interactive callback (None = no limit)"
    )
    augment_failure: Literal["fail", "degrade"] = Field(
        default="fail",
        description="On user-info failure: fail the login or keep the basic identity",
    )
    silent: bool = Field(default=True, description="Attempt a silent login first")


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: Literal["auto", "json", "plain", "rich"] = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/authbroker/config.json``.

    ``default_profile`` is the profile used when neither ``--profile`` nor
    ``AUTHBROKER_PROFILE`` names one (see
    :func:`~authbroker.config.resolve_profile`). ``open_browser`` controls
    whether interactive logins launch the system browser or only print
    the login URL.
    """

    default_profile: Optional[str] = None
    open_browser: bool = Field(
        default=True, description="Open the system browser for interactive logins"
    )
    output: OutputConfig = Field(default_factory=OutputConfig)


class Profile(BaseModel):
    """One identity-provider tenant and application, stored under ``profiles/``.

    Extra fields are preserved and accessible via ``model_extra``.

    See Also:
        :func:`~authbroker.config.load_profile`: Deserialise a profile by name.
        :func:`~authbroker.config.save_profile`: Persist a profile to disk.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    domain: str = Field(description="Provider tenant domain, e.g. tenant.example.com")
    client_id: str = Field(description="Application client identifier")
    connection: Optional[str] = Field(
        default=None, description="Default connection; None shows the login widget"
    )
    scope: str = Field(default=BASIC_SCOPE, description="'openid' or 'openid profile'")
    storage: Literal["file", "settings", "none"] = Field(
        default="file", description="Where the logged-in identity is persisted"
    )
    request: RequestConfig = Field(default_factory=RequestConfig)
    flow: FlowConfig = Field(default_factory=FlowConfig)

    @field_validator("domain")
    @classmethod
    def _bare_domain(cls, value: str) -> str:
        if "/" in value or ":" in value:
            raise ValueError("domain must be a bare host name, without scheme or path")
        return value


# --- Flow ---


class FlowPhase(str, enum.Enum):
    """Phases of a single ``login()`` call.

    ``IDLE -> SILENT_PENDING -> {SILENT_SUCCEEDED | SILENT_FAILED}``;
    ``SILENT_FAILED -> INTERACTIVE_PENDING -> {SUCCESS | ERROR}`` and
    ``SILENT_SUCCEEDED -> SUCCESS``.
    """

    IDLE = "idle"
    SILENT_PENDING = "silent_pending"
    SILENT_SUCCEEDED = "silent_succeeded"
    SILENT_FAILED = "silent_failed"
    INTERACTIVE_PENDING = "interactive_pending"
    SUCCESS = "success"
    ERROR = "error"


class AuthorizationRequest(BaseModel):
    """Everything needed to render the provider's start URL for one attempt."""

    model_config = ConfigDict(frozen=True)

    domain: str
    client_id: str
    scope: str = BASIC_SCOPE
    redirect_uri: str
    connection: Optional[str] = None
    state: str

    @field_validator("state")
    @classmethod
    def _state_shape(cls, value: str) -> str:
        if not _STATE_PATTERN.match(value):
            raise ValueError(f"state must be {STATE_LENGTH} lowercase ASCII letters")
        return value

    @field_validator("redirect_uri")
    @classmethod
    def _bare_redirect(cls, value: str) -> str:
        parts = urlsplit(value)
        if not parts.scheme or not parts.netloc:
            raise ValueError("redirect_uri must be an absolute URL")
        if parts.query or parts.fragment:
            raise ValueError("redirect_uri must not carry a query or fragment")
        return value

    def to_url(self) -> str:
        """Render the authorize URL, or the login-widget URL when no connection is set."""
        if self.connection:
            return endpoints.authorize_url(
                self.domain,
                self.client_id,
                self.scope,
                self.redirect_uri,
                self.connection,
                self.state,
            )
        return endpoints.login_widget_url(
            self.domain, self.client_id, self.scope, self.redirect_uri, self.state
        )


class TokenResult(BaseModel):
    """Tokens extracted from a terminal redirect.

    ``raw`` holds every parameter the provider sent, recognised or not.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["token"] = "token"
    access_token: str
    id_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    state: Optional[str] = None
    raw: dict[str, str] = Field(default_factory=dict)


class ErrorResult(BaseModel):
    """An OAuth2 error carried by a terminal redirect."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["error"] = "error"
    code: str
    description: str = ""
    state: Optional[str] = None

    def to_exception(self) -> AuthorizationError:
        return AuthorizationError(self.code, self.description)


class NotTerminal(BaseModel):
    """The URL is not (yet) a callback carrying a result."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["not_terminal"] = "not_terminal"
    url: str


RedirectOutcome = Union[TokenResult, ErrorResult, NotTerminal]


def decode_jwt_claims(token: str) -> dict[str, Any]:
    """Return the payload claims of a JWT without verifying its signature.

    Tokens that are not shaped like a JWT (three dot-separated segments)
    are treated as opaque and yield no claims.

    Raises:
        ProtocolError: If the token looks like a JWT but its payload is
            not base64url-encoded JSON.
    """
    segments = token.split(".")
    if len(segments) != 3:
        return {}
    payload = segments[1]
    payload += "=" * (-len(payload) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload.encode("ascii")))
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise ProtocolError(f"id_token payload is not valid JSON: {exc}") from exc
    if not isinstance(claims, dict):
        raise ProtocolError("id_token payload is not a JSON object")
    return claims


class User(BaseModel):
    """An authenticated user.

    Created once per successful login. ``profile`` starts out as the
    id_token claims and grows when the provider's user-info profile is
    merged in by :class:`~authbroker.flow.augment.ProfileAugmenter`.

    Attributes:
        access_token: The provider access token.
        id_token: The OpenID Connect id_token, if one was issued.
        token_type: Token type reported by the provider.
        expires_in: Access-token lifetime in seconds, if reported.
        profile: Profile attributes (id_token claims plus user-info).
        raw: Every field of the token response as received.
    """

    access_token: str
    id_token: Optional[str] = None
    token_type: Optional[str] = None
    expires_in: Optional[int] = None
    profile: dict[str, Any] = Field(default_factory=dict)
    raw: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_token_result(cls, result: TokenResult) -> User:
        """Build a user from the tokens carried by a terminal redirect."""
        profile = decode_jwt_claims(result.id_token) if result.id_token else {}
        return cls(
            access_token=result.access_token,
            id_token=result.id_token,
            token_type=result.token_type,
            expires_in=result.expires_in,
            profile=profile,
            raw=dict(result.raw),
        )

    @classmethod
    def from_token_response(cls, data: dict[str, Any]) -> User:
        """Build a user from a JSON token response (resource-owner grant).

        Raises:
            ProtocolError: If ``access_token`` is missing or ``expires_in``
                is not a number of seconds.
        """
        if not data.get("access_token"):
            raise ProtocolError(
                "Expected access_token in access token response, but did not receive one"
            )
        id_token = data.get("id_token") or None
        expires_in = data.get("expires_in")
        if expires_in is not None:
            try:
                expires_in = int(expires_in)
            except (TypeError, ValueError):
                raise ProtocolError(
                    f"Invalid expires_in in access token response: {expires_in!r}"
                ) from None
        return cls(
            access_token=str(data["access_token"]),
            id_token=id_token,
            token_type=data.get("token_type"),
            expires_in=expires_in,
            profile=decode_jwt_claims(id_token) if id_token else {},
            raw=dict(data),
        )

    def merge_profile(self, attributes: dict[str, Any]) -> None:
        """Merge *attributes* into :attr:`profile`; later values win on collision."""
        self.profile.update(attributes)
