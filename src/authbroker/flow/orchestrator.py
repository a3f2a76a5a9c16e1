"""The login flow orchestrator.

:class:`AuthClient` logs a user in with the OAuth2 implicit flow:

1. Build a start URL with a fresh anti-forgery ``state``. The URL always
   asks for the basic ``openid`` scope; richer profiles are fetched
   afterwards so the URL stays within what embedded browsers accept.
2. **Silent attempt** -- load the start URL in a hidden surface and look at
   the first navigation only. A returning user with a live provider session
   lands straight on the callback with tokens.
3. **Interactive attempt** -- otherwise show the interactive surface,
   starting from wherever the silent surface ended up (typically the
   provider's login page), and wait until a navigation reaches the
   callback. The user can cancel by closing the surface; a deadline
   bounds the wait.
4. Parse the callback, build the :class:`~authbroker.models.User`, and for
   ``openid profile`` merge in the user-info profile.

The client also wraps the surface-less exchanges (password login,
delegation tokens), keeps the current user, and persists it through an
optional :class:`~authbroker.storage.TokenStorage`.

See Also:
    :mod:`authbroker.flow.redirect` for callback parsing.
    :mod:`authbroker.surfaces` for the surfaces being driven.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from pydantic import ValidationError

from authbroker import endpoints
from authbroker.client.http import ApiClient
from authbroker.exceptions import (
    AugmentationError,
    AuthorizationError,
    ConfigError,
    LoginInProgressError,
    LoginTimeoutError,
    PreconditionError,
    ProtocolError,
)
from authbroker.flow.augment import ProfileAugmenter
from authbroker.flow.redirect import matches_callback, parse_redirect
from authbroker.flow.state import generate_state
from authbroker.grants import request_delegation_token, resource_owner_login
from authbroker.models import (
    BASIC_SCOPE,
    PROFILE_SCOPE,
    AuthorizationRequest,
    ErrorResult,
    FlowConfig,
    FlowPhase,
    NotTerminal,
    User,
)
from authbroker.storage import TokenStorage
from authbroker.surfaces.base import NavigableSurface, SurfaceClosedError, SurfaceFactory

logger = logging.getLogger(__name__)

# Errors a provider returns when it cannot log the user in without showing UI.
SILENT_RETRY_ERRORS = frozenset({"login_required", "interaction_required", "consent_required"})


class FlowAttempt:
    """State of one ``login()`` call. Discarded when the call returns.

    Attributes:
        request: The authorization request sent to the provider.
        start_url: The rendered start URL.
        phase: Current :class:`~authbroker.models.FlowPhase`.
        silent: The silent surface, once created.
        interactive: The interactive surface, once created.
    """

    def __init__(self, request: AuthorizationRequest) -> None:
        self.request = request
        self.start_url = request.to_url()
        self.phase = FlowPhase.IDLE
        self.silent: Optional[NavigableSurface] = None
        self.interactive: Optional[NavigableSurface] = None

    def advance(self, phase: FlowPhase) -> None:
        logger.debug("Login phase %s -> %s", self.phase.value, phase.value)
        self.phase = phase

    async def close(self) -> None:
        for surface in (self.silent, self.interactive):
            if surface is not None:
                await surface.close()


class AuthClient:
    """Authenticate users against a hosted identity provider.

    One client holds at most one current user and runs at most one login
    at a time; a second concurrent :meth:`login` is rejected with
    :class:`~authbroker.exceptions.LoginInProgressError`.

    Args:
        domain: Provider tenant domain (``tenant.example.com``).
        client_id: Application client identifier.
        silent_surface_factory: Creates the hidden surface for each silent
            attempt. Defaults to an :class:`~authbroker.surfaces.HttpSurface`
            that stops at the callback.
        interactive_surface_factory: Creates the visible surface for each
            interactive attempt. Defaults to a
            :class:`~authbroker.surfaces.PromptSurface`.
        http: Client for JSON endpoints. Created (and owned) when ``None``.
        token_storage: Where the logged-in user is persisted, if anywhere.
        flow: Deadlines and failure policy.
        state_generator: Source of anti-forgery state values.

    Example::

        async with AuthClient("tenant.example.com", "abc123") as client:
            user = await client.login(connection="github")
    """

    def __init__(
        self,
        domain: str,
        client_id: str,
        *,
        silent_surface_factory: Optional[SurfaceFactory] = None,
        interactive_surface_factory: Optional[SurfaceFactory] = None,
        http: Optional[ApiClient] = None,
        token_storage: Optional[TokenStorage] = None,
        flow: Optional[FlowConfig] = None,
        state_generator: Callable[[], str] = generate_state,
    ) -> None:
        self._domain = domain
        self._client_id = client_id
        self._silent_factory = silent_surface_factory or self._default_silent_surface
        self._interactive_factory = (
            interactive_surface_factory or self._default_interactive_surface
        )
        self._owns_http = http is None
        self._http = http or ApiClient()
        self._token_storage = token_storage
        self._flow = flow or FlowConfig()
        self._generate_state = state_generator
        self._augmenter = ProfileAugmenter(self._http, domain)
        self._login_lock = asyncio.Lock()
        self._current_user: Optional[User] = None
        self._state: Optional[str] = None
        self._phase = FlowPhase.IDLE

    async def __aenter__(self) -> AuthClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def domain(self) -> str:
        return self._domain

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def callback_url(self) -> str:
        """The URL the provider redirects back to, ``https://{domain}/mobile``."""
        return endpoints.callback_url(self._domain)

    @property
    def current_user(self) -> Optional[User]:
        return self._current_user

    @property
    def state(self) -> Optional[str]:
        """The ``state`` sent with the most recent login attempt."""
        return self._state

    @property
    def phase(self) -> FlowPhase:
        """The phase the most recent login attempt reached."""
        return self._phase

    # ------------------------------------------------------------------ #
    # Login through the navigable surfaces
    # ------------------------------------------------------------------ #

    async def login(
        self, connection: Optional[str] = None, scope: str = BASIC_SCOPE
    ) -> User:
        """Log a user in, silently if possible and interactively otherwise.

        Args:
            connection: Connection name to go straight to an identity
                provider. When omitted the provider's login widget is shown.
            scope: ``"openid"`` or ``"openid profile"``. With
                ``"openid profile"`` the user-info profile is merged into
                the result. Other values are accepted and behave like
                ``"openid"``.

        Returns:
            The authenticated :class:`~authbroker.models.User`, also
            available as :attr:`current_user`.

        Raises:
            LoginInProgressError: If another login on this client is running.
            AuthorizationError: If the provider returned an error, the user
                closed the interactive surface (``user_cancelled``) or the
                interactive deadline passed (``login_timeout``).
            ProtocolError: If the callback carried no tokens or a foreign
                ``state``.
            AugmentationError: If the profile could not be fetched and the
                flow is configured to fail in that case.
        """
        if self._login_lock.locked():
            raise LoginInProgressError("A login is already in progress on this client")

        async with self._login_lock:
            attempt = FlowAttempt(self._build_request(connection))
            self._state = attempt.request.state
            try:
                user = await self._run_attempt(attempt)
                if scope == PROFILE_SCOPE:
                    user = await self._augment(user)
            except BaseException:
                attempt.advance(FlowPhase.ERROR)
                raise
            finally:
                self._phase = attempt.phase
                await attempt.close()

            attempt.advance(FlowPhase.SUCCESS)
            self._phase = attempt.phase
            self._set_current_user(user)
            return user

    def _build_request(self, connection: Optional[str]) -> AuthorizationRequest:
        # Always the basic scope: profile claims would overflow the start URL.
        return AuthorizationRequest(
            domain=self._domain,
            client_id=self._client_id,
            scope=BASIC_SCOPE,
            redirect_uri=self.callback_url,
            connection=connection or None,
            state=self._generate_state(),
        )

    async def _run_attempt(self, attempt: FlowAttempt) -> User:
        terminal_url: Optional[str] = None
        resume_url = attempt.start_url

        if self._flow.silent:
            terminal_url, resume_url = await self._silent_login(attempt)

        if terminal_url is None:
            terminal_url = await self._interactive_login(attempt, resume_url)

        return self._user_from_callback(attempt, terminal_url)

    async def _silent_login(self, attempt: FlowAttempt) -> tuple[Optional[str], str]:
        """Try the hidden surface once.

        Returns:
            ``(terminal_url, resume_url)``. ``terminal_url`` is set when the
            first navigation reached the callback; otherwise ``resume_url``
            is where the interactive attempt should start.
        """
        attempt.advance(FlowPhase.SILENT_PENDING)
        surface = attempt.silent = self._silent_factory()
        try:
            landed = await asyncio.wait_for(
                self._first_navigation(surface, attempt.start_url),
                self._flow.silent_timeout,
            )
        except asyncio.TimeoutError:
            logger.debug("Silent login timed out after %gs", self._flow.silent_timeout)
            attempt.advance(FlowPhase.SILENT_FAILED)
            return None, attempt.start_url
        except SurfaceClosedError:
            logger.debug("Silent surface closed before navigating")
            attempt.advance(FlowPhase.SILENT_FAILED)
            return None, attempt.start_url
        finally:
            await surface.close()

        if not matches_callback(landed, self.callback_url):
            attempt.advance(FlowPhase.SILENT_FAILED)
            return None, landed

        outcome = parse_redirect(landed, self.callback_url)
        if isinstance(outcome, ErrorResult) and outcome.code in SILENT_RETRY_ERRORS:
            logger.debug("Silent login needs interaction (%s)", outcome.code)
            attempt.advance(FlowPhase.SILENT_FAILED)
            return None, attempt.start_url

        attempt.advance(FlowPhase.SILENT_SUCCEEDED)
        return landed, landed

    async def _first_navigation(self, surface: NavigableSurface, url: str) -> str:
        await surface.navigate(url)
        return await surface.next_navigation()

    async def _interactive_login(self, attempt: FlowAttempt, start_url: str) -> str:
        attempt.advance(FlowPhase.INTERACTIVE_PENDING)
        surface = attempt.interactive = self._interactive_factory()
        timeout = self._flow.interactive_timeout
        try:
            return await asyncio.wait_for(self._await_callback(surface, start_url), timeout)
        except asyncio.TimeoutError:
            raise LoginTimeoutError(timeout or 0) from None
        except SurfaceClosedError:
            raise AuthorizationError(
                "user_cancelled", "The login was cancelled before it completed"
            ) from None

    async def _await_callback(self, surface: NavigableSurface, start_url: str) -> str:
        await surface.navigate(start_url)
        while True:
            landed = await surface.next_navigation()
            if matches_callback(landed, self.callback_url):
                return landed
            logger.debug("Interactive navigation has not reached the callback yet")

    def _user_from_callback(self, attempt: FlowAttempt, url: str) -> User:
        outcome = parse_redirect(url, self.callback_url)
        if isinstance(outcome, ErrorResult):
            raise outcome.to_exception()
        if isinstance(outcome, NotTerminal):
            raise ProtocolError("Callback carried neither an access_token nor an error")
        if outcome.state is not None and outcome.state != attempt.request.state:
            raise ProtocolError("Callback state does not match the state that was sent")
        return User.from_token_result(outcome)

    async def _augment(self, user: User) -> User:
        try:
            return await self._augmenter.augment(user)
        except AugmentationError as exc:
            if self._flow.augment_failure == "degrade":
                logger.warning("Keeping basic profile: %s", exc)
                return user
            raise

    # ------------------------------------------------------------------ #
    # Surface-less exchanges
    # ------------------------------------------------------------------ #

    async def login_with_password(
        self,
        connection: str,
        username: str,
        password: str,
        scope: str = BASIC_SCOPE,
    ) -> User:
        """Log a user in with a username and password (resource-owner grant).

        Raises:
            AuthorizationError: If the provider rejects the credentials.
            ProtocolError: If the response carries no ``access_token``.
            NetworkError: On transport failure.
        """
        user = await resource_owner_login(
            self._http,
            self._domain,
            self._client_id,
            connection,
            username,
            password,
            scope,
        )
        self._set_current_user(user)
        return user

    async def get_delegation_token(
        self, target_client_id: str, options: Optional[dict[str, str]] = None
    ) -> Any:
        """Exchange the current user's id_token for a token for another application.

        Args:
            target_client_id: Client id of the application the token is for.
            options: Extra form fields. An ``id_token`` entry overrides the
                current user's id_token and is not sent twice.

        Returns:
            The provider's JSON response, unmodified.

        Raises:
            PreconditionError: If there is neither a logged-in user with an
                id_token nor an ``id_token`` option.
        """
        extra = dict(options or {})
        if "id_token" in extra:
            id_token: Optional[str] = extra.pop("id_token")
        else:
            id_token = self._current_user.id_token if self._current_user else None

        if not id_token:
            raise PreconditionError(
                "You need to login first or specify a value for the id_token option"
            )

        return await request_delegation_token(
            self._http, self._domain, self._client_id, id_token, target_client_id, extra
        )

    # ------------------------------------------------------------------ #
    # Session lifecycle
    # ------------------------------------------------------------------ #

    async def logout(self) -> None:
        """Forget the current user and clear persisted tokens.

        A login running concurrently is not cancelled.
        """
        self._current_user = None
        if self._token_storage is not None:
            self._token_storage.store("")
        logger.debug("Logged out")

    def restore(self) -> Optional[User]:
        """Load a previously persisted user into :attr:`current_user`.

        Returns:
            The restored user, or ``None`` when nothing is stored.

        Raises:
            ConfigError: If the stored value is not a valid user record.
        """
        if self._token_storage is None:
            return None
        raw = self._token_storage.retrieve()
        if not raw:
            return None
        try:
            user = User.model_validate_json(raw)
        except ValidationError as exc:
            raise ConfigError(f"Stored login is corrupt: {exc}") from exc
        self._current_user = user
        return user

    async def aclose(self) -> None:
        """Close the HTTP client if this client created it."""
        if self._owns_http and not self._http.is_closed:
            await self._http.aclose()

    def _set_current_user(self, user: User) -> None:
        self._current_user = user
        if self._token_storage is not None:
            self._token_storage.store(user.model_dump_json())

    def _default_silent_surface(self) -> NavigableSurface:
        from authbroker.surfaces.http import HttpSurface

        return HttpSurface(stop_at=self.callback_url)

    def _default_interactive_surface(self) -> NavigableSurface:
        from authbroker.surfaces.prompt import PromptSurface

        return PromptSurface()
