"""Profile augmentation from the provider's user-info endpoint.

The login flow always asks for the basic ``openid`` scope so the start URL
stays short. When the caller wanted ``openid profile``,
:class:`ProfileAugmenter` fetches the full profile afterwards and merges it
into the identity.
"""

from __future__ import annotations

import logging

from authbroker import endpoints
from authbroker.client.http import ApiClient
from authbroker.exceptions import AugmentationError, NetworkError, ProtocolError
from authbroker.models import User

logger = logging.getLogger(__name__)


class ProfileAugmenter:
    """Merge user-info attributes into a :class:`~authbroker.models.User`.

    Args:
        http: Client used for the user-info request.
        domain: Provider tenant domain.
    """

    def __init__(self, http: ApiClient, domain: str) -> None:
        self._http = http
        self._domain = domain

    async def augment(self, user: User) -> User:
        """Fetch the user-info profile and merge every top-level key into ``user.profile``.

        The response is fully fetched and checked before *user* is touched,
        so a failure leaves the identity exactly as it was.

        Args:
            user: An authenticated user.

        Returns:
            The same *user*, with its profile augmented. Keys already present
            are overwritten by the provider's values.

        Raises:
            AugmentationError: On transport failure, a non-2xx status, or a
                body that is not a JSON object. ``exc.user`` is *user*.
        """
        url = endpoints.userinfo_url(self._domain, user.access_token)
        try:
            attributes = await self._http.get_json(url)
        except (NetworkError, ProtocolError) as exc:
            raise AugmentationError(f"Could not fetch user profile: {exc}", user=user) from exc

        if not isinstance(attributes, dict):
            raise AugmentationError(
                "User profile response is not a JSON object", user=user
            )

        user.merge_profile(attributes)
        logger.debug("Merged %d profile attributes", len(attributes))
        return user
