"""Tests for user-info profile augmentation."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from authbroker.client.http import ApiClient
from authbroker.exceptions import AugmentationError
from authbroker.flow.augment import ProfileAugmenter
from authbroker.models import User

DOMAIN = "tenant.example.com"


def _augment(handler, user: User) -> User:
    async def scenario() -> User:
        async with ApiClient(transport=httpx.MockTransport(handler)) as http:
            return await ProfileAugmenter(http, DOMAIN).augment(user)

    return asyncio.run(scenario())


def _user() -> User:
    return User(access_token="a b/c", profile={"sub": "auth0|1", "name": "Basic"})


class TestProfileAugmenter:
    def test_merges_all_top_level_keys(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, json={"name": "Full Name", "identities": [{"provider": "github"}]}
            )

        user = _user()
        result = _augment(handler, user)

        assert result is user
        assert user.profile == {
            "sub": "auth0|1",
            "name": "Full Name",
            "identities": [{"provider": "github"}],
        }

    def test_requests_userinfo_with_access_token(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        _augment(handler, _user())

        assert seen[0].method == "GET"
        assert seen[0].url.host == DOMAIN
        assert seen[0].url.path == "/userinfo"
        assert seen[0].url.params["access_token"] == "a b/c"

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500, text="boom"),
            httpx.Response(200, text="not json"),
            httpx.Response(200, json=["list"]),
        ],
    )
    def test_failures_leave_user_untouched(self, response: httpx.Response) -> None:
        user = _user()

        with pytest.raises(AugmentationError) as exc_info:
            _augment(lambda request: response, user)

        assert exc_info.value.user is user
        assert user.profile == {"sub": "auth0|1", "name": "Basic"}

    def test_transport_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        with pytest.raises(AugmentationError, match="Could not fetch"):
            _augment(handler, _user())
