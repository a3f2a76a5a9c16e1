"""Tests for authbroker.models and the endpoint URL builders."""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import pytest
from pydantic import ValidationError

from authbroker import endpoints
from authbroker.exceptions import ProtocolError
from authbroker.models import (
    AuthorizationRequest,
    FlowConfig,
    Profile,
    TokenResult,
    User,
    decode_jwt_claims,
)

from conftest import make_jwt

DOMAIN = "tenant.example.com"
CALLBACK = f"https://{DOMAIN}/mobile"


def _request(**overrides) -> AuthorizationRequest:
    values = dict(
        domain=DOMAIN,
        client_id="cid",
        redirect_uri=CALLBACK,
        state="abcdefghijklmnop",
    )
    values.update(overrides)
    return AuthorizationRequest(**values)


# ---------------------------------------------------------------------------
# AuthorizationRequest
# ---------------------------------------------------------------------------


class TestAuthorizationRequest:
    def test_authorize_url_field_order(self) -> None:
        url = _request(connection="github").to_url()
        assert url == (
            f"https://{DOMAIN}/authorize?client_id=cid&scope=openid"
            "&redirect_uri=https%3A%2F%2Ftenant.example.com%2Fmobile"
            "&response_type=token&connection=github&state=abcdefghijklmnop"
        )

    def test_login_widget_without_connection(self) -> None:
        parts = urlsplit(_request().to_url())
        query = parse_qs(parts.query)
        assert parts.path == "/login/"
        assert query == {
            "client": ["cid"],
            "scope": ["openid"],
            "redirect_uri": [CALLBACK],
            "response_type": ["token"],
            "state": ["abcdefghijklmnop"],
        }

    def test_scope_with_space_percent_encoded(self) -> None:
        url = _request(scope="openid profile", connection="x").to_url()
        assert "scope=openid%20profile" in url

    @pytest.mark.parametrize(
        "state", ["short", "ABCDEFGHIJKLMNOP", "abcdefghijklmno1", "abcdefghijklmnopq"]
    )
    def test_state_must_be_sixteen_lowercase_letters(self, state: str) -> None:
        with pytest.raises(ValidationError):
            _request(state=state)

    @pytest.mark.parametrize(
        "redirect_uri", ["/mobile", f"{CALLBACK}?x=1", f"{CALLBACK}#frag"]
    )
    def test_redirect_uri_must_be_bare_absolute(self, redirect_uri: str) -> None:
        with pytest.raises(ValidationError):
            _request(redirect_uri=redirect_uri)

    def test_frozen(self) -> None:
        request = _request()
        with pytest.raises(ValidationError):
            request.state = "bcdefghijklmnopq"  # type: ignore[misc]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


class TestEndpoints:
    def test_fixed_urls(self) -> None:
        assert endpoints.callback_url(DOMAIN) == CALLBACK
        assert endpoints.resource_owner_url(DOMAIN) == f"https://{DOMAIN}/oauth/ro"
        assert endpoints.delegation_url(DOMAIN) == f"https://{DOMAIN}/delegation"

    def test_userinfo_url_encodes_token(self) -> None:
        assert (
            endpoints.userinfo_url(DOMAIN, "a+b/c")
            == f"https://{DOMAIN}/userinfo?access_token=a%2Bb%2Fc"
        )


# ---------------------------------------------------------------------------
# JWT claims and User
# ---------------------------------------------------------------------------


class TestDecodeJwtClaims:
    def test_decodes_payload(self) -> None:
        token = make_jwt({"sub": "auth0|1", "email": "a@example.com"})
        assert decode_jwt_claims(token) == {"sub": "auth0|1", "email": "a@example.com"}

    def test_not_a_jwt(self) -> None:
        assert decode_jwt_claims("opaque-token") == {}

    def test_garbage_payload(self) -> None:
        with pytest.raises(ProtocolError):
            decode_jwt_claims("aaa.bm90IGpzb24.ccc")


class TestUser:
    def test_from_token_result(self) -> None:
        id_token = make_jwt({"sub": "s", "name": "N"})
        result = TokenResult(
            access_token="at",
            id_token=id_token,
            token_type="Bearer",
            expires_in=10,
            raw={"access_token": "at", "custom": "1"},
        )
        user = User.from_token_result(result)

        assert user.access_token == "at"
        assert user.token_type == "Bearer"
        assert user.expires_in == 10
        assert user.profile == {"sub": "s", "name": "N"}
        assert user.raw["custom"] == "1"

    def test_from_token_response_requires_access_token(self) -> None:
        with pytest.raises(ProtocolError):
            User.from_token_response({"token_type": "bearer"})

    def test_from_token_response_numeric_string_expires_in(self) -> None:
        assert User.from_token_response({"access_token": "at", "expires_in": "3600"}).expires_in == 3600

    @pytest.mark.parametrize("expires_in", ["soon", [60], {"s": 60}])
    def test_from_token_response_malformed_expires_in(self, expires_in) -> None:
        with pytest.raises(ProtocolError, match="expires_in"):
            User.from_token_response({"access_token": "at", "expires_in": expires_in})

    def test_from_token_response_empty_id_token(self) -> None:
        user = User.from_token_response({"access_token": "at", "id_token": ""})
        assert user.id_token is None
        assert user.profile == {}

    def test_merge_profile_later_values_win(self) -> None:
        user = User(access_token="at", profile={"a": 1, "b": 2})
        user.merge_profile({"b": 3, "c": 4})
        assert user.profile == {"a": 1, "b": 3, "c": 4}

    def test_json_round_trip(self) -> None:
        user = User(access_token="at", id_token="x.y.z", profile={"k": [1]}, raw={"a": "b"})
        assert User.model_validate_json(user.model_dump_json()) == user


# ---------------------------------------------------------------------------
# Configuration models
# ---------------------------------------------------------------------------


class TestConfigModels:
    def test_flow_defaults(self) -> None:
        flow = FlowConfig()
        assert flow.silent_timeout == 30.0
        assert flow.interactive_timeout == 300.0
        assert flow.augment_failure == "fail"
        assert flow.silent is True

    def test_unbounded_interactive_timeout(self) -> None:
        assert FlowConfig(interactive_timeout=None).interactive_timeout is None

    def test_profile_defaults(self) -> None:
        profile = Profile(name="p", domain=DOMAIN, client_id="cid")
        assert profile.scope == "openid"
        assert profile.storage == "file"
        assert profile.connection is None

    @pytest.mark.parametrize("domain", ["https://tenant.example.com", "tenant.example.com/x"])
    def test_profile_domain_must_be_bare(self, domain: str) -> None:
        with pytest.raises(ValidationError):
            Profile(name="p", domain=domain, client_id="cid")

    def test_profile_keeps_extra_fields(self) -> None:
        profile = Profile(name="p", domain=DOMAIN, client_id="cid", note="hi")
        assert profile.model_extra == {"note": "hi"}
