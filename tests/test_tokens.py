"""Unit tests for auth/tokens.py -- token codec and cookie helpers.

Covers:
- issue()/verify() accept a fresh token and reject expired, tampered, and
  malformed ones with the right error type
- Each token class verifies only under its own secret
- Activation tickets carry the candidate user and a 4-digit code
- issue_pair() produces distinct tokens on every call
- set_auth_cookies()/clear_auth_cookies() cookie attributes
"""

from __future__ import annotations

import pytest
from fastapi.responses import JSONResponse

from auth.errors import InvalidToken, TokenExpired
from auth.models import TokenPair
from auth.tokens import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    clear_auth_cookies,
    generate_activation_code,
    issue,
    set_auth_cookies,
    verify,
)

SECRET = "unit-test-secret-0123456789abcdef0123"
OTHER_SECRET = "unit-test-other-secret-0123456789abcd"


# ---------------------------------------------------------------------------
# Raw codec
# ---------------------------------------------------------------------------


class TestIssueVerify:
    def test_fresh_token_returns_payload(self):
        token = issue({"id": 7, "jti": "abc"}, SECRET, 60)
        payload = verify(token, SECRET)
        assert payload["id"] == 7
        assert payload["jti"] == "abc"
        assert payload["exp"] > payload["iat"]

    def test_expired_token_raises_token_expired(self):
        token = issue({"id": 7}, SECRET, -10)
        with pytest.raises(TokenExpired):
            verify(token, SECRET)

    def test_wrong_secret_raises_invalid_token(self):
        token = issue({"id": 7}, SECRET, 60)
        with pytest.raises(InvalidToken):
            verify(token, OTHER_SECRET)

    def test_tampered_signature_raises_invalid_token(self):
        token = issue({"id": 7}, SECRET, 60)
        head, body, sig = token.split(".")
        flipped = sig[:-2] + ("AA" if sig[-2:] != "AA" else "BB")
        with pytest.raises(InvalidToken):
            verify(f"{head}.{body}.{flipped}", SECRET)

    @pytest.mark.parametrize("garbage", ["", "not-a-token", "a.b.c", "a.b"])
    def test_malformed_token_raises_invalid_token(self, garbage):
        with pytest.raises(InvalidToken):
            verify(garbage, SECRET)


def test_activation_code_is_four_digits():
    """Every generated code is a 4-character numeric string in [1000, 9999]."""
    for _ in range(200):
        code = generate_activation_code()
        assert len(code) == 4
        assert code.isdigit()
        assert 1000 <= int(code) <= 9999


# ---------------------------------------------------------------------------
# TokenCodec
# ---------------------------------------------------------------------------


class TestActivationTokens:
    def test_round_trip_carries_candidate_and_code(self, codec):
        candidate = {"name": "Ada", "email": "ada@example.com", "hashed_password": "$2b$12$x"}
        activation = codec.create_activation_token(candidate)
        payload = codec.decode_activation_token(activation.token)
        assert payload["user"] == candidate
        assert payload["activation_code"] == activation.activation_code

    def test_access_token_is_not_an_activation_token(self, codec):
        pair = codec.issue_pair(1)
        with pytest.raises(InvalidToken):
            codec.decode_activation_token(pair.access_token)

    def test_ticket_without_user_claim_is_rejected(self, codec, settings):
        token = issue({"activation_code": "1234"}, settings.activation_secret, 60)
        with pytest.raises(InvalidToken):
            codec.decode_activation_token(token)

    def test_expired_ticket_raises_token_expired(self, codec, settings):
        token = issue({"user": {"email": "a@b.co"}, "activation_code": "1234"}, settings.activation_secret, -1)
        with pytest.raises(TokenExpired):
            codec.decode_activation_token(token)


class TestTokenPair:
    def test_pair_decodes_to_user_id(self, codec):
        pair = codec.issue_pair(42)
        assert codec.decode_access_token(pair.access_token) == 42
        assert codec.decode_refresh_token(pair.refresh_token) == 42

    def test_access_and_refresh_are_not_interchangeable(self, codec):
        """An access token must never be accepted where a refresh token is expected."""
        pair = codec.issue_pair(42)
        with pytest.raises(InvalidToken):
            codec.decode_refresh_token(pair.access_token)
        with pytest.raises(InvalidToken):
            codec.decode_access_token(pair.refresh_token)

    def test_consecutive_pairs_differ(self, codec):
        first = codec.issue_pair(42)
        second = codec.issue_pair(42)
        assert first.access_token != second.access_token
        assert first.refresh_token != second.refresh_token

    def test_token_without_integer_id_is_rejected(self, codec, settings):
        token = issue({"id": "42"}, settings.access_token_secret, 60)
        with pytest.raises(InvalidToken):
            codec.decode_access_token(token)

    def test_expired_refresh_token(self, codec, settings):
        token = issue({"id": 42, "jti": "x"}, settings.refresh_token_secret, -10)
        with pytest.raises(TokenExpired):
            codec.decode_refresh_token(token)


# ---------------------------------------------------------------------------
# Cookies
# ---------------------------------------------------------------------------


class TestAuthCookies:
    def _set_cookie_headers(self, response) -> list[str]:
        return [v.decode() for k, v in response.raw_headers if k == b"set-cookie"]

    def test_set_auth_cookies_writes_both_httponly(self, settings):
        resp = JSONResponse({})
        set_auth_cookies(resp, TokenPair(access_token="AAA", refresh_token="RRR"), settings)
        headers = self._set_cookie_headers(resp)
        access = next(h for h in headers if h.startswith(f"{ACCESS_COOKIE}="))
        refresh = next(h for h in headers if h.startswith(f"{REFRESH_COOKIE}="))
        assert "HttpOnly" in access and "HttpOnly" in refresh
        assert "SameSite=lax" in access
        assert f"Max-Age={settings.access_token_ttl_seconds}" in access
        assert f"Max-Age={settings.refresh_token_ttl_seconds}" in refresh

    def test_secure_flag_follows_settings(self, settings):
        resp = JSONResponse({})
        secure = settings.model_copy(update={"secure_cookies": True})
        set_auth_cookies(resp, TokenPair(access_token="AAA", refresh_token="RRR"), secure)
        assert all("Secure" in h for h in self._set_cookie_headers(resp))

    def test_clear_auth_cookies_expires_both(self, settings):
        resp = JSONResponse({})
        clear_auth_cookies(resp, settings)
        headers = self._set_cookie_headers(resp)
        assert len(headers) == 2
        assert all("Max-Age=0" in h for h in headers)
