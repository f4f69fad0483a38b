"""
auth/tokens.py -- Signed token codec and auth cookie helpers.

Security design decisions:
  JWT: python-jose with HS256. Three independent token classes, each with its
       own secret and lifetime:
         activation -- carries the pending registration + 4-digit code (5 min)
         access     -- carries the user id, authenticates requests (minutes)
         refresh    -- carries the user id, trades for a new pair (days)
       A token of one class never verifies under another class's secret, so
       an access token cannot be replayed against /refresh-token.

  Failures are typed: an expired signature raises TokenExpired, anything else
       (malformed, bad signature, missing claims) raises InvalidToken. The
       route layer renders both as 400 with a message.

  Every access/refresh token carries a random jti. Two pairs issued for the
       same user within the same second are still distinct strings.

  Secrets come from an explicit Settings instance handed to TokenCodec, not
       from module-level globals, so tests can build codecs with their own
       secrets and lifetimes.

Layer rule: no imports from api/, cache/, mail/, or media/. Import from core/
is allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import InvalidToken, TokenExpired
from auth.models import ActivationToken, TokenPair
from core.config import Settings

_ALGORITHM = "HS256"

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


# ---------------------------------------------------------------------------
# Raw codec
# ---------------------------------------------------------------------------


def issue(payload: dict[str, Any], secret: str, ttl_seconds: int) -> str:
    """Sign payload with secret; the token expires ttl_seconds from now."""
    now = datetime.now(timezone.utc)
    claims = dict(payload)
    claims["iat"] = now
    claims["exp"] = now + timedelta(seconds=ttl_seconds)
    return jwt.encode(claims, secret, algorithm=_ALGORITHM)


def verify(token: str, secret: str) -> dict[str, Any]:
    """Verify signature and expiry and return the payload.

    Raises TokenExpired for an expired but otherwise valid token and
    InvalidToken for everything else. No external state is consulted.
    """
    try:
        return jwt.decode(token, secret, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpired("Token has expired.") from exc
    except JWTError as exc:
        raise InvalidToken("Invalid token.") from exc


def generate_activation_code() -> str:
    """Return a 4-digit numeric code in [1000, 9999]."""
    return str(1000 + secrets.randbelow(9000))


# ---------------------------------------------------------------------------
# Token classes
# ---------------------------------------------------------------------------


class TokenCodec:
    """Issues and verifies the three token classes for one Settings instance.

    Usage:
        codec = TokenCodec(get_settings())
        pair = codec.issue_pair(user.id)
        user_id = codec.decode_refresh_token(pair.refresh_token)
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    # -- activation ----------------------------------------------------

    def create_activation_token(self, candidate: dict[str, Any]) -> ActivationToken:
        """Embed the candidate user fields and a fresh code in a signed ticket."""
        code = generate_activation_code()
        token = issue(
            {"user": candidate, "activation_code": code},
            self._settings.activation_secret,
            self._settings.activation_token_expire_seconds,
        )
        return ActivationToken(token=token, activation_code=code)

    def decode_activation_token(self, token: str) -> dict[str, Any]:
        """Return {"user": {...}, "activation_code": "NNNN"} from a valid ticket."""
        payload = verify(token, self._settings.activation_secret)
        if not isinstance(payload.get("user"), dict) or "activation_code" not in payload:
            raise InvalidToken("Invalid activation token.")
        return payload

    # -- access / refresh ----------------------------------------------

    def issue_pair(self, user_id: int) -> TokenPair:
        """Sign a fresh access + refresh token pair bound to user_id."""
        access = issue(
            {"id": user_id, "jti": uuid.uuid4().hex},
            self._settings.access_token_secret,
            self._settings.access_token_ttl_seconds,
        )
        refresh = issue(
            {"id": user_id, "jti": uuid.uuid4().hex},
            self._settings.refresh_token_secret,
            self._settings.refresh_token_ttl_seconds,
        )
        return TokenPair(access_token=access, refresh_token=refresh)

    def decode_access_token(self, token: str) -> int:
        """Return the user id carried by a valid access token."""
        return _subject(verify(token, self._settings.access_token_secret))

    def decode_refresh_token(self, token: str) -> int:
        """Return the user id carried by a valid refresh token."""
        return _subject(verify(token, self._settings.refresh_token_secret))


def _subject(payload: dict[str, Any]) -> int:
    user_id = payload.get("id")
    if not isinstance(user_id, int):
        raise InvalidToken("Invalid token.")
    return user_id


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookies(response, tokens: TokenPair, settings: Settings) -> None:
    """Write both tokens as httpOnly cookies on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation.
    secure: only sent over HTTPS when SECURE_COOKIES=true (production).
    max_age: matches each token's TTL so cookie and token expire together.
    """
    response.set_cookie(
        ACCESS_COOKIE,
        value=tokens.access_token,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        max_age=settings.access_token_ttl_seconds,
    )
    response.set_cookie(
        REFRESH_COOKIE,
        value=tokens.refresh_token,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        max_age=settings.refresh_token_ttl_seconds,
    )


def clear_auth_cookies(response, settings: Settings) -> None:
    """Overwrite both cookies with an empty value that expires immediately."""
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.set_cookie(
            name,
            value="",
            httponly=True,
            samesite="lax",
            secure=settings.secure_cookies,
            max_age=0,
        )
