"""
auth/passwords.py -- Password hashing and credential verification.

bcrypt is used directly (no passlib wrapper). passlib's wrap-bug detection
builds a password longer than 72 bytes, which bcrypt 4.x rejects outright.

The _DUMMY_HASH constant enables timing equalization in authenticate() so the
response time of a login does not reveal whether an email is registered [C1].

Layer rule: no imports from api/, cache/, mail/, or media/.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import bcrypt

MAX_PASSWORD_BYTES = 72

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt only accepts up to MAX_PASSWORD_BYTES of UTF-8 input and raises
    ValueError beyond that, so callers must reject longer passwords first.
    The API models do this; a 72-character cap alone is not enough for
    non-ASCII input.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash, or input over MAX_PASSWORD_BYTES
        return False


# Computed once at import so the first login is not measurably slower.
_DUMMY_HASH: str = hash_password("elearning_timing_dummy")


def authenticate(store: UserStore, email: str, password: str) -> User | None:
    """Return the user for a valid email/password pair, None otherwise.

    Always runs exactly one bcrypt comparison:
    - Unknown email or social-only account: compare against _DUMMY_HASH.
    - Known email: compare against the stored hash.
    The caller cannot distinguish the two failure cases [C1].
    """
    user = store.get_by_email(email, include_password=True)
    if user is None or user.hashed_password is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user
