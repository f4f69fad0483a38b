"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores, the token
codec, and the service do the work; these only own the shape.

Layer rule: no imports from api/, cache/, mail/, or media/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Avatar:
    """Reference to a profile picture held by the object-storage provider."""

    public_id: str
    url: str


@dataclass
class User:
    """A learner, instructor, or admin account.

    hashed_password is None in two cases: social-auth users (no local
    password) and any User loaded without include_password=True. Session
    snapshots never carry it.
    """

    name: str
    email: str
    role: str = "user"  # "user" or "admin"
    id: int | None = None
    hashed_password: str | None = None
    is_verified: bool = False
    avatar: Avatar | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class ActivationToken:
    """Signed activation ticket plus the code mailed to the user.

    The code is inside the token as well; it is returned separately only so
    the service can put it into the activation mail.
    """

    token: str
    activation_code: str


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class AuthResult:
    """Outcome of any flow that ends in an authenticated session."""

    user: User
    tokens: TokenPair
    status_code: int = 200
