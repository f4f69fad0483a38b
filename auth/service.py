"""
auth/service.py -- Authentication and session-lifecycle flows.

AuthService is the only place that composes the token codec, the user store,
the session cache, and the mail/avatar collaborators. Every flow is a short
sequence of state transitions, each awaited one after another:

  register    Unregistered -> PendingActivation (signed ticket, nothing stored)
  activate    PendingActivation -> Active (user row created)
  login       Active -> session record written, token pair issued
  refresh     session record present -> rotated pair issued
  logout      session record deleted (idempotent)
  social_auth unknown email -> Active user created directly; known -> login

Revocation model:
  The session cache is the single revocation point. refresh() refuses any
  refresh token whose user has no session record, even if the token itself
  is valid. No token blacklist exists; logout() deletes the record and every
  outstanding refresh token for that user stops working.

Enumeration policy:
  login() answers "no such user" and "wrong password" with the same error and
  the same bcrypt work [C1]. register() and update_user_info() do report an
  existing email -- the caller must learn it to choose another address.

Layer rule: no imports from api/. Settings and collaborators arrive through
the constructor; the service never calls get_settings() or reads globals on
its own.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict

from sqlalchemy.exc import IntegrityError

from auth.errors import (
    AvatarUploadFailed,
    CodeMismatch,
    DuplicateEmail,
    EmailDeliveryFailed,
    InvalidCredentials,
    MissingToken,
    PasswordUnchanged,
    SessionRevoked,
    Unauthenticated,
    UserNotFound,
)
from auth.models import ActivationToken, AuthResult, Avatar, User
from auth.passwords import authenticate, hash_password, verify_password
from auth.store import UserStore
from auth.tokens import TokenCodec
from cache.store import SessionCache
from core.config import Settings
from mail.sender import Mailer, MailDeliveryError, redact_email
from media.avatars import AvatarStorageError, AvatarUploader

logger = logging.getLogger("elearning.auth")

ACTIVATION_TEMPLATE = "activation_mail.html"
ACTIVATION_SUBJECT = "Please Activate Your Account"


# ---------------------------------------------------------------------------
# Session snapshots
# ---------------------------------------------------------------------------


def serialize_user(user: User) -> str:
    """Return the JSON snapshot stored in the session cache. Never includes the hash."""
    data = asdict(user)
    data.pop("hashed_password", None)
    return json.dumps(data)


def user_from_snapshot(raw: str) -> User:
    data = json.loads(raw)
    avatar = data.pop("avatar", None)
    return User(**data, avatar=Avatar(**avatar) if avatar else None)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class AuthService:
    def __init__(
        self,
        *,
        settings: Settings,
        users: UserStore,
        sessions: SessionCache,
        mailer: Mailer,
        avatars: AvatarUploader,
    ) -> None:
        self.settings = settings
        self.codec = TokenCodec(settings)
        self.users = users
        self.sessions = sessions
        self.mailer = mailer
        self.avatars = avatars

    # ------------------------------------------------------------------
    # Registration / activation
    # ------------------------------------------------------------------

    def register(self, name: str, email: str, password: str) -> ActivationToken:
        """Issue an activation ticket and mail its code. Nothing is persisted.

        The duplicate check runs before the ticket is signed so a taken email
        never produces a mail. The password travels inside the ticket only as
        its bcrypt hash.
        """
        if self.users.email_exists(email):
            raise DuplicateEmail()

        activation = self.codec.create_activation_token(
            {"name": name, "email": email, "hashed_password": hash_password(password)}
        )
        data = {"user": {"name": name}, "activation_code": activation.activation_code}
        try:
            self.mailer.send(email, ACTIVATION_SUBJECT, ACTIVATION_TEMPLATE, data)
        except MailDeliveryError as exc:
            raise EmailDeliveryFailed(str(exc)) from exc

        logger.info("Activation ticket issued for %s", redact_email(email))
        return activation

    def activate(self, activation_token: str, activation_code: str) -> User:
        """Create the user described by a valid ticket whose code matches.

        Activating the same ticket twice fails the second time with
        DuplicateEmail: the unique email index rejects the insert even when
        two activations race past the pre-check together.
        """
        payload = self.codec.decode_activation_token(activation_token)
        if payload["activation_code"] != activation_code:
            raise CodeMismatch()

        candidate = payload["user"]
        if self.users.email_exists(candidate["email"]):
            raise DuplicateEmail()

        user = User(
            name=candidate["name"],
            email=candidate["email"],
            hashed_password=candidate["hashed_password"],
        )
        try:
            user_id = self.users.create_user(user)
        except IntegrityError as exc:
            raise DuplicateEmail() from exc

        logger.info("User %d activated (%s)", user_id, redact_email(user.email))
        return self._require_user(user_id)

    # ------------------------------------------------------------------
    # Login / refresh / logout
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> AuthResult:
        if not email or not password:
            raise InvalidCredentials("Please enter email and password.")

        user = authenticate(self.users, email, password)
        if user is None:
            logger.warning("Failed login for %s", redact_email(email))
            raise InvalidCredentials()

        user.hashed_password = None
        return self._start_session(user, status_code=200)

    def refresh(self, refresh_token: str | None) -> AuthResult:
        """Trade a refresh token for a rotated pair while the session exists.

        The previous refresh token is not invalidated cryptographically; it
        stays usable until it expires or logout deletes the session record.
        """
        if not refresh_token:
            raise MissingToken()

        user_id = self.codec.decode_refresh_token(refresh_token)
        raw = self.sessions.get(user_id)
        if raw is None:
            raise SessionRevoked()

        user = user_from_snapshot(raw)
        tokens = self.codec.issue_pair(user_id)
        self.sessions.set(user_id, raw)
        return AuthResult(user=user, tokens=tokens, status_code=200)

    def logout(self, user_id: int) -> None:
        """Delete the session record. Succeeds when none exists."""
        self.sessions.delete(user_id)
        logger.info("User %d logged out", user_id)

    def resolve_access_token(self, access_token: str) -> User:
        """Return the session user for a valid access token.

        Raises InvalidToken / TokenExpired from the codec, and Unauthenticated
        when the token is valid but its session has been revoked.
        """
        user_id = self.codec.decode_access_token(access_token)
        raw = self.sessions.get(user_id)
        if raw is None:
            raise Unauthenticated()
        return user_from_snapshot(raw)

    # ------------------------------------------------------------------
    # Social auth
    # ------------------------------------------------------------------

    def social_auth(self, email: str, name: str, avatar_url: str | None = None) -> AuthResult:
        """Log in a provider-verified identity, creating the account on first sight.

        New accounts skip activation (the provider already verified the email)
        and carry no password. Status is 201 for a new account, 200 otherwise.
        """
        user = self.users.get_by_email(email)
        if user is not None:
            return self._start_session(user, status_code=200)

        avatar = Avatar(public_id="", url=avatar_url) if avatar_url else None
        try:
            user_id = self.users.create_user(User(name=name, email=email, is_verified=True, avatar=avatar))
        except IntegrityError:
            # Concurrent first login for the same email
            existing = self.users.get_by_email(email)
            if existing is None:
                raise
            return self._start_session(existing, status_code=200)

        logger.info("User %d created via social auth (%s)", user_id, redact_email(email))
        return self._start_session(self._require_user(user_id), status_code=201)

    # ------------------------------------------------------------------
    # Profile maintenance
    # ------------------------------------------------------------------

    def get_user_info(self, user_id: int) -> User:
        return self._require_user(user_id)

    def update_user_info(self, user_id: int, name: str | None = None, email: str | None = None) -> User:
        user = self._require_user(user_id)

        fields: dict = {}
        if email and email != user.email:
            if self.users.email_exists(email):
                raise DuplicateEmail()
            fields["email"] = email
        if name:
            fields["name"] = name

        if fields:
            try:
                self.users.update_user(user_id, **fields)
            except IntegrityError as exc:
                raise DuplicateEmail() from exc
        return self._refresh_snapshot(user_id)

    def update_password(self, user_id: int, old_password: str, new_password: str) -> User:
        if not old_password or not new_password:
            raise InvalidCredentials("Please enter old and new password.")
        if old_password == new_password:
            raise PasswordUnchanged()

        user = self.users.get_by_id(user_id, include_password=True)
        if user is None:
            raise UserNotFound()
        if user.hashed_password is None:
            raise InvalidCredentials("This account has no password to change.")
        if not verify_password(old_password, user.hashed_password):
            raise InvalidCredentials("Please enter correct password.")

        self.users.update_user(user_id, hashed_password=hash_password(new_password))
        logger.info("User %d changed password", user_id)
        return self._refresh_snapshot(user_id)

    def update_avatar(self, user_id: int, image: str) -> User:
        """Replace the profile picture; the previous upload is destroyed first."""
        user = self._require_user(user_id)
        try:
            if user.avatar is not None and user.avatar.public_id:
                self.avatars.destroy(user.avatar.public_id)
            uploaded = self.avatars.upload(image)
        except AvatarStorageError as exc:
            raise AvatarUploadFailed(str(exc)) from exc

        self.users.update_user(user_id, avatar_public_id=uploaded.public_id, avatar_url=uploaded.url)
        return self._refresh_snapshot(user_id)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def list_users(self) -> list[User]:
        return self.users.list_users()

    def update_user_role(self, user_id: int, role: str) -> User:
        """Change a user's role. A live session picks the new role up immediately."""
        if not self.users.update_user(user_id, role=role):
            raise UserNotFound()
        user = self._require_user(user_id)
        if self.sessions.get(user_id) is not None:
            self.sessions.set(user_id, serialize_user(user))
        logger.info("User %d role set to %s", user_id, role)
        return user

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _start_session(self, user: User, status_code: int) -> AuthResult:
        tokens = self.codec.issue_pair(user.id)
        self.sessions.set(user.id, serialize_user(user))
        logger.info("Session started for user %d", user.id)
        return AuthResult(user=user, tokens=tokens, status_code=status_code)

    def _refresh_snapshot(self, user_id: int) -> User:
        user = self._require_user(user_id)
        self.sessions.set(user_id, serialize_user(user))
        return user

    def _require_user(self, user_id: int) -> User:
        user = self.users.get_by_id(user_id)
        if user is None:
            raise UserNotFound()
        return user
