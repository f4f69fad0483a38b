"""
auth/errors.py -- Error taxonomy for the authentication subsystem.

Every failure the auth flows can produce is a subclass of AppError carrying an
HTTP status and a stable machine-readable code. The service layer raises them;
api/main.py installs one exception handler that turns any AppError into the
uniform {"success": false, "code": ..., "message": ...} envelope.

Validation and token failures stay at 400. Unauthenticated and Forbidden use
401 and 403 so clients can tell "log in again" apart from "not allowed".

Layer rule: no imports from api/, cache/, mail/, or media/.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for errors that map directly to an HTTP response."""

    status_code: int = 400
    code: str = "bad_request"
    default_message: str = "Request could not be processed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class DuplicateEmail(AppError):
    code = "duplicate_email"
    default_message = "Email already exists."


class InvalidCredentials(AppError):
    code = "invalid_credentials"
    default_message = "Invalid email or password."


class InvalidToken(AppError):
    code = "invalid_token"
    default_message = "Invalid token."


class TokenExpired(AppError):
    code = "token_expired"
    default_message = "Token has expired."


class CodeMismatch(AppError):
    code = "code_mismatch"
    default_message = "Invalid activation code."


class SessionRevoked(AppError):
    code = "session_revoked"
    default_message = "Could not refresh token."


class MissingToken(AppError):
    code = "missing_token"
    default_message = "Please pass refresh token."


class PasswordUnchanged(AppError):
    code = "password_unchanged"
    default_message = "Please enter a new password."


class EmailDeliveryFailed(AppError):
    code = "email_delivery_failed"
    default_message = "Could not send email."


class AvatarUploadFailed(AppError):
    code = "avatar_upload_failed"
    default_message = "Could not upload profile picture."


class Unauthenticated(AppError):
    status_code = 401
    code = "unauthenticated"
    default_message = "Please login to access this resource."


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    default_message = "You are not allowed to access this resource."


class UserNotFound(AppError):
    status_code = 404
    code = "user_not_found"
    default_message = "User not found."
