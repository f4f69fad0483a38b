"""
API request and response models for the E-Learning REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Wire format is camelCase (accessToken, activationToken, isVerified, ...) to
match the browser client; Python attributes stay snake_case. Every model
accepts either spelling on input (populate_by_name=True) and serializes with
aliases (model_dump(by_alias=True) / FastAPI response_model).
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import User
from auth.passwords import MAX_PASSWORD_BYTES

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _normalize_email(value: str) -> str:
    return value.strip().lower()


def _check_password_bytes(value: str) -> str:
    # bcrypt refuses more than 72 bytes; multibyte characters count in full.
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes in UTF-8.")
    return value


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    user = "user"
    admin = "admin"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(CamelModel):
    """Request body for POST /api/v1/register.

    name and email are trimmed; the password is kept exactly as typed so the
    same string logs in later.
    """

    name: str = Field(min_length=1, max_length=100)
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=72)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name must not be blank.")
        return value

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, value):
        # Before the pattern check, so padded input still matches.
        return _normalize_email(value) if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class ActivationRequest(CamelModel):
    """Request body for POST /api/v1/activate-user."""

    activation_token: str = Field(min_length=1)
    activation_code: str = Field(min_length=1, max_length=10)


class LoginRequest(CamelModel):
    """Request body for POST /api/v1/login.

    Both fields default to "" so a missing value reaches the service and gets
    the same InvalidCredentials answer as a wrong one.
    """

    email: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=72)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return _normalize_email(value)


class SocialAuthRequest(CamelModel):
    """Request body for POST /api/v1/social-auth (identity already verified by the provider)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    name: str = Field(min_length=1, max_length=100)
    avatar: Optional[str] = Field(default=None, max_length=2048)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return _normalize_email(value)


class UpdateUserInfoRequest(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, max_length=255, pattern=EMAIL_PATTERN)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_email(value) if value is not None else None


class UpdatePasswordRequest(CamelModel):
    old_password: str = Field(default="", max_length=72)
    new_password: str = Field(default="", max_length=72)

    @field_validator("new_password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class UpdateAvatarRequest(CamelModel):
    """avatar is a data URI or a remote URL; Cloudinary accepts both."""

    avatar: str = Field(min_length=1)


class UpdateRoleRequest(CamelModel):
    id: int
    role: RoleEnum


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AvatarResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    public_id: str
    url: str


class UserResponse(CamelModel):
    """Public view of a user. There is deliberately no password field."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    name: str
    email: str
    role: str
    is_verified: bool
    avatar: Optional[AvatarResponse] = None
    created_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            is_verified=user.is_verified,
            avatar=AvatarResponse(public_id=user.avatar.public_id, url=user.avatar.url) if user.avatar else None,
            created_at=user.created_at,
        )


class RegisterResponse(CamelModel):
    success: bool = True
    message: str
    activation_token: str


class UserEnvelope(CamelModel):
    success: bool = True
    user: UserResponse


class LoginResponse(CamelModel):
    """Response for /login and /social-auth. The refresh token is cookie-only."""

    success: bool = True
    user: UserResponse
    access_token: str


class RefreshResponse(CamelModel):
    success: bool = True
    access_token: str


class MessageResponse(CamelModel):
    success: bool = True
    message: str


class UserListResponse(CamelModel):
    success: bool = True
    users: list[UserResponse]


class ErrorResponse(CamelModel):
    """Uniform failure envelope for every 4xx/5xx response."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    success: bool = False
    code: str
    message: str
    detail: Optional[str] = None


class HealthResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    status: str = "ok"
    version: str
