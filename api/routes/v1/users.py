"""
api/routes/v1/users.py -- Registration, session, and profile REST endpoints.

Routes (mounted under /api/v1):
  POST /register              -- issue activation ticket, mail the code; 201
  POST /activate-user         -- redeem ticket + code, create the user; 201
  POST /login                 -- password login; sets both cookies; 200
  GET  /logout                -- clear cookies, delete session; 200 (idempotent)
  GET  /refresh-token         -- rotate the token pair from the refresh cookie; 200
  POST /social-auth           -- provider-verified login; 201 new / 200 existing
  GET  /me                    -- current user (requires auth)
  PUT  /update-user-info      -- change name / email (requires auth)
  PUT  /update-user-password  -- change password (requires auth)
  PUT  /update-user-avatar    -- replace profile picture (requires auth)
  GET  /get-users             -- list all users (admin only)
  PUT  /update-user-role      -- change a user's role (admin only)

Security:
  [H2] POST /login and POST /register are rate-limited per client IP.
  [C1] Login goes through AuthService.login(), which equalizes timing between
       unknown emails and wrong passwords. Do not inline the lookup here.
  [M5] Cache-Control: no-store on every response that carries tokens.
  The refresh token is only ever sent as a cookie; the access token is sent
  as a cookie and in the body for non-cookie clients.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    ActivationRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RefreshResponse,
    RegisterRequest,
    RegisterResponse,
    SocialAuthRequest,
    UpdateAvatarRequest,
    UpdatePasswordRequest,
    UpdateRoleRequest,
    UpdateUserInfoRequest,
    UserEnvelope,
    UserListResponse,
    UserResponse,
)
from auth.dependencies import authorize_roles, get_current_user, get_token_subject
from auth.models import AuthResult, User
from auth.service import AuthService
from auth.tokens import REFRESH_COOKIE, clear_auth_cookies, set_auth_cookies
from core.config import get_settings

# Auth policy:
# - POST /register, /activate-user, /login, /social-auth: public
# - GET  /refresh-token:  refresh cookie only (no access token needed)
# - GET  /logout:         valid access token (session may already be gone)
# - GET  /me, PUT /update-user-*: get_current_user
# - GET  /get-users, PUT /update-user-role: authorize_roles("admin")
router = APIRouter()


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


def _login_rate_limit() -> str:
    return get_settings().login_rate_limit


def _session_response(request: Request, result: AuthResult) -> JSONResponse:
    """Build the {success, user, accessToken} body and set both auth cookies."""
    resp = JSONResponse(
        status_code=result.status_code,
        content=LoginResponse(
            user=UserResponse.from_user(result.user),
            access_token=result.tokens.access_token,
        ).model_dump(by_alias=True),
    )
    set_auth_cookies(resp, result.tokens, request.app.state.settings)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


@limiter.limit(_login_rate_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/register", response_model=RegisterResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Start registration: validate the email is free, mail a 4-digit code.

    The returned activationToken must be sent back to /activate-user together
    with the code from the mail. Nothing is stored server-side until then.
    """
    activation = _service(request).register(body.name, body.email, body.password)
    return RegisterResponse(
        message=f"Please check your email {body.email} to activate your account!",
        activation_token=activation.token,
    )


@router.post("/activate-user", response_model=UserEnvelope, status_code=201)
def activate_user(request: Request, body: ActivationRequest) -> UserEnvelope:
    user = _service(request).activate(body.activation_token, body.activation_code)
    return UserEnvelope(user=UserResponse.from_user(user))


# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------


@limiter.limit(_login_rate_limit)  # [H2]
@router.post("/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set accessToken + refreshToken cookies.

    Unknown email and wrong password produce the same 400 invalid_credentials
    answer so the endpoint cannot be used to probe for registered emails.
    """
    result = _service(request).login(body.email, body.password)
    return _session_response(request, result)


@router.get("/logout", response_model=MessageResponse)
def logout(request: Request, user_id: int = Depends(get_token_subject)) -> JSONResponse:
    """Delete the session record and expire both cookies. Safe to repeat."""
    _service(request).logout(user_id)
    resp = JSONResponse(content=MessageResponse(message="Logged out successfully").model_dump(by_alias=True))
    clear_auth_cookies(resp, request.app.state.settings)
    return resp


@router.get("/refresh-token", response_model=RefreshResponse)
def refresh_token(request: Request) -> JSONResponse:
    """Issue a fresh pair if the refresh cookie is valid and the session is live.

    Fails with missing_token, invalid_token, token_expired, or session_revoked.
    """
    result = _service(request).refresh(request.cookies.get(REFRESH_COOKIE))
    resp = JSONResponse(
        content=RefreshResponse(access_token=result.tokens.access_token).model_dump(by_alias=True),
    )
    set_auth_cookies(resp, result.tokens, request.app.state.settings)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/social-auth", response_model=LoginResponse)
def social_auth(request: Request, body: SocialAuthRequest) -> JSONResponse:
    """Log in an identity the frontend already verified with an OAuth provider."""
    result = _service(request).social_auth(body.email, body.name, body.avatar)
    return _session_response(request, result)


# ---------------------------------------------------------------------------
# Profile (authenticated)
# ---------------------------------------------------------------------------


@router.get("/me", response_model=UserEnvelope)
def me(request: Request, current_user: User = Depends(get_current_user)) -> UserEnvelope:
    user = _service(request).get_user_info(current_user.id)
    return UserEnvelope(user=UserResponse.from_user(user))


@router.put("/update-user-info", response_model=UserEnvelope)
def update_user_info(
    request: Request,
    body: UpdateUserInfoRequest,
    current_user: User = Depends(get_current_user),
) -> UserEnvelope:
    user = _service(request).update_user_info(current_user.id, name=body.name, email=body.email)
    return UserEnvelope(user=UserResponse.from_user(user))


@router.put("/update-user-password", response_model=UserEnvelope)
def update_user_password(
    request: Request,
    body: UpdatePasswordRequest,
    current_user: User = Depends(get_current_user),
) -> UserEnvelope:
    user = _service(request).update_password(current_user.id, body.old_password, body.new_password)
    return UserEnvelope(user=UserResponse.from_user(user))


@router.put("/update-user-avatar", response_model=UserEnvelope)
def update_user_avatar(
    request: Request,
    body: UpdateAvatarRequest,
    current_user: User = Depends(get_current_user),
) -> UserEnvelope:
    user = _service(request).update_avatar(current_user.id, body.avatar)
    return UserEnvelope(user=UserResponse.from_user(user))


# ---------------------------------------------------------------------------
# Administration (admin only)
# ---------------------------------------------------------------------------


@router.get("/get-users", response_model=UserListResponse)
def get_users(request: Request, current_user: User = Depends(authorize_roles("admin"))) -> UserListResponse:
    users = _service(request).list_users()
    return UserListResponse(users=[UserResponse.from_user(u) for u in users])


@router.put("/update-user-role", response_model=UserEnvelope)
def update_user_role(
    request: Request,
    body: UpdateRoleRequest,
    current_user: User = Depends(authorize_roles("admin")),
) -> UserEnvelope:
    user = _service(request).update_user_role(body.id, body.role.value)
    return UserEnvelope(user=UserResponse.from_user(user))
