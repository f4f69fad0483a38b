"""
tests/conftest.py -- Shared test fixtures for the E-Learning API tests.

This module provides:
  - settings / codec / user_store / session_cache: real components backed by
    in-memory SQLite, for unit tests of the auth flows
  - mailer / avatars: MagicMock collaborators (no SMTP, no Cloudinary)
  - service: an AuthService wired from the above
  - api_client: TestClient on the real FastAPI app with a patched lifespan

Design: the user store behind api_client uses a named shared-memory SQLite URI
(not plain :memory:) because TestClient runs sync route handlers in a thread
pool, and plain :memory: databases are per-connection.

The three token secrets must be in the environment before any project import:
api.main calls get_settings() at import time and Settings() refuses to build
without them.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

# CRITICAL: set the secrets before any auth/core/api import.
os.environ.setdefault("ACTIVATION_SECRET", "test-activation-secret-0123456789abcdef")
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-access-secret-0123456789abcdef0123")
os.environ.setdefault("REFRESH_TOKEN_SECRET", "test-refresh-secret-0123456789abcdef012")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenCodec
from cache.store import SQLiteSessionCache
from core.config import Settings, get_settings
from mail.sender import Mailer
from media.avatars import AvatarUploader, UploadedImage

# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def codec(settings: Settings) -> TokenCodec:
    return TokenCodec(settings)


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def session_cache() -> Generator[SQLiteSessionCache, None, None]:
    cache = SQLiteSessionCache(":memory:")
    yield cache
    cache.close()


@pytest.fixture
def mailer() -> MagicMock:
    return MagicMock(spec=Mailer)


@pytest.fixture
def avatars() -> MagicMock:
    uploader = MagicMock(spec=AvatarUploader)
    uploader.upload.return_value = UploadedImage(public_id="avatars/abc123", url="https://cdn.example.com/abc123.png")
    return uploader


@pytest.fixture
def service(settings, user_store, session_cache, mailer, avatars) -> AuthService:
    return AuthService(
        settings=settings,
        users=user_store,
        sessions=session_cache,
        mailer=mailer,
        avatars=avatars,
    )


# ---------------------------------------------------------------------------
# HTTP fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(settings: Settings, service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the test service and its stores into app.state so routes never
    touch the on-disk databases, SMTP, or Cloudinary.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.user_store = service.users
        app.state.session_cache = service.sessions
        app.state.auth_service = service
        yield

    return test_lifespan


@pytest.fixture
def api_client(settings, session_cache, mailer, avatars) -> Generator[tuple[TestClient, AuthService], None, None]:
    """Yield (client, service) for HTTP integration tests.

    Each test gets its own shared-memory user DB and session cache. Rate
    limiting is switched off so repeated logins inside one test module do not
    trip the 10/minute limit.
    """
    store = UserStore(f"sqlite:///file:test_users_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
    service = AuthService(settings=settings, users=store, sessions=session_cache, mailer=mailer, avatars=avatars)

    app.router.lifespan_context = _patch_lifespan(settings, service)
    limiter.enabled = False
    try:
        with TestClient(app, raise_server_exceptions=True) as client:
            yield client, service
    finally:
        limiter.enabled = True
        store.close()
