"""Shared fixtures for the appbridge test suite.

Settings come from environment variables, so an autouse fixture sets a
complete production-like configuration for every test. Redis is replaced
by an in-process stub that honours SET NX and DEL, which is all the service uses.
"""

import base64
from collections.abc import AsyncGenerator

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient

from appbridge.main import create_app

FRONTEND_BASE_URL = "https://frontend"
PUBLIC_BASE_URL = "https://bridge.example.com"
TEST_WEBHOOK_SECRET = "test-webhook-secret"
TEST_STATE_SECRET = "test-install-state-secret"
TEST_OAUTH_SECRET = "test-oauth-client-secret"
TEST_APP_SLUG = "appbridge-test"


class StubRedis:
    """Dict-backed stand-in for the Redis calls the service makes."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.fail = False

    async def set(self, key, value, nx=False, ex=None):
        if self.fail:
            from redis.exceptions import ConnectionError

            raise ConnectionError("stub redis down")
        if nx and key in self.store:
            return None
        self.store[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, key):
        if self.fail:
            from redis.exceptions import ConnectionError

            raise ConnectionError("stub redis down")
        self.ttls.pop(key, None)
        return 1 if self.store.pop(key, None) is not None else 0

    async def ping(self):
        if self.fail:
            from redis.exceptions import ConnectionError

            raise ConnectionError("stub redis down")
        return True


@pytest.fixture(scope="session")
def rsa_private_key_b64() -> str:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return base64.b64encode(pem).decode("ascii")


@pytest.fixture(autouse=True)
def settings_env(monkeypatch, rsa_private_key_b64):
    """A complete, valid configuration for every test."""
    monkeypatch.setenv("FRONTEND_BASE_URL", FRONTEND_BASE_URL)
    monkeypatch.setenv("PUBLIC_BASE_URL", PUBLIC_BASE_URL + "/")
    monkeypatch.setenv("GITHUB_APP_ID", "12345")
    monkeypatch.setenv("GITHUB_APP_SLUG", TEST_APP_SLUG)
    monkeypatch.setenv("GITHUB_APP_PRIVATE_KEY", rsa_private_key_b64)
    monkeypatch.setenv("GITHUB_WEBHOOK_SECRET", TEST_WEBHOOK_SECRET)
    monkeypatch.setenv("GITHUB_OAUTH_CLIENT_SECRET", TEST_OAUTH_SECRET)
    monkeypatch.setenv("INSTALL_STATE_SECRET", TEST_STATE_SECRET)
    monkeypatch.setenv("SENTRY_DSN", "")
    monkeypatch.setenv("DEBUG", "false")


@pytest.fixture(autouse=True)
def stub_redis(monkeypatch) -> StubRedis:
    stub = StubRedis()
    monkeypatch.setattr("appbridge.core.redis.get_redis", lambda: stub)
    return stub


@pytest.fixture
def app():
    """A fresh app per test with an empty rate-limit bucket."""
    from appbridge.core.limiter import limiter

    limiter.reset()
    return create_app()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
