from unittest.mock import AsyncMock, patch

from appbridge.github.exceptions import GitHubAppNotConfigured, UpstreamUnreachable
from appbridge.main import create_app


def test_app_creates_successfully():
    app = create_app()
    paths = {route.path for route in app.routes}
    assert {
        "/auth/github/app/install/start",
        "/auth/github/app/install/callback",
        "/webhooks/github",
        "/health",
    } <= paths


async def test_health_endpoint(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestUpstreamHealth:
    async def test_all_reachable(self, client):
        with patch("appbridge.github.client.get_app_metadata", AsyncMock(return_value={})):
            response = await client.get("/health/upstream")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "redis": "ok", "github": "ok"}

    async def test_github_unreachable(self, client):
        with patch(
            "appbridge.github.client.get_app_metadata",
            AsyncMock(side_effect=UpstreamUnreachable("github", "timeout")),
        ):
            response = await client.get("/health/upstream")

        assert response.status_code == 503
        assert response.json()["github"] == "unreachable"

    async def test_redis_unreachable(self, client, stub_redis):
        stub_redis.fail = True
        with patch("appbridge.github.client.get_app_metadata", AsyncMock(return_value={})):
            response = await client.get("/health/upstream")

        assert response.status_code == 503
        assert response.json()["redis"] == "unreachable"

    async def test_unconfigured_app_is_not_an_outage(self, client):
        with patch(
            "appbridge.github.client.get_app_metadata",
            AsyncMock(side_effect=GitHubAppNotConfigured("GITHUB_APP_ID")),
        ):
            response = await client.get("/health/upstream")

        assert response.status_code == 200
        assert response.json()["github"] == "unconfigured"
