"""Integration tests for POST /webhooks/github."""

import json
from unittest.mock import patch
from urllib.parse import urlencode

from httpx import ASGITransport, AsyncClient

from appbridge.github.webhooks import compute_signature
from tests.conftest import TEST_WEBHOOK_SECRET


def _headers(body: bytes, event: str, delivery: str = "", **extra) -> dict:
    headers = {
        "X-Hub-Signature-256": compute_signature(body, TEST_WEBHOOK_SECRET),
        "X-GitHub-Event": event,
        "Content-Type": "application/json",
    }
    if delivery:
        headers["X-GitHub-Delivery"] = delivery
    headers.update(extra)
    return headers


INSTALLATION_CREATED = json.dumps(
    {
        "action": "created",
        "installation": {"id": 999, "account": {"login": "org", "id": 1}},
        "repositories": [{"id": 1, "full_name": "org/repo", "name": "repo"}],
    }
).encode()


class TestWebhookEndpoint:
    async def test_installation_event_accepted(self, client):
        response = await client.post(
            "/webhooks/github",
            content=INSTALLATION_CREATED,
            headers=_headers(INSTALLATION_CREATED, "installation", "d-1"),
        )
        assert response.status_code == 200
        assert response.json() == {
            "received": True,
            "event": "installation",
            "action": "installation.created",
            "delivery_id": "d-1",
        }

    async def test_tampered_body_rejected_without_dispatch(self, client):
        signature = compute_signature(INSTALLATION_CREATED, TEST_WEBHOOK_SECRET)
        tampered = INSTALLATION_CREATED.replace(b"999", b"998")

        with patch("appbridge.github.router.dispatch_event") as mock_dispatch:
            response = await client.post(
                "/webhooks/github",
                content=tampered,
                headers={
                    "X-Hub-Signature-256": signature,
                    "X-GitHub-Event": "installation",
                    "Content-Type": "application/json",
                },
            )

        assert response.status_code == 401
        mock_dispatch.assert_not_called()

    async def test_missing_signature_rejected(self, client):
        response = await client.post(
            "/webhooks/github",
            content=INSTALLATION_CREATED,
            headers={"X-GitHub-Event": "installation", "Content-Type": "application/json"},
        )
        assert response.status_code == 401

    async def test_unconfigured_secret_is_server_error(self, client, monkeypatch):
        monkeypatch.setenv("GITHUB_WEBHOOK_SECRET", "")
        response = await client.post(
            "/webhooks/github",
            content=INSTALLATION_CREATED,
            headers=_headers(INSTALLATION_CREATED, "installation"),
        )
        assert response.status_code == 500

    async def test_duplicate_delivery_dispatched_once(self, client):
        headers = _headers(INSTALLATION_CREATED, "installation", "dup-1")
        with patch(
            "appbridge.github.router.dispatch_event", return_value="installation.created"
        ) as mock_dispatch:
            first = await client.post("/webhooks/github", content=INSTALLATION_CREATED, headers=headers)
            second = await client.post("/webhooks/github", content=INSTALLATION_CREATED, headers=headers)

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json()["action"] == "duplicate_delivery"
        mock_dispatch.assert_called_once()

    async def test_failed_handler_leaves_delivery_open_for_redelivery(self, app, stub_redis):
        body = b'{"action":"opened","issue":{"number":7}}'
        headers = _headers(body, "issues", "d-42")

        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            with patch(
                "appbridge.github.router.dispatch_event", side_effect=RuntimeError("handler crashed")
            ):
                failed = await ac.post("/webhooks/github", content=body, headers=headers)

            assert failed.status_code == 500
            assert "webhook_delivery:d-42" not in stub_redis.store

            redelivered = await ac.post("/webhooks/github", content=body, headers=headers)

        assert redelivered.status_code == 200
        assert redelivered.json()["action"] == "issues.opened"

    async def test_unknown_event_acknowledged(self, client):
        body = b'{"action":"created"}'
        response = await client.post("/webhooks/github", content=body, headers=_headers(body, "star"))
        assert response.status_code == 200
        assert response.json()["action"] == "ignored"

    async def test_form_encoded_delivery(self, client):
        body = urlencode({"payload": json.dumps({"action": "opened", "issue": {"number": 1}})}).encode()
        response = await client.post(
            "/webhooks/github",
            content=body,
            headers=_headers(body, "issues", **{"Content-Type": "application/x-www-form-urlencoded"}),
        )
        assert response.status_code == 200
        assert response.json()["action"] == "issues.opened"

    async def test_signed_but_undecodable_body_is_bad_request(self, client):
        body = b"not json"
        response = await client.post("/webhooks/github", content=body, headers=_headers(body, "push"))
        assert response.status_code == 400
