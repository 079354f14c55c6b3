"""Minimal GitHub API client.

Only used to confirm the App credentials work and GitHub is reachable.
Network failures surface as UpstreamUnreachable so the health endpoint
can report them without a stack trace reaching the caller.
"""

import logging

import httpx

from appbridge.github.auth import create_app_jwt
from appbridge.github.exceptions import UpstreamUnreachable

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"


async def get_app_metadata() -> dict:
    """GET /app as the authenticated App. Returns the App's JSON description."""
    app_jwt = create_app_jwt()

    try:
        async with httpx.AsyncClient(timeout=10) as client:
            response = await client.get(
                f"{GITHUB_API_BASE}/app",
                headers={
                    "Authorization": f"Bearer {app_jwt}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": "2022-11-28",
                },
            )
            response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        logger.error(
            "GitHub API rejected app credentials: %s %s",
            exc.response.status_code,
            exc.response.text[:200],
        )
        raise UpstreamUnreachable("github", f"HTTP {exc.response.status_code}") from exc
    except httpx.TransportError as exc:
        logger.error("GitHub API unreachable: %s", exc)
        raise UpstreamUnreachable("github", str(exc)) from exc

    return response.json()
