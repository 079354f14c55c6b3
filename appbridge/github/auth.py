"""GitHub App authentication.

The app authenticates to the GitHub API with a short-lived RS256 JWT
signed by the App's private key (GITHUB_APP_PRIVATE_KEY, base64 PEM).
"""

import time

import jwt

from appbridge.core.config import get_settings
from appbridge.github.exceptions import GitHubAppNotConfigured


def create_app_jwt() -> str:
    """Create a JWT for authenticating as the GitHub App.

    JWTs are valid for up to 10 minutes. We use 9 minutes
    to avoid clock-skew rejections.
    """
    settings = get_settings()

    if not settings.github_app_id:
        raise GitHubAppNotConfigured("GITHUB_APP_ID")
    try:
        private_key = settings.github_private_key_pem
    except ValueError as exc:
        raise GitHubAppNotConfigured("GITHUB_APP_PRIVATE_KEY") from exc
    if not private_key:
        raise GitHubAppNotConfigured("GITHUB_APP_PRIVATE_KEY")

    now = int(time.time())
    payload = {
        "iat": now - 60,
        "exp": now + (9 * 60),
        "iss": settings.github_app_id,
    }

    return jwt.encode(payload, private_key, algorithm="RS256")
