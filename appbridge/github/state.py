"""Install state tokens.

The state round-tripped through GitHub's install page is an HS256 JWT
signed with INSTALL_STATE_SECRET:

    jti  32-byte URL-safe random nonce
    rp   frontend path to return to after a successful install
    iat  issue time
    exp  iat + INSTALL_STATE_TTL_SECONDS
    aud  "github-app-install"

The signature and `exp` bound the token in time without server-side
storage. Single use is enforced at consumption: the nonce is claimed in
Redis with SET NX for the token's remaining lifetime, so a replay inside
the window fails the claim and a replay after it fails `exp`.
"""

import logging
import re
import secrets
import time
from dataclasses import dataclass
from typing import Optional

import jwt

from appbridge.core.config import Settings, get_settings
from appbridge.core.redis import claim_once
from appbridge.github.exceptions import GitHubAppNotConfigured, InvalidStateError

logger = logging.getLogger(__name__)

STATE_AUDIENCE = "github-app-install"
DEFAULT_RETURN_PATH = "/dashboard"

# Same-origin absolute paths only: "/x/y", optional query. No "//host", no scheme.
_RETURN_PATH_RE = re.compile(r"^/(?![/\\])[A-Za-z0-9\-._~/%?=&+]*$")


@dataclass(frozen=True)
class InstallationState:
    nonce: str
    return_path: str
    issued_at: int
    expires_at: int


def _state_key(nonce: str) -> str:
    return f"install_state:{nonce}"


def is_safe_return_path(path: str) -> bool:
    """True if `path` can be appended to FRONTEND_BASE_URL without leaving it."""
    return bool(_RETURN_PATH_RE.match(path)) and "\\" not in path


def _require_secret(settings: Settings) -> str:
    if not settings.install_state_secret:
        raise GitHubAppNotConfigured("INSTALL_STATE_SECRET")
    return settings.install_state_secret


def issue_state(
    return_path: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> tuple[str, InstallationState]:
    """Mint a fresh state token. Returns (token, decoded state)."""
    settings = settings or get_settings()
    secret = _require_secret(settings)

    path = return_path or DEFAULT_RETURN_PATH
    if not is_safe_return_path(path):
        raise ValueError(f"return_path must be a same-origin absolute path: {path!r}")

    now = int(time.time())
    state = InstallationState(
        nonce=secrets.token_urlsafe(32),
        return_path=path,
        issued_at=now,
        expires_at=now + settings.install_state_ttl_seconds,
    )
    token = jwt.encode(
        {
            "jti": state.nonce,
            "rp": state.return_path,
            "iat": state.issued_at,
            "exp": state.expires_at,
            "aud": STATE_AUDIENCE,
        },
        secret,
        algorithm="HS256",
    )
    return token, state


def decode_state(token: str, settings: Optional[Settings] = None) -> InstallationState:
    """Verify signature, audience and expiry without consuming the token."""
    settings = settings or get_settings()
    secret = _require_secret(settings)

    if not token:
        raise InvalidStateError("missing_state")

    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            audience=STATE_AUDIENCE,
            options={"require": ["jti", "exp", "iat", "aud"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise InvalidStateError("expired_state") from exc
    except jwt.InvalidTokenError as exc:
        raise InvalidStateError("forged_state") from exc

    return_path = claims.get("rp") or DEFAULT_RETURN_PATH
    if not is_safe_return_path(return_path):
        raise InvalidStateError("forged_state")

    return InstallationState(
        nonce=claims["jti"],
        return_path=return_path,
        issued_at=int(claims["iat"]),
        expires_at=int(claims["exp"]),
    )


async def validate_and_consume_state(
    token: str,
    settings: Optional[Settings] = None,
) -> InstallationState:
    """Decode the token and claim its nonce. A second call with the same token fails.

    Raises InvalidStateError for missing, forged, expired or replayed
    tokens, and UpstreamUnreachable if the nonce store is down.
    """
    settings = settings or get_settings()
    state = decode_state(token, settings)

    remaining = state.expires_at - int(time.time())
    if not await claim_once(_state_key(state.nonce), remaining):
        raise InvalidStateError("replayed_state")

    logger.info("Consumed install state %s", state.nonce[:8])
    return state
