"""Installation callback classification and redirect selection.

GitHub sends the browser back to the callback URL with `installation_id`,
`setup_action` and the `state` we issued. The browser is mid-navigation,
so every outcome ends in a redirect to the frontend dashboard:

    Success    -> {frontend}{return_path}?github_app_installed=true
    Cancelled  -> {frontend}/dashboard
    Invalid    -> {frontend}/dashboard?github_app_error=<reason>

`installation_id` is only trusted after the state has been validated and
consumed.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import urlencode

from appbridge.core.config import Settings
from appbridge.github.exceptions import (
    GitHubAppNotConfigured,
    InvalidStateError,
    MissingInstallationID,
    UpstreamUnreachable,
)
from appbridge.github.state import (
    DEFAULT_RETURN_PATH,
    InstallationState,
    validate_and_consume_state,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Success:
    installation_id: int
    state: InstallationState


@dataclass(frozen=True)
class Cancelled:
    reason: str = "missing_installation_id"


@dataclass(frozen=True)
class Invalid:
    reason: str


CallbackResult = Union[Success, Cancelled, Invalid]


def parse_installation_id(raw: Optional[str]) -> int:
    """Return the installation ID as a positive int.

    Raises MissingInstallationID when absent and ValueError when malformed.
    """
    if raw is None or not raw.strip():
        raise MissingInstallationID()
    digits = raw.strip()
    if not (digits.isascii() and digits.isdigit()):
        raise ValueError(f"installation_id must be a decimal integer, got {raw!r}")
    value = int(digits)
    if value <= 0:
        raise ValueError(f"installation_id must be positive, got {value}")
    return value


async def resolve_callback(
    installation_id: Optional[str],
    state: Optional[str],
    settings: Settings,
) -> CallbackResult:
    try:
        inst_id = parse_installation_id(installation_id)
    except MissingInstallationID:
        return Cancelled()
    except ValueError:
        return Invalid("malformed_installation_id")

    try:
        consumed = await validate_and_consume_state(state or "", settings)
    except InvalidStateError as exc:
        logger.warning(
            "Install callback rejected for installation %d: %s", inst_id, exc.reason
        )
        return Invalid(exc.reason)
    except UpstreamUnreachable as exc:
        logger.error("Install state store unavailable: %s", exc)
        return Invalid("state_store_unavailable")
    except GitHubAppNotConfigured as exc:
        logger.error("Install callback cannot validate state: %s", exc)
        return Invalid("not_configured")

    return Success(installation_id=inst_id, state=consumed)


def redirect_url_for(result: CallbackResult, frontend_base_url: str) -> str:
    if isinstance(result, Success):
        query = urlencode({"github_app_installed": "true"})
        path = result.state.return_path
        separator = "&" if "?" in path else "?"
        return f"{frontend_base_url}{path}{separator}{query}"
    if isinstance(result, Cancelled):
        return f"{frontend_base_url}{DEFAULT_RETURN_PATH}"
    if isinstance(result, Invalid):
        query = urlencode({"github_app_error": result.reason})
        return f"{frontend_base_url}{DEFAULT_RETURN_PATH}?{query}"
    raise TypeError(f"Unhandled callback result: {result!r}")
