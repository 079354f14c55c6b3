"""GitHub App installation handshake.

POST /auth/github/app/install/start returns the GitHub install URL with a
fresh state token; the frontend navigates to it.

GET /auth/github/app/install/callback is where GitHub sends the browser
afterwards. It always answers with a redirect to the frontend, never with
a JSON error: the user is mid-navigation and has nothing to render it.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse

from appbridge.core.config import Settings, get_settings
from appbridge.core.limiter import limiter
from appbridge.github.callback import Cancelled, Invalid, Success, redirect_url_for, resolve_callback
from appbridge.github.exceptions import GitHubAppNotConfigured
from appbridge.github.schemas import AppConfigResponse, InstallStartRequest, InstallStartResponse
from appbridge.github.state import issue_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth/github/app", tags=["github-app"])

_settings = get_settings()


@router.post("/install/start", response_model=InstallStartResponse)
@limiter.limit(_settings.install_start_rate_limit)
async def start_installation(
    request: Request,
    body: Optional[InstallStartRequest] = None,
    settings: Settings = Depends(get_settings),
) -> InstallStartResponse:
    """Issue a state token and the GitHub installation URL that carries it."""
    if not settings.github_app_slug:
        logger.error("Install start refused: GITHUB_APP_SLUG not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="GitHub App installation is not configured",
        )

    return_path = body.return_path if body else None
    try:
        token, state = issue_state(return_path, settings)
    except GitHubAppNotConfigured as exc:
        logger.error("Install start refused: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="GitHub App installation is not configured",
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        )

    logger.info("Issued install state %s (return_path=%s)", state.nonce[:8], state.return_path)

    return InstallStartResponse(
        installation_url=f"{settings.installation_url}?{urlencode({'state': token})}",
        state=token,
        expires_in=state.expires_at - state.issued_at,
    )


@router.get("/install/callback", response_class=RedirectResponse)
async def installation_callback(
    request: Request,
    installation_id: Optional[str] = None,
    state: Optional[str] = None,
    setup_action: Optional[str] = None,
    settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    """Classify GitHub's redirect and send the browser on to the dashboard."""
    logged_params = dict(request.query_params)
    if logged_params.get("state"):
        logged_params["state"] = logged_params["state"][:12] + "..."
    logger.info("Install callback received: %s", logged_params)

    result = await resolve_callback(installation_id, state, settings)

    if isinstance(result, Success):
        logger.info(
            "GitHub App installed: installation_id=%d setup_action=%s",
            result.installation_id,
            setup_action,
        )
    elif isinstance(result, Cancelled):
        logger.info("Install callback without installation_id (setup_action=%s)", setup_action)
    elif isinstance(result, Invalid):
        logger.warning("Install callback invalid: %s", result.reason)

    return RedirectResponse(
        url=redirect_url_for(result, settings.frontend_base_url),
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/config", response_model=AppConfigResponse)
async def get_app_config(settings: Settings = Depends(get_settings)) -> AppConfigResponse:
    """Callback and webhook URLs to register with GitHub for this deployment."""
    return AppConfigResponse(
        app_slug=settings.github_app_slug,
        callback_url=settings.callback_url,
        webhook_url=settings.webhook_url,
        installation_url=settings.installation_url,
    )
