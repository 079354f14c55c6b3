from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from appbridge.auth.router import router as install_router
from appbridge.core import redis as redis_store
from appbridge.core.config import get_settings
from appbridge.core.limiter import limiter
from appbridge.core.middleware import RequestIdMiddleware, SecurityHeadersMiddleware
from appbridge.github import client as github_client
from appbridge.github.exceptions import GitHubAppNotConfigured, UpstreamUnreachable
from appbridge.github.router import router as webhook_router


def create_app() -> FastAPI:
    settings = get_settings()

    _app = FastAPI(
        title="appbridge",
        description="GitHub App installation handshake and webhook receiver",
        version="0.1.0",
    )

    # ---------------------------------------------------------------------------
    # Rate limiter state, read by SlowAPI from app.state
    # ---------------------------------------------------------------------------
    _app.state.limiter = limiter
    _app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # ---------------------------------------------------------------------------
    # Middleware (last added runs first)
    # ---------------------------------------------------------------------------
    _app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _app.add_middleware(SlowAPIMiddleware)
    _app.add_middleware(SecurityHeadersMiddleware)
    _app.add_middleware(RequestIdMiddleware)

    from appbridge.core.sentry import init_sentry

    init_sentry(
        dsn=settings.sentry_dsn,
        environment="development" if settings.debug else "production",
    )

    from appbridge.core.logging import configure_structlog

    configure_structlog(debug=settings.debug)

    # ---------------------------------------------------------------------------
    # Routes
    # ---------------------------------------------------------------------------

    @_app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    @_app.get("/health/upstream")
    async def upstream_health() -> JSONResponse:
        """Report Redis and GitHub reachability. 503 if either is down."""
        checks = {"redis": "ok" if await redis_store.ping() else "unreachable"}

        try:
            await github_client.get_app_metadata()
            checks["github"] = "ok"
        except GitHubAppNotConfigured:
            checks["github"] = "unconfigured"
        except UpstreamUnreachable:
            checks["github"] = "unreachable"

        healthy = "unreachable" not in checks.values()
        return JSONResponse(
            status_code=200 if healthy else 503,
            content={"status": "ok" if healthy else "degraded", **checks},
        )

    _app.include_router(install_router)
    _app.include_router(webhook_router)

    return _app


app = create_app()
