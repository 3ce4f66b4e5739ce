"""
FastAPI Login Gateway Application Factory
==========================================

Shared-session login service for sibling web properties. A user signs in once
on ``login.<family>`` and receives a session cookie scoped to the family's
root domain, so every subdomain of that family recognizes them.

Routes:
    - /, /login     : Login page (skipped when a trusted session exists)
    - /callback     : Stores the provider token in the shared session cookie
    - /logout       : Clears the session cookie
    - /error        : User-friendly error page
    - /health       : Health check (no domain validation)

Environment Variables:
    - GOOGLE_CLIENT_ID: Google One Tap client id
    - SUPABASE_URL: Identity provider base URL
    - SUPABASE_PUBLISHABLE_KEY: Provider publishable key
    - SUPPORTED_DOMAINS: Comma-separated domain families
    - DATABASE_URL_TRANSACTION: Analytics database URL
    - DATABASE_SCHEMA: Analytics schema (default: login)
    - PORT: Listening port (default: 8080)
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn gateway.app.main:app --reload --port 8080

    Production:
        login-gateway
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Dict, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from .auth import auth_router
from .auth.domain import from_host_header
from .auth.utils import TokenTrustEngine, jwks_url_for
from .config import ConfigurationError, Settings, get_settings
from .db.connection import configure as configure_database, dispose_engine

SERVICE_NAME = "login-gateway"
SERVICE_VERSION = "1.0.0"

logger = logging.getLogger("gateway.main")


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup configures logging; shutdown closes the analytics database pool
    if a login was ever recorded.
    """
    settings: Settings = app.state.settings
    setup_logging(settings.LOG_LEVEL)

    logger.info(
        "Starting login gateway",
        extra={
            "supported_domains": ",".join(settings.supported_domains),
            "jwks_url": app.state.trust_engine.jwks_url,
        },
    )

    yield

    logger.info("Shutting down login gateway")
    await dispose_engine()


def create_app(
    settings: Optional[Settings] = None,
    trust_engine: Optional[TokenTrustEngine] = None,
) -> FastAPI:
    """
    Application factory function.

    Args:
        settings: Settings to use instead of the environment
        trust_engine: Token trust engine to use instead of one built from settings

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()
    if trust_engine is None:
        trust_engine = TokenTrustEngine(
            jwks_url_for(settings.SUPABASE_URL),
            cache_ttl=settings.JWKS_CACHE_SECONDS,
            timeout=settings.JWKS_TIMEOUT_SECONDS,
        )

    app = FastAPI(
        title="Login Gateway",
        description="Shared-session login for sibling domains",
        version=SERVICE_VERSION,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )

    app.state.settings = settings
    app.state.trust_engine = trust_engine
    configure_database(settings)

    # Domain classification runs before any session or redirect logic
    @app.middleware("http")
    async def domain_middleware(request: Request, call_next):
        if request.url.path == "/health":
            return await call_next(request)

        host = request.headers.get("host")
        domain = from_host_header(host, request.app.state.settings.supported_domains)
        if domain is None:
            logger.info(f"Rejected request for unsupported domain: {host}")
            return PlainTextResponse(f"Unsupported domain: {host or 'unknown'}", status_code=400)

        request.state.domain = domain
        request.state.hostname = host.split(":")[0].lower()
        return await call_next(request)

    app.include_router(auth_router)

    @app.get("/health", tags=["System"])
    async def health_check() -> Dict[str, str]:
        """Health check endpoint."""
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
        }

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError) -> PlainTextResponse:
        logger.error(
            f"Configuration error on {request.url.path}: {exc}",
            extra={"missing": ",".join(exc.missing)},
        )
        return PlainTextResponse("Server configuration error", status_code=500)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Logs the error and returns a response without internal detail.
        """
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__,
            },
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
            },
        )

    return app


# Create app instance for uvicorn
app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "gateway.app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
