"""FastAPI application entrypoint."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from linkauth import __version__
from linkauth.api.middleware import RequestIDMiddleware, RequestLoggingMiddleware
from linkauth.api.router import api_router
from linkauth.config import settings
from linkauth.database import close_db
from linkauth.services.errors import AuthError

logger = logging.getLogger(__name__)

# Initialize Sentry for error tracking
if settings.sentry_dsn:
    import sentry_sdk

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        send_default_pii=False,
    )
    logger.info("Sentry initialized")


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup: schema is managed by Alembic migrations
    if settings.echo_magic_links:
        logger.warning("EXPOSE_MAGIC_LINKS is on: magic links are returned in API responses")
    yield
    # Shutdown
    await close_db()


app = FastAPI(
    title="linkauth API",
    description="Passwordless magic link authentication",
    version=__version__,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug_enabled else None,
    redoc_url="/api/redoc" if settings.debug_enabled else None,
    openapi_url="/api/openapi.json" if settings.debug_enabled else None,
)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Return the public message for an auth failure; details stay in the logs."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}")
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "detail": exc.message, "code": exc.code},
        headers=headers,
    )


# Last added runs first; the request ID must be set before the request is logged
app.add_middleware(RequestLoggingMiddleware)  # type: ignore[arg-type]
app.add_middleware(RequestIDMiddleware)  # type: ignore[arg-type]

# CORS middleware
app.add_middleware(
    CORSMiddleware,  # type: ignore[arg-type]
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)

app.include_router(api_router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    from linkauth.logging import get_uvicorn_log_config

    uvicorn.run(
        "linkauth.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_config=get_uvicorn_log_config(),
    )
