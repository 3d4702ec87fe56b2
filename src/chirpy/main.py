"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan logs startup/shutdown and disposes the DB pool.
Middleware, CORS, routers, and the AuthError → HTTP mapping are all
registered here.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chirpy import __version__
from chirpy.api import api_router
from chirpy.auth.errors import AuthError, ValidationFailure
from chirpy.config import settings

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info(
        "chirpy.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    yield

    logger.info("chirpy.shutdown")

    from chirpy.db.engine import engine
    await engine.dispose()


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map an AuthError to its status code and generic message.

    Learn: exc.detail (the internal reason) is logged, never returned.
    401s carry WWW-Authenticate so clients know to send a Bearer token.
    """
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "chirpy.request_failed",
        error=type(exc).__name__,
        detail=exc.detail,
        status_code=exc.status_code,
    )
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
        headers=headers,
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies get the same 400 as empty credential fields."""
    logger.info("chirpy.invalid_body", errors=len(exc.errors()))
    return JSONResponse(status_code=400, content={"detail": ValidationFailure.message})


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="Chirpy",
        description="Password login and session tokens for Chirpy",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → Security → RequestId → handler

    from chirpy.middleware.request_id import RequestIdMiddleware
    from chirpy.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: chirpy.main:app)
app = create_app()
