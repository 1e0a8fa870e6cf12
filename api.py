"""
Gemini Gateway FastAPI Application

Main entry point for the gateway's authentication API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Common library imports
from common.auth.errors import AuthError, InternalError
from common.database import MongoDB
from common.utils import APIException, success_response, error_response, to_api_exception

# App-specific imports
from gateway.config import settings
from gateway.routers import auth_router
from gateway.dependencies import (
    ensure_indexes,
    get_session_sweeper,
    init_auth_services,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Database Instance
# =============================================================================
main_db = MongoDB()


# =============================================================================
# Application Lifespan
# =============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown tasks like database connections,
    service initialization and the background session sweep.
    """
    # Startup
    logger.info("Starting Gemini Gateway...")
    settings.validate_required()

    await main_db.connect(
        uri=settings.MONGODB_URI,
        database_name=settings.MONGODB_DATABASE,
    )

    init_auth_services(db=main_db.db, settings=settings)
    await ensure_indexes()
    logger.info("Auth services initialized")

    sweeper = get_session_sweeper()
    sweeper.start()

    logger.info("Gemini Gateway started successfully")

    yield

    # Shutdown
    logger.info("Shutting down Gemini Gateway...")
    await sweeper.stop()
    await main_db.disconnect()
    logger.info("Gemini Gateway shut down complete")


# =============================================================================
# FastAPI Application
# =============================================================================
app = FastAPI(
    title="Gemini Gateway",
    description="Authentication and session management for the Gemini API gateway",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.is_development() else None,
    redoc_url="/redoc" if settings.is_development() else None,
)

# =============================================================================
# CORS Middleware
# =============================================================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Error Handling
# =============================================================================
def _error_json(exc: APIException) -> JSONResponse:
    detail = exc.detail
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(
            detail["message"],
            code=detail.get("code"),
            details=detail.get("details"),
        ),
        headers=exc.headers,
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    """Render domain errors with the standard error envelope."""
    if isinstance(exc, InternalError):
        logger.error(f"{request.method} {request.url.path} failed: {exc!r}")

    return _error_json(to_api_exception(exc))


@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    """Same envelope for HTTP exceptions raised by dependencies."""
    return _error_json(exc)


# =============================================================================
# Include Routers (all under /api prefix)
# =============================================================================
API_PREFIX = "/api"

app.include_router(auth_router, prefix=API_PREFIX, tags=["Authentication"])


# =============================================================================
# Health Check Endpoint
# =============================================================================
@app.get("/health", tags=["Health"])
async def health():
    """
    Health check endpoint.

    Returns the status of the API and database connection.
    """
    return success_response({
        "status": "ok",
        "version": "1.0.0",
        "database": await main_db.ping(),
    })


# =============================================================================
# Run with Uvicorn
# =============================================================================
if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "api:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development(),
    )
