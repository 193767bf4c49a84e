"""
Main FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from app.api import api_router
from app.core.config import settings
from app.core.logging import get_logger, setup_logging
from app.db.session import check_db_health
from app.services.runtime import Runtime

APP_VERSION = "0.2.0"

# Setup logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan events.

    Startup opens the store and starts the crawl and notification loops;
    shutdown signals them, waits for them to finish and closes everything.
    """
    logger.info(
        "starting_application",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        version=APP_VERSION,
    )

    runtime = await Runtime.create()
    await runtime.start()
    app.state.runtime = runtime

    yield

    logger.info("shutting_down_application")
    await runtime.stop()
    app.state.runtime = None


def create_app(use_lifespan: bool = True) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        use_lifespan: Tests pass False and attach their own runtime to
            ``app.state.runtime``
    """
    app = FastAPI(
        title=settings.APP_NAME,
        description="Content buffer and consumption API",
        version=APP_VERSION,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        lifespan=lifespan if use_lifespan else None,
    )
    app.state.runtime = None

    # Add middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # Health check endpoint
    @app.get("/health", tags=["health"])
    async def health_check(request: Request) -> JSONResponse:
        """
        Health check endpoint for monitoring.
        Includes database connectivity check.
        """
        runtime = request.app.state.runtime
        db_healthy = runtime is not None and await check_db_health(runtime.store.engine)

        return JSONResponse(
            status_code=200 if db_healthy else 503,
            content={
                "status": "healthy" if db_healthy else "unhealthy",
                "app_name": settings.APP_NAME,
                "environment": settings.APP_ENV,
                "version": APP_VERSION,
                "database": "connected" if db_healthy else "disconnected",
                "scheduler": "running" if runtime is not None and runtime.scheduler.is_running else "stopped",
            }
        )

    @app.get("/", tags=["root"])
    async def root() -> JSONResponse:
        """
        Root endpoint.
        """
        return JSONResponse(
            content={
                "message": f"Welcome to {settings.APP_NAME} API",
                "version": APP_VERSION,
                "docs": "/docs" if settings.DEBUG else "Documentation disabled in production",
            }
        )

    # Include API routers
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.
        """
        logger.error(
            "unhandled_exception",
            error=str(exc),
            path=request.url.path,
            method=request.method,
            exc_info=True,
        )

        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "internal_server_error",
                    "message": "An unexpected error occurred. Please try again later.",
                }
            },
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="127.0.0.1",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
