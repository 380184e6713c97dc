"""
FastAPI Application Entry Point.

This module creates and configures the FastAPI application instance.
It handles:
1. Application initialization (collaborators built once in the lifespan)
2. Router registration
3. Middleware configuration (audit and security headers)
4. Exception handlers (error taxonomy -> JSON error bodies)

Run with: uvicorn twinlink.api.main:app --reload
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from twinlink import __version__
from twinlink.api.dependencies import Container, ResultFailure, build_container
from twinlink.api.routes import conversations_router, health_router, routing_router, sessions_router
from twinlink.core.audit import AuditMiddleware, SecurityHeadersMiddleware
from twinlink.core.config import Settings, get_settings
from twinlink.core.exceptions import TwinLinkError
from twinlink.core.logging_config import get_logger, setup_logging
from twinlink.models.api import ErrorResponse

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None, container: Optional[Container] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings (defaults to get_settings())
        container: Pre-built collaborators; built at startup when omitted
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        - Startup: build the collaborator container (creates SQL tables
          when the SQL backend is selected)
        - Shutdown: release store connections
        """
        logger.info(f"Starting {settings.app_name} in {settings.app_env} mode")
        logger.info(f"Store backend: {settings.store_backend}, classifier: {settings.classifier_backend}")
        logger.info(f"Audit Logging: {settings.enable_audit_logging}")

        if getattr(app.state, "container", None) is None:
            app.state.container = build_container(settings)

        yield  # Application runs here

        logger.info(f"Shutting down {settings.app_name}")
        app.state.container.documents.close()

    app = FastAPI(
        title="TwinLink Conversation API",
        description="""
        Conversation and session core for digital-twin agents.

        ## Features

        - **Two-party conversations**: stable pair keys, idempotent sends
        - **Read receipts**: Sent -> Delivered -> Read per message
        - **Group sessions**: mention the assistant to get a reply
        - **Intent routing**: bind a conversation to the right sub-agent
        """,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    if container is not None:
        app.state.container = container

    # ============================================================
    # Middleware Configuration (Order matters!)
    # ============================================================

    app.add_middleware(SecurityHeadersMiddleware)

    if settings.enable_audit_logging:
        app.add_middleware(AuditMiddleware)
        logger.info("Audit logging middleware enabled")

    if settings.is_development():
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        logger.warning("CORS configured for development (all origins allowed)")

    # ============================================================
    # Exception Handlers
    # ============================================================

    @app.exception_handler(ResultFailure)
    async def result_failure_handler(request: Request, exc: ResultFailure):
        """Failed core Results become taxonomy error bodies."""
        result = exc.result
        body = ErrorResponse(
            error=result.error.value if result.error else "internal",
            message=result.message or "Request failed",
            retryable=result.retryable,
        )
        return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))

    @app.exception_handler(TwinLinkError)
    async def twinlink_exception_handler(request: Request, exc: TwinLinkError):
        """Handle taxonomy errors raised outside the Result boundary."""
        body = ErrorResponse(**exc.to_dict(), retryable=exc.retryable)
        return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Handle uncaught exceptions globally.

        Detailed error information is only included in development mode.
        """
        logger.exception(f"Unhandled exception: {exc}")
        body = ErrorResponse(
            error="internal",
            message="An unexpected error occurred",
            details=str(exc) if settings.is_development() else None,
        )
        return JSONResponse(status_code=500, content=body.model_dump(mode="json"))

    # ============================================================
    # Routers
    # ============================================================

    app.include_router(health_router)
    app.include_router(conversations_router)
    app.include_router(sessions_router)
    app.include_router(routing_router)

    @app.get("/", include_in_schema=False)
    async def root():
        """Point to the API documentation."""
        return {
            "message": "TwinLink Conversation API",
            "version": __version__,
            "documentation": "/docs",
            "health": "/health",
        }

    return app


# Initialize logging before anything else
_settings = get_settings()
setup_logging(_settings.log_level, _settings.log_dir or None)

app = create_app(_settings)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "twinlink.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=_settings.is_development()
    )
