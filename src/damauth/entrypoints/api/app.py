"""FastAPI application definition."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from damauth import __version__
from damauth.core.exceptions import DomainError

from .deps import lifespan
from .responses import domain_error_handler, unhandled_error_handler, validation_error_handler
from .routes import api_router


def create_app() -> FastAPI:
    """Build the application with error handlers and routes."""
    application = FastAPI(
        title="damauth",
        description="Authentication, session management and RBAC for DAM",
        version=__version__,
        lifespan=lifespan,
        redirect_slashes=False,  # Prevent 307 redirects that lose auth headers
    )

    application.add_exception_handler(DomainError, domain_error_handler)
    application.add_exception_handler(RequestValidationError, validation_error_handler)
    application.add_exception_handler(Exception, unhandled_error_handler)

    # Include API routes
    application.include_router(api_router, prefix="/api/v1")

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return application


app = create_app()
