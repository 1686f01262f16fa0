"""Response envelope shared by every endpoint."""

from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

import structlog
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from damauth.core.exceptions import DomainError

logger = structlog.get_logger()

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Uniform response envelope.

    ``errors`` is only populated on failures.
    """

    success: bool = True
    message: str
    data: T | None = None
    status_code: int = 200
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    errors: list[Any] | None = None


def error_response(status_code: int, message: str, errors: list[Any] | None = None) -> JSONResponse:
    """Render a failure envelope."""
    body = ApiResponse[None](
        success=False,
        message=message,
        status_code=status_code,
        errors=errors or [],
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


async def domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render a DomainError with its own status code and message."""
    assert isinstance(exc, DomainError)
    if exc.status_code >= 500:
        logger.error(
            "request_failed",
            path=request.url.path,
            error_type=type(exc).__name__,
            error=exc.message,
        )
    return error_response(exc.status_code, exc.message, exc.errors)


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render request validation failures as a 400 envelope."""
    assert isinstance(exc, RequestValidationError)
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return error_response(400, "Validation failed", errors)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render any unexpected exception as a generic 500 envelope."""
    logger.exception("unhandled_error", path=request.url.path, error_type=type(exc).__name__)
    return error_response(500, "Internal Server Error")
