"""Centralized error handling for the price pipeline API."""

from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.services.errors import FetchError, HttpError, NetworkError, RateLimitedError


class PipelineError:
    """Standard error codes for the price pipeline API."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNKNOWN_COIN = "UNKNOWN_COIN"

    UPSTREAM_RATE_LIMITED = "UPSTREAM_RATE_LIMITED"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"

    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse:
    """Standardized error response format."""

    def __init__(
        self,
        error_code: str,
        message: str,
        details: dict[str, Any] | list[str] | None = None,
        status_code: int = status.HTTP_400_BAD_REQUEST,
    ):
        """
        Initialize error response.

        Args:
            error_code: Standard error code from PipelineError
            message: Human-readable error message
            details: Additional error details
            status_code: HTTP status code
        """
        self.error_code = error_code
        self.message = message
        self.details = details
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON response."""
        response = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            response["details"] = self.details
        return response

    def to_http_exception(self) -> HTTPException:
        """Convert to FastAPI HTTPException."""
        return HTTPException(
            status_code=self.status_code,
            detail=self.to_dict(),
        )


def create_validation_error_response(errors: list[dict[str, Any]]) -> ErrorResponse:
    """
    Create standardized validation error response from Pydantic validation errors.

    Args:
        errors: List of validation errors from Pydantic

    Returns:
        ErrorResponse with field-specific validation errors
    """
    field_errors = {}
    for error in errors:
        field_path = ".".join(str(loc) for loc in error["loc"])
        field_errors[field_path] = error["msg"]

    return ErrorResponse(
        error_code=PipelineError.VALIDATION_ERROR,
        message="Validation failed for one or more fields",
        details=field_errors,
        status_code=status.HTTP_400_BAD_REQUEST,
    )


def create_unknown_coin_error(coin_id: str) -> ErrorResponse:
    """Create the error for a coin that is not tracked."""
    return ErrorResponse(
        error_code=PipelineError.UNKNOWN_COIN,
        message=f"Unknown coin: {coin_id}",
        details={"coin_id": coin_id},
        status_code=status.HTTP_404_NOT_FOUND,
    )


def create_fetch_error_response(error: FetchError) -> ErrorResponse:
    """
    Map a market data fetch failure to an error response.

    The upstream reason is passed through verbatim.
    """
    details = {"error_type": error.kind}

    if isinstance(error, RateLimitedError):
        return ErrorResponse(
            error_code=PipelineError.UPSTREAM_RATE_LIMITED,
            message=error.reason,
            details=details,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        )
    if isinstance(error, NetworkError):
        return ErrorResponse(
            error_code=PipelineError.UPSTREAM_UNAVAILABLE,
            message=error.reason,
            details=details,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    if isinstance(error, HttpError):
        details["upstream_status"] = error.status_code

    return ErrorResponse(
        error_code=PipelineError.UPSTREAM_ERROR,
        message=error.reason,
        details=details,
        status_code=status.HTTP_502_BAD_GATEWAY,
    )


def create_internal_error(message: str = "An unexpected error occurred") -> ErrorResponse:
    """Create internal server error."""
    return ErrorResponse(
        error_code=PipelineError.INTERNAL_ERROR,
        message=message,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle FastAPI validation errors with standardized format."""
    error_response = create_validation_error_response(exc.errors())
    return JSONResponse(
        status_code=error_response.status_code,
        content=error_response.to_dict(),
    )


async def fetch_exception_handler(request: Request, exc: FetchError) -> JSONResponse:
    """Handle fetch errors that reach the API layer."""
    error_response = create_fetch_error_response(exc)
    return JSONResponse(
        status_code=error_response.status_code,
        content=error_response.to_dict(),
    )


def handle_service_error(error: Exception) -> ErrorResponse:
    """
    Convert a service layer error to an error response.

    Args:
        error: Exception raised by a service

    Returns:
        ErrorResponse with appropriate error code and message
    """
    if isinstance(error, FetchError):
        return create_fetch_error_response(error)

    error_message = str(error)
    if isinstance(error, ValueError):
        if error_message.lower().startswith("unknown coin"):
            coin_id = error_message.split(":", 1)[-1].strip()
            return create_unknown_coin_error(coin_id)
        return ErrorResponse(
            error_code=PipelineError.VALIDATION_ERROR,
            message=error_message,
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    return create_internal_error()
