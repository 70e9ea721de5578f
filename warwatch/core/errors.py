"""
Error types for the ingestion pipeline and standardized API error responses.

Pipeline errors are raised inside adapters and caught at the scheduler
boundary; API errors follow an RFC 7807-style body.
"""

from typing import Any, Dict, List, Optional
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import logging
import uuid

from warwatch.core.timestamps import utc_now_iso

logger = logging.getLogger(__name__)


class IngestionError(Exception):
    """Base class for failures inside a source adapter run."""


class SourceFetchError(IngestionError):
    """Network error, timeout or non-2xx response from an external source."""

    def __init__(self, url: str, message: str, status: Optional[int] = None):
        self.url = url
        self.status = status
        super().__init__(f"{message} ({url})")


class PayloadFormatError(IngestionError):
    """A source returned a body that does not have the expected shape."""


class SummaryValidationError(IngestionError):
    """The AI collaborator returned output that cannot be persisted."""


class ErrorDetail(BaseModel):
    """Individual error detail following RFC 7807 Problem Details specification."""
    type: str = Field(description="Error type identifier")
    title: str = Field(description="Human-readable summary")
    detail: str = Field(description="Specific error message")
    instance: Optional[str] = Field(default=None, description="Request instance identifier")


class APIErrorBody(BaseModel):
    """Standardized API error response schema."""
    error: bool = Field(default=True, description="Always true for error responses")
    status: int = Field(description="HTTP status code")
    code: str = Field(description="Internal error code")
    message: str = Field(description="Human-readable error message")
    details: List[ErrorDetail] = Field(default_factory=list, description="Detailed error information")
    timestamp: str = Field(default_factory=utc_now_iso)
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))


class WarWatchAPIError(HTTPException):
    """Custom exception class for standardized API errors."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: Optional[List[ErrorDetail]] = None,
    ):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details or []
        super().__init__(status_code=status_code, detail=message)


class ErrorCodes:
    # Data and Validation Errors (400-499)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_DATA_FORMAT = "INVALID_DATA_FORMAT"

    # Authentication (401)
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"

    # Resource Errors (404)
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"

    # Server Errors (500-599)
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    INGESTION_ERROR = "INGESTION_ERROR"
    DATA_SOURCE_ERROR = "DATA_SOURCE_ERROR"
    DATA_SOURCE_TIMEOUT = "DATA_SOURCE_TIMEOUT"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


def create_error_response(
    status_code: int,
    code: str,
    message: str,
    details: Optional[List[ErrorDetail]] = None,
    request_id: Optional[str] = None,
) -> JSONResponse:
    """Create standardized error response.

    ``request_id`` is the id the request middleware assigned, so the body can
    be matched to the request log; a fresh one is generated without it.
    """
    error_response = APIErrorBody(
        status=status_code,
        code=code,
        message=message,
        details=details or [],
        request_id=request_id or str(uuid.uuid4()),
    )

    logger.error(
        f"API Error: {code} - {message}",
        extra={
            "status_code": status_code,
            "error_code": code,
            "request_id": error_response.request_id,
        }
    )

    return JSONResponse(status_code=status_code, content=error_response.model_dump())


def not_found_error(resource: str, identifier: Optional[str] = None) -> WarWatchAPIError:
    """Create standardized 404 error."""
    message = f"{resource} not found"
    if identifier:
        message += f": {identifier}"
    return WarWatchAPIError(status_code=404, code=ErrorCodes.RESOURCE_NOT_FOUND, message=message)


def ingestion_error(message: str) -> WarWatchAPIError:
    """Create standardized 500 error for a failed synchronous ingestion."""
    return WarWatchAPIError(status_code=500, code=ErrorCodes.INGESTION_ERROR, message=message)


def validation_error_details(exc_info: Any) -> List[ErrorDetail]:
    """Convert Pydantic validation errors to standardized format."""
    details = []
    if hasattr(exc_info, 'errors'):
        for error in exc_info.errors():
            field_path = " -> ".join(str(loc) for loc in error.get('loc', []))
            details.append(ErrorDetail(
                type=error.get('type', 'validation_error'),
                title=f"Validation Error in {field_path}",
                detail=error.get('msg', 'Invalid value'),
                instance=field_path
            ))
    return details


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


# Exception handlers for FastAPI
async def api_error_handler(request: Request, exc: WarWatchAPIError) -> JSONResponse:
    """Global handler for WarWatchAPIError exceptions."""
    return create_error_response(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
        request_id=_request_id(request),
    )


async def validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global handler for request validation exceptions."""
    return create_error_response(
        status_code=422,
        code=ErrorCodes.VALIDATION_ERROR,
        message="Request validation failed",
        details=validation_error_details(exc),
        request_id=_request_id(request),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global handler for unhandled exceptions."""
    logger.exception("Unhandled exception in API", extra={"path": request.url.path})
    return create_error_response(
        status_code=500,
        code=ErrorCodes.INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        request_id=_request_id(request),
    )
