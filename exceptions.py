"""
Custom exceptions for the LuxeTrack backend.
Covers missing orders, unreadable persisted state and AI provider failures.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse


class BaseCustomException(HTTPException):
    """Base class for all custom exceptions"""

    def __init__(
        self,
        status_code: int,
        detail: str,
        headers: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
        field: Optional[str] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.field = field


class NotFoundError(BaseCustomException):
    """Resource not found exception"""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} with identifier '{identifier}' not found",
            error_code="RESOURCE_NOT_FOUND"
        )
        self.identifier = identifier


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str):
        super().__init__("Order", order_id)


class BadRequestError(BaseCustomException):
    """Bad request exception"""

    def __init__(self, message: str, field: str = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=message,
            error_code="BAD_REQUEST",
            field=field
        )


class InternalServerError(BaseCustomException):
    """Internal server error exception"""

    def __init__(self, message: str = "Internal server error occurred"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=message,
            error_code="INTERNAL_SERVER_ERROR"
        )


class MalformedPersistedStateError(InternalServerError):
    """Stored order data could not be parsed into an order sequence"""

    def __init__(self, key: str, reason: str):
        super().__init__(message=f"Persisted value under '{key}' is not a valid order list: {reason}")
        self.error_code = "MALFORMED_PERSISTED_STATE"
        self.key = key


class ServiceUnavailableError(BaseCustomException):
    """Service unavailable exception"""

    def __init__(self, service: str = "Service"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{service} is temporarily unavailable",
            error_code="SERVICE_UNAVAILABLE"
        )


class AICollaboratorError(ServiceUnavailableError):
    """Hosted model call failed (network, timeout or provider error)"""

    def __init__(self, operation: str, reason: str = ""):
        super().__init__(service="AI assistant")
        self.error_code = "EXTERNAL_SERVICE_ERROR"
        self.operation = operation
        self.reason = reason


def format_error_response(error: HTTPException) -> Dict[str, Any]:
    """Format error response for consistent API responses"""
    response = {
        "error": True,
        "error_code": getattr(error, 'error_code', None) or 'HTTP_ERROR',
        "message": error.detail,
        "status_code": error.status_code
    }

    if getattr(error, 'field', None):
        response["field"] = error.field

    return response


async def custom_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=format_error_response(exc),
        headers=getattr(exc, "headers", None),
    )
