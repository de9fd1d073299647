"""
Error handling service for consistent error response formatting and logging.
Provides centralized error handling with structured responses and appropriate logging.
"""

from typing import Dict, Any, Optional, List
from datetime import datetime, timezone
from fastapi import Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from flatmarket.utils.exceptions import APIException, ValidationError
import logging
import uuid

logger = logging.getLogger(__name__)


class ErrorHandlerService:
    """
    Service for handling and formatting errors consistently across the application.
    Every error body has the shape ``{"success": false, "message": ..., "error": {...}}``.
    """

    @staticmethod
    def format_error_response(
        error_code: str,
        message: str,
        details: Optional[List[Dict[str, Any]]] = None,
        request_id: Optional[str] = None,
        cause: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Format error response in a consistent structure.

        Args:
            error_code: Error code identifier
            message: Human-readable error message
            details: Optional list of per-field error information
            request_id: Optional request identifier for tracking
            cause: Underlying reason for a server-side failure

        Returns:
            Formatted error response dictionary
        """
        response = {
            "success": False,
            "message": message,
            "error": {
                "code": error_code,
                "timestamp": ErrorHandlerService._get_current_timestamp(),
            }
        }

        if request_id:
            response["error"]["request_id"] = request_id

        if details:
            response["error"]["details"] = details

        if cause:
            response["error"]["detail"] = cause

        return response

    @staticmethod
    def handle_api_exception(
        exception: APIException,
        request: Optional[Request] = None,
        expose_details: bool = False
    ) -> JSONResponse:
        """
        Handle custom API exceptions with structured response.

        Args:
            exception: API exception instance
            request: Optional FastAPI request object
            expose_details: Whether the cause of a 5xx may be returned

        Returns:
            JSON response with formatted error
        """
        request_id = ErrorHandlerService._get_request_id(request)
        path = request.url.path if request else None

        if exception.status_code >= 500:
            logger.error(
                f"API Exception [{request_id}]: {exception.error_code} - {exception.detail} ({exception.cause})",
                extra={"error_code": exception.error_code, "request_id": request_id, "path": path}
            )
        else:
            logger.warning(
                f"API Exception [{request_id}]: {exception.error_code} - {exception.detail}",
                extra={"error_code": exception.error_code, "request_id": request_id, "path": path}
            )

        details = exception.field_errors if isinstance(exception, ValidationError) else None
        cause = exception.cause if expose_details else None

        error_response = ErrorHandlerService.format_error_response(
            error_code=exception.error_code or "API_ERROR",
            message=exception.detail,
            details=details,
            request_id=request_id,
            cause=cause
        )

        return JSONResponse(
            status_code=exception.status_code,
            content=error_response,
            headers=exception.headers
        )

    @staticmethod
    def handle_validation_error(
        exception: RequestValidationError,
        request: Optional[Request] = None
    ) -> JSONResponse:
        """
        Handle request validation errors with detailed field information.
        Malformed input is reported as a 400, like every other validation failure.

        Args:
            exception: FastAPI request validation error
            request: Optional FastAPI request object

        Returns:
            JSON response with validation error details
        """
        request_id = ErrorHandlerService._get_request_id(request)

        validation_details = []
        for error in exception.errors():
            field_path = " -> ".join(str(loc) for loc in error["loc"])
            validation_details.append({
                "field": field_path,
                "message": error["msg"],
                "type": error["type"]
            })

        logger.warning(
            f"Validation Error [{request_id}]: {len(validation_details)} field errors",
            extra={
                "error_count": len(validation_details),
                "request_id": request_id,
                "path": request.url.path if request else None
            }
        )

        error_response = ErrorHandlerService.format_error_response(
            error_code="VALIDATION_ERROR",
            message="Request validation failed",
            details=validation_details,
            request_id=request_id
        )

        return JSONResponse(
            status_code=400,
            content=error_response
        )

    @staticmethod
    def handle_database_error(
        exception: SQLAlchemyError,
        request: Optional[Request] = None,
        expose_details: bool = False
    ) -> JSONResponse:
        """
        Handle database errors that escaped the service layer.

        Args:
            exception: SQLAlchemy error
            request: Optional FastAPI request object
            expose_details: Whether the driver message may be returned

        Returns:
            JSON response with database error information
        """
        request_id = ErrorHandlerService._get_request_id(request)

        logger.error(
            f"Database Error [{request_id}]: {type(exception).__name__} - {str(exception)}",
            extra={
                "request_id": request_id,
                "path": request.url.path if request else None,
                "exception_type": type(exception).__name__
            },
            exc_info=True
        )

        error_response = ErrorHandlerService.format_error_response(
            error_code="PERSISTENCE_ERROR",
            message="Database operation failed",
            request_id=request_id,
            cause=str(exception) if expose_details else None
        )

        return JSONResponse(
            status_code=500,
            content=error_response
        )

    @staticmethod
    def handle_http_exception(
        exception: HTTPException,
        request: Optional[Request] = None
    ) -> JSONResponse:
        """
        Handle framework HTTP exceptions (unknown routes, wrong methods).

        Args:
            exception: HTTP exception
            request: Optional FastAPI request object

        Returns:
            JSON response with HTTP error information
        """
        request_id = ErrorHandlerService._get_request_id(request)

        logger.warning(
            f"HTTP Exception [{request_id}]: {exception.status_code} - {exception.detail}",
            extra={
                "status_code": exception.status_code,
                "request_id": request_id,
                "path": request.url.path if request else None
            }
        )

        error_response = ErrorHandlerService.format_error_response(
            error_code=f"HTTP_{exception.status_code}",
            message=str(exception.detail),
            request_id=request_id
        )

        return JSONResponse(
            status_code=exception.status_code,
            content=error_response,
            headers=getattr(exception, "headers", None)
        )

    @staticmethod
    def handle_unexpected_error(
        exception: Exception,
        request: Optional[Request] = None,
        expose_details: bool = False
    ) -> JSONResponse:
        """
        Handle unexpected errors with secure error responses.

        Args:
            exception: Unexpected exception
            request: Optional FastAPI request object
            expose_details: Whether the exception text may be returned

        Returns:
            JSON response with generic error message
        """
        request_id = ErrorHandlerService._get_request_id(request)

        logger.error(
            f"Unexpected Error [{request_id}]: {type(exception).__name__} - {str(exception)}",
            extra={
                "request_id": request_id,
                "path": request.url.path if request else None,
                "exception_type": type(exception).__name__
            },
            exc_info=True
        )

        error_response = ErrorHandlerService.format_error_response(
            error_code="INTERNAL_ERROR",
            message="Internal server error",
            request_id=request_id,
            cause=f"{type(exception).__name__}: {exception}" if expose_details else None
        )

        return JSONResponse(
            status_code=500,
            content=error_response
        )

    @staticmethod
    def _get_request_id(request: Optional[Request]) -> str:
        """Use the id assigned by the request-context middleware, or make one."""
        if request is not None:
            request_id = getattr(request.state, "request_id", None)
            if request_id:
                return request_id
        return ErrorHandlerService._generate_request_id()

    @staticmethod
    def _generate_request_id() -> str:
        """Generate a unique request ID for error tracking."""
        return str(uuid.uuid4())[:8]

    @staticmethod
    def _get_current_timestamp() -> str:
        """Get current timestamp in ISO format."""
        return datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z"


def _error_example(code: str, message: str) -> Dict[str, Any]:
    return {
        "content": {
            "application/json": {
                "example": {
                    "success": False,
                    "message": message,
                    "error": {
                        "code": code,
                        "timestamp": "2024-01-01T00:00:00Z",
                        "request_id": "abc12345"
                    }
                }
            }
        }
    }


# Global error response schemas for documentation
ERROR_RESPONSES = {
    400: {"description": "Bad Request", **_error_example("VALIDATION_ERROR", "All fields are required")},
    401: {"description": "Unauthorized", **_error_example("UNAUTHENTICATED", "Invalid or expired token")},
    403: {"description": "Forbidden", **_error_example("FORBIDDEN", "Admin access required")},
    404: {"description": "Not Found", **_error_example("NOT_FOUND", "Flat not found or you are not owner")},
    409: {"description": "Conflict", **_error_example("CONFLICT", "Flat is already sold")},
    500: {"description": "Internal Server Error", **_error_example("INTERNAL_ERROR", "Internal server error")},
}
