"""
Request context middleware for request ids and access logging.
Tags every request with a short id, logs its outcome and timing, and turns
errors that escaped the exception handlers into the standard error body.
"""

from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
import logging
import time
import uuid

from flatmarket.services.error_handler import ErrorHandlerService

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware assigning a request id and logging each request.
    The id is returned in the X-Request-ID header and reused in error bodies.
    """

    def __init__(
        self,
        app: ASGIApp,
        expose_error_details: bool = False,
        slow_request_threshold: float = 1.0  # seconds
    ):
        super().__init__(app)
        self.expose_error_details = expose_error_details
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Process request through the middleware.

        Args:
            request: FastAPI request object
            call_next: Next middleware/handler in chain

        Returns:
            Response object with the X-Request-ID header
        """
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id

        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            response = ErrorHandlerService.handle_unexpected_error(
                exc,
                request,
                expose_details=self.expose_error_details
            )

        processing_time = time.perf_counter() - start_time
        self._log_response(request, response, request_id, processing_time)

        response.headers["X-Request-ID"] = request_id
        return response

    def _log_response(
        self,
        request: Request,
        response: Response,
        request_id: str,
        processing_time: float
    ) -> None:
        """Log method, path, status, duration and the authenticated user if any."""
        message = (
            f"[{request_id}] {request.method} {request.url.path} "
            f"-> {response.status_code} in {processing_time:.3f}s"
        )
        extra = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "processing_time": processing_time
        }

        # Set by the auth dependency on authenticated routes
        session_user = getattr(request.state, "user", None)
        if session_user:
            extra["user_id"] = session_user["id"]

        if processing_time > self.slow_request_threshold:
            logger.warning(f"Slow request {message}", extra=extra)
        else:
            logger.info(message, extra=extra)
