"""
Middleware package for request tracking and logging.
"""

from .request_context import RequestContextMiddleware

__all__ = ["RequestContextMiddleware"]
