"""
FastAPI application entry point.
Main application setup and configuration.
"""

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
import logging

from flatmarket.config import get_settings
from flatmarket.database import test_database_connection, create_tables, close_db_connection
from flatmarket.routers import auth_router, flats_router, admin_router
from flatmarket.utils.exceptions import APIException
from flatmarket.services.error_handler import ErrorHandlerService
from flatmarket.middleware import RequestContextMiddleware

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    if not settings.admin_bypass_enabled:
        logger.info("Break-glass admin login is disabled")

    db_connected = await test_database_connection()
    if not db_connected:
        logger.error("Failed to connect to database on startup")
    elif settings.is_development or settings.is_testing:
        await create_tables()
    else:
        logger.info("Schema is managed with 'python -m flatmarket.migrate create'")

    yield

    # Shutdown
    logger.info("Shutting down application")
    await close_db_connection()


# Create FastAPI application instance
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Backend for a flat listing marketplace.

    ## Features

    * **Accounts**: Registration with optional profile photo, login and profile updates
    * **Listings**: Create flats with up to five photos, uploaded concurrently
    * **Moderation**: New flats start pending and are approved by an admin before they go public
    * **Sales**: Owners mark their flats as sold, exactly once

    ## Authentication

    Log in at `/api/auth/login` and send the returned token in the `auth-token` header,
    either as the raw token or as `Bearer <token>`. Tokens are valid for 24 hours.
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {
            "name": "Authentication",
            "description": "Registration, login and the current user's profile"
        },
        {
            "name": "Flats",
            "description": "Flat listings and the sale lifecycle"
        },
        {
            "name": "Admin",
            "description": "Listing moderation"
        },
        {
            "name": "Health",
            "description": "System health endpoints"
        }
    ],
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["*", settings.auth_header_name],
    expose_headers=["X-Request-ID"],
)

# Add request id and access logging middleware
app.add_middleware(
    RequestContextMiddleware,
    expose_error_details=settings.expose_error_details,
    slow_request_threshold=2.0  # Log requests slower than 2 seconds
)

# Include API routers
app.include_router(auth_router, prefix=settings.api_prefix)
app.include_router(flats_router, prefix=settings.api_prefix)
app.include_router(admin_router, prefix=settings.api_prefix)


# Global exception handlers using ErrorHandlerService
@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    """Handle custom API exceptions with structured error responses."""
    return ErrorHandlerService.handle_api_exception(
        exc,
        request,
        expose_details=settings.expose_error_details
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle FastAPI request validation errors with detailed field information."""
    return ErrorHandlerService.handle_validation_error(exc, request)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handle database errors with appropriate error responses."""
    return ErrorHandlerService.handle_database_error(
        exc,
        request,
        expose_details=settings.expose_error_details
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions (unknown routes, wrong methods) with structured error responses."""
    return ErrorHandlerService.handle_http_exception(exc, request)


@app.get("/", tags=["Health"])
async def root():
    """
    Root endpoint providing basic API information.
    """
    return {
        "success": True,
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.environment,
        "documentation": {
            "swagger_ui": "/docs",
            "redoc": "/redoc",
            "openapi_json": "/openapi.json"
        },
        "api_prefix": settings.api_prefix
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint with database connectivity test.
    Used by Docker health checks and load balancers.
    """
    db_healthy = await test_database_connection()

    if not db_healthy:
        raise HTTPException(
            status_code=503,
            detail="Database connection failed"
        )

    return {
        "success": True,
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "database": "connected"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "flatmarket.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
