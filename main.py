"""
MentorBook Backend API Server

FastAPI application for booking mock interviews and mentor guidance sessions.
Serves the allocation engine, provider availability and quota endpoints.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
import time

from app.api.errors import MSG_BOOKING_UNAVAILABLE, STATUS_SERVICE_UNAVAILABLE, error_body
from app.api.routes import admin, availability, bookings, providers, quota
from app.database import init_redis, close_redis
from app.services.allocator import get_allocator
from app.services.scheduler import start_scheduler, stop_scheduler
from app.utils.timeutils import utcnow

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    logger.info("Starting MentorBook API server...")

    await init_redis()
    logger.info("Redis client initialised")

    start_scheduler()
    logger.info("Background scheduler started")

    yield

    # Shutdown
    logger.info("Shutting down MentorBook API server...")
    stop_scheduler()
    await get_allocator().notifier.drain()
    await close_redis()
    logger.info("Background scheduler and Redis client stopped")


# Create FastAPI application
app = FastAPI(
    title="MentorBook API",
    description="Session booking and allocation engine",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)


# CORS middleware for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify exact origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing"""
    start_time = time.time()

    response = await call_next(request)

    duration_ms = (time.time() - start_time) * 1000

    logger.info(
        f"{request.method} {request.url.path} - "
        f"Status: {response.status_code} - "
        f"Duration: {duration_ms:.2f}ms"
    )

    return response


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all uncaught exceptions"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(
            "INTERNAL_ERROR",
            "An internal server error occurred",
            str(exc) if app.debug else None,
        )
    )


# Datastore failures: nothing was committed, the caller may retry
@app.exception_handler(SQLAlchemyError)
async def datastore_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Datastore error on {request.method} {request.url.path}: {exc}", exc_info=True)

    return JSONResponse(
        status_code=STATUS_SERVICE_UNAVAILABLE,
        content=error_body("BOOKING_UNAVAILABLE", MSG_BOOKING_UNAVAILABLE, retryable=True)
    )


# Route errors already shaped as {"error": {...}} are returned unwrapped
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = exc.detail
    else:
        content = error_body("HTTP_ERROR", str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


# Validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors"""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body(
            "VALIDATION_ERROR",
            "Request validation failed",
            jsonable_encoder(exc.errors()),
        )
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns server status and version information.
    """
    return {
        "status": "ok",
        "timestamp": utcnow().isoformat(),
        "version": "1.0.0",
        "service": "mentorbook-api"
    }


# Include routers
app.include_router(bookings.router)
app.include_router(availability.router)
app.include_router(providers.router)
app.include_router(quota.router)
app.include_router(admin.router)


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """API root endpoint"""
    return {
        "name": "MentorBook API",
        "version": "1.0.0",
        "description": "Session booking and allocation engine",
        "docs": "/api/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
