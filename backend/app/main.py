"""
Uxio Upload API

Main FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.middleware import ErrorHandlerMiddleware, uxio_exception_handler
from app.routes import upload
from app.services.cleanup_scheduler import start_cleanup_scheduler, stop_cleanup_scheduler
from uxio import UxioError, UxioMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    start_cleanup_scheduler()
    yield
    # Shutdown
    stop_cleanup_scheduler()

app = FastAPI(
    title="Uxio Upload API",
    description="Multipart upload pipeline with transactional save and send",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Multipart ingestion into a per-request cache
app.add_middleware(
    UxioMiddleware,
    cache_root=settings.UXIO_CACHE_ROOT,
    prefix=settings.UXIO_CACHE_PREFIX,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Error handling middleware (outermost, so ingestion errors are caught too)
app.add_middleware(ErrorHandlerMiddleware)

app.add_exception_handler(UxioError, uxio_exception_handler)

# Register routers
app.include_router(upload.router, prefix="/api", tags=["Upload"])


@app.get("/")
async def root():
    """Health check endpoint"""
    return {
        "status": "ok",
        "service": "Uxio Upload API",
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check():
    """
    Detailed health check endpoint.

    Returns service health status for monitoring and deployment health checks.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": "1.0.0",
    }
