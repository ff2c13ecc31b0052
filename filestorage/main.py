"""
File Storage API - Main Application Entry Point.

FastAPI application exposing the storage facade over HTTP, including the
endpoints that local-storage public and temporary URLs resolve to.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from filestorage import __version__
from filestorage.api.v1.router import api_router
from filestorage.config import get_settings
from filestorage.core.exceptions import FileStorageException

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info(f"Starting {settings.PROJECT_NAME}")
    logger.info(f"Storage backend: {settings.STORAGE_BACKEND}")
    logger.info(f"Debug mode: {settings.DEBUG}")
    if settings.STORAGE_BACKEND == "local" and not settings.LOCAL_URL_SIGNING_KEY:
        logger.warning("LOCAL_URL_SIGNING_KEY not set - temporary URLs are disabled")

    yield

    logger.info(f"Shutting down {settings.PROJECT_NAME}")


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="""
## File Storage API

Backend-agnostic file operations over a local filesystem or S3-compatible
object storage.

### Features
- **Files**: upload, download, stat, checksum, visibility
- **Directories**: list (shallow or deep), create, recursive delete
- **URLs**: public URLs and expiring signed URLs
    """,
    version=__version__,
    openapi_tags=[
        {"name": "files", "description": "File and directory operations"},
        {"name": "health", "description": "Service health checks"},
    ],
    lifespan=lifespan,
)

# CORS middleware for cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FileStorageException)
async def file_storage_exception_handler(request: Request, exc: FileStorageException) -> JSONResponse:
    """Render storage exceptions as standardized error responses."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all exception handler for unexpected errors.
    Logs the full error but returns a sanitized response.
    """
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred",
        },
    )


# Include API routers
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/", include_in_schema=False)
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.PROJECT_NAME,
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
        "api": settings.API_V1_PREFIX,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "filestorage.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
