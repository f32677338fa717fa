"""Listing API main application module.

This module initializes the FastAPI application and configures
core middleware, routers, and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from listing.api.health import router as health_router
from listing.api.home import router as home_router
from listing.api.middleware import setup_middleware
from listing.api.products import router as products_router
from listing.catalog.taxonomy import get_taxonomy
from listing.infrastructure.config import settings
from listing.infrastructure.database import engine
from listing.infrastructure.logging_config import configure_logging
from listing.infrastructure.object_store import get_object_store

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    # Startup
    configure_logging(settings.log_level)
    logger.info(
        "Starting Listing API",
        version=settings.api_version,
        debug=settings.debug,
    )

    taxonomy = get_taxonomy()
    logger.info(
        "Taxonomy loaded",
        main_categories=len(taxonomy.main_categories),
        sub_categories=len(taxonomy.all_sub_categories()),
        sizes=len(taxonomy.sizes),
    )

    yield

    # Shutdown
    logger.info("Shutting down Listing API")
    await get_object_store().close()
    await engine.dispose()


app = FastAPI(
    title="Listing API",
    description="Product catalog listings with object-store backed images",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (must be added before custom middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup custom middleware (request ID, error handling, domain errors)
setup_middleware(app)

# Include routers
app.include_router(health_router, tags=["Health"])
app.include_router(products_router)
app.include_router(home_router)


# ============================================================================
# Custom Exception Handlers
# ============================================================================


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    request_id = getattr(request.state, "request_id", None)

    detail = exc.detail
    if isinstance(detail, dict):
        error_code = detail.get("error_code", "ERROR")
        message = detail.get("message", str(detail))
        details = detail.get("details", {})
    else:
        error_code = "ERROR"
        message = str(detail)
        details = {}

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": details,
            "request_id": request_id,
        },
        headers=getattr(exc, "headers", None),
    )
