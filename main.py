"""
Catalog Command Service: Main Application

FastAPI application entry point.
"""

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import structlog
from datetime import datetime, timezone

from config import settings
from services.command_pipeline import (
    CommandPipeline,
    close_command_pipeline,
    get_command_pipeline,
)

# Configure structured logging
logging.basicConfig(format="%(message)s", level=settings.log_level)

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer() if settings.is_production
            else structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup: Log configuration
    Shutdown: Close the MCP HTTP client
    """
    # Startup
    logger.info(
        "application_starting",
        environment=settings.environment,
        debug=settings.debug,
        mcp_server_url=settings.mcp_server_url,
        classifier_configured=settings.classifier_configured
    )
    if not settings.classifier_configured:
        logger.warning("classifier_disabled", reason="ANTHROPIC_API_KEY not set")

    yield

    # Shutdown
    logger.info("application_shutting_down")
    await close_command_pipeline()


# Create FastAPI app
app = FastAPI(
    title="Catalog Command Service",
    description="Free-text commands over a product catalog MCP server",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ===================
# ROUTES
# ===================

@app.get("/health")
async def health_check(pipeline: CommandPipeline = Depends(get_command_pipeline)):
    """
    Health check endpoint.

    Returns:
        Service status, cache size and tool catalog age
    """
    fetched_at = pipeline.catalog.fetched_at if pipeline.catalog else None

    return {
        "status": "healthy" if settings.classifier_configured else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
        "cache_entries": len(pipeline.cache),
        "tool_catalog_fetched_at": fetched_at.isoformat() if fetched_at else None,
        "classifier_configured": settings.classifier_configured
    }


@app.get("/")
async def root():
    """
    Root endpoint.

    Returns:
        API information and available endpoints
    """
    return {
        "name": "Catalog Command Service",
        "version": "0.1.0",
        "docs": "/docs" if settings.debug else "Disabled in production",
        "health": "/health",
        "endpoints": {
            "command": "/api/command"
        }
    }


# ===================
# ERROR HANDLERS
# ===================

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler.

    Catches unhandled exceptions and returns standard error format.
    """
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
            "details": str(exc) if settings.debug else None,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
    )


# ===================
# INCLUDE ROUTERS
# ===================
from routes.commands import router as commands_router

app.include_router(commands_router, prefix="/api", tags=["Commands"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
