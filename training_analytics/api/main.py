"""
FastAPI Application

Main entry point for the training analytics web API.

Environment:
- TRAINING_ANALYTICS_DATABASE_URL: persist fitted hierarchical models in this
  database; unset keeps them in process memory
- TRAINING_ANALYTICS_CORS_ORIGINS: comma-separated origins allowed to call
  the API (defaults to local frontend dev servers)
- TRAINING_ANALYTICS_LOG_LEVEL: stdlib logging level
- TRAINING_ANALYTICS_HOST / TRAINING_ANALYTICS_PORT: bind address when run directly
"""

import logging
import os
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from training_analytics.api.routes import analytics
from training_analytics.config import CORS_ORIGINS_ENV_VAR, DATABASE_URL_ENV_VAR, configure_logging
from training_analytics.database import SQLModelCache, init_database
from training_analytics.model_cache import InMemoryModelCache, ModelCache

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]


def create_model_cache(database_url: Optional[str] = None) -> ModelCache:
    """
    Choose the hierarchical model cache backend.

    Args:
        database_url: Database URL; falls back to TRAINING_ANALYTICS_DATABASE_URL

    Returns:
        SQLModelCache when a database is configured and reachable,
        otherwise an in-process InMemoryModelCache
    """
    url = database_url or os.environ.get(DATABASE_URL_ENV_VAR)
    if not url:
        return InMemoryModelCache()
    try:
        cache = init_database(url)
    except SQLAlchemyError as e:
        logger.warning("Model cache database unavailable, caching in memory: %s", e)
        return InMemoryModelCache()
    logger.info("Caching hierarchical models in %s database", url.split(":", 1)[0])
    return cache


def cors_origins() -> List[str]:
    """Allowed CORS origins from the environment, else the local dev servers."""
    raw = os.environ.get(CORS_ORIGINS_ENV_VAR, "")
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    return origins or list(DEFAULT_CORS_ORIGINS)


def cache_backend(cache: Optional[ModelCache]) -> str:
    if isinstance(cache, SQLModelCache):
        return "database"
    if isinstance(cache, InMemoryModelCache):
        return "memory"
    return "none"


configure_logging()

# Initialize FastAPI app
app = FastAPI(
    title="Training Analytics API",
    description="Training load, fitness-fatigue, recovery and exercise efficiency analytics",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.state.model_cache = create_model_cache()

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(analytics.router, prefix="/api", tags=["Analytics"])


@app.get("/")
async def root() -> Dict[str, str]:
    """Root endpoint - API information."""
    return {
        "name": "Training Analytics API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "analytics": "/api/analytics",
    }


@app.get("/health")
async def health_check() -> Dict[str, str]:
    """Health check endpoint, including which model cache backend is active."""
    return {
        "status": "healthy",
        "service": "training-analytics-api",
        "model_cache": cache_backend(getattr(app.state, "model_cache", None)),
    }


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions with consistent error format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "message": str(exc.detail)},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Log and report unexpected exceptions."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal Server Error",
            "message": str(exc),
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "training_analytics.api.main:app",
        host=os.environ.get("TRAINING_ANALYTICS_HOST", "127.0.0.1"),
        port=int(os.environ.get("TRAINING_ANALYTICS_PORT", "8000")),
        log_level="info",
    )
