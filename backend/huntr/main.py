"""
Huntr Backend - FastAPI Application

Main entry point for the chart analysis API.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from huntr.core.config import settings
from huntr.api.v1 import router as api_v1_router

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    # Initialize SQLite database
    from huntr.db.database import init_db, close_db
    await init_db()

    # Initialize Redis cache
    from huntr.services.cache.redis_client import init_redis, close_redis
    redis_client = await init_redis()
    if not redis_client:
        logger.info("Redis unavailable - using in-memory search cache")

    yield

    # Shutdown
    logger.info("Shutting down...")
    from huntr.services.search.service import get_search_service
    await get_search_service().close()
    await close_redis()
    await close_db()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Huntr AI Chart Analysis API

    ## Pipeline
    - **Prompt Assembly**: Smart Money Concepts rules plus learned patterns
    - **Model Invocation**: Gemini vision models with overload fallback
    - **Normalization**: Untrusted model output to a complete analysis
    - **Web Search Enrichment**: Current market context refines the signal
    - **Training Corpus**: Every analysis stored once per image for learning

    ## Core Principles
    - AI suggests, human executes
    - A response is always complete, never partial
    - Storage and search failures never fail an analysis
    """,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Retry-After"],
)

# Include API routes
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Huntr Backend API",
        "docs": "/docs",
        "health": "/health",
    }
