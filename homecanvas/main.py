"""
FastAPI main application for Home Canvas
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from homecanvas.core.config import settings
from homecanvas.core.logging import setup_logging
from homecanvas.middleware.logging_middleware import RequestLoggingMiddleware
from homecanvas.routers import composite, history
from homecanvas.services.google_ai_service import google_ai_service

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info(f"Starting {settings.app_name}...")

    if settings.google_ai_api_key:
        key = settings.google_ai_api_key
        key_preview = f"{key[:7]}...{key[-4:]}" if len(key) > 11 else "***"
        logger.info(f"GOOGLE_AI_API_KEY is set: {key_preview}")
    else:
        logger.error("GOOGLE_AI_API_KEY is NOT set - composite generation will not work!")

    logger.info(f"Image model: {settings.google_ai_image_model}, square side: {settings.composite_side}px")

    yield

    logger.info(f"Shutting down {settings.app_name}...")


app = FastAPI(
    title=settings.app_name,
    description="Place a product into a scene photo with a generative image model",
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url="/redoc" if settings.environment == "development" else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(RequestLoggingMiddleware)


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers"""
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": settings.version,
        "image_generation": "configured" if google_ai_service.genai_configured else "not_configured",
        "usage_stats": await google_ai_service.get_usage_statistics(),
    }


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "name": settings.app_name,
        "version": settings.version,
        "docs": "/docs" if settings.environment == "development" else None,
        "endpoints": {
            "composite": "/api/composite",
            "history": "/api/history",
        },
    }


app.include_router(composite.router, prefix="/api")
app.include_router(history.router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "homecanvas.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_config=None,  # Use our custom logging
        access_log=False,  # Request logging middleware handles this
    )
