from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cv_screener.routers import analyze

# Import logging and middleware
from cv_screener.utils.logging_config import configure_for_environment, get_logger
from cv_screener.middleware.error_handlers import (
    ExceptionHandlerMiddleware,
    RequestLoggingMiddleware,
    PerformanceMiddleware,
)

__version__ = "1.0.0"

# Configure logging first
configure_for_environment()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager"""
    logger.info("CV Screener API starting up...")

    try:
        from cv_screener.services.graph import get_pipeline
        get_pipeline()
        logger.info("Screening pipeline initialized successfully")
    except Exception as e:
        logger.warning(f"Screening pipeline initialization had issues: {e}")
        logger.info("Application will continue - analysis requests will report the configuration error")

    logger.info("CV Screener API startup completed")

    yield

    logger.info("CV Screener API shutting down...")


app = FastAPI(title="CV Screener API", version=__version__, lifespan=lifespan)

# Middleware added last runs first; the exception handler wraps everything but CORS
app.add_middleware(PerformanceMiddleware, slow_request_threshold=30.0)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(ExceptionHandlerMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
@app.head("/")
async def root():
    """Root endpoint - handles both GET and HEAD requests for health checks"""
    logger.debug("Root endpoint accessed")
    return {"message": "Welcome to the CV Screener API", "version": __version__, "status": "ok"}


@app.get("/health")
@app.head("/health")
async def health_check():
    """Health check endpoint - handles both GET and HEAD requests"""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


app.include_router(analyze.router, prefix="/api")

logger.info("CV Screener API initialized successfully")
