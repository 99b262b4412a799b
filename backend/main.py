"""
Predictive model service - application entry point
"""
import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from predictive_api import __version__
from predictive_api.core.config import settings
from predictive_api.api.routes import api_router
from predictive_api.api.dependencies import set_training_service
from predictive_api.api.middleware import (
    LoggingMiddleware,
    ErrorHandlingMiddleware,
    RequestSizeLimitMiddleware,
    validation_exception_handler,
    http_exception_handler,
)
from predictive_api.api.models import HealthResponse
from predictive_api.services.training_service import training_service

# Logging setup

os.makedirs(settings.LOG_DIR, exist_ok=True)

log_file = os.path.join(settings.LOG_DIR, settings.LOG_FILE)

log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Rotating file handler
file_handler = RotatingFileHandler(
    log_file,
    maxBytes=settings.LOG_MAX_BYTES,
    backupCount=settings.LOG_BACKUP_COUNT,
    encoding='utf-8'
)
file_handler.setLevel(logging.INFO)
file_handler.setFormatter(logging.Formatter(log_format))

# Console handler
console_handler = logging.StreamHandler()
console_handler.setLevel(logging.INFO)
console_handler.setFormatter(logging.Formatter(log_format))

# Root logger
root_logger = logging.getLogger()
root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))

# Drop existing handlers so reloads don't duplicate output
if root_logger.hasHandlers():
    root_logger.handlers.clear()

root_logger.addHandler(file_handler)
root_logger.addHandler(console_handler)

logger = logging.getLogger(__name__)
logger.info(f"Log file: {log_file}")

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle"""
    logger.info("Starting predictive model service...")

    try:
        await training_service.start()
        set_training_service(training_service)

        logger.info("Service startup complete")

        yield

    except Exception as e:
        logger.error(f"Service startup failed: {e}")
        raise
    finally:
        logger.info("Shutting down...")

        set_training_service(None)
        await training_service.stop()

        logger.info("Shutdown complete")

# FastAPI application
app = FastAPI(
    title="Predictive Model Service",
    description="Trains a small feed-forward regressor on tabular data and returns predictions",
    version=__version__,
    lifespan=lifespan
)

# Middleware (last added runs first)
app.add_middleware(LoggingMiddleware)
app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(RequestSizeLimitMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Exception handlers
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)

# API routes
app.include_router(api_router, prefix="/api")

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check"""
    return {
        "status": "healthy" if training_service.is_running else "starting",
        "services": {
            "training_service": training_service.is_running,
        }
    }

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=False,
        log_level="info"
    )
