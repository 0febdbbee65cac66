"""
PodOps - Main FastAPI Application
"""
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime

from app.api.v1 import router as api_v1_router
from app.core.config import settings
from app.exceptions import PodOpsException
from app.logging_config import setup_logging, get_logger

# Setup structured logging
setup_logging()
logger = get_logger(__name__)


# Error tracking is enabled only when a DSN is configured
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        environment=settings.ENVIRONMENT,
        release=f"podops@{settings.VERSION}",
    )
else:
    logger.info("SENTRY_DSN not set - error tracking disabled")


def init_database():
    """Initialize database tables on startup (idempotent)."""
    try:
        from app.db.session import engine
        from app.db.base import Base
        import app.models  # noqa: F401
        logger.info("Checking database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ready")
    except SQLAlchemyError as e:
        logger.error(f"Database initialization failed: {e}")


def check_stores():
    """Warn when no store is configured (webhooks would all be rejected)."""
    try:
        from app.db.session import SessionLocal
        from app.models.store import Store
        db = SessionLocal()
        try:
            store_count = db.query(Store).count()
            if store_count == 0:
                logger.warning("No stores configured - incoming webhooks will be rejected")
            else:
                logger.info(f"Found {store_count} configured store(s)")
        finally:
            db.close()
    except SQLAlchemyError as e:
        logger.warning(f"Could not check store data: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(
        "Starting PodOps API",
        extra={
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
            "debug": settings.DEBUG,
        }
    )
    init_database()
    check_stores()
    yield
    logger.info("Shutting down PodOps API")


# Create FastAPI app
app = FastAPI(
    title="PodOps API",
    description="Batch allocation and status tracking for print-on-demand production",
    version=settings.VERSION,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "Origin"],
)


# ===================
# Exception Handlers
# ===================

def error_response(status_code: int, error: str, message: str, details: dict = None) -> JSONResponse:
    content = {"error": error, "message": message}
    if details:
        content["details"] = details
    content["timestamp"] = datetime.utcnow().isoformat() + "Z"
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(PodOpsException)
async def podops_exception_handler(request: Request, exc: PodOpsException):
    logger.warning(
        f"{exc.error_code} on {request.url.path}: {exc.message}",
        extra={"error_code": exc.error_code, "details": exc.details, "path": request.url.path},
    )
    return error_response(exc.status_code, exc.error_code, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    logger.warning(f"Invalid request on {request.url.path}", extra={"errors": errors})
    return error_response(422, "VALIDATION_ERROR", "Request validation failed", {"errors": errors})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error on {request.url.path}: {exc}", exc_info=True)
    return error_response(500, "INTERNAL_ERROR", "An unexpected error occurred")


app.include_router(api_v1_router, prefix=settings.API_V1_STR)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": settings.VERSION}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
