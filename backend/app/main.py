"""
FastAPI application entry point.
"""
import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from app.api import health, quota, bundle_tiers, subscriptions, chat
from app.api.admin import free_tier_router
from app.core.config import get_settings
from app.core.errors import AppException, ValidationError
from app.services.scheduler import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)

app_settings = get_settings()

app = FastAPI(
    title="Bundle Quota API",
    description="Message bundles, subscriptions and metered chat",
    version="0.1.0",
)

# CORS middleware (adjust origins for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",      # Frontend dev server (localhost)
        "http://127.0.0.1:3000",      # Frontend dev server (127.0.0.1)
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_envelope(error: dict) -> dict:
    return {"success": False, "data": None, "error": error}


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(jsonable_encoder(exc.to_dict())),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    error = ValidationError("Invalid request", details=jsonable_encoder(exc.errors()))
    return JSONResponse(status_code=error.status_code, content=error_envelope(error.to_dict()))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=exc)
    error = AppException("INTERNAL_SERVER_ERROR", "An unexpected error occurred", status_code=500)
    return JSONResponse(status_code=error.status_code, content=error_envelope(error.to_dict()))


# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(quota.router, prefix="/api/quota", tags=["quota"])
app.include_router(bundle_tiers.router, prefix="/api/bundle-tiers", tags=["bundle-tiers"])
app.include_router(subscriptions.router, prefix="/api/subscriptions", tags=["subscriptions"])
app.include_router(chat.router, prefix="/api/chat", tags=["chat"])
app.include_router(free_tier_router, prefix="/api/admin/free-tier", tags=["admin"])


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    # The API only enqueues expiry jobs; app/worker.py executes them
    start_scheduler(paused=True)


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    stop_scheduler()
