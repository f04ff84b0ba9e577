from pathlib import Path
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from cyclebees.core.config import settings
from cyclebees.core.database import init_models
from cyclebees.core.exceptions import AppError
from cyclebees.core.logging_config import get_logger  # ensure file logging is registered at startup
from cyclebees.schemas.common import envelope, field_errors
from cyclebees.services.upload_service import ensure_upload_dirs

logger = get_logger("main")

app = FastAPI(
    title="Cycle-Bees API",
    description="Bicycle repair and rental bookings",
    version="1.0.0",
    redirect_slashes=False,
)

# Import router after app creation to catch import errors
try:
    from cyclebees.api.api import api_router
    logger.info("Successfully imported api_router")
except Exception as e:
    logger.error(f"Failed to import api_router: {e}", exc_info=True)
    raise


@app.on_event("startup")
async def startup_event():
    """Tables are created from the ORM metadata; there is no migration step."""
    init_models()
    logger.info("=== Application startup complete ===")


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


def get_cors_headers(request: Request) -> dict:
    """Get CORS headers based on request origin"""
    origin = request.headers.get("origin")
    if origin and origin in settings.CORS_ORIGINS:
        return {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Credentials": "true",
            "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type, Authorization",
        }
    return {}


def _error_response(request: Request, status_code: int, message: str, errors=None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=envelope(success=False, message=message, errors=errors),
        headers={**get_cors_headers(request), **(headers or {})},
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Domain and validation errors raised by services and endpoints"""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return _error_response(request, exc.status_code, exc.message, exc.errors, headers)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=True)
    message = f"Database error: {exc}" if settings.DEBUG else "Internal server error"
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, message)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler to ensure CORS headers are always sent"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    message = str(exc) if settings.DEBUG else "Internal server error"
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """HTTP exception handler with CORS headers"""
    return _error_response(request, exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Body, query and path validation failures render as 400 with one entry per field."""
    return _error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "Validation error",
        errors=field_errors(exc.errors()),
    )


try:
    app.include_router(api_router, prefix="/api")
    logger.info("Successfully included api_router")
except Exception as e:
    logger.error(f"Failed to include api_router: {e}", exc_info=True)
    raise

# Serve uploaded media (repair photos/videos, bicycle photos, promo images, profile photos)
# API routes are under /api/*, static files are at /uploads/*
ensure_upload_dirs()
upload_dir_abs = settings.UPLOAD_DIR_ABS
if Path(upload_dir_abs).exists():
    app.mount("/uploads", StaticFiles(directory=upload_dir_abs), name="uploads")


@app.get("/health")
async def health_check():
    return envelope(data={"status": "healthy"}, message="Cycle-Bees API is running")
