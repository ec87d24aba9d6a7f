"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import (
    Conflict,
    InvalidArgument,
    NotFound,
    OrderConflict,
    SessionClosed,
    Unauthorized,
    WritingPracticeError,
)
from app.database import init_db
from app.api.auth import router as auth_router
from app.api.practice import router as practice_router
from app.api.tts import router as tts_router
from app.api.writing import router as writing_router

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    logger.info("Starting up Writing Practice Backend...")
    logger.info(f"APP_ENV={settings.app_env} (is_prod={settings.is_prod})")

    # Prod: require Gemini API key (fail fast)
    if settings.is_prod and not settings.gemini_api_key:
        raise RuntimeError("GEMINI_API_KEY is required when APP_ENV=prod. Set it in .env or environment.")
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY not set. The oracle will fail open: every sentence is accepted.")
    else:
        logger.info(f"Oracle: Gemini (model: {settings.llm_model}, timeout: {settings.oracle_timeout_seconds}s)")

    logger.info(
        f"Writing sessions: complete at {settings.writing_max_messages} messages, "
        f"improvements {'on' if settings.improvement_enabled else 'off'}"
    )
    if settings.debug_errors:
        logger.warning("DEBUG_ERRORS is on: internal error details are returned to clients")

    # Initialize database
    try:
        init_db()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")

    if settings.cache_enabled:
        from app.services.cache import is_available
        if is_available():
            logger.info("Cache enabled (Redis available)")
        else:
            logger.warning("Cache enabled but Redis not available, continuing without cache")
    else:
        logger.info("Cache disabled (CACHE_ENABLED=false)")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("Shutting down...")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "service": settings.app_name
    }


# Include API routers
app.include_router(auth_router, prefix="/api/v1/auth", tags=["Auth"])
app.include_router(writing_router, prefix="/api/v1", tags=["Writing"])
app.include_router(practice_router, prefix="/api/v1", tags=["Practice"])
app.include_router(tts_router, prefix="/api/v1", tags=["TTS"])


ERROR_STATUS = {
    InvalidArgument: 400,
    Unauthorized: 401,
    NotFound: 404,
    Conflict: 409,
    SessionClosed: 409,
    OrderConflict: 409,
}


@app.exception_handler(WritingPracticeError)
async def domain_exception_handler(request: Request, exc: WritingPracticeError):
    """Expected failures: map the domain error to its status code."""
    status_code = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 400)
    content = {"detail": exc.message}
    if isinstance(exc, (SessionClosed, OrderConflict)):
        content["retryable"] = isinstance(exc, OrderConflict)
    if status_code >= 409:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Missing or malformed fields are a 400, with the offending field names."""
    fields = [".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in exc.errors()]
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", "fields": [f for f in fields if f]},
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler - never expose stack traces."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    content = {"detail": "An internal error occurred. Please try again later."}
    if settings.debug_errors:
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)
