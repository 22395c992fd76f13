"""
Storyboard AI Gateway Application Entry Point

FastAPI application main entry, including router registration and application configuration.
"""

import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRouter

from storyboard_gateway import __version__
from storyboard_gateway.api import ai_router
from storyboard_gateway.common.errors import GatewayError
from storyboard_gateway.config import get_settings
from storyboard_gateway.db.session import close_db, init_db
from storyboard_gateway.logging_config import setup_logging
from storyboard_gateway.middleware import RateLimitMiddleware
from storyboard_gateway.scheduler import shutdown_scheduler, start_scheduler

logger = logging.getLogger(__name__)

# Initialize logging configuration
setup_logging()


# Application Lifecycle Management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application Lifecycle Management

    Initialize database on startup, stop scheduled jobs and release connections on shutdown.
    """
    await init_db()
    start_scheduler()
    yield
    shutdown_scheduler()
    await close_db()


# Create FastAPI application
settings = get_settings()

app = FastAPI(
    title=settings.APP_NAME,
    description="AI generation gateway for storyboard text, image and video generation",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS
allowed_origins_str = settings.ALLOWED_ORIGINS.strip()
if allowed_origins_str:
    allowed_origins = [origin.strip() for origin in allowed_origins_str.split(",") if origin.strip()]
elif settings.DEBUG:
    allowed_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
else:
    allowed_origins = []

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["x-request-id", "retry-after"],
)

# Added after CORS so rejected requests still carry CORS headers
app.add_middleware(RateLimitMiddleware)
logger.info("AI rate limiting enabled: %s", settings.AI_RATE_LIMIT_ENABLED)


# Global Exception Handler
@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    """
    Handle gateway errors raised outside the AI routes' own handling

    Details are only returned in debug mode.
    """
    settings = get_settings()
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(include_details=settings.DEBUG),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Handle uncaught exceptions

    In production mode, stack traces are logged but not returned to clients.
    """
    settings = get_settings()
    logger.error(
        "Uncaught exception: %s\nPath: %s\nTraceback:\n%s",
        str(exc),
        request.url.path,
        traceback.format_exc(),
    )

    content = {
        "error": "Internal server error",
        "retryable": True,
        "errorCode": "INTERNAL_ERROR",
    }
    if settings.DEBUG:
        content["error"] = str(exc)
        content["details"] = {
            "type": type(exc).__name__,
            "traceback": traceback.format_exc().split("\n"),
        }
    return JSONResponse(status_code=500, content=content)


# Health Check Endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health Check

    Used for service liveness probe.
    """
    return {"status": "healthy"}


@app.get("/", tags=["Health"])
async def root():
    """Basic service information"""
    return {
        "name": settings.APP_NAME,
        "version": __version__,
        "description": "Storyboard AI Gateway - Gemini, Imagen and Veo generation",
    }


api_router = APIRouter(prefix="/api")
api_router.include_router(ai_router)
app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "storyboard_gateway.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
