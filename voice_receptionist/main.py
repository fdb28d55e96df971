"""
Voice Receptionist - Main Application Entry Point

Answers inbound phone calls for each tenant over Twilio webhooks:
greets, records, transcribes, replies with synthesized speech and hangs up
when the conversation is over.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from voice_receptionist import __version__
from voice_receptionist.core.config import settings
from voice_receptionist.core.logging import setup_logging, get_logger
from voice_receptionist.core.exceptions import ReceptionistException, WebhookValidationError
from voice_receptionist.api.routes import webhooks, health, tenants

AUDIO_DIR = Path(settings.audio_output_dir)
AUDIO_DIR.mkdir(parents=True, exist_ok=True)

# Setup logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler for startup and shutdown events
    """
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name} v{__version__}")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"API Base URL: {settings.api_base_url}")
    logger.info(f"Tenant cache: {settings.tenant_cache_backend} (ttl={settings.tenant_cache_ttl_seconds}s)")
    logger.info(f"Conversation provider: {settings.conversation_provider}")
    logger.info("=" * 60)

    from voice_receptionist.services.speech.synthesis import get_synthesis_adapter
    get_synthesis_adapter().purge_expired_audio()

    yield

    logger.info(f"Shutting down {settings.app_name}")
    if settings.tenant_cache_backend == "redis":
        from voice_receptionist.services.redis_service import close_redis
        await close_redis()
        logger.info("Redis connection closed")

    logger.info("Shutdown complete")


app = FastAPI(
    title="Voice Receptionist API",
    description="Turn-by-turn telephone assistant driven by Twilio webhooks.",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)


@app.exception_handler(WebhookValidationError)
async def webhook_validation_exception_handler(request: Request, exc: WebhookValidationError):
    """Reject callbacks that fail signature validation"""
    logger.warning(f"WebhookValidationError on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(ReceptionistException)
async def receptionist_exception_handler(request: Request, exc: ReceptionistException):
    """Handle custom receptionist exceptions"""
    logger.warning(f"ReceptionistException: {exc.error_code} - {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
            "details": {"exception": str(exc)} if settings.debug else {}
        }
    )


# Include routers
app.include_router(health.router)
app.include_router(webhooks.router, prefix="/api/v1")
app.include_router(tenants.router, prefix="/api/v1")

# Synthesized speech served to the gateway
app.mount(settings.audio_mount_path, StaticFiles(directory=AUDIO_DIR), name="audio")


@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": settings.app_name,
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "voice_receptionist.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.debug
    )
