"""
Health check and status endpoints
"""

from datetime import datetime
from fastapi import APIRouter

from voice_receptionist import __version__
from voice_receptionist.core.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint
    """
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.environment
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness check - reports which collaborators are configured
    """
    checks = {
        "twilio": bool(settings.twilio_account_sid and settings.twilio_auth_token),
        "transcription": bool(settings.openai_api_key),
        "synthesis": bool(settings.azure_speech_key),
        "conversation": bool(
            settings.openai_api_key if settings.conversation_provider == "openai"
            else settings.conversation_webhook_url
        )
    }

    return {
        "status": "ready" if all(checks.values()) else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__,
        "checks": checks
    }
