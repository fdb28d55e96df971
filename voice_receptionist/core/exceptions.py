"""
Custom Exceptions for the Voice Receptionist
Provides structured error handling across the application
"""

from typing import Optional, Dict, Any


class ReceptionistException(Exception):
    """Base exception for all receptionist errors"""

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API response"""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details
        }


# Tenant configuration
class ConfigNotFoundError(ReceptionistException):
    """Raised when a callee number or tenant id has no configuration"""

    def __init__(self, lookup: str, details: Optional[Dict] = None):
        super().__init__(
            message=f"No tenant configuration for '{lookup}'",
            error_code="CONFIG_NOT_FOUND",
            details={"lookup": lookup, **(details or {})},
            status_code=404
        )


# Speech services
class SpeechServiceError(ReceptionistException):
    """Base exception for speech provider errors"""

    def __init__(
        self,
        provider: str,
        message: str,
        error_code: str = "SPEECH_SERVICE_ERROR",
        details: Optional[Dict] = None
    ):
        super().__init__(
            message=f"{provider}: {message}",
            error_code=error_code,
            details={"provider": provider, **(details or {})},
            status_code=502
        )


class TranscriptionUnavailableError(SpeechServiceError):
    """Raised when no transcript could be produced for a recording"""

    def __init__(self, message: str = "Transcription unavailable", details: Optional[Dict] = None):
        super().__init__(
            provider="transcription",
            message=message,
            error_code="TRANSCRIPTION_UNAVAILABLE",
            details=details
        )


class SynthesisUnavailableError(SpeechServiceError):
    """Raised when the synthesis provider fails or times out"""

    def __init__(self, message: str = "Synthesis unavailable", details: Optional[Dict] = None):
        super().__init__(
            provider="synthesis",
            message=message,
            error_code="SYNTHESIS_UNAVAILABLE",
            details=details
        )


# Conversation collaborator
class ConversationServiceError(ReceptionistException):
    """Raised when the conversational AI collaborator cannot be reached"""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(
            message=message,
            error_code="CONVERSATION_SERVICE_ERROR",
            details=details,
            status_code=502
        )


class UnrecognizedReplyShapeError(ReceptionistException):
    """Raised when a conversation reply has none of the accepted shapes"""

    def __init__(self, shape: str):
        super().__init__(
            message=f"Unrecognized reply shape: {shape}",
            error_code="UNRECOGNIZED_REPLY_SHAPE",
            details={"shape": shape},
            status_code=502
        )


# Webhook Exceptions
class WebhookValidationError(ReceptionistException):
    """Raised when webhook signature validation fails"""

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(
            message=message,
            error_code="WEBHOOK_VALIDATION_FAILED",
            status_code=401
        )
