"""Core module - configuration, logging, exceptions"""

from .config import settings, get_settings, Settings
from .logging import setup_logging, get_logger
from .exceptions import (
    ReceptionistException,
    ConfigNotFoundError,
    SpeechServiceError,
    TranscriptionUnavailableError,
    SynthesisUnavailableError,
    ConversationServiceError,
    UnrecognizedReplyShapeError,
    WebhookValidationError,
)

__all__ = [
    "settings",
    "get_settings",
    "Settings",
    "setup_logging",
    "get_logger",
    "ReceptionistException",
    "ConfigNotFoundError",
    "SpeechServiceError",
    "TranscriptionUnavailableError",
    "SynthesisUnavailableError",
    "ConversationServiceError",
    "UnrecognizedReplyShapeError",
    "WebhookValidationError",
]
