"""API Middleware"""

from .webhook_security import TwilioWebhookValidator, validate_twilio_webhook

__all__ = ["TwilioWebhookValidator", "validate_twilio_webhook"]
