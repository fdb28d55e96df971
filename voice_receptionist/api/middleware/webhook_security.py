"""
Webhook Security
Validates Twilio request signatures on gateway callbacks
"""

from typing import Optional
from fastapi import Request
from twilio.request_validator import RequestValidator

from voice_receptionist.core.config import settings
from voice_receptionist.core.logging import get_logger
from voice_receptionist.core.exceptions import WebhookValidationError

logger = get_logger(__name__)


class TwilioWebhookValidator:
    """
    Validates Twilio webhook signatures
    https://www.twilio.com/docs/usage/security#validating-requests
    """

    def __init__(self, auth_token: Optional[str] = None):
        self.validator = RequestValidator(auth_token or settings.twilio_auth_token)

    @staticmethod
    def public_url(request: Request) -> str:
        """URL Twilio signed, honouring proxy headers"""
        url = str(request.url)
        forwarded_proto = request.headers.get("X-Forwarded-Proto")
        forwarded_host = request.headers.get("X-Forwarded-Host")

        if forwarded_proto and forwarded_host:
            url = f"{forwarded_proto}://{forwarded_host}{request.url.path}"
            if request.url.query:
                url = f"{url}?{request.url.query}"

        return url

    async def validate(self, request: Request) -> bool:
        """
        Validate Twilio webhook request

        Args:
            request: FastAPI request object

        Returns:
            True if valid, raises WebhookValidationError if invalid
        """
        signature = request.headers.get("X-Twilio-Signature")
        if not signature:
            logger.warning("Missing Twilio signature header")
            raise WebhookValidationError("Missing X-Twilio-Signature header")

        form_data = await request.form()
        params = dict(form_data)

        if not self.validator.validate(self.public_url(request), params, signature):
            logger.warning("Invalid Twilio signature")
            raise WebhookValidationError("Invalid Twilio signature")

        return True


async def validate_twilio_webhook(request: Request) -> None:
    """Route dependency; a no-op unless signature validation is enabled"""
    if not settings.twilio_validate_signatures:
        return
    await TwilioWebhookValidator().validate(request)
