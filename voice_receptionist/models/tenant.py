"""
Tenant Configuration Models
Immutable per-tenant snapshot used by the call-turn engine
"""

import re
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidatorFunctionWrapHandler,
    field_validator,
)

from voice_receptionist.core.logging import get_logger

logger = get_logger(__name__)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

WEEKDAY_NAMES_ES = {
    "monday": "Lunes",
    "tuesday": "Martes",
    "wednesday": "Miércoles",
    "thursday": "Jueves",
    "friday": "Viernes",
    "saturday": "Sábado",
    "sunday": "Domingo",
}

STANDARD_HOURS_TEXT = "Horario de oficina estándar (9:00 - 18:00, lunes a viernes)"


CLOCK_PATTERN = re.compile(r"^([01]?\d|2[0-4]):([0-5]\d)$")
END_OF_DAY = 24 * 60


def _default_working_days() -> Dict[str, bool]:
    return {day: day not in ("saturday", "sunday") for day in WEEKDAYS}


def _clock_minutes(value: str) -> int:
    """Minutes since midnight for an 'HH:MM' string; '24:00' is end of day"""
    match = CLOCK_PATTERN.match(value)
    if not match:
        raise ValueError(f"Invalid clock time '{value}', expected HH:MM")
    minutes = int(match.group(1)) * 60 + int(match.group(2))
    if minutes > END_OF_DAY:
        raise ValueError(f"Invalid clock time '{value}', latest is 24:00")
    return minutes


class BusinessHours(BaseModel):
    """
    Weekly opening window for a tenant

    Both bounds are inclusive. A closing time earlier than the opening time
    is an overnight window that belongs to the day it opens on.
    """
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    working_days: Dict[str, bool] = Field(default_factory=_default_working_days)
    opening_time: str = "09:00"
    closing_time: str = "18:00"
    timezone: str = "Europe/Madrid"

    @field_validator("opening_time", "closing_time")
    @classmethod
    def validate_clock(cls, v: str) -> str:
        minutes = _clock_minutes(v.strip())
        return f"{minutes // 60:02d}:{minutes % 60:02d}"

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone '{v}'")
        return v

    def _works_on(self, moment: datetime) -> bool:
        return bool(self.working_days.get(WEEKDAYS[moment.weekday()], False))

    def is_open(self, now: Optional[datetime] = None) -> bool:
        """
        Check whether the tenant is open at the given moment

        Args:
            now: Moment to check; naive values are read in the tenant timezone

        Returns:
            True when open; always True when hours are not enabled or
            cannot be evaluated
        """
        if not self.enabled:
            return True

        try:
            tz = ZoneInfo(self.timezone)
            if now is None:
                now = datetime.now(tz)
            elif now.tzinfo is None:
                now = now.replace(tzinfo=tz)
            else:
                now = now.astimezone(tz)

            opening = _clock_minutes(self.opening_time)
            closing = _clock_minutes(self.closing_time)
        except (ZoneInfoNotFoundError, ValueError) as e:
            logger.warning(f"Business hours could not be evaluated, treating as open: {e}")
            return True

        current = now.hour * 60 + now.minute

        if opening <= closing:
            return self._works_on(now) and opening <= current <= closing

        # Overnight window
        if current >= opening:
            return self._works_on(now)
        if current <= closing:
            return self._works_on(now - timedelta(days=1))
        return False

    def describe(self) -> str:
        """Human readable summary, e.g. 'Lunes, Martes: 09:00 - 18:00'"""
        if not self.enabled:
            return STANDARD_HOURS_TEXT

        days = [WEEKDAY_NAMES_ES[d] for d in WEEKDAYS if self.working_days.get(d)]
        if not days:
            return STANDARD_HOURS_TEXT

        return f"{', '.join(days)}: {self.opening_time} - {self.closing_time}"


class FAQ(BaseModel):
    model_config = ConfigDict(frozen=True)

    question: str
    answer: str


class ReferenceDocument(BaseModel):
    """Text extracted from a document the tenant uploaded"""
    model_config = ConfigDict(frozen=True)

    name: str
    content: str = ""


class CompanyInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None


class VoiceSettings(BaseModel):
    """Prosody hints applied to synthesized speech"""
    model_config = ConfigDict(frozen=True)

    style: str = "friendly"
    rate: float = 0.9
    pitch: str = "-3%"
    volume: str = "85%"
    emphasis: Optional[str] = None


class TenantCallConfig(BaseModel):
    """Read-only call configuration snapshot for one tenant"""
    model_config = ConfigDict(frozen=True)

    tenant_id: str = Field(..., description="Unique tenant identifier")
    company_name: str = Field(..., description="Company name spoken to callers")
    language: str = Field(default="es-ES", description="BCP-47 locale")
    voice_preference: Optional[str] = Field(default=None, description="Voice id or friendly name")
    greeting_text: Optional[str] = Field(default=None, description="Tenant-authored greeting")
    after_hours_message: Optional[str] = Field(default=None, description="Greeting used while closed")
    business_hours: BusinessHours = Field(default_factory=BusinessHours)
    faqs: Tuple[FAQ, ...] = ()
    reference_documents: Tuple[ReferenceDocument, ...] = ()
    company_info: CompanyInfo = Field(default_factory=CompanyInfo)
    voice: VoiceSettings = Field(default_factory=VoiceSettings)
    enabled: bool = True

    @field_validator("business_hours", mode="wrap")
    @classmethod
    def business_hours_fail_open(cls, v: Any, handler: ValidatorFunctionWrapHandler) -> BusinessHours:
        """Malformed hours leave the tenant always open instead of unloadable"""
        try:
            return handler(v)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid business hours ({e.error_count()} errors), treating as always open")
            return BusinessHours(enabled=False)

    @property
    def language_code(self) -> str:
        """ISO-639-1 language code, e.g. 'es' for 'es-ES'"""
        return self.language.split("-")[0].lower()
