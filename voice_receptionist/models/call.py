"""
Data models for inbound call events and the call log
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Union
from pydantic import BaseModel, Field


class CallStatus(str, Enum):
    """Gateway call status"""
    QUEUED = "queued"
    RINGING = "ringing"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    BUSY = "busy"
    NO_ANSWER = "no-answer"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_final(self) -> bool:
        return self in FINAL_STATUSES

    @classmethod
    def from_gateway(cls, value: Optional[str]) -> "CallStatus":
        """Map a raw gateway status string, tolerating case and underscores"""
        normalized = (value or "").strip().lower().replace("_", "-")
        if normalized == "cancelled":
            normalized = "canceled"
        try:
            return cls(normalized)
        except ValueError:
            return cls.IN_PROGRESS


FINAL_STATUSES = frozenset({
    CallStatus.COMPLETED,
    CallStatus.BUSY,
    CallStatus.NO_ANSWER,
    CallStatus.FAILED,
    CallStatus.CANCELED,
})


class CallState(str, Enum):
    """Conversation state of a call"""
    GREETING = "greeting"
    AWAITING_INPUT = "awaiting_input"
    PROCESSING = "processing"
    RESPONDING = "responding"
    TERMINATED = "terminated"


class CallInitiated(BaseModel):
    call_id: str
    caller_number: str
    callee_number: str


class RecordingReady(BaseModel):
    call_id: str
    audio_locator: str
    duration_seconds: Optional[int] = None
    caller_number: Optional[str] = None
    callee_number: Optional[str] = None


class StatusChanged(BaseModel):
    call_id: str
    status: CallStatus
    duration_seconds: Optional[int] = None


CallEvent = Union[CallInitiated, RecordingReady, StatusChanged]


class Speaker(str, Enum):
    CALLER = "caller"
    ASSISTANT = "assistant"


class ConversationTurn(BaseModel):
    """One utterance, logged for audit"""
    speaker: Speaker
    text: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


class CallLogRecord(BaseModel):
    """Durable call log row"""
    call_id: str
    tenant_id: str
    caller_number: str
    callee_number: Optional[str] = None
    transcript: Optional[str] = None
    recording_locator: Optional[str] = None
    duration_seconds: Optional[int] = None
    status: CallStatus = CallStatus.IN_PROGRESS
    created_at: datetime = Field(default_factory=datetime.utcnow)
    ended_at: Optional[datetime] = None
