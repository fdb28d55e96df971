"""
Speech and control document models
"""

from enum import Enum
from typing import Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, field_validator


class AudioSource(str, Enum):
    PRIMARY = "primary"
    NATIVE_FALLBACK = "native_fallback"


class AudioArtifact(BaseModel):
    """
    Audio for one utterance

    For PRIMARY the locator is a public URL of synthesized audio. For
    NATIVE_FALLBACK it is the text the gateway speaks with its own voice.
    """
    model_config = ConfigDict(frozen=True)

    source: AudioSource
    locator_or_buffer: str
    estimated_duration_seconds: float = 0.0


class PlayAudio(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str


class SpeakText(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    voice: str
    language: str


Utterance = Union[PlayAudio, SpeakText]


class RecordContinuation(BaseModel):
    model_config = ConfigDict(frozen=True)

    action_url: str
    max_length: int = 30
    timeout: int = 5
    finish_on_key: str = "#"


class Hangup(BaseModel):
    model_config = ConfigDict(frozen=True)


class ControlDocument(BaseModel):
    """
    Next telephony action for the gateway

    Holds at least one utterance and exactly one closing action: a record
    continuation or a hangup.
    """
    model_config = ConfigDict(frozen=True)

    utterances: Tuple[Utterance, ...]
    action: Union[RecordContinuation, Hangup]

    @field_validator("utterances")
    @classmethod
    def _require_utterance(cls, value):
        if not value:
            raise ValueError("a control document needs at least one utterance")
        return value

    @property
    def ends_call(self) -> bool:
        return isinstance(self.action, Hangup)

    @property
    def record(self) -> Optional[RecordContinuation]:
        return self.action if isinstance(self.action, RecordContinuation) else None
