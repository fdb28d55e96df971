"""Data models"""

from .tenant import (
    BusinessHours,
    FAQ,
    ReferenceDocument,
    CompanyInfo,
    VoiceSettings,
    TenantCallConfig,
)
from .call import (
    CallStatus,
    CallState,
    CallInitiated,
    RecordingReady,
    StatusChanged,
    CallEvent,
    Speaker,
    ConversationTurn,
    CallLogRecord,
)
from .speech import (
    AudioSource,
    AudioArtifact,
    PlayAudio,
    SpeakText,
    RecordContinuation,
    Hangup,
    ControlDocument,
)

__all__ = [
    "BusinessHours",
    "FAQ",
    "ReferenceDocument",
    "CompanyInfo",
    "VoiceSettings",
    "TenantCallConfig",
    "CallStatus",
    "CallState",
    "CallInitiated",
    "RecordingReady",
    "StatusChanged",
    "CallEvent",
    "Speaker",
    "ConversationTurn",
    "CallLogRecord",
    "AudioSource",
    "AudioArtifact",
    "PlayAudio",
    "SpeakText",
    "RecordContinuation",
    "Hangup",
    "ControlDocument",
]
