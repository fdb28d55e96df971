"""Telephony gateway helpers"""

from .twiml import (
    native_utterance,
    utterance_for,
    record_continuation,
    hangup_document,
    render_twiml,
)

__all__ = [
    "native_utterance",
    "utterance_for",
    "record_continuation",
    "hangup_document",
    "render_twiml",
]
