"""Speech adapters and text shaping"""

from .transcription import TranscriptionAdapter, get_transcription_adapter, with_audio_extension
from .synthesis import SpeechSynthesisAdapter, get_synthesis_adapter, resolve_voice, build_ssml
from .humanizer import Humanizer, get_humanizer, strip_cues
from .end_detector import is_ending

__all__ = [
    "TranscriptionAdapter",
    "get_transcription_adapter",
    "with_audio_extension",
    "SpeechSynthesisAdapter",
    "get_synthesis_adapter",
    "resolve_voice",
    "build_ssml",
    "Humanizer",
    "get_humanizer",
    "strip_cues",
    "is_ending",
]
