"""
TwiML rendering for control documents
"""

from typing import Optional

from twilio.twiml.voice_response import VoiceResponse

from voice_receptionist.core.config import settings
from voice_receptionist.models.speech import (
    AudioArtifact,
    AudioSource,
    ControlDocument,
    Hangup,
    PlayAudio,
    RecordContinuation,
    SpeakText,
    Utterance,
)


def native_utterance(text: str) -> SpeakText:
    """Utterance spoken by the gateway's built-in voice"""
    return SpeakText(
        text=text,
        voice=settings.fallback_voice,
        language=settings.fallback_language
    )


def utterance_for(artifact: AudioArtifact) -> Utterance:
    if artifact.source == AudioSource.PRIMARY:
        return PlayAudio(url=artifact.locator_or_buffer)
    return native_utterance(artifact.locator_or_buffer)


def record_continuation() -> RecordContinuation:
    """Record step that posts the caller's next utterance back to us"""
    return RecordContinuation(
        action_url=settings.recording_callback_url,
        max_length=settings.record_max_length,
        timeout=settings.record_timeout,
        finish_on_key=settings.record_finish_on_key
    )


def hangup_document(message: str) -> ControlDocument:
    """Speak a message with the native voice, then hang up"""
    return ControlDocument(utterances=(native_utterance(message),), action=Hangup())


def render_twiml(document: ControlDocument) -> str:
    """
    Render a control document as TwiML

    Args:
        document: Control document

    Returns:
        TwiML XML string
    """
    response = VoiceResponse()

    for utterance in document.utterances:
        if isinstance(utterance, PlayAudio):
            response.play(utterance.url)
        else:
            response.say(utterance.text, voice=utterance.voice, language=utterance.language)

    record: Optional[RecordContinuation] = document.record
    if record is not None:
        response.record(
            action=record.action_url,
            method="POST",
            max_length=record.max_length,
            timeout=record.timeout,
            finish_on_key=record.finish_on_key,
            play_beep=False,
            trim="trim-silence"
        )
    else:
        response.hangup()

    return str(response)
