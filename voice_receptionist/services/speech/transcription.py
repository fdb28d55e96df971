"""
Speech Transcription Adapter
Turns a gateway recording into text using OpenAI Whisper
"""

import asyncio
import time
from pathlib import PurePosixPath
from typing import Awaitable, Callable, List, Optional
from urllib.parse import urlparse

import httpx
from openai import AsyncOpenAI

from voice_receptionist.core.config import settings
from voice_receptionist.core.logging import get_logger
from voice_receptionist.utils.retry import RetryError, retry_async_operation, BACKOFF_LINEAR

logger = get_logger(__name__)


def with_audio_extension(audio_locator: str, extension: str = ".wav") -> str:
    """
    Append an audio extension to an extension-less recording URL

    Twilio sends RecordingUrl without a suffix and serves the same
    recording at both .wav and .mp3.
    """
    path = urlparse(audio_locator).path
    if PurePosixPath(path).suffix:
        return audio_locator
    return f"{audio_locator}{extension}"


class TranscriptionAdapter:
    """Adapter for the transcription collaborator"""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        allowed_hosts: Optional[List[str]] = None,
        allowed_extensions: Optional[List[str]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.client = client or AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.transcription_timeout_seconds,
            max_retries=0
        )
        self.model = settings.openai_transcription_model
        self.allowed_hosts = allowed_hosts or settings.allowed_recording_hosts
        self.allowed_extensions = allowed_extensions or settings.allowed_recording_extensions
        self.sleep = sleep

    def _debug_log(self, message: str, start_time: Optional[float] = None) -> float:
        """Debug logging with elapsed time"""
        current_time = time.time()
        if start_time:
            logger.debug(f"[{current_time - start_time:.3f}s elapsed] {message}")
        else:
            logger.debug(message)
        return current_time

    def is_allowed_locator(self, audio_locator: str) -> bool:
        """
        Check a recording locator against the host and extension allow-lists

        Args:
            audio_locator: URL of the recording

        Returns:
            True if the URL is https/http on an allowed host with an allowed extension
        """
        try:
            parsed = urlparse(audio_locator)
        except ValueError:
            return False

        if parsed.scheme not in ("https", "http"):
            return False

        host = (parsed.hostname or "").lower()
        host_ok = any(host == allowed or host.endswith(f".{allowed}") for allowed in self.allowed_hosts)
        extension = PurePosixPath(parsed.path).suffix.lower()

        return host_ok and extension in self.allowed_extensions

    async def _download(self, audio_locator: str) -> bytes:
        """Fetch the recording with gateway credentials"""
        async with httpx.AsyncClient(timeout=settings.transcription_download_timeout) as client:
            response = await client.get(
                audio_locator,
                auth=(settings.twilio_account_sid, settings.twilio_auth_token),
                follow_redirects=True
            )
            response.raise_for_status()
            return response.content

    async def _recognize(self, audio: bytes, filename: str, language_hint: Optional[str]) -> str:
        kwargs = {}
        if language_hint:
            kwargs["language"] = language_hint.split("-")[0].lower()

        transcription = await self.client.audio.transcriptions.create(
            model=self.model,
            file=(filename, audio),
            response_format="text",
            **kwargs
        )
        # response_format="text" yields a plain string
        return transcription if isinstance(transcription, str) else getattr(transcription, "text", "")

    async def transcribe(self, audio_locator: str, language_hint: Optional[str] = None) -> Optional[str]:
        """
        Transcribe one recording

        Args:
            audio_locator: URL of the recording
            language_hint: Locale such as "es-ES"

        Returns:
            Trimmed transcript, or None if rejected, empty or failed
        """
        if not self.is_allowed_locator(audio_locator):
            logger.warning(f"Rejected recording locator outside allow-list: {audio_locator}")
            return None

        start_time = self._debug_log(f"Starting transcription for {audio_locator}")

        try:
            audio = await self._download(audio_locator)
            self._debug_log(f"Downloaded {len(audio)} bytes", start_time)

            filename = PurePosixPath(urlparse(audio_locator).path).name or "recording.wav"
            text = await self._recognize(audio, filename, language_hint)
            self._debug_log("Transcription completed", start_time)
        except Exception as e:
            logger.error(f"Failed to transcribe recording: {e}")
            return None

        text = (text or "").strip()
        return text or None

    async def transcribe_with_retry(
        self,
        audio_locator: str,
        language_hint: Optional[str] = None,
        max_attempts: Optional[int] = None
    ) -> Optional[str]:
        """
        Transcribe with sequential attempts and linear backoff

        Sleeps attempt * retry delay between attempts. Returns None rather
        than raising once attempts are exhausted; callers treat None as
        unintelligible speech.
        """
        if not self.is_allowed_locator(audio_locator):
            logger.warning(f"Rejected recording locator outside allow-list: {audio_locator}")
            return None

        attempts = max_attempts or settings.transcription_max_attempts

        try:
            return await retry_async_operation(
                lambda: self.transcribe(audio_locator, language_hint),
                max_retries=attempts,
                delay=settings.transcription_retry_delay,
                backoff=BACKOFF_LINEAR,
                accept=bool,
                operation_name="transcription",
                sleep=self.sleep
            )
        except RetryError:
            return None


# Singleton instance
_transcription_adapter: Optional[TranscriptionAdapter] = None


def get_transcription_adapter() -> TranscriptionAdapter:
    """Get the TranscriptionAdapter singleton instance"""
    global _transcription_adapter
    if _transcription_adapter is None:
        _transcription_adapter = TranscriptionAdapter()
    return _transcription_adapter
