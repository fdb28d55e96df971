"""
Speech Synthesis Adapter
Azure neural text-to-speech over REST, publishing audio for the gateway to play
"""

import asyncio
import hashlib
import re
import time
import uuid
from pathlib import Path
from typing import Callable, Dict, NamedTuple, Optional
from xml.sax.saxutils import escape

import httpx

from voice_receptionist.core.config import settings
from voice_receptionist.core.logging import get_logger
from voice_receptionist.models.speech import AudioArtifact, AudioSource
from voice_receptionist.models.tenant import TenantCallConfig
from voice_receptionist.services.speech.humanizer import AMBIENT_CUES, BREATH_CUE

logger = get_logger(__name__)

DEFAULT_VOICE = "es-ES-DarioNeural"

# Voice id -> locale of the voice
VOICE_ALLOW_LIST: Dict[str, str] = {
    "es-ES-DarioNeural": "es-ES",
    "es-ES-ElviraNeural": "es-ES",
    "es-ES-AlvaroNeural": "es-ES",
    "es-ES-ArabellaMultilingualNeural": "es-ES",
    "en-US-LolaMultilingualNeural": "en-US",
}

FRIENDLY_VOICE_NAMES: Dict[str, str] = {
    "dario": "es-ES-DarioNeural",
    "elvira": "es-ES-ElviraNeural",
    "alvaro": "es-ES-AlvaroNeural",
    "arabella": "es-ES-ArabellaMultilingualNeural",
    "lola": "en-US-LolaMultilingualNeural",
}

TOKEN_LIFETIME_SECONDS = 9 * 60
SENTENCE_BREAK = '<break time="300ms"/>'
BREATH_BREAK = '<break time="400ms"/>'
AMBIENT_BREAK = '<break time="250ms"/>'

_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}


class PublishedAudio(NamedTuple):
    url: str
    path: Path
    size: int
    published_at: float


def resolve_voice(voice_preference: Optional[str]) -> str:
    """
    Map a requested voice to an allow-listed voice id

    Unknown voices become DEFAULT_VOICE instead of failing.
    """
    if not voice_preference:
        return DEFAULT_VOICE

    if voice_preference in VOICE_ALLOW_LIST:
        return voice_preference

    friendly = FRIENDLY_VOICE_NAMES.get(voice_preference.strip().lower())
    if friendly:
        return friendly

    logger.info(f"Voice '{voice_preference}' is not allow-listed, using {DEFAULT_VOICE}")
    return DEFAULT_VOICE


def _render_body(text: str) -> str:
    """Escape text and translate humanizer cues and sentence ends to SSML"""
    body = escape(text, _XML_ENTITIES)
    body = body.replace(BREATH_CUE, BREATH_BREAK)
    for cue in AMBIENT_CUES:
        body = body.replace(cue, AMBIENT_BREAK)
    body = re.sub(r"\.(\s+)", lambda m: f".{SENTENCE_BREAK}{m.group(1)}", body)
    return body.strip()


def build_ssml(text: str, voice_id: str, tenant_config: TenantCallConfig) -> str:
    """
    Wrap text in the SSML envelope used for every utterance

    Args:
        text: Possibly humanized text
        voice_id: Allow-listed voice id
        tenant_config: Source of locale and prosody hints

    Returns:
        SSML document
    """
    voice_locale = VOICE_ALLOW_LIST.get(voice_id, "es-ES")
    hints = tenant_config.voice

    body = _render_body(text)
    if hints.emphasis:
        body = f'<emphasis level="{escape(hints.emphasis)}">{body}</emphasis>'
    if "Multilingual" in voice_id and tenant_config.language != voice_locale:
        body = f'<lang xml:lang="{escape(tenant_config.language)}">{body}</lang>'

    prosody = (
        f'<prosody rate="{hints.rate}" pitch="{escape(hints.pitch)}" volume="{escape(hints.volume)}">'
        f"{body}</prosody>"
    )

    return (
        '<speak version="1.0" xmlns="http://www.w3.org/2001/10/synthesis" '
        f'xmlns:mstts="https://www.w3.org/2001/mstts" xml:lang="{voice_locale}">'
        f'<voice name="{voice_id}">'
        f'<mstts:express-as style="{escape(hints.style)}">{prosody}</mstts:express-as>'
        "</voice></speak>"
    )


def estimate_duration(audio_size: int, output_format: str, text: str) -> float:
    """Estimate playback seconds from the encoded bitrate, or from word count"""
    match = re.search(r"(\d+)kbitrate", output_format)
    if match and audio_size:
        return round(audio_size * 8 / (int(match.group(1)) * 1000), 2)
    return round(len(text.split()) / 2.5, 2)


class SpeechSynthesisAdapter:
    """Adapter for the synthesis collaborator"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        region: Optional[str] = None,
        output_dir: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time
    ):
        self.api_key = api_key if api_key is not None else settings.azure_speech_key
        self.region = region or settings.azure_speech_region
        self.output_dir = Path(output_dir or settings.audio_output_dir)
        self.timeout_seconds = timeout_seconds or settings.tts_timeout_seconds
        self.output_format = settings.azure_output_format

        self.token_url = f"https://{self.region}.api.cognitive.microsoft.com/sts/v1.0/issueToken"
        self.synthesis_url = f"https://{self.region}.tts.speech.microsoft.com/cognitiveservices/v1"

        self._token: Optional[str] = None
        self._token_expires_at: float = 0.0

        self.clock = clock
        self.retention_seconds = settings.audio_retention_seconds
        self.cache_ttl_seconds = settings.audio_cache_ttl_seconds
        self._audio_cache: Dict[str, PublishedAudio] = {}
        self._last_sweep = 0.0

    async def _get_token(self, client: httpx.AsyncClient) -> str:
        """Get an access token, reusing it for its lifetime"""
        if self._token and time.time() < self._token_expires_at:
            return self._token

        response = await client.post(
            self.token_url,
            headers={"Ocp-Apim-Subscription-Key": self.api_key}
        )
        response.raise_for_status()

        self._token = response.text
        self._token_expires_at = time.time() + TOKEN_LIFETIME_SECONDS
        logger.debug("Obtained new speech access token")
        return self._token

    async def _request_audio(self, ssml: str) -> Optional[bytes]:
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            token = await self._get_token(client)
            response = await client.post(
                self.synthesis_url,
                content=ssml.encode("utf-8"),
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/ssml+xml",
                    "X-Microsoft-OutputFormat": self.output_format,
                    "User-Agent": "voice-receptionist"
                }
            )

        if response.status_code != 200:
            logger.error(f"Synthesis failed with status {response.status_code}")
            if response.status_code == 401:
                self._token = None
            return None

        return response.content or None

    def _publish(self, audio: bytes) -> PublishedAudio:
        """Write audio under a time-based unique name and return its public URL"""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        extension = "mp3" if "mp3" in self.output_format else "wav"
        filename = f"tts_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}.{extension}"
        path = self.output_dir / filename

        with open(path, "wb") as f:
            f.write(audio)

        now = self.clock()
        if now - self._last_sweep >= settings.audio_sweep_interval_seconds:
            self.purge_expired_audio()

        base = settings.api_base_url.rstrip("/")
        mount = "/" + settings.audio_mount_path.strip("/")
        return PublishedAudio(url=f"{base}{mount}/{filename}", path=path, size=len(audio), published_at=now)

    def purge_expired_audio(self, max_age_seconds: Optional[float] = None) -> int:
        """
        Delete published audio older than the retention period

        Returns:
            Number of files removed
        """
        max_age = self.retention_seconds if max_age_seconds is None else max_age_seconds
        now = self.clock()
        self._last_sweep = now

        if not self.output_dir.exists():
            return 0

        removed = 0
        for path in self.output_dir.glob("tts_*"):
            try:
                if now - path.stat().st_mtime > max_age:
                    path.unlink()
                    removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Could not remove expired audio {path.name}: {e}")

        self._audio_cache = {k: v for k, v in self._audio_cache.items() if v.path.exists()}
        if removed:
            logger.info(f"Removed {removed} expired audio files from {self.output_dir}")
        return removed

    def _cached_audio(self, key: str) -> Optional[PublishedAudio]:
        entry = self._audio_cache.get(key)
        if entry is None:
            return None
        if self.clock() - entry.published_at >= self.cache_ttl_seconds or not entry.path.exists():
            del self._audio_cache[key]
            return None
        return entry

    async def synthesize(
        self,
        text: str,
        voice_preference: Optional[str],
        tenant_config: TenantCallConfig,
        cacheable: bool = False
    ) -> Optional[AudioArtifact]:
        """
        Synthesize text to a playable audio URL

        Args:
            text: Text to speak, may contain humanizer cues
            voice_preference: Requested voice id or friendly name
            tenant_config: Tenant settings for locale and prosody
            cacheable: Reuse earlier audio for the same text and voice;
                meant for fixed prompts, not humanized replies

        Returns:
            AudioArtifact, or None on provider error, timeout or bad status
        """
        if not self.api_key:
            logger.warning("Speech key not configured, skipping synthesis")
            return None

        voice_id = resolve_voice(voice_preference)
        ssml = build_ssml(text, voice_id, tenant_config)

        cache_key = hashlib.sha256(ssml.encode("utf-8")).hexdigest() if cacheable else None
        if cache_key:
            cached = self._cached_audio(cache_key)
            if cached is not None:
                logger.debug(f"Reusing synthesized audio {cached.path.name}")
                return AudioArtifact(
                    source=AudioSource.PRIMARY,
                    locator_or_buffer=cached.url,
                    estimated_duration_seconds=estimate_duration(cached.size, self.output_format, text)
                )

        start_time = time.time()

        try:
            audio = await asyncio.wait_for(self._request_audio(ssml), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(f"Synthesis timed out after {self.timeout_seconds:.1f}s")
            return None
        except Exception as e:
            logger.error(f"Synthesis request failed: {e}")
            return None

        if not audio:
            return None

        published = self._publish(audio)
        if cache_key:
            self._audio_cache[cache_key] = published
        logger.info(f"Synthesized {len(audio)} bytes with {voice_id} in {time.time() - start_time:.2f}s")

        return AudioArtifact(
            source=AudioSource.PRIMARY,
            locator_or_buffer=published.url,
            estimated_duration_seconds=estimate_duration(len(audio), self.output_format, text)
        )


# Singleton instance
_synthesis_adapter: Optional[SpeechSynthesisAdapter] = None


def get_synthesis_adapter() -> SpeechSynthesisAdapter:
    """Get the SpeechSynthesisAdapter singleton instance"""
    global _synthesis_adapter
    if _synthesis_adapter is None:
        _synthesis_adapter = SpeechSynthesisAdapter()
    return _synthesis_adapter
