"""
Tests for the speech synthesis adapter
"""

import asyncio
import os
import time
import pytest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

from voice_receptionist.models.speech import AudioSource
from voice_receptionist.models.tenant import VoiceSettings
from voice_receptionist.services.speech.humanizer import AMBIENT_CUES, BREATH_CUE
from voice_receptionist.services.speech.synthesis import (
    DEFAULT_VOICE,
    SpeechSynthesisAdapter,
    build_ssml,
    estimate_duration,
    resolve_voice,
)


@pytest.fixture
def adapter(tmp_path):
    return SpeechSynthesisAdapter(api_key="test-key", region="westeurope", output_dir=str(tmp_path))


def _mock_async_client(mock_client, responses):
    instance = MagicMock()
    instance.__aenter__ = AsyncMock(return_value=instance)
    instance.__aexit__ = AsyncMock(return_value=False)
    instance.post = AsyncMock(side_effect=responses)
    mock_client.return_value = instance
    return instance


def _response(status_code=200, text="", content=b""):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.content = content
    response.raise_for_status = MagicMock()
    return response


class TestVoiceResolution:
    """Tests for the voice allow-list"""

    def test_allow_listed_voice_is_kept(self):
        assert resolve_voice("es-ES-ElviraNeural") == "es-ES-ElviraNeural"

    def test_friendly_names(self):
        assert resolve_voice("Lola") == "en-US-LolaMultilingualNeural"
        assert resolve_voice("dario") == "es-ES-DarioNeural"

    def test_unknown_voice_downgrades_to_default(self):
        assert resolve_voice("de-DE-KatjaNeural") == DEFAULT_VOICE
        assert resolve_voice(None) == DEFAULT_VOICE


class TestSSML:
    """Tests for the SSML envelope"""

    def test_envelope_carries_prosody_hints(self, sample_config):
        ssml = build_ssml("Hola.", "es-ES-ElviraNeural", sample_config)

        assert ssml.startswith("<speak")
        assert '<voice name="es-ES-ElviraNeural">' in ssml
        assert '<mstts:express-as style="friendly">' in ssml
        assert '<prosody rate="0.9" pitch="-3%" volume="85%">' in ssml

    def test_text_is_escaped(self, sample_config):
        ssml = build_ssml("Tom & Jerry <b>", DEFAULT_VOICE, sample_config)
        assert "Tom &amp; Jerry &lt;b&gt;" in ssml

    def test_sentence_breaks(self, sample_config):
        ssml = build_ssml("Hola. Bienvenido.", DEFAULT_VOICE, sample_config)
        assert 'Hola.<break time="300ms"/> Bienvenido.' in ssml

    def test_cues_become_breaks(self, sample_config):
        ssml = build_ssml(f"Un {BREATH_CUE} momento {AMBIENT_CUES[0]} por favor", DEFAULT_VOICE, sample_config)

        assert "[" not in ssml
        assert '<break time="400ms"/>' in ssml
        assert '<break time="250ms"/>' in ssml

    def test_emphasis_hint(self, sample_config):
        config = sample_config.model_copy(update={"voice": VoiceSettings(emphasis="moderate")})
        ssml = build_ssml("Hola", DEFAULT_VOICE, config)
        assert '<emphasis level="moderate">Hola</emphasis>' in ssml

    def test_multilingual_voice_speaks_tenant_language(self, sample_config):
        ssml = build_ssml("Hola", "en-US-LolaMultilingualNeural", sample_config)
        assert 'xml:lang="en-US"' in ssml
        assert '<lang xml:lang="es-ES">Hola</lang>' in ssml

    def test_estimate_duration(self):
        assert estimate_duration(4000, "audio-16khz-32kbitrate-mono-mp3", "x") == 1.0
        assert estimate_duration(0, "riff-8khz-16bit-mono-pcm", "uno dos tres cuatro cinco") == 2.0


class TestSynthesize:
    """Tests for SpeechSynthesisAdapter.synthesize"""

    @pytest.mark.asyncio
    async def test_success_publishes_audio(self, adapter, sample_config, tmp_path):
        with patch.object(adapter, "_request_audio", AsyncMock(return_value=b"\x00" * 4000)):
            artifact = await adapter.synthesize("Hola", "elvira", sample_config)

        assert artifact.source == AudioSource.PRIMARY
        assert artifact.locator_or_buffer.startswith("https://receptionist.test/audio/tts_")
        assert artifact.locator_or_buffer.endswith(".mp3")
        assert artifact.estimated_duration_seconds == 1.0

        filename = artifact.locator_or_buffer.rsplit("/", 1)[1]
        assert (Path(tmp_path) / filename).read_bytes() == b"\x00" * 4000

    @pytest.mark.asyncio
    async def test_provider_error_returns_none(self, adapter, sample_config):
        with patch.object(adapter, "_request_audio", AsyncMock(side_effect=RuntimeError("503"))):
            assert await adapter.synthesize("Hola", None, sample_config) is None

    @pytest.mark.asyncio
    async def test_timeout_returns_none(self, tmp_path, sample_config):
        adapter = SpeechSynthesisAdapter(api_key="test-key", output_dir=str(tmp_path), timeout_seconds=0.01)

        async def slow(ssml):
            await asyncio.sleep(1)
            return b"late"

        with patch.object(adapter, "_request_audio", slow):
            assert await adapter.synthesize("Hola", None, sample_config) is None

    @pytest.mark.asyncio
    async def test_missing_key_skips_provider(self, tmp_path, sample_config):
        adapter = SpeechSynthesisAdapter(api_key="", output_dir=str(tmp_path))
        with patch.object(adapter, "_request_audio", AsyncMock()) as mock_request:
            assert await adapter.synthesize("Hola", None, sample_config) is None
        mock_request.assert_not_called()

    @pytest.mark.asyncio
    @patch("voice_receptionist.services.speech.synthesis.httpx.AsyncClient")
    async def test_non_success_status_returns_none(self, mock_client, adapter):
        _mock_async_client(mock_client, [_response(text="token"), _response(status_code=429)])
        assert await adapter._request_audio("<speak/>") is None

    @pytest.mark.asyncio
    @patch("voice_receptionist.services.speech.synthesis.httpx.AsyncClient")
    async def test_access_token_is_reused(self, mock_client, adapter):
        instance = _mock_async_client(mock_client, [
            _response(text="token-1"),
            _response(content=b"audio-1"),
            _response(content=b"audio-2"),
        ])

        assert await adapter._request_audio("<speak/>") == b"audio-1"
        assert await adapter._request_audio("<speak/>") == b"audio-2"

        assert instance.post.await_count == 3
        token_call, first_call, second_call = instance.post.await_args_list
        assert token_call.args[0].endswith("/sts/v1.0/issueToken")
        assert second_call.kwargs["headers"]["Authorization"] == "Bearer token-1"
        assert first_call.kwargs["headers"]["X-Microsoft-OutputFormat"] == "audio-16khz-32kbitrate-mono-mp3"


class TestPublishedAudio:
    """Tests for audio reuse and retention"""

    @pytest.mark.asyncio
    async def test_fixed_prompt_reuses_audio(self, adapter, sample_config, tmp_path):
        prompt = "Disculpe, no le he entendido bien."
        with patch.object(adapter, "_request_audio", AsyncMock(return_value=b"\x00" * 4000)) as mock_request:
            first = await adapter.synthesize(prompt, "elvira", sample_config, cacheable=True)
            second = await adapter.synthesize(prompt, "elvira", sample_config, cacheable=True)

        assert mock_request.await_count == 1
        assert second.locator_or_buffer == first.locator_or_buffer
        assert second.estimated_duration_seconds == first.estimated_duration_seconds
        assert len(list(Path(tmp_path).glob("tts_*"))) == 1

    @pytest.mark.asyncio
    async def test_reuse_is_keyed_by_voice(self, adapter, sample_config):
        with patch.object(adapter, "_request_audio", AsyncMock(return_value=b"audio")) as mock_request:
            await adapter.synthesize("Un momento", "elvira", sample_config, cacheable=True)
            await adapter.synthesize("Un momento", "dario", sample_config, cacheable=True)

        assert mock_request.await_count == 2

    @pytest.mark.asyncio
    async def test_humanized_replies_are_not_reused(self, adapter, sample_config):
        with patch.object(adapter, "_request_audio", AsyncMock(return_value=b"audio")) as mock_request:
            await adapter.synthesize("Claro que sí", "elvira", sample_config)
            await adapter.synthesize("Claro que sí", "elvira", sample_config)

        assert mock_request.await_count == 2

    @pytest.mark.asyncio
    async def test_reused_audio_expires(self, tmp_path, sample_config):
        now = [1000.0]
        adapter = SpeechSynthesisAdapter(api_key="test-key", output_dir=str(tmp_path), clock=lambda: now[0])
        adapter.cache_ttl_seconds = 60

        with patch.object(adapter, "_request_audio", AsyncMock(return_value=b"audio")) as mock_request:
            await adapter.synthesize("Un momento", None, sample_config, cacheable=True)
            now[0] += 61
            await adapter.synthesize("Un momento", None, sample_config, cacheable=True)

        assert mock_request.await_count == 2

    def test_purge_removes_only_expired_files(self, adapter, tmp_path):
        old = Path(tmp_path) / "tts_1_old.mp3"
        fresh = Path(tmp_path) / "tts_2_new.mp3"
        unrelated = Path(tmp_path) / "keep.txt"
        for path in (old, fresh, unrelated):
            path.write_bytes(b"x")
        two_hours_ago = time.time() - 7200
        os.utime(old, (two_hours_ago, two_hours_ago))
        os.utime(unrelated, (two_hours_ago, two_hours_ago))

        removed = adapter.purge_expired_audio(max_age_seconds=3600)

        assert removed == 1
        assert not old.exists()
        assert fresh.exists()
        assert unrelated.exists()

    @pytest.mark.asyncio
    async def test_purge_drops_cached_entries_for_removed_files(self, adapter, sample_config, tmp_path):
        with patch.object(adapter, "_request_audio", AsyncMock(return_value=b"audio")) as mock_request:
            await adapter.synthesize("Un momento", None, sample_config, cacheable=True)
            adapter.purge_expired_audio(max_age_seconds=-1)
            artifact = await adapter.synthesize("Un momento", None, sample_config, cacheable=True)

        assert mock_request.await_count == 2
        filename = artifact.locator_or_buffer.rsplit("/", 1)[1]
        assert (Path(tmp_path) / filename).exists()
