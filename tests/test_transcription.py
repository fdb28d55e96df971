"""
Tests for the speech transcription adapter and retry utility
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from conftest import RECORDING_URL
from voice_receptionist.services.speech.transcription import TranscriptionAdapter, with_audio_extension
from voice_receptionist.utils.retry import RetryError, compute_delay, retry_async_operation


@pytest.fixture
def adapter():
    return TranscriptionAdapter(client=MagicMock(), sleep=AsyncMock())


class TestLocatorValidation:
    """Tests for recording locator checks"""

    def test_twilio_wav_is_allowed(self, adapter):
        assert adapter.is_allowed_locator(f"{RECORDING_URL}.wav")
        assert adapter.is_allowed_locator(f"{RECORDING_URL}.mp3")

    def test_unknown_host_is_rejected(self, adapter):
        assert not adapter.is_allowed_locator("https://evil.example.com/Recordings/RE1.wav")
        assert not adapter.is_allowed_locator("https://api.twilio.com.evil.example/RE1.wav")

    def test_unknown_extension_is_rejected(self, adapter):
        assert not adapter.is_allowed_locator(f"{RECORDING_URL}.exe")
        assert not adapter.is_allowed_locator(RECORDING_URL)

    def test_non_http_scheme_is_rejected(self, adapter):
        assert not adapter.is_allowed_locator("file:///etc/passwd.wav")

    def test_with_audio_extension(self):
        assert with_audio_extension(RECORDING_URL) == f"{RECORDING_URL}.wav"
        assert with_audio_extension(f"{RECORDING_URL}.mp3") == f"{RECORDING_URL}.mp3"


class TestTranscribe:
    """Tests for single transcription attempts"""

    @pytest.mark.asyncio
    async def test_rejected_locator_makes_no_network_call(self, adapter):
        with patch.object(adapter, "_download", AsyncMock()) as mock_download:
            result = await adapter.transcribe("https://evil.example.com/a.wav", "es-ES")

        assert result is None
        mock_download.assert_not_called()

    @pytest.mark.asyncio
    async def test_returns_trimmed_text(self, adapter):
        with patch.object(adapter, "_download", AsyncMock(return_value=b"RIFF")), \
                patch.object(adapter, "_recognize", AsyncMock(return_value="  Quiero una cita \n")) as mock_recognize:
            result = await adapter.transcribe(f"{RECORDING_URL}.wav", "es-ES")

        assert result == "Quiero una cita"
        mock_recognize.assert_awaited_once_with(b"RIFF", "REtest.wav", "es-ES")

    @pytest.mark.asyncio
    async def test_provider_error_returns_none(self, adapter):
        with patch.object(adapter, "_download", AsyncMock(side_effect=RuntimeError("boom"))):
            result = await adapter.transcribe(f"{RECORDING_URL}.wav", "es-ES")

        assert result is None

    @pytest.mark.asyncio
    async def test_recognize_sends_language_code(self, adapter):
        adapter.client.audio.transcriptions.create = AsyncMock(return_value="hola")

        text = await adapter._recognize(b"RIFF", "REtest.wav", "es-ES")

        assert text == "hola"
        kwargs = adapter.client.audio.transcriptions.create.call_args.kwargs
        assert kwargs["language"] == "es"
        assert kwargs["model"] == "whisper-1"
        assert kwargs["file"] == ("REtest.wav", b"RIFF")

    @pytest.mark.asyncio
    @patch("voice_receptionist.services.speech.transcription.httpx.AsyncClient")
    async def test_download_uses_gateway_credentials(self, mock_client, adapter):
        mock_response = MagicMock()
        mock_response.content = b"RIFF"
        mock_response.raise_for_status = MagicMock()

        mock_client_instance = MagicMock()
        mock_client_instance.__aenter__ = AsyncMock(return_value=mock_client_instance)
        mock_client_instance.__aexit__ = AsyncMock(return_value=False)
        mock_client_instance.get = AsyncMock(return_value=mock_response)
        mock_client.return_value = mock_client_instance

        audio = await adapter._download(f"{RECORDING_URL}.wav")

        assert audio == b"RIFF"
        assert mock_client_instance.get.call_args.kwargs["auth"] == ("ACtest", "test-auth-token")


class TestTranscribeWithRetry:
    """Tests for the retrying transcription path"""

    @pytest.mark.asyncio
    async def test_always_empty_returns_none_after_max_attempts(self, adapter):
        with patch.object(adapter, "_download", AsyncMock(return_value=b"RIFF")), \
                patch.object(adapter, "_recognize", AsyncMock(return_value="")) as mock_recognize:
            result = await adapter.transcribe_with_retry(f"{RECORDING_URL}.wav", "es-ES", max_attempts=2)

        assert result is None
        assert mock_recognize.await_count == 2
        adapter.sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_linear_backoff_between_attempts(self, adapter):
        with patch.object(adapter, "transcribe", AsyncMock(return_value=None)) as mock_transcribe:
            result = await adapter.transcribe_with_retry(f"{RECORDING_URL}.wav", "es-ES", max_attempts=3)

        assert result is None
        assert mock_transcribe.await_count == 3
        assert [c.args[0] for c in adapter.sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_returns_first_non_empty_result(self, adapter):
        with patch.object(adapter, "transcribe", AsyncMock(side_effect=[None, "Hola"])) as mock_transcribe:
            result = await adapter.transcribe_with_retry(f"{RECORDING_URL}.wav", "es-ES")

        assert result == "Hola"
        assert mock_transcribe.await_count == 2

    @pytest.mark.asyncio
    async def test_rejected_locator_is_not_retried(self, adapter):
        with patch.object(adapter, "transcribe", AsyncMock()) as mock_transcribe:
            result = await adapter.transcribe_with_retry("https://evil.example.com/a.wav", "es-ES")

        assert result is None
        mock_transcribe.assert_not_called()
        adapter.sleep.assert_not_called()


class TestRetryUtility:
    """Tests for retry_async_operation"""

    def test_compute_delay(self):
        assert compute_delay(1, 1.0, "linear") == 1.0
        assert compute_delay(3, 1.0, "linear") == 3.0
        assert compute_delay(3, 1.0, "exponential") == 4.0
        assert compute_delay(3, 0.5, "fixed") == 0.5

    @pytest.mark.asyncio
    async def test_raises_retry_error_with_last_exception(self):
        operation = AsyncMock(side_effect=ValueError("nope"))
        sleep = AsyncMock()

        with pytest.raises(RetryError) as exc_info:
            await retry_async_operation(operation, max_retries=2, delay=0.1, sleep=sleep)

        assert isinstance(exc_info.value.last_exception, ValueError)
        assert operation.await_count == 2
        sleep.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_only_listed_exceptions_are_retried(self):
        operation = AsyncMock(side_effect=KeyError("missing"))

        with pytest.raises(KeyError):
            await retry_async_operation(operation, max_retries=3, exceptions=(ValueError,), sleep=AsyncMock())

        assert operation.await_count == 1


class TestClientDefaults:
    """Tests for the default Whisper client"""

    def test_default_client_is_bounded(self):
        with patch("voice_receptionist.services.speech.transcription.AsyncOpenAI") as client_cls:
            TranscriptionAdapter()

        kwargs = client_cls.call_args.kwargs
        assert kwargs["timeout"] == 8.0
        assert kwargs["max_retries"] == 0
