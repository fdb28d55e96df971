"""
Pytest configuration and fixtures
"""

import os
import random
import tempfile
import pytest
from unittest.mock import AsyncMock, MagicMock

# Set test environment variables before importing package modules
_TEST_DIR = tempfile.mkdtemp(prefix="voice_receptionist_tests_")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("API_BASE_URL", "https://receptionist.test")
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("TWILIO_ACCOUNT_SID", "ACtest")
os.environ.setdefault("TWILIO_AUTH_TOKEN", "test-auth-token")
os.environ.setdefault("TWILIO_VALIDATE_SIGNATURES", "false")
os.environ.setdefault("AZURE_SPEECH_KEY", "test-speech-key")
os.environ.setdefault("AUDIO_OUTPUT_DIR", os.path.join(_TEST_DIR, "audio"))
os.environ.setdefault("TENANTS_FILE_PATH", os.path.join(_TEST_DIR, "tenants.json"))
os.environ.setdefault("CALL_LOG_DB_PATH", os.path.join(_TEST_DIR, "call_log.db"))
os.environ.setdefault("TENANT_CACHE_BACKEND", "memory")

from voice_receptionist.models.speech import AudioArtifact, AudioSource
from voice_receptionist.models.tenant import BusinessHours, CompanyInfo, FAQ, TenantCallConfig
from voice_receptionist.services.call_log import SQLiteCallLogRepository
from voice_receptionist.services.call_session import CallSessionController
from voice_receptionist.services.speech.humanizer import Humanizer
from voice_receptionist.services.tenant_cache import TenantConfigCache
from voice_receptionist.services.tenant_repository import TenantRepository
from voice_receptionist.core.exceptions import ConfigNotFoundError

TENANT_NUMBER = "+34910000001"
RECORDING_URL = "https://api.twilio.com/2010-04-01/Accounts/ACtest/Recordings/REtest"


class FakeTenantRepository(TenantRepository):
    """In-memory tenant repository"""

    def __init__(self, numbers=None, configs=None):
        self.numbers = numbers or {}
        self.configs = configs or {}
        self.loads = 0

    async def find_tenant_id(self, callee_number):
        return self.numbers.get(callee_number)

    async def load_config(self, tenant_id):
        self.loads += 1
        if tenant_id not in self.configs:
            raise ConfigNotFoundError(tenant_id)
        return self.configs[tenant_id]


@pytest.fixture
def sample_config():
    """Tenant that is always open"""
    return TenantCallConfig(
        tenant_id="clinica-sol",
        company_name="Clínica Sol",
        language="es-ES",
        voice_preference="elvira",
        greeting_text="Hola, gracias por llamar a Clínica Sol. ¿En qué puedo ayudarle?",
        business_hours=BusinessHours(enabled=False),
        faqs=(FAQ(question="¿Abren los sábados?", answer="No, solo de lunes a viernes."),),
        company_info=CompanyInfo(description="Clínica dental", phone=TENANT_NUMBER)
    )


@pytest.fixture
def tenant_repository(sample_config):
    return FakeTenantRepository(
        numbers={TENANT_NUMBER: sample_config.tenant_id},
        configs={sample_config.tenant_id: sample_config}
    )


@pytest.fixture
def call_log(tmp_path):
    return SQLiteCallLogRepository(str(tmp_path / "calls.db"))


@pytest.fixture
def primary_audio():
    return AudioArtifact(
        source=AudioSource.PRIMARY,
        locator_or_buffer="https://receptionist.test/audio/tts_1.mp3",
        estimated_duration_seconds=2.5
    )


@pytest.fixture
def mock_synthesis(primary_audio):
    synthesis = MagicMock()
    synthesis.synthesize = AsyncMock(return_value=primary_audio)
    return synthesis


@pytest.fixture
def mock_transcription():
    transcription = MagicMock()
    transcription.is_allowed_locator = MagicMock(return_value=True)
    transcription.transcribe_with_retry = AsyncMock(return_value="Quería pedir una cita")
    return transcription


@pytest.fixture
def mock_conversation():
    conversation = MagicMock()
    conversation.reply = AsyncMock(return_value={"content": "Claro, ¿qué día le viene bien?"})
    return conversation


@pytest.fixture
def quiet_humanizer():
    """Humanizer that never inserts cues"""
    return Humanizer(rng=random.Random(7), ambient_probability=0.0, breath_probability=0.0)


@pytest.fixture
def controller(
    tenant_repository,
    call_log,
    mock_transcription,
    mock_synthesis,
    quiet_humanizer,
    mock_conversation
):
    return CallSessionController(
        tenant_repository=tenant_repository,
        tenant_cache=TenantConfigCache(loader=tenant_repository.load_config, ttl_seconds=300),
        call_log=call_log,
        transcription=mock_transcription,
        synthesis=mock_synthesis,
        humanizer=quiet_humanizer,
        conversation=mock_conversation,
        turn_budget_seconds=5.0
    )


@pytest.fixture
def test_client():
    """Fixture for FastAPI test client"""
    from fastapi.testclient import TestClient
    from voice_receptionist.main import app
    return TestClient(app)
