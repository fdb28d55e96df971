"""
Configuration management for the Voice Receptionist
Uses Pydantic Settings for environment variable management
"""

from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application Settings
    app_name: str = Field(default="Voice Receptionist")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    environment: str = Field(default="development")

    # Server Configuration
    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=8000)
    api_base_url: str = Field(default="http://localhost:8000")

    # Twilio Configuration
    twilio_account_sid: str = Field(default="")
    twilio_auth_token: str = Field(default="")
    twilio_validate_signatures: bool = Field(default=False)

    # OpenAI Configuration (transcription and optional conversation backend)
    openai_api_key: str = Field(default="")
    openai_model: str = Field(default="gpt-4o-mini")
    openai_transcription_model: str = Field(default="whisper-1")

    # Azure Speech Configuration
    azure_speech_key: str = Field(default="")
    azure_speech_region: str = Field(default="westeurope")
    azure_output_format: str = Field(default="audio-16khz-32kbitrate-mono-mp3")
    tts_timeout_seconds: float = Field(default=8.0)
    default_voice: str = Field(default="es-ES-DarioNeural")
    audio_output_dir: str = Field(default="data/audio")
    audio_mount_path: str = Field(default="/audio")
    audio_retention_seconds: int = Field(default=3600)
    audio_sweep_interval_seconds: int = Field(default=300)
    audio_cache_ttl_seconds: int = Field(default=1800)

    # Native gateway voice used when synthesis is unavailable
    fallback_voice: str = Field(default="Polly.Conchita")
    fallback_language: str = Field(default="es-ES")

    # Transcription
    transcription_max_attempts: int = Field(default=2)
    transcription_retry_delay: float = Field(default=1.0)
    transcription_download_timeout: float = Field(default=5.0)
    transcription_timeout_seconds: float = Field(default=8.0)
    transcription_allowed_hosts: str = Field(default="api.twilio.com")
    transcription_allowed_extensions: str = Field(default=".wav,.mp3")

    # Conversation collaborator
    conversation_provider: str = Field(default="http")
    conversation_webhook_url: Optional[str] = Field(default=None)
    conversation_timeout_seconds: float = Field(default=10.0)

    # Record continuation
    record_max_length: int = Field(default=30)
    record_timeout: int = Field(default=5)
    record_finish_on_key: str = Field(default="#")

    # Humanizer
    humanizer_ambient_probability: float = Field(default=0.15)
    humanizer_breath_probability: float = Field(default=0.25)

    # Tenant configuration cache
    tenant_cache_ttl_seconds: int = Field(default=300)
    tenant_cache_backend: str = Field(default="memory")
    redis_url: str = Field(default="redis://localhost:6379/0")

    # Storage
    tenants_file_path: str = Field(default="data/tenants.json")
    call_log_db_path: str = Field(default="data/call_log.db")

    # Upper bound for producing a control document for one webhook
    turn_budget_seconds: float = Field(default=13.0)

    @property
    def allowed_recording_hosts(self) -> List[str]:
        """Parse allowed recording hosts from comma-separated string"""
        return [h.strip().lower() for h in self.transcription_allowed_hosts.split(",") if h.strip()]

    @property
    def allowed_recording_extensions(self) -> List[str]:
        """Parse allowed recording extensions from comma-separated string"""
        return [e.strip().lower() for e in self.transcription_allowed_extensions.split(",") if e.strip()]

    @property
    def recording_callback_url(self) -> str:
        return f"{self.api_base_url.rstrip('/')}/api/v1/webhooks/twilio/recording"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
