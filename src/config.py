"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables.
See .env.example for required variables.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ==========================================================================
    # API Keys
    # ==========================================================================
    deepgram_api_key: SecretStr = Field(description="Deepgram API key for STT")
    groq_api_key: SecretStr = Field(description="Groq API key for translation")
    elevenlabs_api_key: SecretStr | None = Field(
        default=None, description="ElevenLabs API key for realistic TTS"
    )

    # ==========================================================================
    # Application
    # ==========================================================================
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )
    public_base_url: str | None = Field(
        default=None,
        description="Public https URL of this server (used for join links and stream URLs)",
    )

    # ==========================================================================
    # Segment Buffering
    # ==========================================================================
    max_buffer_ms: int = Field(
        default=2000,
        description="Flush immediately once this much audio is buffered",
    )
    min_buffer_ms: int = Field(
        default=400,
        description="Segments shorter than this are discarded as noise",
    )
    silence_gap_ms: int = Field(
        default=600,
        description="Flush after this long without a new frame",
    )
    min_transcript_chars: int = Field(
        default=2,
        description="Transcripts shorter than this are not translated",
    )

    # ==========================================================================
    # Outbound Audio
    # ==========================================================================
    outbound_frame_bytes: int = Field(
        default=160,
        description="µ-law bytes per outbound media frame (160 = 20ms at 8kHz)",
    )
    outbound_pace_every: int = Field(
        default=10,
        description="Pause after every N outbound frames",
    )
    outbound_pace_delay_ms: float = Field(
        default=5.0,
        description="Pause length between outbound frame runs",
    )

    # ==========================================================================
    # Voice / TTS Configuration
    # ==========================================================================
    voice_strategy: Literal["adaptive", "stable"] = Field(
        default="adaptive",
        description="adaptive: synthesize with the caller's analyzed voice; stable: neutral voice",
    )
    tts_provider: Literal["auto", "elevenlabs", "edge"] = Field(
        default="auto",
        description="TTS provider (auto = ElevenLabs when a key is set, else Edge)",
    )
    elevenlabs_model_id: str = Field(
        default="eleven_multilingual_v2",
        description="Default ElevenLabs model ID",
    )
    elevenlabs_male_voice_id: str = Field(
        default="pNInz6obpgDQGcFmaJgB",
        description="ElevenLabs voice used for male and neutral speakers",
    )
    elevenlabs_female_voice_id: str = Field(
        default="9BWtsMINqrJLrRacOk9x",
        description="ElevenLabs voice used for female speakers",
    )
    deepgram_model: str = Field(
        default="nova-2",
        description="Deepgram model for segment transcription",
    )
    groq_translation_model: str = Field(
        default="llama-3.3-70b-versatile",
        description="Groq model used for translation",
    )

    # ==========================================================================
    # Room Lifecycle
    # ==========================================================================
    room_ttl_seconds: int = Field(
        default=3600,
        description="Rooms older than this are removed by the expiry sweep",
    )
    room_sweep_interval_seconds: int = Field(
        default=300,
        description="How often the room expiry sweep runs",
    )
    transcript_history_size: int = Field(
        default=50,
        description="Recent transcript events kept per room and leg",
    )
    transcript_max_age_seconds: int = Field(
        default=600,
        description="Transcript events older than this are pruned",
    )
    transcript_prune_interval_seconds: int = Field(
        default=60,
        description="How often old transcript events are pruned",
    )

    # ==========================================================================
    # Derived Properties
    # ==========================================================================
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def resolved_tts_provider(self) -> Literal["elevenlabs", "edge"]:
        """TTS provider after resolving 'auto'."""
        if self.tts_provider == "auto":
            return "elevenlabs" if self.elevenlabs_api_key else "edge"
        return self.tts_provider


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Use dependency injection in FastAPI:
        settings: Settings = Depends(get_settings)
    """
    return Settings()  # type: ignore[call-arg]  # loads from env
