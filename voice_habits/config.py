# FILE: voice_habits/config.py
"""
Configuration management for the voice habit check-in core
Loads from environment variables with validation
"""
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


TTS_PROVIDER_NAMES = ("on_device", "network_audio")


class Settings(BaseSettings):
    """Application settings loaded from environment"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # External API (habit tracker backend)
    api_base_url: str = Field(default="http://localhost:3000", alias="API_BASE_URL")
    habit_stack_endpoint: str = Field(default="/api/habit-stack", alias="HABIT_STACK_ENDPOINT")
    daily_log_endpoint: str = Field(default="/api/daily-log", alias="DAILY_LOG_ENDPOINT")
    process_goals_endpoint: str = Field(default="/api/process-goals", alias="PROCESS_GOALS_ENDPOINT")
    tts_config_endpoint: str = Field(default="/api/tts-config", alias="TTS_CONFIG_ENDPOINT")
    network_tts_endpoint: str = Field(default="/api/tts/fish-audio", alias="NETWORK_TTS_ENDPOINT")

    # Timeouts (seconds)
    habit_request_timeout: float = Field(default=15.0, alias="HABIT_REQUEST_TIMEOUT")
    goals_request_timeout: float = Field(default=30.0, alias="GOALS_REQUEST_TIMEOUT")
    tts_request_timeout: float = Field(default=30.0, alias="TTS_REQUEST_TIMEOUT")

    # Speech output
    tts_provider: str = Field(default="on_device", alias="TTS_PROVIDER")
    tts_voice_name: Optional[str] = Field(default=None, alias="TTS_VOICE_NAME")
    speech_lang: str = Field(default="en-US", alias="SPEECH_LANG")
    tts_pitch: float = Field(default=1.0, alias="TTS_PITCH")
    tts_rate: float = Field(default=1.0, alias="TTS_RATE")
    tts_volume: float = Field(default=1.0, alias="TTS_VOLUME")
    voice_retry_attempts: int = Field(default=5, alias="VOICE_RETRY_ATTEMPTS")
    voice_retry_initial_delay_ms: int = Field(default=100, alias="VOICE_RETRY_INITIAL_DELAY_MS")
    voice_retry_max_delay_ms: int = Field(default=1000, alias="VOICE_RETRY_MAX_DELAY_MS")
    synthesis_cancel_delay_ms: int = Field(default=50, alias="SYNTHESIS_CANCEL_DELAY_MS")

    # Sessions
    max_goals: int = Field(default=5, alias="MAX_GOALS")
    max_clarifications: int = Field(
        default=3,
        alias="MAX_CLARIFICATIONS",
        description="Re-prompts allowed for one habit before it is recorded as skipped"
    )
    session_timezone: Optional[str] = Field(
        default=None,
        alias="SESSION_TIMEZONE",
        description="IANA zone used for 'today' and week start; system local time when unset"
    )

    # Logging / telemetry
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    logs_dir: str = Field(default="./logs", alias="LOGS_DIR")
    telemetry_enabled: bool = Field(default=True, alias="TELEMETRY_ENABLED")
    telemetry_retention_days: int = Field(default=30, alias="TELEMETRY_RETENTION_DAYS")

    # Governance
    redaction_enabled: bool = Field(default=True, alias="REDACTION_ENABLED")

    # Validators
    @field_validator("tts_provider")
    @classmethod
    def validate_tts_provider(cls, v):
        if v not in TTS_PROVIDER_NAMES:
            raise ValueError(f"tts_provider must be one of {', '.join(TTS_PROVIDER_NAMES)}")
        return v

    @field_validator("habit_request_timeout", "goals_request_timeout", "tts_request_timeout")
    @classmethod
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError("request timeouts must be positive")
        return v

    @field_validator("max_goals")
    @classmethod
    def validate_max_goals(cls, v):
        if not 1 <= v <= 5:
            raise ValueError("max_goals must be between 1 and 5")
        return v

    @field_validator("max_clarifications", "voice_retry_attempts")
    @classmethod
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError("retry budgets cannot be negative")
        return v

    def endpoint_url(self, path: str) -> str:
        """Join a configured endpoint path onto the API base URL"""
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.api_base_url.rstrip('/')}/{path.lstrip('/')}"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create singleton settings instance"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings():
    """Reload settings (useful for testing)"""
    global _settings
    _settings = None
    return get_settings()
