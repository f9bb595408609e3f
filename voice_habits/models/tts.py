# FILE: voice_habits/models/tts.py
"""
TTS configuration served by the backend
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

__all__ = ["TTSConfig"]


class TTSConfig(BaseModel):
    """Result of GET /api/tts-config, read once when providers are built"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    use_network_audio: bool = Field(default=False, alias="useFishAudio")
    network_voice_id: Optional[str] = Field(default=None, alias="fishAudioVoiceId")
