# FILE: voice_habits/providers/registry.py
"""
Speech output provider construction.

The on-device provider is always registered first; the network audio
provider is appended only when the backend TTS config enables it. The
config is read once, when providers are built.
"""
import logging
from typing import List, Optional

import httpx

from voice_habits.config import Settings, get_settings
from voice_habits.errors import VoiceHabitsError
from voice_habits.models.tts import TTSConfig
from voice_habits.providers.base import SpeechOutputProvider
from voice_habits.providers.network_audio import NetworkAudioProvider
from voice_habits.providers.on_device import OnDeviceProvider, Pyttsx3Engine, SynthesisEngine
from voice_habits.services.habit_api import HabitApiClient
from voice_habits.speech.dispatcher import ProviderChangeCallback, SpeechOutputDispatcher

logger = logging.getLogger(__name__)


def build_providers(
    tts_config: Optional[TTSConfig] = None,
    settings: Optional[Settings] = None,
    engine: Optional[SynthesisEngine] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> List[SpeechOutputProvider]:
    """Providers in failover order"""
    settings = settings or get_settings()
    tts_config = tts_config or TTSConfig()
    providers: List[SpeechOutputProvider] = []

    try:
        providers.append(OnDeviceProvider(
            engine=engine if engine is not None else Pyttsx3Engine(),
            voice_name=settings.tts_voice_name,
            lang=settings.speech_lang,
            pitch=settings.tts_pitch,
            rate=settings.tts_rate,
            volume=settings.tts_volume,
            max_voice_retries=settings.voice_retry_attempts,
            initial_retry_delay=settings.voice_retry_initial_delay_ms / 1000,
            max_retry_delay=settings.voice_retry_max_delay_ms / 1000,
            cancel_settle_delay=settings.synthesis_cancel_delay_ms / 1000,
        ))
    except Exception as e:
        logger.warning(f"Failed to initialize on-device speech: {e}")

    if tts_config.use_network_audio:
        try:
            providers.append(NetworkAudioProvider(
                endpoint=settings.endpoint_url(settings.network_tts_endpoint),
                voice_id=tts_config.network_voice_id,
                config_endpoint=settings.endpoint_url(settings.tts_config_endpoint),
                timeout=settings.tts_request_timeout,
                client=client,
            ))
        except Exception as e:
            logger.warning(f"Failed to initialize network audio: {e}")

    logger.info(f"Initialized {len(providers)} speech providers: {[p.name for p in providers]}")
    return providers


async def load_tts_config(api: HabitApiClient) -> TTSConfig:
    """Read the backend TTS config; on-device only when it cannot be read"""
    try:
        return await api.fetch_tts_config()
    except VoiceHabitsError as e:
        logger.warning(f"TTS config unavailable, using on-device speech only: {e}")
        return TTSConfig()


def build_speech_dispatcher(
    tts_config: Optional[TTSConfig] = None,
    settings: Optional[Settings] = None,
    engine: Optional[SynthesisEngine] = None,
    client: Optional[httpx.AsyncClient] = None,
    on_provider_change: Optional[ProviderChangeCallback] = None,
) -> SpeechOutputDispatcher:
    """Dispatcher over build_providers(), starting on the configured default provider"""
    settings = settings or get_settings()
    providers = build_providers(tts_config, settings=settings, engine=engine, client=client)
    return SpeechOutputDispatcher(
        providers,
        default_provider=settings.tts_provider,
        on_provider_change=on_provider_change,
    )
