# FILE: voice_habits/providers/network_audio.py
"""
Network audio provider: a remote TTS endpoint returns a media URL for the text.
"""
import asyncio
import logging
from typing import Optional, List

import httpx

from voice_habits.errors import (
    ConfigurationError, NetworkError, RequestTimeout,
    UpstreamAuthError, UpstreamError, UpstreamRateLimited,
)
from voice_habits.providers.base import HandleBasedProvider
from voice_habits.providers.playback import UrlAudioHandle

logger = logging.getLogger(__name__)


class NetworkAudioProvider(HandleBasedProvider):
    """High-quality network voice (e.g. Fish Audio behind a server proxy)"""

    name = "network_audio"

    def __init__(
        self,
        endpoint: str,
        voice_id: Optional[str] = None,
        config_endpoint: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        player_command: Optional[List[str]] = None,
    ):
        self.endpoint = endpoint
        self.voice_id = voice_id
        self.config_endpoint = config_endpoint
        self.timeout = timeout
        self.client = client or httpx.AsyncClient()
        self.player_command = player_command
        self.audio_handle: Optional[UrlAudioHandle] = None
        logger.info(f"Network audio provider: {endpoint}, voice: {voice_id or 'default'}")

    async def is_available(self) -> bool:
        """Ask the TTS config endpoint whether network audio is enabled"""
        if not self.config_endpoint:
            return True
        try:
            response = await self.client.get(self.config_endpoint, timeout=self.timeout)
            if not response.is_success:
                return False
            return bool(response.json().get("useFishAudio"))
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.error(f"Error checking network audio availability: {e}")
            return False

    async def speak(self, text: str) -> UrlAudioHandle:
        """Convert text to a playable handle"""
        if not text:
            raise ConfigurationError("No text provided for speech")

        payload = {"text": text}
        if self.voice_id:
            payload["voice_id"] = self.voice_id

        try:
            response = await asyncio.wait_for(
                self.client.post(self.endpoint, json=payload, timeout=self.timeout), self.timeout
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise RequestTimeout(f"Network TTS request timed out after {self.timeout}s") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Network TTS request failed: {e}") from e

        if not response.is_success:
            raise self._upstream_error(response)

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError("Invalid response from network TTS endpoint", status_code=response.status_code) from e

        audio_url = data.get("audio_url") if isinstance(data, dict) else None
        if not audio_url:
            raise ConfigurationError("No audio URL returned from network TTS endpoint")

        # Relative media paths are served by the same backend
        audio_url = str(httpx.URL(self.endpoint).join(audio_url))

        self.audio_handle = UrlAudioHandle(
            audio_url, self.client, timeout=self.timeout, player_command=self.player_command
        )
        return self.audio_handle

    def _upstream_error(self, response: httpx.Response) -> UpstreamError:
        try:
            detail = response.json().get("error") or response.reason_phrase
        except (ValueError, AttributeError):
            detail = response.reason_phrase
        message = f"Network TTS error ({response.status_code}): {detail}"

        if response.status_code == 429:
            return UpstreamRateLimited(message, status_code=429)
        if response.status_code in (401, 403):
            return UpstreamAuthError(message, status_code=response.status_code)
        return UpstreamError(message, status_code=response.status_code)

    def stop(self) -> None:
        if self.audio_handle is not None:
            self.audio_handle.pause()
            self.audio_handle = None
