# FILE: voice_habits/speech/dispatcher.py
"""
Speech output dispatcher: one speak() contract over ordered providers.

- At most one utterance plays at a time (speak() stops the previous one).
- On failure the active provider advances circularly and the text is retried
  exactly once on the next provider.
- The active provider is remembered across calls.
- A stopped call resolves at once; whatever its provider returns or raises
  afterwards is discarded.
"""
import asyncio
import logging
from typing import Callable, List, Optional, Sequence

from voice_habits.errors import ConfigurationError, SpeechOutputError
from voice_habits.providers.base import (
    AudioHandle, HandleBasedProvider, PlaybackMode, SelfManagedProvider, SpeechOutputProvider,
)
from voice_habits.services.telemetry import record_event

logger = logging.getLogger(__name__)

ProviderChangeCallback = Callable[[Optional[SpeechOutputProvider], Optional[SpeechOutputProvider]], None]


def _discard_late_audio(request: asyncio.Future) -> None:
    """Silence whatever a stopped request still produces"""
    if request.cancelled():
        return
    error = request.exception()
    if error is not None:
        logger.debug(f"Discarded error from stopped speech request: {error}")
        return
    audio = request.result()
    if audio is not None:
        audio.pause()


class SpeechOutputDispatcher:
    """Routes speech to the active provider with one-hop failover"""

    def __init__(
        self,
        providers: Sequence[SpeechOutputProvider],
        default_provider: Optional[str] = None,
        on_provider_change: Optional[ProviderChangeCallback] = None,
    ):
        self.providers: List[SpeechOutputProvider] = []
        for provider in providers:
            if provider is None or not provider.name:
                continue
            if any(p.name == provider.name for p in self.providers):
                logger.warning(f"Duplicate speech provider '{provider.name}' ignored")
                continue
            self.providers.append(provider)

        self.current_index = 0
        names = self.provider_names
        if default_provider and default_provider in names:
            self.current_index = names.index(default_provider)
        elif default_provider:
            logger.warning(f"Unknown default speech provider '{default_provider}', using '{names[0] if names else None}'")

        self.on_provider_change = on_provider_change
        self.is_playing = False
        self._current_audio: Optional[AudioHandle] = None
        self._pending: Optional[asyncio.Future] = None
        self._request: Optional[asyncio.Future] = None
        self._active_call: Optional[object] = None

        logger.info(f"Speech providers: {names} (active: {self.current_provider_name})")

    @property
    def provider_names(self) -> List[str]:
        return [p.name for p in self.providers]

    @property
    def current_provider(self) -> Optional[SpeechOutputProvider]:
        if not self.providers:
            return None
        return self.providers[self.current_index]

    @property
    def current_provider_name(self) -> Optional[str]:
        provider = self.current_provider
        return provider.name if provider else None

    def has_providers(self) -> bool:
        return len(self.providers) > 0

    def switch_to_next_provider(self) -> bool:
        """Advance circularly; False when there is nothing to switch to"""
        if len(self.providers) <= 1:
            return False

        previous = self.current_provider
        self.current_index = (self.current_index + 1) % len(self.providers)
        current = self.current_provider

        logger.warning(f"Switching speech provider: {previous.name} -> {current.name}")
        record_event("tts_provider_switch", previous=previous.name, current=current.name)
        if self.on_provider_change:
            try:
                self.on_provider_change(previous, current)
            except Exception as e:
                logger.error(f"Provider change observer failed: {e}")
        return True

    async def speak(self, text: str) -> None:
        """Speak text; resolves when playback ends or stop() is called, raises after the single failover fails"""
        if not text:
            raise SpeechOutputError("No text provided for speech")
        if not self.has_providers():
            raise ConfigurationError("No TTS providers available")

        self.stop()
        self.is_playing = True
        call = object()
        self._active_call = call

        try:
            try:
                await self._try_current_provider(text, call)
            except Exception as first_error:
                if self._active_call is not call:
                    logger.debug(f"Ignoring error from stopped speech call: {first_error}")
                    return
                logger.warning(f"Error with provider {self.current_provider_name}: {first_error}")
                if not self.switch_to_next_provider():
                    record_event("tts_failed", provider=self.current_provider_name, error=str(first_error))
                    raise

                try:
                    await self._try_current_provider(text, call)
                except Exception as second_error:
                    if self._active_call is not call:
                        logger.debug(f"Ignoring error from stopped speech call: {second_error}")
                        return
                    logger.error(f"Error with fallback provider {self.current_provider_name}: {second_error}")
                    record_event("tts_failed", provider=self.current_provider_name, error=str(second_error))
                    raise
        finally:
            # stop() or a newer speak() may own the playback state by now
            if self._active_call is call:
                self._active_call = None
                self.is_playing = False
                self._current_audio = None
                self._pending = None

    async def _try_current_provider(self, text: str, call: object) -> None:
        provider = self.current_provider
        if provider is None:
            raise ConfigurationError("No TTS provider available")

        loop = asyncio.get_running_loop()
        finished = loop.create_future()
        self._pending = finished

        def complete():
            if not finished.done():
                finished.set_result(None)

        def fail(error: BaseException):
            if not finished.done():
                finished.set_exception(error)

        try:
            if provider.playback_mode == PlaybackMode.HANDLE:
                await self._play_handle(provider, text, call, finished, complete, fail)
            elif provider.playback_mode == PlaybackMode.SELF_MANAGED:
                await self._play_self_managed(provider, text, complete, fail)
            else:
                raise ConfigurationError(f"Provider {provider.name} declares no playback mode")
        except BaseException:
            # The provider may also have reported through on_error; consume it
            if finished.done() and not finished.cancelled():
                finished.exception()
            raise

        if self._active_call is not call:
            return
        await finished

    async def _play_handle(
        self, provider: HandleBasedProvider, text: str, call: object, finished: asyncio.Future, complete, fail
    ) -> None:
        # The request runs as its own task; stop() cancels it and settles `finished`
        request = asyncio.ensure_future(provider.speak(text))
        self._request = request
        try:
            await asyncio.wait({request, finished}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            request.cancel()
            raise
        finally:
            if self._request is request:
                self._request = None

        if self._active_call is not call or not request.done():
            request.cancel()
            request.add_done_callback(_discard_late_audio)
            return

        audio = request.result()
        if audio is None:
            raise SpeechOutputError("No audio element returned from provider")

        self._current_audio = audio
        audio.add_listener("ended", complete)
        audio.add_listener("error", lambda error=None: fail(
            error if isinstance(error, BaseException) else SpeechOutputError("Audio playback error")
        ))
        await audio.play()

    async def _play_self_managed(self, provider: SelfManagedProvider, text: str, complete, fail) -> None:
        # The provider resolves when its utterance ends; callbacks settle the same future
        await provider.speak(text, on_complete=complete, on_error=fail)
        complete()

    def stop(self) -> None:
        """Stop the active call's output; safe when nothing is playing"""
        provider = self.current_provider
        if provider is None or not self.is_playing:
            return

        # Detach the running call first so nothing it receives later is played
        self._active_call = None
        self.is_playing = False

        if self._request is not None and not self._request.done():
            self._request.cancel()
        self._request = None

        if self._current_audio is not None:
            self._current_audio.pause()
            self._current_audio = None

        provider.stop()

        # A stopped utterance counts as finished for whoever awaits it
        if self._pending is not None and not self._pending.done():
            self._pending.set_result(None)
        self._pending = None
