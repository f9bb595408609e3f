# FILE: voice_habits/providers/base.py
"""
Speech output provider interfaces.

Providers declare how playback completes through ``playback_mode``:

- HANDLE: ``speak(text)`` returns an AudioHandle; the dispatcher attaches
  ended/error listeners and starts playback itself (network audio).
- SELF_MANAGED: ``speak(text, on_complete, on_error)`` plays and reports
  completion through the callbacks, resolving when playback ends
  (on-device synthesis).
"""
import logging
from enum import Enum
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[], None]
ErrorCallback = Callable[[BaseException], None]


class PlaybackMode(str, Enum):
    HANDLE = "handle"
    SELF_MANAGED = "self_managed"


class AudioHandle:
    """Playable audio returned by handle-based providers"""

    EVENTS = ("ended", "error")

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {event: [] for event in self.EVENTS}

    def add_listener(self, event: str, callback: Callable) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unknown audio event: {event}")
        self._listeners[event].append(callback)

    def _emit(self, event: str, *args) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"Audio '{event}' listener failed: {e}")

    async def play(self) -> None:
        """Start playback; raises if playback cannot start"""
        raise NotImplementedError

    def pause(self) -> None:
        """Stop playback without emitting 'ended'"""
        raise NotImplementedError


class SpeechOutputProvider:
    """Text-to-speech provider interface"""

    name: str = "base"
    playback_mode: PlaybackMode

    async def is_available(self) -> bool:
        return True

    def stop(self) -> None:
        """Stop current output (idempotent)"""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name}>"


class HandleBasedProvider(SpeechOutputProvider):
    """Provider that hands back a playable audio handle"""

    playback_mode = PlaybackMode.HANDLE

    async def speak(self, text: str) -> AudioHandle:
        raise NotImplementedError


class SelfManagedProvider(SpeechOutputProvider):
    """Provider that manages its own completion callbacks"""

    playback_mode = PlaybackMode.SELF_MANAGED

    async def speak(
        self,
        text: str,
        on_complete: Optional[CompletionCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        raise NotImplementedError
