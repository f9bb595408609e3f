# FILE: voice_habits/providers/on_device.py
"""
On-device speech synthesis provider.
Default engine: pyttsx3 (offline, platform voices).
"""
import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

# --- LAZY IMPORTS ---
try:
    import pyttsx3
except ImportError:
    pyttsx3 = None

from voice_habits.errors import SynthesisError, UnsupportedError
from voice_habits.providers.base import SelfManagedProvider, CompletionCallback, ErrorCallback

logger = logging.getLogger(__name__)

# pyttsx3 default speaking rate (words per minute) for rate=1.0
BASE_WORDS_PER_MINUTE = 200


@dataclass(frozen=True)
class Voice:
    id: str
    name: str
    lang: str = ""


@dataclass
class Utterance:
    text: str
    voice: Optional[Voice] = None
    lang: str = "en-US"
    pitch: float = 1.0
    rate: float = 1.0
    volume: float = 1.0


class SynthesisEngine:
    """Platform synthesis engine interface"""

    def is_available(self) -> bool:
        return True

    def get_voices(self) -> List[Voice]:
        raise NotImplementedError

    def speak(
        self,
        utterance: Utterance,
        on_end: Callable[[], None],
        on_error: Callable[[BaseException], None],
    ) -> None:
        """Queue the utterance; exactly one of the callbacks fires when it finishes"""
        raise NotImplementedError

    def cancel(self) -> None:
        raise NotImplementedError


class Pyttsx3Engine(SynthesisEngine):
    """pyttsx3 engine; runAndWait blocks, so each utterance runs on a worker thread"""

    def __init__(self):
        self._engine = None
        self._lock = threading.Lock()
        self._pitch_logged = False
        if pyttsx3 is None:
            logger.warning("pyttsx3 not installed; on-device speech unavailable")
            return
        try:
            self._engine = pyttsx3.init()
        except (RuntimeError, OSError, ImportError) as e:
            logger.warning(f"pyttsx3 failed to initialise: {e}")

    def is_available(self) -> bool:
        return self._engine is not None

    def get_voices(self) -> List[Voice]:
        if self._engine is None:
            return []
        voices = []
        for v in self._engine.getProperty("voices") or []:
            voices.append(Voice(id=v.id, name=v.name or v.id, lang=_voice_lang(v)))
        return voices

    def speak(self, utterance, on_end, on_error) -> None:
        thread = threading.Thread(
            target=self._run, args=(utterance, on_end, on_error), daemon=True
        )
        thread.start()

    def _run(self, utterance: Utterance, on_end, on_error) -> None:
        try:
            with self._lock:
                if utterance.voice is not None:
                    self._engine.setProperty("voice", utterance.voice.id)
                self._engine.setProperty("rate", int(BASE_WORDS_PER_MINUTE * utterance.rate))
                self._engine.setProperty("volume", utterance.volume)
                if utterance.pitch != 1.0 and not self._pitch_logged:
                    # pyttsx3 exposes no pitch property
                    logger.debug(f"pyttsx3 ignores pitch {utterance.pitch}; speaking at the voice default")
                    self._pitch_logged = True
                self._engine.say(utterance.text)
                self._engine.runAndWait()
        except Exception as e:
            on_error(e)
            return
        on_end()

    def cancel(self) -> None:
        if self._engine is not None:
            self._engine.stop()


def _voice_lang(voice) -> str:
    languages = getattr(voice, "languages", None) or []
    if not languages:
        return ""
    lang = languages[0]
    if isinstance(lang, bytes):
        lang = lang.decode("utf-8", errors="ignore")
    return str(lang).strip("\x05 ").replace("_", "-")


class OnDeviceProvider(SelfManagedProvider):
    """Built-in platform synthesis (fallback voice)"""

    name = "on_device"

    def __init__(
        self,
        engine: Optional[SynthesisEngine] = None,
        voice_name: Optional[str] = None,
        lang: str = "en-US",
        pitch: float = 1.0,
        rate: float = 1.0,
        volume: float = 1.0,
        max_voice_retries: int = 5,
        initial_retry_delay: float = 0.1,
        max_retry_delay: float = 1.0,
        cancel_settle_delay: float = 0.05,
    ):
        self.engine = engine
        self.voice_name = voice_name
        self.lang = lang
        self.pitch = pitch
        self.rate = rate
        self.volume = volume
        self.max_voice_retries = max_voice_retries
        self.initial_retry_delay = initial_retry_delay
        self.max_retry_delay = max_retry_delay
        self.cancel_settle_delay = cancel_settle_delay
        self._pending: Optional[asyncio.Future] = None

    async def is_available(self) -> bool:
        return self.engine is not None and self.engine.is_available()

    def find_voice(self) -> Optional[Voice]:
        """Best voice: exact name, partial name, language, then the first voice"""
        voices = self.engine.get_voices()
        if not voices:
            return None

        if self.voice_name:
            wanted = self.voice_name.lower()
            for voice in voices:
                if voice.name.lower() == wanted:
                    return voice
            for voice in voices:
                if wanted in voice.name.lower():
                    return voice

        lang = self.lang.lower().replace("_", "-")
        for voice in voices:
            if voice.lang.lower().replace("_", "-") == lang:
                return voice

        return voices[0]

    async def find_voice_with_retry(self) -> Optional[Voice]:
        """Voice lists may load after engine start; retry with backoff"""
        voice = self.find_voice()
        if voice is not None:
            return voice

        delay = self.initial_retry_delay
        for attempt in range(1, self.max_voice_retries + 1):
            await asyncio.sleep(delay)
            voice = self.find_voice()
            if voice is not None:
                logger.info(f"Voice '{voice.name}' found after {attempt} retries")
                return voice
            delay = min(delay * 1.5, self.max_retry_delay)

        logger.warning(f"No voice found after {self.max_voice_retries} retries")
        return None

    async def speak(
        self,
        text: str,
        on_complete: Optional[CompletionCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        if not await self.is_available():
            raise UnsupportedError("On-device speech synthesis is not supported on this platform")
        if not text:
            raise SynthesisError("No text provided for speech")

        loop = asyncio.get_running_loop()
        done = loop.create_future()

        def finish(error: Optional[BaseException] = None):
            if done.done():
                return
            if error is None:
                done.set_result(None)
            elif isinstance(error, SynthesisError):
                done.set_exception(error)
            else:
                done.set_exception(SynthesisError(f"Speech synthesis error: {error}"))

        try:
            voice = await self.find_voice_with_retry()
            if voice is None:
                logger.warning("Using default voice (no matching voice found)")

            utterance = Utterance(
                text=text, voice=voice, lang=self.lang,
                pitch=self.pitch, rate=self.rate, volume=self.volume,
            )

            # Clear anything still queued, then give the engine a moment to settle
            self.engine.cancel()
            await asyncio.sleep(self.cancel_settle_delay)

            self._pending = done
            self.engine.speak(
                utterance,
                on_end=lambda: loop.call_soon_threadsafe(finish),
                on_error=lambda e: loop.call_soon_threadsafe(finish, e),
            )
            await done
        except SynthesisError as e:
            logger.error(f"Speech synthesis failed: {e}")
            if on_error:
                on_error(e)
            raise
        except Exception as e:
            error = SynthesisError(f"Error initializing speech: {e}")
            logger.error(str(error))
            if on_error:
                on_error(error)
            raise error from e
        finally:
            if self._pending is done:
                self._pending = None

        if on_complete:
            on_complete()

    def stop(self) -> None:
        if self.engine is not None:
            self.engine.cancel()
        if self._pending is not None and not self._pending.done():
            self._pending.set_result(None)
        self._pending = None
