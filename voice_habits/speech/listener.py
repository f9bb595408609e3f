# FILE: voice_habits/speech/listener.py
"""
Speech-to-text listener over a pluggable recognizer.

Recognizers emit RESULT (interim or final), ERROR and END events, like the
browser Web Speech engine. The listener offers two shapes:

- listen_once(): one utterance, ends after the first final result
- start_continuous() / stop(): dictation with interim results, returns the
  final fragments joined with single spaces
"""
import asyncio
import logging
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, TextIO

from voice_habits.errors import SpeechInputError, UnsupportedError

logger = logging.getLogger(__name__)


class RecognitionEventKind(str, Enum):
    RESULT = "result"
    ERROR = "error"
    END = "end"


@dataclass
class RecognitionEvent:
    kind: RecognitionEventKind
    transcript: str = ""
    is_final: bool = True
    error: Optional[str] = None


class SpeechRecognizer:
    """Speech recognition engine interface"""

    name: str = "base"

    def is_available(self) -> bool:
        return True

    async def start(self, continuous: bool, interim_results: bool, lang: str) -> None:
        raise NotImplementedError

    async def stop(self) -> None:
        raise NotImplementedError

    async def next_event(self) -> RecognitionEvent:
        raise NotImplementedError


class QueueRecognizer(SpeechRecognizer):
    """
    Recognizer fed from outside: a transport relaying browser Web Speech
    results calls push_result / push_error / push_end.
    """

    name = "queue"

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._running = False
        self._continuous = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self, continuous: bool, interim_results: bool, lang: str) -> None:
        if self._running:
            raise SpeechInputError("Speech recognition already started")
        # Drop anything left over from a previous session
        while not self._queue.empty():
            self._queue.get_nowait()
        self._continuous = continuous
        self._running = True

    def push_result(self, transcript: str, is_final: bool = True) -> None:
        if not self._running:
            logger.debug("Recognition result dropped (not listening)")
            return
        self._queue.put_nowait(
            RecognitionEvent(RecognitionEventKind.RESULT, transcript=transcript, is_final=is_final)
        )
        if is_final and not self._continuous:
            self._end()

    def push_error(self, error: str) -> None:
        if not self._running:
            return
        self._queue.put_nowait(RecognitionEvent(RecognitionEventKind.ERROR, error=error))
        self._end()

    def push_end(self) -> None:
        self._end()

    def _end(self) -> None:
        if self._running:
            self._running = False
            self._queue.put_nowait(RecognitionEvent(RecognitionEventKind.END))

    async def stop(self) -> None:
        self._end()

    async def next_event(self) -> RecognitionEvent:
        return await self._queue.get()


class ConsoleRecognizer(QueueRecognizer):
    """Typed 'speech' from a text stream; a blank line or EOF ends listening"""

    name = "console"

    def __init__(self, stream: Optional[TextIO] = None, prompt: str = "> "):
        super().__init__()
        self.stream = stream or sys.stdin
        self.prompt = prompt
        self._reader: Optional[asyncio.Task] = None

    def _readline(self) -> str:
        if self.prompt and self.stream is sys.stdin:
            sys.stdout.write(self.prompt)
            sys.stdout.flush()
        return self.stream.readline()

    async def start(self, continuous: bool, interim_results: bool, lang: str) -> None:
        await super().start(continuous, interim_results, lang)
        self._reader = asyncio.create_task(self._read())

    async def _read(self) -> None:
        while self.running:
            line = await asyncio.to_thread(self._readline)
            text = line.strip()
            if not text:
                self.push_end()
                return
            self.push_result(text, is_final=True)


@dataclass
class ListenOutcome:
    """Result of one listen: transcript is None when the engine ended without a usable result"""
    transcript: Optional[str] = None

    @property
    def has_result(self) -> bool:
        return bool(self.transcript)


class SpeechInputListener:
    """Wraps a recognizer; at most one listen in flight"""

    def __init__(
        self,
        recognizer: SpeechRecognizer,
        lang: str = "en-US",
        on_interim: Optional[Callable[[str, str], None]] = None,
        on_final: Optional[Callable[[str], None]] = None,
    ):
        self.recognizer = recognizer
        self.lang = lang
        self.on_interim = on_interim
        self.on_final = on_final
        self.is_listening = False
        self.last_error: Optional[SpeechInputError] = None
        self._fragments: List[str] = []
        self._collector: Optional[asyncio.Task] = None

    async def _start(self, continuous: bool, interim_results: bool) -> None:
        if not self.recognizer.is_available():
            raise UnsupportedError("Speech recognition is not supported on this platform")
        if self.is_listening:
            raise SpeechInputError("Speech recognition already started")
        try:
            await self.recognizer.start(continuous=continuous, interim_results=interim_results, lang=self.lang)
        except SpeechInputError:
            raise
        except Exception as e:
            raise SpeechInputError(f"Error starting speech recognition: {e}") from e
        self.is_listening = True
        self.last_error = None

    async def listen_once(self) -> ListenOutcome:
        """Listen for a single utterance"""
        await self._start(continuous=False, interim_results=False)
        transcript: Optional[str] = None
        try:
            while True:
                event = await self.recognizer.next_event()
                if event.kind == RecognitionEventKind.RESULT:
                    text = event.transcript.strip()
                    if event.is_final and text:
                        transcript = text
                        if self.on_final:
                            self.on_final(text)
                elif event.kind == RecognitionEventKind.ERROR:
                    raise SpeechInputError(f"Speech recognition error: {event.error}")
                elif event.kind == RecognitionEventKind.END:
                    break
        finally:
            self.is_listening = False
        return ListenOutcome(transcript=transcript)

    async def start_continuous(self) -> bool:
        """Start dictation; False (no-op) when already listening"""
        if self.is_listening:
            return False
        self._fragments = []
        await self._start(continuous=True, interim_results=True)
        self._collector = asyncio.create_task(self._collect())
        return True

    async def _collect(self) -> None:
        try:
            while True:
                event = await self.recognizer.next_event()
                if event.kind == RecognitionEventKind.RESULT:
                    text = event.transcript.strip()
                    if event.is_final:
                        if text:
                            self._fragments.append(text)
                            if self.on_final:
                                self.on_final(text)
                    elif self.on_interim:
                        complete = " ".join(self._fragments + [text]).strip()
                        self.on_interim(text, complete)
                elif event.kind == RecognitionEventKind.ERROR:
                    self.last_error = SpeechInputError(f"Speech recognition error: {event.error}")
                    logger.error(str(self.last_error))
                elif event.kind == RecognitionEventKind.END:
                    break
        finally:
            self.is_listening = False

    @property
    def transcript(self) -> str:
        """Final fragments collected so far"""
        return " ".join(self._fragments)

    async def stop(self) -> str:
        """Stop dictation and return the final transcript"""
        if self._collector is None:
            return self.transcript
        await self.recognizer.stop()
        collector, self._collector = self._collector, None
        await collector
        return self.transcript
