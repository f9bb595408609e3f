# FILE: tests/conftest.py

import asyncio
import sys
from collections import deque
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import httpx
import pytest

from voice_habits.config import reload_settings
from voice_habits.errors import SynthesisError
from voice_habits.models.habits import HabitStack
from voice_habits.models.goals import GoalsResult
from voice_habits.providers.base import AudioHandle, HandleBasedProvider, SelfManagedProvider
from voice_habits.providers.on_device import SynthesisEngine, Voice
from voice_habits.services.habit_api import HabitApiClient, StaticAuth
from voice_habits.speech.dispatcher import SpeechOutputDispatcher
from voice_habits.speech.listener import (
    RecognitionEvent, RecognitionEventKind, SpeechInputListener, SpeechRecognizer,
)


@pytest.fixture(autouse=True)
def settings(monkeypatch, tmp_path):
    """Fresh settings per test: telemetry off, logs in tmp, no real delays"""
    monkeypatch.setenv("TELEMETRY_ENABLED", "false")
    monkeypatch.setenv("LOGS_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("API_BASE_URL", "http://habits.test")
    monkeypatch.setenv("SYNTHESIS_CANCEL_DELAY_MS", "0")
    monkeypatch.setenv("VOICE_RETRY_INITIAL_DELAY_MS", "1")
    monkeypatch.setenv("VOICE_RETRY_MAX_DELAY_MS", "2")
    monkeypatch.delenv("SESSION_TIMEZONE", raising=False)
    return reload_settings()


# --- Speech output fakes ---

class FakeAudioHandle(AudioHandle):
    def __init__(self, fail: bool = False):
        super().__init__()
        self.fail = fail
        self.played = False
        self.paused = False

    async def play(self):
        self.played = True
        loop = asyncio.get_running_loop()
        if self.fail:
            loop.call_soon(self._emit, "error", SynthesisError("decode failed"))
        else:
            loop.call_soon(self._emit, "ended")

    def pause(self):
        self.paused = True


class FakeHandleProvider(HandleBasedProvider):
    def __init__(self, name="network_audio", fail_request=False, fail_playback=False):
        self.name = name
        self.fail_request = fail_request
        self.fail_playback = fail_playback
        self.spoken = []
        self.stop_calls = 0

    async def speak(self, text):
        self.spoken.append(text)
        if self.fail_request:
            raise SynthesisError("upstream exploded")
        return FakeAudioHandle(fail=self.fail_playback)

    def stop(self):
        self.stop_calls += 1


class FakeSelfManagedProvider(SelfManagedProvider):
    def __init__(self, name="on_device", fail=False):
        self.name = name
        self.fail = fail
        self.spoken = []
        self.stop_calls = 0

    async def speak(self, text, on_complete=None, on_error=None):
        self.spoken.append(text)
        if self.fail:
            error = SynthesisError("no voices")
            if on_error:
                on_error(error)
            raise error
        if on_complete:
            on_complete()

    def stop(self):
        self.stop_calls += 1


class FakeEngine(SynthesisEngine):
    """Synthesis engine finishing each utterance on the next loop turn"""

    def __init__(self, voices=None, available=True, error=None, voices_after=0):
        self.voices = voices if voices is not None else [Voice("v1", "Samantha", "en-US")]
        self.available = available
        self.error = error
        self.voices_after = voices_after
        self.voice_queries = 0
        self.utterances = []
        self.cancel_calls = 0

    def is_available(self):
        return self.available

    def get_voices(self):
        self.voice_queries += 1
        if self.voice_queries <= self.voices_after:
            return []
        return self.voices

    def speak(self, utterance, on_end, on_error):
        self.utterances.append(utterance)
        if self.error is not None:
            on_error(self.error)
        else:
            on_end()

    def cancel(self):
        self.cancel_calls += 1


# --- Speech input fakes ---

class RecognitionFailure:
    def __init__(self, code="network"):
        self.code = code


class ScriptedRecognizer(SpeechRecognizer):
    """
    Replays one script entry per start():
    str -> final result, None -> end without result,
    RecognitionFailure -> error, list -> continuous fragments
    (a (text, False) tuple is an interim result)
    """

    name = "scripted"

    def __init__(self, script):
        self.script = list(script)
        self.events = deque()
        self.starts = 0
        self.modes = []

    async def start(self, continuous, interim_results, lang):
        self.starts += 1
        self.modes.append(continuous)
        item = self.script.pop(0) if self.script else None
        self.events = deque(self._events_for(item))

    def _events_for(self, item):
        end = RecognitionEvent(RecognitionEventKind.END)
        if item is None:
            return [end]
        if isinstance(item, RecognitionFailure):
            return [RecognitionEvent(RecognitionEventKind.ERROR, error=item.code), end]
        if isinstance(item, list):
            events = []
            for fragment in item:
                if isinstance(fragment, tuple):
                    text, final = fragment
                else:
                    text, final = fragment, True
                events.append(RecognitionEvent(RecognitionEventKind.RESULT, transcript=text, is_final=final))
            return events + [end]
        return [RecognitionEvent(RecognitionEventKind.RESULT, transcript=item, is_final=True), end]

    async def stop(self):
        pass

    async def next_event(self):
        if self.events:
            return self.events.popleft()
        return RecognitionEvent(RecognitionEventKind.END)


# --- Habit API fake ---

class FakeHabitApi:
    def __init__(self, stack=None, fetch_error=None, submit_error=None, goals_error=None, gate=None):
        self.stack = stack if stack is not None else HabitStack.from_payload(
            {"habit_1": "Drink water", "habit_2": "Stretch"}
        )
        self.fetch_error = fetch_error
        self.submit_error = submit_error
        self.goals_error = goals_error
        self.gate = gate
        self.fetch_calls = []
        self.daily_logs = []
        self.goal_submissions = []
        self.result_stack = HabitStack.from_payload({"habit_1": "Walk 10 minutes", "habit_2": "Read 5 pages"})

    async def fetch_habit_stack(self, user_id, day, correlation_id=None):
        self.fetch_calls.append((user_id, day))
        if self.gate is not None:
            await self.gate.wait()
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.stack

    async def submit_daily_log(self, payload, correlation_id=None):
        self.daily_logs.append(payload)
        if self.submit_error is not None:
            raise self.submit_error
        return {"success": True}

    async def submit_goals(self, submission, correlation_id=None):
        self.goal_submissions.append(submission)
        if self.goals_error is not None:
            raise self.goals_error
        return GoalsResult(success=True, habit_stack=self.result_stack, data={"success": True})


@pytest.fixture
def speech_provider():
    return FakeSelfManagedProvider()


@pytest.fixture
def speech(speech_provider):
    return SpeechOutputDispatcher([speech_provider])


@pytest.fixture
def auth():
    return StaticAuth(user_id="user-1", token="secret-token")


@pytest.fixture
def make_listener():
    def _make(script):
        return SpeechInputListener(ScriptedRecognizer(script))
    return _make


@pytest.fixture
def make_api_client(settings, auth):
    """HabitApiClient backed by an httpx.MockTransport handler"""
    def _make(handler, user_auth=None):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return HabitApiClient(user_auth or auth, settings=settings, client=client)
    return _make
