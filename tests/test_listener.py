"""
Speech input listener over scripted and queue-fed recognizers
"""
import asyncio
import io

import pytest

from conftest import RecognitionFailure, ScriptedRecognizer
from voice_habits.errors import SpeechInputError, UnsupportedError
from voice_habits.speech.listener import (
    ConsoleRecognizer, QueueRecognizer, SpeechInputListener,
)


@pytest.mark.asyncio
async def test_listen_once_returns_trimmed_transcript():
    finals = []
    listener = SpeechInputListener(ScriptedRecognizer(["  yes I did  "]), on_final=finals.append)

    outcome = await listener.listen_once()

    assert outcome.transcript == "yes I did"
    assert outcome.has_result is True
    assert finals == ["yes I did"]
    assert listener.is_listening is False


@pytest.mark.asyncio
async def test_listen_once_end_without_result():
    listener = SpeechInputListener(ScriptedRecognizer([None]))

    outcome = await listener.listen_once()

    assert outcome.transcript is None
    assert outcome.has_result is False


@pytest.mark.asyncio
async def test_listen_once_error_raises():
    listener = SpeechInputListener(ScriptedRecognizer([RecognitionFailure("not-allowed")]))

    with pytest.raises(SpeechInputError) as exc_info:
        await listener.listen_once()

    assert "not-allowed" in str(exc_info.value)
    assert listener.is_listening is False


@pytest.mark.asyncio
async def test_unavailable_recognizer_is_unsupported():
    recognizer = ScriptedRecognizer([])
    recognizer.is_available = lambda: False

    with pytest.raises(UnsupportedError):
        await SpeechInputListener(recognizer).listen_once()


@pytest.mark.asyncio
async def test_queue_recognizer_single_utterance():
    recognizer = QueueRecognizer()
    listener = SpeechInputListener(recognizer)

    task = asyncio.create_task(listener.listen_once())
    while not recognizer.running:
        await asyncio.sleep(0)
    recognizer.push_result("no", is_final=True)

    outcome = await asyncio.wait_for(task, timeout=1)
    assert outcome.transcript == "no"
    assert recognizer.running is False


@pytest.mark.asyncio
async def test_queue_recognizer_continuous_until_stop():
    recognizer = QueueRecognizer()
    listener = SpeechInputListener(recognizer)

    assert await listener.start_continuous() is True
    assert await listener.start_continuous() is False

    recognizer.push_result("read more", is_final=False)
    recognizer.push_result("read more books", is_final=True)
    recognizer.push_result("and run", is_final=True)

    transcript = await asyncio.wait_for(listener.stop(), timeout=1)
    assert transcript == "read more books and run"
    assert listener.is_listening is False


@pytest.mark.asyncio
async def test_results_outside_listening_are_dropped():
    recognizer = QueueRecognizer()
    recognizer.push_result("stray")

    listener = SpeechInputListener(recognizer)
    task = asyncio.create_task(listener.listen_once())
    while not recognizer.running:
        await asyncio.sleep(0)
    recognizer.push_end()

    outcome = await asyncio.wait_for(task, timeout=1)
    assert outcome.transcript is None


@pytest.mark.asyncio
async def test_console_recognizer_reads_lines():
    stream = io.StringIO("skip\n")
    listener = SpeechInputListener(ConsoleRecognizer(stream=stream, prompt=""))

    outcome = await asyncio.wait_for(listener.listen_once(), timeout=5)

    assert outcome.transcript == "skip"


@pytest.mark.asyncio
async def test_console_recognizer_blank_line_ends_dictation():
    stream = io.StringIO("get fit\nread more\n\n")
    listener = SpeechInputListener(ConsoleRecognizer(stream=stream, prompt=""))

    await listener.start_continuous()
    while listener.is_listening:
        await asyncio.sleep(0.01)

    assert await listener.stop() == "get fit read more"
