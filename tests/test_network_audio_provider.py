"""
Network audio provider and URL audio handle
"""
import asyncio
import json
import shutil

import httpx
import pytest

from voice_habits.errors import (
    ConfigurationError, NetworkError, RequestTimeout, SynthesisError,
    UpstreamAuthError, UpstreamError, UpstreamRateLimited,
)
from voice_habits.providers.network_audio import NetworkAudioProvider
from voice_habits.providers.playback import UrlAudioHandle

ENDPOINT = "http://habits.test/api/tts/fish-audio"
CONFIG_ENDPOINT = "http://habits.test/api/tts-config"


def make_provider(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return NetworkAudioProvider(ENDPOINT, config_endpoint=CONFIG_ENDPOINT, client=client, **kwargs)


@pytest.mark.asyncio
async def test_speak_posts_text_and_returns_handle():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"audio_url": "/audio/abc.mp3"})

    provider = make_provider(handler, voice_id="voice-42")
    handle = await provider.speak("Did you drink water?")

    assert seen["body"] == {"text": "Did you drink water?", "voice_id": "voice-42"}
    assert isinstance(handle, UrlAudioHandle)
    assert handle.url == "http://habits.test/audio/abc.mp3"


@pytest.mark.asyncio
async def test_missing_audio_url_is_configuration_error():
    provider = make_provider(lambda request: httpx.Response(200, json={}))

    with pytest.raises(ConfigurationError):
        await provider.speak("Hello")


@pytest.mark.asyncio
@pytest.mark.parametrize("status, error_type", [
    (429, UpstreamRateLimited),
    (401, UpstreamAuthError),
    (403, UpstreamAuthError),
    (500, UpstreamError),
])
async def test_upstream_status_mapping(status, error_type):
    provider = make_provider(lambda request: httpx.Response(status, json={"error": "nope"}))

    with pytest.raises(error_type) as exc_info:
        await provider.speak("Hello")

    assert exc_info.value.status_code == status
    assert "nope" in str(exc_info.value)


@pytest.mark.asyncio
async def test_transport_failures_are_translated():
    def timeout(request):
        raise httpx.ReadTimeout("slow", request=request)

    def refused(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(RequestTimeout):
        await make_provider(timeout).speak("Hello")
    with pytest.raises(NetworkError):
        await make_provider(refused).speak("Hello")


@pytest.mark.asyncio
async def test_availability_follows_tts_config():
    enabled = make_provider(lambda request: httpx.Response(200, json={"useFishAudio": True}))
    disabled = make_provider(lambda request: httpx.Response(200, json={"useFishAudio": False}))
    broken = make_provider(lambda request: httpx.Response(500))

    assert await enabled.is_available() is True
    assert await disabled.is_available() is False
    assert await broken.is_available() is False


def audio_client():
    return httpx.AsyncClient(transport=httpx.MockTransport(
        lambda request: httpx.Response(200, content=b"ID3fake")
    ))


@pytest.mark.asyncio
@pytest.mark.skipif(shutil.which("true") is None, reason="needs POSIX true/false")
async def test_handle_emits_ended_when_player_exits_cleanly():
    handle = UrlAudioHandle("http://habits.test/a.mp3", audio_client(), player_command=["true"])
    ended = asyncio.Event()
    handle.add_listener("ended", ended.set)

    await handle.play()
    await asyncio.wait_for(ended.wait(), timeout=5)


@pytest.mark.asyncio
@pytest.mark.skipif(shutil.which("false") is None, reason="needs POSIX true/false")
async def test_handle_emits_error_when_player_fails():
    handle = UrlAudioHandle("http://habits.test/a.mp3", audio_client(), player_command=["false"])
    errors = []
    failed = asyncio.Event()

    def on_error(error):
        errors.append(error)
        failed.set()

    handle.add_listener("error", on_error)

    await handle.play()
    await asyncio.wait_for(failed.wait(), timeout=5)
    assert isinstance(errors[0], SynthesisError)


def test_unknown_audio_event_rejected():
    handle = UrlAudioHandle("http://habits.test/a.mp3", audio_client())
    with pytest.raises(ValueError):
        handle.add_listener("progress", lambda: None)


@pytest.mark.asyncio
async def test_slow_tts_request_hits_overall_deadline():
    async def handler(request):
        await asyncio.sleep(1)
        return httpx.Response(200, json={"audio_url": "/audio/late.mp3"})

    provider = make_provider(handler, timeout=0.05)

    with pytest.raises(RequestTimeout):
        await asyncio.wait_for(provider.speak("Hello"), timeout=0.5)
