"""
Telemetry events and error reports
"""
import json

import pytest

from voice_habits.config import Settings, reload_settings
from voice_habits.errors import (
    NetworkError, Unavailable, UpstreamRateLimited, describe_error,
)
from voice_habits.services import telemetry
from voice_habits.services.telemetry import (
    get_telemetry_summary, record_event, reset_telemetry,
)


@pytest.fixture
def telemetry_on(monkeypatch, tmp_path):
    monkeypatch.setenv("TELEMETRY_ENABLED", "true")
    monkeypatch.setenv("LOGS_DIR", str(tmp_path))
    reset_telemetry()
    yield reload_settings()
    reset_telemetry()


def test_record_event_writes_jsonl(telemetry_on, tmp_path):
    record_event("tts_provider_switch", previous="network_audio", current="on_device")

    files = list((tmp_path / "telemetry").glob("events-*.jsonl"))
    assert len(files) == 1
    line = json.loads(files[0].read_text(encoding="utf-8").strip())
    assert line["event"] == "tts_provider_switch"
    assert line["current"] == "on_device"

    summary = get_telemetry_summary()
    assert summary["counters_in_memory"] == {"tts_provider_switch": 1}


def test_disabled_telemetry_records_nothing(tmp_path):
    reset_telemetry()
    record_event("checkin_completed", success=True)

    assert get_telemetry_summary()["total_events_in_memory"] == 0


def test_prune_removes_expired_files(telemetry_on, tmp_path):
    directory = tmp_path / "telemetry"
    directory.mkdir(parents=True, exist_ok=True)
    old = directory / "events-2000-01-01.jsonl"
    old.write_text("{}\n", encoding="utf-8")

    telemetry.prune_old_files()

    assert not old.exists()


def test_describe_error_user_message_and_details():
    report = describe_error(NetworkError("ConnectError: refused"))

    assert report.error == "network_error"
    assert report.message == NetworkError.default_user_message
    assert report.technical_details == "ConnectError: refused"


def test_describe_error_redacts_pii():
    report = describe_error(Unavailable("Failed for jane@example.com with Bearer abc.def.ghi"))

    assert "jane@example.com" not in report.technical_details
    assert "abc.def.ghi" not in report.technical_details


def test_describe_unknown_exception():
    report = describe_error(KeyError("habit_9"))

    assert report.error == "internal_error"
    assert "KeyError" in report.technical_details


def test_upstream_errors_keep_status_code():
    error = UpstreamRateLimited("quota", status_code=429)

    assert error.status_code == 429
    assert "usage limit" in error.user_message


def test_settings_validation():
    with pytest.raises(ValueError):
        Settings(_env_file=None, TTS_PROVIDER="robot")
    with pytest.raises(ValueError):
        Settings(_env_file=None, MAX_GOALS=9)

    settings = Settings(_env_file=None, API_BASE_URL="http://api.test/")
    assert settings.endpoint_url("/api/daily-log") == "http://api.test/api/daily-log"
    assert settings.endpoint_url("https://other.test/x") == "https://other.test/x"
