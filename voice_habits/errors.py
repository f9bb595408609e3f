# FILE: voice_habits/errors.py
"""
Error taxonomy for speech output, speech input, sessions and the habit API.

Every error keeps the technical message it was raised with and exposes a
user-facing message. ``describe_error`` converts any exception into the
report delivered on status/error callbacks.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from voice_habits.config import get_settings
from voice_habits.governance.redaction import redact_pii
from voice_habits.models.session import ErrorReport

logger = logging.getLogger(__name__)


class VoiceHabitsError(Exception):
    """Base error"""

    kind = "error"
    default_user_message = "Something went wrong. Please try again."

    def __init__(self, message: str = "", user_message: Optional[str] = None):
        super().__init__(message or self.default_user_message)
        self.technical_details = message or self.default_user_message
        self.user_message = user_message or self.default_user_message


class AuthRequired(VoiceHabitsError):
    kind = "auth_required"
    default_user_message = "Authentication required. Please log in first."


class ConfigurationError(VoiceHabitsError):
    kind = "configuration_error"
    default_user_message = "The voice service is not configured correctly."


class NotFound(VoiceHabitsError):
    kind = "not_found"
    default_user_message = "No habit stack found for today. Please create goals first."


class BadRequest(VoiceHabitsError):
    kind = "bad_request"
    default_user_message = "There was an issue with the request. Please refresh and try again."


class RateLimited(VoiceHabitsError):
    kind = "rate_limited"
    default_user_message = "Too many requests. Please wait a moment and try again."


class Unavailable(VoiceHabitsError):
    kind = "unavailable"
    default_user_message = "Our system is having issues. Please try again later."


class NetworkError(Unavailable):
    kind = "network_error"
    default_user_message = "Network error. Please check your connection and try again."


class RequestTimeout(Unavailable):
    kind = "timeout"
    default_user_message = "The request timed out. Please check your connection and try again."


class UnsupportedError(VoiceHabitsError):
    kind = "unsupported"
    default_user_message = "Speech is not supported on this device."


class SpeechOutputError(VoiceHabitsError):
    kind = "tts_error"
    default_user_message = "There was a problem generating audio feedback. Please try again later."


class SynthesisError(SpeechOutputError):
    kind = "synthesis_error"


class UpstreamError(SpeechOutputError):
    """Non-2xx answer from the network speech endpoint"""

    kind = "upstream_error"

    def __init__(self, message: str = "", status_code: Optional[int] = None, user_message: Optional[str] = None):
        super().__init__(message, user_message=user_message)
        self.status_code = status_code


class UpstreamRateLimited(UpstreamError):
    kind = "upstream_rate_limited"
    default_user_message = "You have reached your usage limit. Please try again later."


class UpstreamAuthError(UpstreamError):
    kind = "upstream_auth_error"
    default_user_message = "The voice service rejected our credentials. Using the device voice instead."


class SpeechInputError(VoiceHabitsError):
    kind = "speech_input_error"
    default_user_message = "I couldn't hear you. Please check your microphone."


class Ambiguous(VoiceHabitsError):
    kind = "ambiguous"
    default_user_message = "Sorry, I didn't understand. Please say yes, no, or skip."


class EmptyStack(VoiceHabitsError):
    kind = "empty_stack"
    default_user_message = "Your habit stack for today is empty. Please create goals first."


def describe_error(exc: BaseException) -> ErrorReport:
    """Build the UI-facing report for an exception (no stack traces)"""
    if isinstance(exc, VoiceHabitsError):
        kind = exc.kind
        message = exc.user_message
        details = exc.technical_details
    else:
        kind = "internal_error"
        message = VoiceHabitsError.default_user_message
        details = f"{type(exc).__name__}: {exc}"

    if get_settings().redaction_enabled:
        message = redact_pii(message)
        details = redact_pii(details)

    return ErrorReport(
        error=kind,
        message=message,
        technical_details=details,
        timestamp=datetime.now(timezone.utc),
    )
