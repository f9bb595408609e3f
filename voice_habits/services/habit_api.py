# FILE: voice_habits/services/habit_api.py
"""
HTTP client for the habit tracker backend (habit stack, daily log, goals, TTS config).

All transport and status failures are translated into the error taxonomy in
voice_habits.errors; no httpx exception leaves this module.
"""
import asyncio
import logging
from datetime import date
from typing import Dict, Any, Optional

import httpx

from voice_habits.config import Settings, get_settings
from voice_habits.errors import (
    AuthRequired, BadRequest, NotFound, RateLimited, Unavailable,
    NetworkError, RequestTimeout, VoiceHabitsError,
)
from voice_habits.models.habits import HabitStack, DailyLogPayload
from voice_habits.models.goals import GoalsSubmission, GoalsResult
from voice_habits.models.tts import TTSConfig

logger = logging.getLogger(__name__)


class AuthContext:
    """Auth collaborator: resolves the current user and the headers to attach"""

    def get_user_id(self) -> Optional[str]:
        raise NotImplementedError

    def get_auth_headers(self) -> Dict[str, str]:
        return {}


class StaticAuth(AuthContext):
    """Fixed user id and optional bearer token"""

    def __init__(self, user_id: Optional[str] = None, token: Optional[str] = None):
        self.user_id = user_id
        self.token = token

    def get_user_id(self) -> Optional[str]:
        return self.user_id

    def get_auth_headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}


def error_for_status(status_code: int, detail: str) -> VoiceHabitsError:
    """Map a non-2xx status to the error taxonomy"""
    if status_code == 401:
        return AuthRequired("Authentication required. Please log in first.")
    if status_code == 404:
        return NotFound(f"Not found: {detail}")
    if status_code == 429:
        return RateLimited("Server is busy. Please try again later.")
    if 400 <= status_code < 500:
        return BadRequest(f"Invalid request: {detail or 'Missing required parameters'}")
    if status_code >= 500:
        return Unavailable(f"Server error: {detail or 'Internal server error'}")
    return Unavailable(f"API error ({status_code}): {detail}")


def error_for_body(detail: str) -> VoiceHabitsError:
    """Map a 200 response carrying success=false"""
    if "not found" in detail.lower():
        return NotFound(detail)
    return Unavailable(detail)


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or "Unknown error"
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.reason_phrase or "Unknown error"


class HabitApiClient:
    """Async client for the habit tracker REST facade"""

    def __init__(
        self,
        auth: AuthContext,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.auth = auth
        self.settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        timeout: float,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
        correlation_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        url = self.settings.endpoint_url(path)
        headers = self.auth.get_auth_headers() if authenticated else {}

        logger.debug(f"[{correlation_id}] {method} {url}")
        try:
            # httpx limits each phase; wait_for bounds the whole exchange
            response = await asyncio.wait_for(
                self.client.request(method, url, params=params, json=json, headers=headers, timeout=timeout),
                timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise RequestTimeout(f"Request timed out after {timeout}s: {method} {path}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Network error: {e}") from e

        if not response.is_success:
            error = error_for_status(response.status_code, _error_detail(response))
            logger.warning(f"[{correlation_id}] {method} {path} -> {response.status_code}: {error}")
            raise error

        try:
            data = response.json()
        except ValueError as e:
            raise Unavailable("Invalid response format from server") from e

        if not isinstance(data, dict):
            raise Unavailable("Invalid response format from server")

        # Some endpoints answer 200 with the error in the body
        if data.get("success") is False:
            raise error_for_body(str(data.get("error") or "Unknown API error"))

        return data

    async def fetch_habit_stack(
        self, user_id: str, day: date, correlation_id: Optional[str] = None
    ) -> HabitStack:
        """GET the habit stack assigned to the user for the given day"""
        data = await self._request(
            "GET",
            self.settings.habit_stack_endpoint,
            timeout=self.settings.habit_request_timeout,
            params={"user_id": user_id, "date": day.isoformat()},
            correlation_id=correlation_id,
        )
        stack = data.get("habit_stack")
        if not isinstance(stack, dict):
            raise NotFound("No habit stack found for today. Please create goals first.")
        return HabitStack.from_payload(stack)

    async def submit_daily_log(
        self, payload: DailyLogPayload, correlation_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """POST today's responses and reflection"""
        return await self._request(
            "POST",
            self.settings.daily_log_endpoint,
            timeout=self.settings.habit_request_timeout,
            json=payload.model_dump(mode="json"),
            correlation_id=correlation_id,
        )

    async def submit_goals(
        self, submission: GoalsSubmission, correlation_id: Optional[str] = None
    ) -> GoalsResult:
        """POST confirmed goals; the backend answers with the generated habit stack"""
        data = await self._request(
            "POST",
            self.settings.process_goals_endpoint,
            timeout=self.settings.goals_request_timeout,
            json=submission.to_payload(),
            correlation_id=correlation_id,
        )
        stack = data.get("habit_stack")
        return GoalsResult(
            success=True,
            habit_stack=HabitStack.from_payload(stack) if isinstance(stack, dict) else None,
            data=data,
        )

    async def fetch_tts_config(self) -> TTSConfig:
        """GET the speech output configuration"""
        data = await self._request(
            "GET",
            self.settings.tts_config_endpoint,
            timeout=self.settings.tts_request_timeout,
            authenticated=False,
        )
        return TTSConfig.model_validate(data)
