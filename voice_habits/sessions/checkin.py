# FILE: voice_habits/sessions/checkin.py
"""
Daily check-in session.

Flow: fetch today's habit stack, ask about each habit in stack order,
ask for an optional reflection, then submit the daily log once.

Only AuthRequired halts a running session. Recognition and transport
errors on a habit are reported and the session moves on to the next
habit; speech output errors are reported and listening continues.
"""
import logging
from datetime import date
from typing import Callable, Optional

from voice_habits.config import Settings, get_settings
from voice_habits.errors import (
    Ambiguous, AuthRequired, BadRequest, EmptyStack, VoiceHabitsError, describe_error,
)
from voice_habits.models.habits import (
    DailyLogPayload, DailyResponseSet, Habit, HabitResponse, HabitStack,
)
from voice_habits.models.session import CheckInResult, ErrorReport, SessionPhase
from voice_habits.services.correlation import generate_correlation_id
from voice_habits.services.habit_api import AuthContext, HabitApiClient
from voice_habits.services.telemetry import record_event
from voice_habits.sessions.classify import classify_response, is_reflection_decline
from voice_habits.sessions.dates import local_today
from voice_habits.speech.dispatcher import SpeechOutputDispatcher
from voice_habits.speech.listener import SpeechInputListener

logger = logging.getLogger(__name__)

HABIT_PROMPT = "Did you complete this habit today: {habit}? Please respond with yes, no, or skip."
CLARIFY_PROMPT = "Sorry, I didn't understand. Please say yes, no, or skip."
REFLECTION_PROMPT = (
    "All habits are done for today. Would you like to add any reflection on your progress? "
    "If so, please speak after the beep. Otherwise, say skip."
)
THANK_YOU = "Thank you! Your daily log has been saved."


class CheckInSession:
    """Voice walk-through of today's habit stack"""

    def __init__(
        self,
        api: HabitApiClient,
        speech: SpeechOutputDispatcher,
        listener: SpeechInputListener,
        auth: AuthContext,
        settings: Optional[Settings] = None,
        on_status: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[ErrorReport], None]] = None,
        on_habit_read: Optional[Callable[[int, Habit], None]] = None,
        on_habit_response: Optional[Callable[[Habit, HabitResponse], None]] = None,
        on_complete: Optional[Callable[[CheckInResult], None]] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.api = api
        self.speech = speech
        self.listener = listener
        self.auth = auth
        self.settings = settings or get_settings()
        self.on_status = on_status
        self.on_error = on_error
        self.on_habit_read = on_habit_read
        self.on_habit_response = on_habit_response
        self.on_complete = on_complete
        self._today = today or (lambda: local_today(self.settings.session_timezone))

        self.phase = SessionPhase.IDLE
        self.habit_stack: Optional[HabitStack] = None
        self.responses = DailyResponseSet()
        self.current_index = 0
        self.correlation_id: Optional[str] = None
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    async def start(self) -> Optional[CheckInResult]:
        """
        Run one check-in.

        Returns None without doing anything when a check-in is already
        running. Raises AuthRequired when there is no user or the backend
        rejects the credentials.
        """
        if self._active:
            logger.debug("Check-in already in progress; start ignored")
            return None

        self._active = True
        self.correlation_id = generate_correlation_id("checkin")
        self.habit_stack = None
        self.responses = DailyResponseSet()
        self.current_index = 0
        try:
            return await self._run()
        finally:
            self._active = False

    async def _run(self) -> CheckInResult:
        cid = self.correlation_id
        user_id = self.auth.get_user_id()
        if not user_id:
            self._halt(AuthRequired("No user id available for check-in"))

        self._set_phase(SessionPhase.FETCHING_STACK)
        try:
            self.habit_stack = await self.api.fetch_habit_stack(user_id, self._today(), correlation_id=cid)
            if self.habit_stack.is_empty:
                raise EmptyStack("Habit stack has no habits")
        except AuthRequired as e:
            self._halt(e)
        except VoiceHabitsError as e:
            return await self._finish_with_error(e)

        logger.info(f"[{cid}] Habit stack loaded: {len(self.habit_stack.habits)} habits")

        for index, habit in enumerate(self.habit_stack.habits):
            self.current_index = index
            await self._check_habit(index, habit)

        reflection = await self._ask_reflection()
        self.responses.reflection = reflection
        return await self._submit(user_id)

    async def _check_habit(self, index: int, habit: Habit) -> Optional[HabitResponse]:
        cid = self.correlation_id
        if self.on_habit_read:
            self.on_habit_read(index, habit)

        self._set_phase(SessionPhase.PROMPTING)
        await self._say(HABIT_PROMPT.format(habit=habit.text))

        clarifications = 0
        relistened = False
        while True:
            self._set_phase(SessionPhase.LISTENING)
            try:
                outcome = await self.listener.listen_once()
            except AuthRequired as e:
                self._halt(e)
            except VoiceHabitsError as e:
                logger.warning(f"[{cid}] {habit.key}: listening failed, moving on: {e}")
                self._report(e)
                return None

            # The engine ended without a result: listen once more before asking again
            if outcome.transcript is None and not relistened:
                relistened = True
                logger.debug(f"[{cid}] {habit.key}: no result, listening again")
                continue

            response = classify_response(outcome.transcript)
            if response is not None:
                self.responses.record(habit.key, response)
                logger.info(f"[{cid}] {habit.key}: {response.value}")
                if self.on_habit_response:
                    self.on_habit_response(habit, response)
                return response

            if clarifications >= self.settings.max_clarifications:
                logger.warning(f"[{cid}] {habit.key}: still ambiguous after {clarifications} clarifications, skipping")
                self._report(Ambiguous(f"Unrecognized answer for {habit.key}: {outcome.transcript!r}"))
                self.responses.record(habit.key, HabitResponse.SKIP)
                if self.on_habit_response:
                    self.on_habit_response(habit, HabitResponse.SKIP)
                return HabitResponse.SKIP

            clarifications += 1
            self._set_phase(SessionPhase.PROMPTING)
            await self._say(CLARIFY_PROMPT)

    async def _ask_reflection(self) -> str:
        self._set_phase(SessionPhase.ASKING_REFLECTION)
        await self._say(REFLECTION_PROMPT)

        self._set_phase(SessionPhase.LISTENING_REFLECTION)
        try:
            outcome = await self.listener.listen_once()
        except AuthRequired as e:
            self._halt(e)
        except VoiceHabitsError as e:
            logger.warning(f"[{self.correlation_id}] Reflection not captured: {e}")
            self._report(e)
            return ""

        if is_reflection_decline(outcome.transcript):
            return ""
        return outcome.transcript.strip()

    async def _submit(self, user_id: str) -> CheckInResult:
        cid = self.correlation_id
        self._set_phase(SessionPhase.SUBMITTING)

        if not self.responses.responses:
            return await self._finish_with_error(BadRequest("No habit responses to submit"))

        payload = DailyLogPayload(
            user_id=user_id,
            date=self._today().isoformat(),
            responses=self.responses.responses,
            reflection=self.responses.reflection,
        )
        try:
            data = await self.api.submit_daily_log(payload, correlation_id=cid)
        except AuthRequired as e:
            self._halt(e)
        except VoiceHabitsError as e:
            return await self._finish_with_error(e)

        result = CheckInResult(
            success=True,
            responses=self.responses.as_strings(),
            reflection=self.responses.reflection,
            data=data,
        )
        await self._say(THANK_YOU)
        self._set_phase(SessionPhase.COMPLETE)
        logger.info(f"[{cid}] Daily log submitted: {result.responses}")
        record_event("checkin_completed", success=True, habits=len(result.responses))
        if self.on_complete:
            self.on_complete(result)
        return result

    async def _finish_with_error(self, error: VoiceHabitsError) -> CheckInResult:
        report = self._report(error)
        await self._say(report.message)
        self._set_phase(SessionPhase.ERROR)
        result = CheckInResult(
            success=False,
            responses=self.responses.as_strings(),
            reflection=self.responses.reflection,
            error=report.error,
            technical_details=report.technical_details,
        )
        record_event("checkin_completed", success=False, error=report.error)
        if self.on_complete:
            self.on_complete(result)
        return result

    def _halt(self, error: AuthRequired):
        self._report(error)
        self._set_phase(SessionPhase.ERROR)
        raise error

    async def _say(self, text: str) -> None:
        if self.on_status:
            self.on_status(text)
        try:
            await self.speech.speak(text)
        except VoiceHabitsError as e:
            logger.warning(f"[{self.correlation_id}] Speech output failed: {e}")
            self._report(e)

    def _report(self, error: BaseException) -> ErrorReport:
        report = describe_error(error)
        if self.on_error:
            self.on_error(report)
        return report

    def _set_phase(self, phase: SessionPhase) -> None:
        logger.debug(f"[{self.correlation_id}] {self.phase.value} -> {phase.value}")
        self.phase = phase
