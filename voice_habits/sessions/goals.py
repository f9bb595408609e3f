# FILE: voice_habits/sessions/goals.py
"""
Weekly goals capture.

Dictation runs until stop(); the transcript is split into goals that the
user must confirm (and may edit) before anything is sent to the backend.
"""
import logging
from datetime import date
from typing import Callable, List, Optional

from voice_habits.config import Settings, get_settings
from voice_habits.errors import (
    AuthRequired, BadRequest, SpeechInputError, VoiceHabitsError, describe_error,
)
from voice_habits.models.goals import GoalDraft, GoalsResult, GoalsSubmission
from voice_habits.models.session import ErrorReport, GoalsPhase
from voice_habits.services.correlation import generate_correlation_id
from voice_habits.services.habit_api import AuthContext, HabitApiClient
from voice_habits.services.telemetry import record_event
from voice_habits.sessions.dates import local_today, week_start
from voice_habits.sessions.goal_parsing import extract_goals
from voice_habits.sessions.readback import read_back
from voice_habits.speech.dispatcher import SpeechOutputDispatcher
from voice_habits.speech.listener import SpeechInputListener

logger = logging.getLogger(__name__)


class GoalsSession:
    """Voice goal capture with mandatory confirmation"""

    def __init__(
        self,
        api: HabitApiClient,
        listener: SpeechInputListener,
        auth: AuthContext,
        speech: Optional[SpeechOutputDispatcher] = None,
        settings: Optional[Settings] = None,
        on_status: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[ErrorReport], None]] = None,
        on_interim: Optional[Callable[[str, str], None]] = None,
        on_goals_ready: Optional[Callable[[GoalDraft], None]] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.api = api
        self.listener = listener
        self.auth = auth
        self.speech = speech
        self.settings = settings or get_settings()
        self.on_status = on_status
        self.on_error = on_error
        self.on_goals_ready = on_goals_ready
        self._today = today or (lambda: local_today(self.settings.session_timezone))

        if on_interim is not None:
            self.listener.on_interim = on_interim

        self.phase = GoalsPhase.IDLE
        self.draft: Optional[GoalDraft] = None
        self.result: Optional[GoalsResult] = None
        self.correlation_id = generate_correlation_id("goals")

    @property
    def is_listening(self) -> bool:
        return self.phase == GoalsPhase.LISTENING

    def current_week_start(self) -> date:
        return week_start(self._today())

    async def start(self) -> bool:
        """Start dictation; no-op (False) while already listening or submitting"""
        if self.phase in (GoalsPhase.LISTENING, GoalsPhase.SUBMITTING):
            logger.debug(f"[{self.correlation_id}] Goals capture already active; start ignored")
            return False

        self.draft = None
        self.result = None
        try:
            started = await self.listener.start_continuous()
        except VoiceHabitsError as e:
            self._report(e)
            raise
        if started:
            self.phase = GoalsPhase.LISTENING
            self._status("Listening... Speak your goals.")
        return started

    async def stop(self) -> GoalDraft:
        """Stop dictation and extract goals from the final transcript"""
        if self.phase != GoalsPhase.LISTENING:
            if self.draft is not None:
                return self.draft
            raise BadRequest("Goals capture is not running")

        transcript = (await self.listener.stop()).strip()
        if self.listener.last_error is not None:
            self._report(self.listener.last_error)

        self.phase = GoalsPhase.TRANSCRIPT_READY
        goals = extract_goals(transcript, max_goals=self.settings.max_goals)
        self.draft = GoalDraft(transcript=transcript, goals=goals)
        logger.info(f"[{self.correlation_id}] Extracted {len(goals)} goals from transcript")

        if not goals:
            self._report(SpeechInputError("No goals were heard", user_message="I didn't catch any goals. Please try again."))
            self.phase = GoalsPhase.IDLE
            return self.draft

        self.phase = GoalsPhase.AWAITING_CONFIRMATION
        self._status("Please confirm your goals.")
        if self.on_goals_ready:
            self.on_goals_ready(self.draft)
        return self.draft

    def edit_goal(self, index: int, text: str) -> List[str]:
        """Replace one extracted goal; blank text removes it"""
        self._require_confirmation()
        goals = self.draft.goals
        if not 0 <= index < len(goals):
            raise BadRequest(f"No goal at position {index + 1}")
        if text and text.strip():
            goals[index] = text.strip()
        else:
            del goals[index]
        return list(goals)

    def add_goal(self, text: str) -> List[str]:
        """Append a goal the dictation missed"""
        self._require_confirmation()
        if not text or not text.strip():
            raise BadRequest("Goal text cannot be empty")
        if len(self.draft.goals) >= self.settings.max_goals:
            raise BadRequest(f"At most {self.settings.max_goals} goals are allowed")
        self.draft.goals.append(text.strip())
        return list(self.draft.goals)

    async def confirm(self, goals: Optional[List[str]] = None) -> GoalsResult:
        """Submit the confirmed goals (optionally edited in full) for this week"""
        self._require_confirmation()
        confirmed = [g.strip() for g in (goals if goals is not None else self.draft.goals) if g and g.strip()]
        if not confirmed:
            raise BadRequest("Please provide at least one goal")
        confirmed = confirmed[:self.settings.max_goals]

        user_id = self.auth.get_user_id()
        if not user_id:
            error = AuthRequired("No user id available for goals submission")
            self._report(error)
            raise error

        submission = GoalsSubmission(
            user_id=user_id,
            week_start=self.current_week_start().isoformat(),
            goals=confirmed,
        )

        self.phase = GoalsPhase.SUBMITTING
        self._status("Processing your goals...")
        try:
            result = await self.api.submit_goals(submission, correlation_id=self.correlation_id)
        except VoiceHabitsError as e:
            logger.error(f"[{self.correlation_id}] Goals submission failed: {e}")
            self._report(e)
            # Goals stay editable so the user can try again
            self.phase = GoalsPhase.AWAITING_CONFIRMATION
            raise

        self.draft.goals = confirmed
        self.result = result
        self.phase = GoalsPhase.SUBMITTED
        record_event("goals_submitted", goals=len(confirmed), week_start=submission.week_start)
        logger.info(f"[{self.correlation_id}] Goals submitted for week of {submission.week_start}")

        if self.speech is not None and result.habit_stack is not None:
            await read_back(self.speech, result.habit_stack, on_text=self.on_status)
        return result

    async def cancel(self) -> None:
        """Discard the current capture without submitting"""
        if self.phase == GoalsPhase.LISTENING:
            await self.listener.stop()
        self.phase = GoalsPhase.IDLE
        self.draft = None

    def _require_confirmation(self) -> None:
        if self.phase != GoalsPhase.AWAITING_CONFIRMATION or self.draft is None:
            raise BadRequest("No goals awaiting confirmation")

    def _status(self, message: str) -> None:
        if self.on_status:
            self.on_status(message)

    def _report(self, error: BaseException) -> ErrorReport:
        report = describe_error(error)
        if self.on_error:
            self.on_error(report)
        return report
