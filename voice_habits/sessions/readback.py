# FILE: voice_habits/sessions/readback.py
"""
Habit stack read-back after goals are processed
"""
import logging
from typing import Callable, Optional

from voice_habits.errors import VoiceHabitsError
from voice_habits.models.habits import HabitStack
from voice_habits.speech.dispatcher import SpeechOutputDispatcher

logger = logging.getLogger(__name__)

EMPTY_STACK_TEXT = "No habits found in the habit stack."


def habit_stack_text(stack: Optional[HabitStack]) -> str:
    if stack is None or stack.is_empty:
        return EMPTY_STACK_TEXT

    parts = ["Based on your goals, here is your habit stack."]
    for number, habit in enumerate(stack.habits, start=1):
        parts.append(f"Habit {number}. {habit.text}.")
    parts.append("Incorporate these habits into your morning routine to help achieve your goals.")
    return " ".join(parts)


async def read_back(
    speech: SpeechOutputDispatcher,
    stack: Optional[HabitStack],
    on_text: Optional[Callable[[str], None]] = None,
) -> bool:
    """
    Speak the habit stack. When speech fails the text is still handed to
    on_text so the user can read it. Returns True if it was spoken.
    """
    text = habit_stack_text(stack)
    try:
        await speech.speak(text)
        return True
    except VoiceHabitsError as e:
        logger.warning(f"Habit stack read-back failed, showing text instead: {e}")
        if on_text:
            on_text(text)
        return False
