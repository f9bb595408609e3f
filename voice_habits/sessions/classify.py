# FILE: voice_habits/sessions/classify.py
"""
Spoken answer classification (yes / no / skip)
"""
import re
from typing import Optional

from voice_habits.models.habits import HabitResponse

# Checked in this order; the first marker found anywhere in the transcript wins
RESPONSE_MARKERS = (
    (HabitResponse.YES, ("yes", "yeah", "yep")),
    (HabitResponse.NO, ("no", "nope", "nah")),
    (HabitResponse.SKIP, ("skip",)),
)

# Whole answers that decline the optional reflection
REFLECTION_DECLINES = {
    "skip", "no", "nope", "nah", "no thanks", "no thank you", "nothing", "none",
}


def classify_response(transcript: Optional[str]) -> Optional[HabitResponse]:
    """Map a transcript to a response; None when it is ambiguous"""
    if not transcript:
        return None
    text = transcript.lower()
    for response, markers in RESPONSE_MARKERS:
        if any(marker in text for marker in markers):
            return response
    return None


def is_reflection_decline(transcript: Optional[str]) -> bool:
    if not transcript:
        return True
    normalized = re.sub(r"[^\w\s]", "", transcript.lower())
    normalized = " ".join(normalized.split())
    return normalized in REFLECTION_DECLINES
