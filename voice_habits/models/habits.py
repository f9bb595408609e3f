# FILE: voice_habits/models/habits.py
"""
Habit stack and daily response models
"""
from enum import Enum
from datetime import datetime
from typing import Optional, Dict, Any, Tuple
from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "MAX_HABITS", "Habit", "HabitStack", "HabitResponse",
    "DailyResponseSet", "DailyLogPayload",
]

MAX_HABITS = 5


class Habit(BaseModel):
    """One slot of a habit stack"""

    model_config = ConfigDict(frozen=True)

    key: str
    text: str


class HabitStack(BaseModel):
    """Ordered, read-only habits assigned to a user (slots habit_1..habit_5)"""

    model_config = ConfigDict(frozen=True)

    habits: Tuple[Habit, ...] = ()
    last_updated: Optional[datetime] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "HabitStack":
        """Build from the wire shape {habit_1..habit_5}, keeping non-empty slots in order"""
        habits = []
        for i in range(1, MAX_HABITS + 1):
            key = f"habit_{i}"
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                habits.append(Habit(key=key, text=value.strip()))

        return cls(
            habits=tuple(habits),
            last_updated=_parse_timestamp(data.get("last_updated") or data.get("updated_at")),
        )

    @property
    def is_empty(self) -> bool:
        return len(self.habits) == 0

    def as_payload(self) -> Dict[str, str]:
        return {habit.key: habit.text for habit in self.habits}


class HabitResponse(str, Enum):
    """Spoken answer for one habit"""
    YES = "yes"    # completed
    NO = "no"      # not completed
    SKIP = "skip"  # skipped


class DailyResponseSet(BaseModel):
    """Responses collected during one check-in, plus the optional reflection"""

    responses: Dict[str, HabitResponse] = Field(default_factory=dict)
    reflection: str = ""

    def record(self, habit_key: str, response: HabitResponse) -> None:
        if habit_key in self.responses:
            raise ValueError(f"Response for {habit_key} already recorded")
        self.responses[habit_key] = response

    def has_response(self, habit_key: str) -> bool:
        return habit_key in self.responses

    def as_strings(self) -> Dict[str, str]:
        return {key: value.value for key, value in self.responses.items()}


class DailyLogPayload(BaseModel):
    """Body of POST /api/daily-log"""
    user_id: str
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    responses: Dict[str, HabitResponse]
    reflection: str = ""


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
