# FILE: voice_habits/models/goals.py
"""
Goal capture models
"""
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field

from voice_habits.models.habits import HabitStack

__all__ = ["GoalDraft", "GoalsSubmission", "GoalsResult"]


class GoalDraft(BaseModel):
    """Goals extracted from a transcript, editable until confirmed"""
    transcript: str
    goals: List[str] = Field(default_factory=list)


class GoalsSubmission(BaseModel):
    """Body of POST /api/process-goals"""
    user_id: str
    week_start: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    goals: List[str] = Field(..., min_length=1, max_length=5)

    def to_payload(self) -> Dict[str, Any]:
        """Wire payload: the goal list plus the flat goal_N columns of the goals sheet"""
        payload: Dict[str, Any] = self.model_dump()
        for index, goal in enumerate(self.goals):
            payload[f"goal_{index + 1}"] = goal
        return payload


class GoalsResult(BaseModel):
    """Backend answer to a goals submission"""
    success: bool = True
    habit_stack: Optional[HabitStack] = None
    data: Dict[str, Any] = Field(default_factory=dict)
