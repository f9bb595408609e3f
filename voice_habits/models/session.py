# FILE: voice_habits/models/session.py
"""
Session phase and reporting models
"""
from enum import Enum
from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field

__all__ = ["SessionPhase", "GoalsPhase", "ErrorReport", "CheckInResult"]


class SessionPhase(str, Enum):
    """Check-in session phases"""
    IDLE = "idle"
    FETCHING_STACK = "fetching_stack"
    PROMPTING = "prompting"
    LISTENING = "listening"
    ASKING_REFLECTION = "asking_reflection"
    LISTENING_REFLECTION = "listening_reflection"
    SUBMITTING = "submitting"
    COMPLETE = "complete"
    ERROR = "error"


class GoalsPhase(str, Enum):
    """Goals capture phases"""
    IDLE = "idle"
    LISTENING = "listening"
    TRANSCRIPT_READY = "transcript_ready"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"


class ErrorReport(BaseModel):
    """Error delivered to the UI: user message plus technical detail"""
    error: str
    message: str
    technical_details: str
    timestamp: datetime


class CheckInResult(BaseModel):
    """Outcome of one check-in session"""
    success: bool
    responses: Dict[str, str] = Field(default_factory=dict)
    reflection: str = ""
    error: Optional[str] = None
    technical_details: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
