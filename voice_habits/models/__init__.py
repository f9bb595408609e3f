# FILE: voice_habits/models/__init__.py
"""
Pydantic models for habit, goal, session and TTS payloads
"""
from voice_habits.models.habits import *
from voice_habits.models.goals import *
from voice_habits.models.session import *
from voice_habits.models.tts import *
