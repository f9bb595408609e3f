# FILE: voice_habits/__init__.py
"""
Voice-driven habit check-in core
"""
__version__ = "0.1.0"
