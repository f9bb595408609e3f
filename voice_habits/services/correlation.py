# FILE: voice_habits/services/correlation.py
"""
Correlation ID utilities
"""
import uuid


def generate_correlation_id(prefix: str = "") -> str:
    """Generate a short unique id used to tag the log lines of one session"""
    token = uuid.uuid4().hex[:12]
    return f"{prefix}-{token}" if prefix else token
