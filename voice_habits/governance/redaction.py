# FILE: voice_habits/governance/redaction.py
"""
Redaction of messages that reach the UI error channel
"""
import re

EMAIL = re.compile(r"\b[\w.%+-]+@[\w-]+(?:\.[\w-]+)*\.[A-Za-z]{2,}\b")
BEARER = re.compile(r"(?i)\bbearer\s+[\w.~+/=-]+")
KEY_PARAM = re.compile(r"(?i)\b(api[_-]?key|token|access_token)=([^\s&]+)")
PHONE = re.compile(r"\b\d{3}[-. ]?\d{3}[-. ]?\d{4}\b")


def redact_pii(text: str) -> str:
    """Mask emails, credentials and phone numbers"""
    if not text:
        return text

    text = EMAIL.sub("[EMAIL]", text)
    # Upstream errors sometimes echo the request headers or query string
    text = BEARER.sub("Bearer [TOKEN]", text)
    text = KEY_PARAM.sub(r"\1=[TOKEN]", text)
    text = PHONE.sub("[PHONE]", text)
    return text
