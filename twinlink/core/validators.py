"""
Input Validators - Sanitization and validation utilities.

This module provides:
- Message body sanitization
- Participant / message identifier validation
- Prompt-injection heuristics (warning only, never blocking)
"""
import re
from typing import Optional, Tuple

from twinlink.core.exceptions import InvalidArgument
from twinlink.core.logging_config import get_logger

logger = get_logger(__name__)

MAX_MESSAGE_LENGTH = 4000
MAX_IDENTIFIER_LENGTH = 128

# Phrases that usually mean someone is trying to re-program the assistant
SUSPICIOUS_PATTERNS = [
    r"ignore\s+(all\s+)?(previous|prior)\s+instructions",
    r"ignora\s+(todas\s+)?las\s+instrucciones",
    r"you\s+are\s+now\s+",
    r"system\s*prompt",
    r"<\s*/?\s*script",
    r"\{\{.*\}\}",
]

_SUSPICIOUS_REGEX = [re.compile(p, re.IGNORECASE) for p in SUSPICIOUS_PATTERNS]

# Control characters other than tab/newline/carriage return
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize_message(message: str, max_length: int = MAX_MESSAGE_LENGTH) -> str:
    """
    Sanitize a message body.

    - Removes null bytes and other control characters
    - Strips leading/trailing whitespace
    - Collapses runs of spaces (newlines are kept, chat bodies are multi-line)
    - Limits length

    Args:
        message: Raw message body
        max_length: Maximum allowed length

    Returns:
        Sanitized message
    """
    if not message:
        return ""

    cleaned = _CONTROL_CHARS.sub("", message)
    cleaned = cleaned.strip()
    cleaned = re.sub(r"[ \t]+", " ", cleaned)

    if len(cleaned) > max_length:
        cleaned = cleaned[:max_length]

    return cleaned


def validate_identifier(value: Optional[str], field: str) -> str:
    """
    Validate a participant, session or message identifier.

    Args:
        value: Raw identifier
        field: Field name used in the error

    Returns:
        The identifier with surrounding whitespace removed

    Raises:
        InvalidArgument: If the identifier is empty or too long
    """
    if value is None or not str(value).strip():
        raise InvalidArgument(f"{field} is required", field=field)

    normalized = str(value).strip()
    if len(normalized) > MAX_IDENTIFIER_LENGTH:
        raise InvalidArgument(
            f"{field} is too long (max {MAX_IDENTIFIER_LENGTH} characters)",
            field=field
        )
    return normalized


def detect_suspicious_patterns(message: str) -> Tuple[bool, Optional[str]]:
    """
    Check if a message contains prompt-injection style phrases.

    This is a heuristic check - not a security guarantee.

    Args:
        message: Message body to check

    Returns:
        Tuple of (is_suspicious, matched_pattern)
    """
    for pattern in _SUSPICIOUS_REGEX:
        match = pattern.search(message)
        if match:
            logger.warning(
                f"Suspicious pattern detected: {match.group()[:50]}..."
            )
            return True, match.group()

    return False, None


def validate_body(body: Optional[str], has_attachment: bool = False) -> str:
    """
    Full validation and sanitization of a message body.

    An empty body is accepted only when a voice attachment carries the
    content.

    Returns:
        The sanitized body

    Raises:
        InvalidArgument: If the body is empty without attachment
    """
    sanitized = sanitize_message(body or "")

    if not sanitized and not has_attachment:
        raise InvalidArgument("Message body cannot be empty", field="body")

    if sanitized:
        is_suspicious, pattern = detect_suspicious_patterns(sanitized)
        if is_suspicious:
            logger.warning(f"Suspicious message accepted: {pattern}")

    return sanitized
