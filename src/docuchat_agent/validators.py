from __future__ import annotations

from typing import Any

from docuchat_agent.errors import ValidationError

MAX_MESSAGE_LENGTH = 10_000


def validate_chat_request(body: Any) -> tuple[str, str]:
    """Check a chat request body and return ``(message, session_id)``.

    The message is returned as sent; only the emptiness check trims it.
    """
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")

    message = body.get("message")
    if message is None:
        raise ValidationError("Message is required")
    if not isinstance(message, str):
        raise ValidationError("Message must be a string")
    if not message.strip():
        raise ValidationError("Message cannot be empty")
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message is too long (max {MAX_MESSAGE_LENGTH:,} characters)")

    session_id = require_session_id(body.get("sessionId"))
    return message, session_id


def require_session_id(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Session ID is required")
    return value
