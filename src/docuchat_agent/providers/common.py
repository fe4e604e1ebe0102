from __future__ import annotations

from loguru import logger
from tenacity import retry_if_exception_type, stop_after_attempt, wait_exponential

from docuchat_agent.errors import ModelInvocationError, RateLimitOrPayloadTooLargeError

# Substrings that upstream APIs use for rate limiting and oversized requests.
_RETRYABLE_MARKERS = (
    "rate limit",
    "rate_limit",
    "429",
    "413",
    "request too large",
    "request_too_large",
    "payload too large",
    "tokens per minute",
    "context_length_exceeded",
)

RATE_LIMIT_MESSAGE = (
    "The AI service is busy or the conversation is too large right now. "
    "Please wait a moment and try again."
)
GENERIC_MODEL_MESSAGE = "The AI service could not process this request. Please try again."


def _on_retry(retry_state) -> None:
    attempt = retry_state.attempt_number
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    reason = type(exc).__name__ if exc else "Unknown"
    logger.warning(f"{reason}. Retrying in {wait:.0f}s (attempt {attempt}/3)...")


def default_retry_kwargs(exception_types: tuple[type[Exception], ...]) -> dict:
    """Retry transient transport failures only. Rate limits surface to the caller."""
    return {
        "retry": retry_if_exception_type(exception_types),
        "wait": wait_exponential(multiplier=1, min=1, max=8),
        "stop": stop_after_attempt(3),
        "before_sleep": _on_retry,
        "reraise": True,
    }


def is_rate_limit_or_payload_error(status: int | None, text: str) -> bool:
    if status in (413, 429):
        return True
    lowered = text.lower()
    return any(marker in lowered for marker in _RETRYABLE_MARKERS)


def classify_model_error(ex: Exception) -> ModelInvocationError:
    status = getattr(ex, "status_code", None)
    upstream = getattr(ex, "message", None) or str(ex) or type(ex).__name__
    if is_rate_limit_or_payload_error(status, upstream):
        logger.warning(f"Model call rate limited or too large (status={status}): {upstream}")
        return RateLimitOrPayloadTooLargeError(RATE_LIMIT_MESSAGE, status, upstream)
    logger.error(f"Model call failed (status={status}): {upstream}")
    return ModelInvocationError(GENERIC_MODEL_MESSAGE, status, upstream)
