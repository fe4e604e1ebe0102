from __future__ import annotations

from typing import Protocol, runtime_checkable

from docuchat_agent.messages import AssistantTurn, Message
from docuchat_agent.tool_registry import ToolSpec

GROQ_BASE_URL = "https://api.groq.com/openai/v1"


@runtime_checkable
class ModelInvoker(Protocol):
    async def complete(
        self,
        system_prompt: str,
        messages: list[Message],
        tools: list[ToolSpec],
    ) -> AssistantTurn:
        """Run one chat completion with the tools bound.

        Raises ModelInvocationError (or RateLimitOrPayloadTooLargeError) on upstream failure.
        """
        ...


def create_provider(
    provider_name: str,
    api_key: str,
    *,
    model: str,
    max_tokens: int,
    temperature: float = 0.0,
    base_url: str | None = None,
) -> ModelInvoker:
    """Factory: create a ModelInvoker by name."""
    name = provider_name.strip().lower()
    if name in ("groq", "openai"):
        from docuchat_agent.providers.openai_provider import OpenAIProvider

        if name == "groq":
            base_url = base_url or GROQ_BASE_URL
        return OpenAIProvider(
            api_key,
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            base_url=base_url,
        )
    if name == "anthropic":
        from docuchat_agent.providers.anthropic_provider import AnthropicProvider

        return AnthropicProvider(api_key, model=model, max_tokens=max_tokens, temperature=temperature)
    raise ValueError(f"Unknown provider: {provider_name!r}. Supported: 'groq', 'openai', 'anthropic'")
