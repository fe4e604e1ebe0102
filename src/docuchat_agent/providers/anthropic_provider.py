import anthropic
from loguru import logger
from tenacity import retry

from docuchat_agent.messages import AssistantTurn, Message, TokenUsage, ToolCall
from docuchat_agent.providers.common import classify_model_error, default_retry_kwargs
from docuchat_agent.tool_registry import ToolSpec


def _to_anthropic_messages(messages: list[Message]) -> list[dict]:
    """Convert internal messages to Anthropic blocks.

    Consecutive tool results are folded into a single user message, and the
    conversation must open with a user turn.
    """
    out: list[dict] = []

    for msg in messages:
        if msg.role == "assistant":
            blocks: list[dict] = []
            if msg.content:
                blocks.append({"type": "text", "text": msg.content})
            for tc in msg.tool_calls:
                blocks.append({"type": "tool_use", "id": tc.id, "name": tc.name, "input": tc.arguments})
            if blocks:
                out.append({"role": "assistant", "content": blocks})
        elif msg.role == "tool":
            result = {"type": "tool_result", "tool_use_id": msg.tool_call_id, "content": msg.content}
            previous = out[-1] if out else None
            if previous is not None and previous["role"] == "user" and _is_tool_results(previous):
                previous["content"].append(result)
            else:
                out.append({"role": "user", "content": [result]})
        elif msg.role == "user":
            out.append({"role": "user", "content": msg.content})

    # A trimmed window can open mid-cycle: drop the orphaned request and the
    # tool results that answered it until the first plain user turn.
    while out and (out[0]["role"] != "user" or _is_tool_results(out[0])):
        out.pop(0)
    return out


def _is_tool_results(message: dict) -> bool:
    content = message["content"]
    return isinstance(content, list) and all(b.get("type") == "tool_result" for b in content)


def _to_anthropic_tools(tools: list[ToolSpec]) -> list[dict]:
    return [
        {
            "name": t.name,
            "description": t.description,
            "input_schema": t.input_schema,
        }
        for t in tools
    ]


class AnthropicProvider:
    def __init__(
        self,
        api_key: str,
        *,
        model: str,
        max_tokens: int,
        temperature: float = 0.0,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        self._client = client or anthropic.AsyncAnthropic(api_key=api_key)
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature

    @retry(**default_retry_kwargs((anthropic.APIConnectionError,)))
    async def _create(self, **kwargs):
        return await self._client.messages.create(**kwargs)

    async def complete(
        self,
        system_prompt: str,
        messages: list[Message],
        tools: list[ToolSpec],
    ) -> AssistantTurn:
        kwargs: dict = dict(
            model=self._model,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
            system=system_prompt,
            messages=_to_anthropic_messages(messages),
        )
        if tools:
            kwargs["tools"] = _to_anthropic_tools(tools)

        logger.debug(
            f"API request: model={self._model}, messages={len(kwargs['messages'])}, tools={len(tools)}"
        )
        try:
            response = await self._create(**kwargs)
        except anthropic.AnthropicError as ex:
            raise classify_model_error(ex) from ex

        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(id=block.id, name=block.name, arguments=dict(block.input or {})))

        usage = TokenUsage(
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        logger.debug(
            f"API response: stop_reason={response.stop_reason}, tool_calls={len(tool_calls)}, "
            f"input_tokens={usage.input_tokens}, output_tokens={usage.output_tokens}"
        )
        return AssistantTurn(content="\n".join(text_parts), tool_calls=tuple(tool_calls), usage=usage)
