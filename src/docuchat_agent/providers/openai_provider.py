import json

import openai
from loguru import logger
from tenacity import retry

from docuchat_agent.messages import AssistantTurn, Message, TokenUsage, ToolCall
from docuchat_agent.providers.common import classify_model_error, default_retry_kwargs
from docuchat_agent.tool_registry import ToolSpec


def _to_openai_messages(system_prompt: str, messages: list[Message]) -> list[dict]:
    """Convert internal messages to OpenAI chat format (also spoken by Groq)."""
    out: list[dict] = []

    if system_prompt:
        out.append({"role": "system", "content": system_prompt})

    for msg in messages:
        if msg.role == "assistant":
            oai_msg: dict = {"role": "assistant", "content": msg.content or None}
            if msg.tool_calls:
                oai_msg["tool_calls"] = [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tc.name,
                            "arguments": json.dumps(tc.arguments),
                        },
                    }
                    for tc in msg.tool_calls
                ]
            out.append(oai_msg)
        elif msg.role == "tool":
            out.append({"role": "tool", "tool_call_id": msg.tool_call_id, "content": msg.content})
        else:
            out.append({"role": msg.role, "content": msg.content})

    return out


def _to_openai_tools(tools: list[ToolSpec]) -> list[dict]:
    return [
        {
            "type": "function",
            "function": {
                "name": t.name,
                "description": t.description,
                "parameters": t.input_schema,
            },
        }
        for t in tools
    ]


def _parse_arguments(raw: str | None) -> dict:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Failed to parse tool call arguments: {raw[:200]}")
        return {}
    return parsed if isinstance(parsed, dict) else {}


class OpenAIProvider:
    def __init__(
        self,
        api_key: str,
        *,
        model: str,
        max_tokens: int,
        temperature: float = 0.0,
        base_url: str | None = None,
        client: openai.AsyncOpenAI | None = None,
    ):
        self._client = client or openai.AsyncOpenAI(api_key=api_key, base_url=base_url)
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature

    @retry(**default_retry_kwargs((openai.APIConnectionError,)))
    async def _create(self, **kwargs):
        return await self._client.chat.completions.create(**kwargs)

    async def complete(
        self,
        system_prompt: str,
        messages: list[Message],
        tools: list[ToolSpec],
    ) -> AssistantTurn:
        oai_messages = _to_openai_messages(system_prompt, messages)
        oai_tools = _to_openai_tools(tools)

        kwargs: dict = dict(
            model=self._model,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
            messages=oai_messages,
        )
        if oai_tools:
            kwargs["tools"] = oai_tools
            kwargs["tool_choice"] = "auto"

        logger.debug(
            f"API request: model={self._model}, messages={len(oai_messages)}, tools={len(oai_tools)}"
        )
        try:
            response = await self._create(**kwargs)
        except openai.OpenAIError as ex:
            raise classify_model_error(ex) from ex

        choice = response.choices[0]
        message = choice.message
        tool_calls = tuple(
            ToolCall(id=tc.id, name=tc.function.name, arguments=_parse_arguments(tc.function.arguments))
            for tc in (message.tool_calls or [])
        )
        usage = TokenUsage(
            input_tokens=getattr(response.usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(response.usage, "completion_tokens", 0) or 0,
        )
        logger.debug(
            f"API response: finish_reason={choice.finish_reason}, tool_calls={len(tool_calls)}, "
            f"input_tokens={usage.input_tokens}, output_tokens={usage.output_tokens}"
        )
        return AssistantTurn(content=message.content or "", tool_calls=tool_calls, usage=usage)
