"""OpenAI LLM provider."""

import json
import logging
import os
from typing import Any

from sourcing.llm.base import (
    ContentBlock,
    LLMProvider,
    LLMResponse,
    Message,
    ToolDefinition,
    Usage,
)

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """LLM provider using the OpenAI chat completions API."""

    @property
    def provider_id(self) -> str:
        return "openai"

    @property
    def default_model(self) -> str:
        return "gpt-4o-mini"

    @property
    def env_var(self) -> str | None:
        return "OPENAI_API_KEY"

    def _make_client(self) -> Any:
        api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            msg = "OPENAI_API_KEY environment variable is required"
            raise ValueError(msg)

        openai = _import_openai()
        return openai.OpenAI(api_key=api_key, timeout=self.timeout_seconds)

    def call(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        *,
        system: str | None = None,
        model: str | None = None,
    ) -> LLMResponse:
        client = self._make_client()
        use_model = self.resolve_model(model)

        chat: list[dict[str, Any]] = []
        if system:
            chat.append({"role": "system", "content": system})
        for m in messages:
            chat.extend(_to_openai_messages(m))

        request: dict[str, Any] = {
            "model": use_model,
            "max_tokens": self.max_tokens,
            "messages": chat,
        }
        if tools:
            request["tools"] = [
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

        logger.info("Sending %d message(s) to %s (%s)...", len(chat), self.provider_id, use_model)
        response = client.chat.completions.create(**request)

        choice = response.choices[0]
        content: list[ContentBlock] = []
        if choice.message.content:
            content.append(ContentBlock.from_text(choice.message.content))
        for call in choice.message.tool_calls or []:
            content.append(
                ContentBlock(
                    type="tool_use",
                    id=call.id,
                    name=call.function.name,
                    input=json.loads(call.function.arguments or "{}"),
                ),
            )

        usage = getattr(response, "usage", None)
        return LLMResponse(
            stop_reason="tool_use" if choice.finish_reason == "tool_calls" else "end_turn",
            content=content,
            model=getattr(response, "model", use_model) or use_model,
            usage=Usage(
                input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            ),
        )


def _import_openai() -> Any:
    try:
        import openai
    except ImportError:
        msg = (
            "openai is required for this provider. "
            "Install with: pip install 'dev-sourcing-agent[openai]'"
        )
        raise ImportError(msg) from None
    return openai


def _to_openai_messages(message: Message) -> list[dict[str, Any]]:
    """Convert one message; tool results become separate 'tool' role messages."""
    if isinstance(message.content, str):
        return [{"role": message.role, "content": message.content}]

    text = "".join(b.text or "" for b in message.content if b.type == "text")
    tool_uses = [b for b in message.content if b.type == "tool_use"]
    tool_results = [b for b in message.content if b.type == "tool_result"]

    converted: list[dict[str, Any]] = []
    if tool_uses:
        converted.append({
            "role": "assistant",
            "content": text or None,
            "tool_calls": [
                {
                    "id": b.id,
                    "type": "function",
                    "function": {"name": b.name, "arguments": json.dumps(b.input or {})},
                }
                for b in tool_uses
            ],
        })
    elif text:
        converted.append({"role": message.role, "content": text})

    for b in tool_results:
        converted.append({
            "role": "tool",
            "tool_call_id": b.tool_use_id,
            "content": b.content or "",
        })
    return converted
