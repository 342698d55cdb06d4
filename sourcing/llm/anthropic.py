"""Anthropic Claude LLM provider."""

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


class AnthropicProvider(LLMProvider):
    """LLM provider using the Anthropic Claude API."""

    @property
    def provider_id(self) -> str:
        return "anthropic"

    @property
    def default_model(self) -> str:
        return "claude-sonnet-4-20250514"

    @property
    def env_var(self) -> str:
        return "ANTHROPIC_API_KEY"

    def call(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        *,
        system: str | None = None,
        model: str | None = None,
    ) -> LLMResponse:
        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            msg = "ANTHROPIC_API_KEY environment variable is required"
            raise ValueError(msg)

        try:
            import anthropic
        except ImportError:
            msg = (
                "anthropic is required for this provider. "
                "Install with: pip install 'dev-sourcing-agent[anthropic]'"
            )
            raise ImportError(msg) from None

        client = anthropic.Anthropic(api_key=api_key, timeout=self.timeout_seconds)
        use_model = self.resolve_model(model)

        request: dict[str, Any] = {
            "model": use_model,
            "max_tokens": self.max_tokens,
            "messages": [_to_anthropic_message(m) for m in messages],
        }
        if system:
            request["system"] = system
        if tools:
            request["tools"] = [t.model_dump() for t in tools]

        logger.info("Sending %d message(s) to Anthropic API (%s)...", len(messages), use_model)
        message = client.messages.create(**request)

        return LLMResponse(
            stop_reason=message.stop_reason or "end_turn",
            content=[b for b in (_from_anthropic_block(b) for b in message.content) if b],
            model=getattr(message, "model", use_model) or use_model,
            usage=Usage(
                input_tokens=getattr(message.usage, "input_tokens", 0) or 0,
                output_tokens=getattr(message.usage, "output_tokens", 0) or 0,
            ),
        )


def _to_anthropic_message(message: Message) -> dict[str, Any]:
    if isinstance(message.content, str):
        return {"role": message.role, "content": message.content}
    return {
        "role": message.role,
        "content": [b.model_dump(exclude_none=True) for b in message.content],
    }


def _from_anthropic_block(block: Any) -> ContentBlock | None:
    """Map an SDK content block to a ContentBlock; unknown types are dropped."""
    block_type = getattr(block, "type", None)
    if block_type == "text":
        return ContentBlock(type="text", text=block.text)
    if block_type == "tool_use":
        return ContentBlock(
            type="tool_use", id=block.id, name=block.name, input=dict(block.input or {}),
        )
    logger.debug("Ignoring Anthropic content block of type '%s'", block_type)
    return None
