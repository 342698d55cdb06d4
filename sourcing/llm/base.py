"""Abstract base class for LLM providers and shared message/JSON handling."""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Literal

from pydantic import BaseModel, Field

from sourcing.core.errors import LLMResponseError

logger = logging.getLogger(__name__)

# Opening fence with optional language tag, then everything up to the closing fence.
_FENCE_RE = re.compile(r"```[A-Za-z]*[ \t]*\n?(.*?)(?:```|\Z)", re.DOTALL)


class ContentBlock(BaseModel):
    """A typed piece of message content: text, tool invocation, or tool result."""

    type: Literal["text", "tool_use", "tool_result"]
    text: str | None = None
    id: str | None = None
    name: str | None = None
    input: dict[str, Any] | None = None
    tool_use_id: str | None = None
    content: str | None = None

    @classmethod
    def from_text(cls, text: str) -> "ContentBlock":
        return cls(type="text", text=text)


class Message(BaseModel):
    """A conversation turn. Content is plain text or a list of blocks."""

    role: Literal["user", "assistant"]
    content: str | list[ContentBlock]

    def blocks(self) -> list[ContentBlock]:
        if isinstance(self.content, str):
            return [ContentBlock.from_text(self.content)]
        return list(self.content)


class ToolDefinition(BaseModel):
    """A callable tool advertised to the model (JSON-schema input)."""

    name: str
    description: str
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
    )


class Usage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0


class LLMResponse(BaseModel):
    """Provider-neutral model response."""

    stop_reason: str = "end_turn"
    content: list[ContentBlock] = Field(default_factory=list)
    model: str = ""
    usage: Usage = Field(default_factory=Usage)

    @property
    def text(self) -> str:
        """Concatenated text of all text blocks."""
        return "".join(b.text or "" for b in self.content if b.type == "text")

    @property
    def tool_calls(self) -> list[ContentBlock]:
        return [b for b in self.content if b.type == "tool_use"]


def extract_json(raw_text: str) -> str:
    """Return the JSON payload of a model response.

    Handles markdown-wrapped JSON (```json ... ```) and plain JSON. When a
    fence is present, only the text between it and the closing fence is kept.
    """
    match = _FENCE_RE.search(raw_text)
    if match is None:
        return raw_text.strip()
    return match.group(1).strip()


def parse_json_object(raw_text: str, stage: str) -> dict[str, Any]:
    """Extract and decode a JSON object from a model response.

    Raises:
        LLMResponseError: If the payload is not valid JSON or not an object.
    """
    cleaned = extract_json(raw_text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise LLMResponseError(stage, f"not valid JSON ({e})", raw_text) from e

    if not isinstance(data, dict):
        raise LLMResponseError(stage, "expected a JSON object", raw_text)
    return data


class LLMProvider(ABC):
    """Base class that every LLM provider must implement."""

    def __init__(
        self,
        *,
        model: str | None = None,
        max_tokens: int = 4096,
        timeout_seconds: float = 60.0,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'anthropic')."""

    @property
    @abstractmethod
    def default_model(self) -> str:
        """The default model ID used when no override is specified."""

    @property
    @abstractmethod
    def env_var(self) -> str | None:
        """Environment variable name for the API key, or None if not needed."""

    @abstractmethod
    def call(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        *,
        system: str | None = None,
        model: str | None = None,
    ) -> LLMResponse:
        """Send a conversation (and optional tool definitions) to the model.

        Args:
            messages: Conversation turns, oldest first.
            tools: Tools the model may invoke. None or empty disables tool use.
            system: System prompt.
            model: Override the configured model for this call.

        Returns:
            The provider-neutral response with text and/or tool_use blocks.
        """

    def resolve_model(self, model: str | None = None) -> str:
        return model or self.model or self.default_model

    def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        model: str | None = None,
    ) -> str:
        """Single-turn text completion. Returns the raw response text."""
        response = self.call(
            [Message(role="user", content=prompt)], system=system, model=model,
        )
        return response.text


class CountingProvider(LLMProvider):
    """Wraps a provider and counts the calls made through it."""

    def __init__(self, wrapped: LLMProvider) -> None:
        super().__init__(
            model=wrapped.model,
            max_tokens=wrapped.max_tokens,
            timeout_seconds=wrapped.timeout_seconds,
        )
        self.wrapped = wrapped
        self.count = 0

    @property
    def provider_id(self) -> str:
        return self.wrapped.provider_id

    @property
    def default_model(self) -> str:
        return self.wrapped.default_model

    @property
    def env_var(self) -> str | None:
        return self.wrapped.env_var

    def call(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        *,
        system: str | None = None,
        model: str | None = None,
    ) -> LLMResponse:
        self.count += 1
        logger.debug("LLM call #%d via %s", self.count, self.provider_id)
        return self.wrapped.call(messages, tools, system=system, model=model)
