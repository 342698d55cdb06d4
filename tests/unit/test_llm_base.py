"""Tests for provider-neutral message types, JSON extraction, and call counting."""

import pytest

from sourcing.core.errors import LLMResponseError
from sourcing.llm.base import (
    ContentBlock,
    CountingProvider,
    LLMProvider,
    LLMResponse,
    Message,
    ToolDefinition,
    extract_json,
    parse_json_object,
)


class StubProvider(LLMProvider):
    """Returns a fixed text reply and records what it was sent."""

    def __init__(self, reply: str = "ok", **kwargs: object) -> None:
        super().__init__(**kwargs)  # type: ignore[arg-type]
        self.reply = reply
        self.calls: list[dict[str, object]] = []

    @property
    def provider_id(self) -> str:
        return "stub"

    @property
    def default_model(self) -> str:
        return "stub-1"

    @property
    def env_var(self) -> None:
        return None

    def call(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        *,
        system: str | None = None,
        model: str | None = None,
    ) -> LLMResponse:
        self.calls.append({"messages": messages, "tools": tools, "system": system, "model": model})
        return LLMResponse(content=[ContentBlock.from_text(self.reply)], model=self.resolve_model(model))


class TestExtractJson:
    def test_plain_json(self) -> None:
        assert extract_json('  {"a": 1}\n') == '{"a": 1}'

    def test_json_fence(self) -> None:
        raw = 'Here you go:\n```json\n{"a": 1}\n```\nThanks!'
        assert extract_json(raw) == '{"a": 1}'

    def test_bare_fence(self) -> None:
        assert extract_json('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_text_after_closing_fence_dropped(self) -> None:
        raw = '```json\n{"a": 1}\n```\n```json\n{"b": 2}\n```'
        assert extract_json(raw) == '{"a": 1}'

    def test_unterminated_fence(self) -> None:
        assert extract_json('```json\n{"a": 1}') == '{"a": 1}'


class TestParseJsonObject:
    def test_object(self) -> None:
        assert parse_json_object('```json\n{"x": [1, 2]}\n```', "test") == {"x": [1, 2]}

    def test_invalid_json(self) -> None:
        with pytest.raises(LLMResponseError, match="Invalid test response: not valid JSON") as exc:
            parse_json_object("not json", "test")
        assert exc.value.raw_text == "not json"
        assert exc.value.stage == "test"

    def test_array_rejected(self) -> None:
        with pytest.raises(LLMResponseError, match="expected a JSON object"):
            parse_json_object("[1, 2]", "test")

    def test_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_json_object("{", "test")


class TestMessages:
    def test_string_content_as_blocks(self) -> None:
        m = Message(role="user", content="hello")
        assert m.blocks() == [ContentBlock(type="text", text="hello")]

    def test_response_text_and_tool_calls(self) -> None:
        r = LLMResponse(
            stop_reason="tool_use",
            content=[
                ContentBlock.from_text("Let me "),
                ContentBlock(type="tool_use", id="t1", name="search", input={"q": "go"}),
                ContentBlock.from_text("check."),
            ],
        )
        assert r.text == "Let me check."
        assert [c.name for c in r.tool_calls] == ["search"]

    def test_tool_definition_default_schema(self) -> None:
        t = ToolDefinition(name="search", description="Search users")
        assert t.input_schema == {"type": "object", "properties": {}}


class TestComplete:
    def test_complete_sends_single_user_message(self) -> None:
        provider = StubProvider(reply='{"ok": true}')

        text = provider.complete("prompt", system="sys", model="stub-2")

        assert text == '{"ok": true}'
        call = provider.calls[0]
        assert call["system"] == "sys"
        assert call["model"] == "stub-2"
        assert call["messages"] == [Message(role="user", content="prompt")]

    def test_resolve_model_precedence(self) -> None:
        provider = StubProvider(model="configured")
        assert provider.resolve_model() == "configured"
        assert provider.resolve_model("override") == "override"
        assert StubProvider().resolve_model() == "stub-1"


class TestCountingProvider:
    def test_counts_calls_and_delegates(self) -> None:
        inner = StubProvider(reply="hi", model="m", timeout_seconds=5.0)
        counting = CountingProvider(inner)

        assert counting.complete("a") == "hi"
        assert counting.complete("b", system="s") == "hi"

        assert counting.count == 2
        assert len(inner.calls) == 2
        assert inner.calls[1]["system"] == "s"
        assert counting.provider_id == "stub"
        assert counting.timeout_seconds == 5.0

    def test_counts_failed_calls(self) -> None:
        class Failing(StubProvider):
            def call(self, *args: object, **kwargs: object) -> LLMResponse:  # type: ignore[override]
                raise RuntimeError("boom")

        counting = CountingProvider(Failing())
        with pytest.raises(RuntimeError):
            counting.complete("x")
        assert counting.count == 1
