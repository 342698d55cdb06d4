"""Google Gemini LLM provider (google-genai SDK).

Uses the Gemini API when GOOGLE_API_KEY is set, otherwise Vertex AI when
GOOGLE_CLOUD_PROJECT is set (region from GOOGLE_CLOUD_LOCATION).
"""

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

_DEFAULT_VERTEX_LOCATION = "us-central1"


class GeminiProvider(LLMProvider):
    """LLM provider using the Google Gemini API (google-genai SDK)."""

    @property
    def provider_id(self) -> str:
        return "gemini"

    @property
    def default_model(self) -> str:
        return "gemini-2.5-flash"

    @property
    def env_var(self) -> str:
        return "GOOGLE_API_KEY"

    def call(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        *,
        system: str | None = None,
        model: str | None = None,
    ) -> LLMResponse:
        api_key = os.environ.get("GOOGLE_API_KEY")
        project = os.environ.get("GOOGLE_CLOUD_PROJECT")
        if not api_key and not project:
            msg = "GOOGLE_API_KEY (or GOOGLE_CLOUD_PROJECT for Vertex AI) is required"
            raise ValueError(msg)

        try:
            from google import genai
            from google.genai import types as genai_types
        except ImportError:
            msg = (
                "google-genai is required for this provider. "
                "Install with: pip install 'dev-sourcing-agent[gemini]'"
            )
            raise ImportError(msg) from None

        http_options = genai_types.HttpOptions(timeout=int(self.timeout_seconds * 1000))
        if api_key:
            client = genai.Client(api_key=api_key, http_options=http_options)
        else:
            client = genai.Client(
                vertexai=True,
                project=project,
                location=os.environ.get("GOOGLE_CLOUD_LOCATION", _DEFAULT_VERTEX_LOCATION),
                http_options=http_options,
            )

        config_kwargs: dict[str, Any] = {
            "max_output_tokens": self.max_tokens,
            "temperature": 0,
        }
        if system:
            config_kwargs["system_instruction"] = system
        if tools:
            config_kwargs["tools"] = [
                genai_types.Tool(
                    function_declarations=[
                        genai_types.FunctionDeclaration(
                            name=t.name,
                            description=t.description,
                            parameters_json_schema=t.input_schema,
                        )
                        for t in tools
                    ],
                ),
            ]

        use_model = self.resolve_model(model)
        logger.info("Sending %d message(s) to Gemini API (%s)...", len(messages), use_model)
        response = client.models.generate_content(
            model=use_model,
            contents=_to_gemini_contents(messages, genai_types),
            config=genai_types.GenerateContentConfig(**config_kwargs),
        )
        return _from_gemini_response(response, use_model)


def _to_gemini_contents(messages: list[Message], genai_types: Any) -> list[Any]:
    # function responses are matched to calls by name, so remember id -> name
    tool_names: dict[str, str] = {}
    contents = []
    for m in messages:
        parts = []
        for b in m.blocks():
            if b.type == "text":
                parts.append(genai_types.Part(text=b.text or ""))
            elif b.type == "tool_use":
                tool_names[b.id or ""] = b.name or ""
                parts.append(genai_types.Part(
                    function_call=genai_types.FunctionCall(name=b.name, args=b.input or {}),
                ))
            else:
                parts.append(genai_types.Part(
                    function_response=genai_types.FunctionResponse(
                        name=tool_names.get(b.tool_use_id or "", "tool"),
                        response={"result": b.content or ""},
                    ),
                ))
        role = "model" if m.role == "assistant" else "user"
        contents.append(genai_types.Content(role=role, parts=parts))
    return contents


def _from_gemini_response(response: Any, model: str) -> LLMResponse:
    content: list[ContentBlock] = []
    candidates = getattr(response, "candidates", None) or []
    parts = candidates[0].content.parts if candidates and candidates[0].content else []
    for i, part in enumerate(parts or []):
        if getattr(part, "function_call", None):
            call = part.function_call
            content.append(ContentBlock(
                type="tool_use",
                id=getattr(call, "id", None) or f"call_{i}",
                name=call.name,
                input=dict(call.args or {}),
            ))
        elif getattr(part, "text", None):
            content.append(ContentBlock.from_text(part.text))

    usage = getattr(response, "usage_metadata", None)
    has_calls = any(b.type == "tool_use" for b in content)
    return LLMResponse(
        stop_reason="tool_use" if has_calls else "end_turn",
        content=content,
        model=model,
        usage=Usage(
            input_tokens=getattr(usage, "prompt_token_count", 0) or 0,
            output_tokens=getattr(usage, "candidates_token_count", 0) or 0,
        ),
    )
