"""LLM provider registry with lazy loading.

Usage:
    from sourcing.llm import get_provider

    provider = get_provider("anthropic", timeout_seconds=60)
    raw = provider.complete(prompt, system=SYSTEM_PROMPT)
"""

from __future__ import annotations

import importlib
from typing import Any

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

__all__ = [
    "ContentBlock",
    "CountingProvider",
    "LLMProvider",
    "LLMResponse",
    "Message",
    "ToolDefinition",
    "available_providers",
    "extract_json",
    "get_provider",
    "parse_json_object",
]

# Lazy registry: maps provider name → (module_path, class_name)
_REGISTRY: dict[str, tuple[str, str]] = {
    "anthropic": ("sourcing.llm.anthropic", "AnthropicProvider"),
    "openai": ("sourcing.llm.openai", "OpenAIProvider"),
    "gemini": ("sourcing.llm.gemini", "GeminiProvider"),
    "ollama": ("sourcing.llm.ollama", "OllamaProvider"),
}


def get_provider(name: str, **options: Any) -> LLMProvider:
    """Instantiate and return an LLM provider by name.

    Args:
        name: Provider identifier (anthropic, openai, gemini, ollama).
        **options: Passed to the provider constructor (model, max_tokens,
            timeout_seconds).

    Returns:
        An LLMProvider instance.

    Raises:
        ValueError: If the provider name is unknown.
    """
    if name not in _REGISTRY:
        valid = ", ".join(sorted(_REGISTRY))
        msg = f"Unknown LLM provider '{name}'. Available: {valid}"
        raise ValueError(msg)

    module_path, class_name = _REGISTRY[name]
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    return cls(**options)  # type: ignore[no-any-return]


def available_providers() -> list[str]:
    """Return sorted list of registered provider names."""
    return sorted(_REGISTRY)
