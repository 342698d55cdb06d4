"""Ollama local LLM provider (OpenAI-compatible API)."""

import logging
import os
from typing import Any

from sourcing.llm.openai import OpenAIProvider, _import_openai

logger = logging.getLogger(__name__)

_OLLAMA_BASE_URL = "http://localhost:11434/v1"


class OllamaProvider(OpenAIProvider):
    """LLM provider using a local Ollama instance via OpenAI-compatible API."""

    @property
    def provider_id(self) -> str:
        return "ollama"

    @property
    def default_model(self) -> str:
        return "llama3"

    @property
    def env_var(self) -> None:
        return None

    def _make_client(self) -> Any:
        openai = _import_openai()
        base_url = os.environ.get("OLLAMA_BASE_URL", _OLLAMA_BASE_URL)
        return openai.OpenAI(
            base_url=base_url, api_key="ollama", timeout=self.timeout_seconds,
        )
