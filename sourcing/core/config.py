"""Configuration models and YAML loader for the sourcing engine."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

ALLOWED_PROVIDERS = {"anthropic", "openai", "gemini", "ollama"}


class LLMConfig(BaseModel):
    """Inference backend selection and limits."""

    provider: str = "anthropic"
    model: str | None = None
    max_tokens: int = Field(default=4096, ge=256)
    timeout_seconds: float = Field(default=60.0, gt=0)

    @field_validator("provider")
    @classmethod
    def provider_known(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in ALLOWED_PROVIDERS:
            msg = f"provider must be one of {sorted(ALLOWED_PROVIDERS)}, got '{v}'"
            raise ValueError(msg)
        return v


class GitHubConfig(BaseModel):
    """GitHub REST API access."""

    base_url: str = "https://api.github.com"
    token_env: str = "GITHUB_TOKEN"
    search_timeout_seconds: float = Field(default=30.0, gt=0)
    profile_timeout_seconds: float = Field(default=10.0, gt=0)
    retries: int = Field(default=2, ge=0, le=5)
    backoff_seconds: float = Field(default=1.0, ge=0.0)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class AcquisitionConfig(BaseModel):
    """Bounds for the candidate search cascade and repository enrichment."""

    max_results: int = Field(default=15, ge=1, le=100)
    max_repos_per_candidate: int = Field(default=10, ge=1, le=100)
    relevance_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    max_concurrent_fetches: int = Field(default=4, ge=1, le=20)


class RankingConfig(BaseModel):
    """Ranking stage options."""

    fallback_max_candidates: int = Field(default=10, ge=1)


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    acquisition: AcquisitionConfig = Field(default_factory=AcquisitionConfig)
    ranking: RankingConfig = Field(default_factory=RankingConfig)

    @model_validator(mode="after")
    def profile_lookups_faster_than_inference(self) -> "Settings":
        if self.github.profile_timeout_seconds >= self.llm.timeout_seconds:
            msg = (
                "github.profile_timeout_seconds must be shorter than "
                "llm.timeout_seconds"
            )
            raise ValueError(msg)
        return self

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
