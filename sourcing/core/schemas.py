"""Core data models for the sourcing pipeline.

Stage outputs are frozen once produced:
  Requirements -> SearchStrategy -> EnrichedCandidates -> FinalResult
"""

import logging
import re
from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

ALLOWED_EXPERIENCE_LEVELS = {"", "junior", "mid", "senior", "lead", "staff", "principal"}

logger = logging.getLogger(__name__)

# search_quality labels set by the pipeline itself, never by the model
DEGRADED_SEARCH_QUALITY = "Fallback (Ranking Unavailable)"
NO_RESULTS_SEARCH_QUALITY = "No candidates found"

_EXPERIENCE_ALIASES = {
    "mid-level": "mid",
    "middle": "mid",
    "intermediate": "mid",
    "entry": "junior",
    "entry-level": "junior",
    "sr": "senior",
    "jr": "junior",
    "any": "",
    "unspecified": "",
}


def _none_as_list(v: object) -> object:
    return [] if v is None else v


def _optional_int(v: object) -> object:
    """Models write "null", "" or "n/a" for absent numbers; read those as None."""
    if isinstance(v, str) and not v.strip().lstrip("-").isdigit():
        return None
    return v


def _dedupe(items: list[str]) -> list[str]:
    """Strip blanks and drop case-insensitive duplicates, keeping first spelling."""
    seen: set[str] = set()
    result: list[str] = []
    for item in items:
        cleaned = item.strip()
        key = cleaned.lower()
        if cleaned and key not in seen:
            seen.add(key)
            result.append(cleaned)
    return result


# ---------------------------------------------------------------------------
# Stage 1: requirements
# ---------------------------------------------------------------------------


class Requirements(BaseModel):
    """Structured hiring requirements extracted from a free-text query."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    required_skills: list[str] = Field(default_factory=list)
    experience_level: str = ""
    locations: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    nice_to_have: list[str] = Field(default_factory=list)
    unclear: bool = Field(
        default=False, validation_alias=AliasChoices("unclear_request", "unclear"),
    )
    clarification_question: str | None = None

    @field_validator(
        "required_skills", "locations", "keywords", "nice_to_have", mode="before",
    )
    @classmethod
    def null_lists_empty(cls, v: object) -> object:
        return _none_as_list(v)

    @field_validator("required_skills", "keywords", "nice_to_have")
    @classmethod
    def dedupe_terms(cls, v: list[str]) -> list[str]:
        return _dedupe(v)

    @field_validator("experience_level", mode="before")
    @classmethod
    def normalize_experience(cls, v: object) -> str:
        raw = str(v or "").lower().strip()
        level = _EXPERIENCE_ALIASES.get(raw, raw)
        if level in ALLOWED_EXPERIENCE_LEVELS:
            return level
        # free text such as "Senior Engineer": first word naming a known level wins
        for word in re.findall(r"[a-z]+", raw):
            word = _EXPERIENCE_ALIASES.get(word, word)
            if word and word in ALLOWED_EXPERIENCE_LEVELS:
                return word
        logger.warning("Unrecognised experience_level '%s', treating as unspecified", raw)
        return ""

    @model_validator(mode="after")
    def skills_or_clarification(self) -> "Requirements":
        if self.unclear:
            if not (self.clarification_question or "").strip():
                msg = "unclear requests must include a clarification_question"
                raise ValueError(msg)
        elif not self.required_skills:
            msg = "required_skills must not be empty unless the request is unclear"
            raise ValueError(msg)
        return self


# ---------------------------------------------------------------------------
# Stage 2: search strategy
# ---------------------------------------------------------------------------


class SearchQuery(BaseModel):
    """One user-search attempt in the cascade."""

    model_config = ConfigDict(frozen=True)

    language: str = ""
    location: str = ""
    followers: str | None = None
    rationale: str = ""

    @field_validator("language", "location", "rationale", mode="before")
    @classmethod
    def null_strings_empty(cls, v: object) -> object:
        return "" if v is None else v

    @field_validator("language", "location")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    @field_validator("followers", mode="before")
    @classmethod
    def followers_as_text(cls, v: object) -> str | None:
        if v is None or v == "":
            return None
        return str(v).strip()


class RepositorySearch(BaseModel):
    """Repository keywords used for relevance scoring."""

    model_config = ConfigDict(frozen=True)

    keywords: list[str] = Field(default_factory=list)
    min_stars: int | None = None
    language: str = ""

    @field_validator("keywords", mode="before")
    @classmethod
    def null_keywords_empty(cls, v: object) -> object:
        return _none_as_list(v)

    @field_validator("keywords")
    @classmethod
    def dedupe_keywords(cls, v: list[str]) -> list[str]:
        return _dedupe(v)

    @field_validator("min_stars", mode="before")
    @classmethod
    def min_stars_optional(cls, v: object) -> object:
        return _optional_int(v)

    @field_validator("language", mode="before")
    @classmethod
    def null_language_empty(cls, v: object) -> object:
        return "" if v is None else v


class PostFilters(BaseModel):
    """Local refinements applied to search results."""

    model_config = ConfigDict(frozen=True)

    min_repos: int = Field(default=0, ge=0)
    bio_keywords: list[str] = Field(default_factory=list)
    recent_activity_days: int | None = None

    @field_validator("min_repos", mode="before")
    @classmethod
    def null_min_repos_zero(cls, v: object) -> object:
        return 0 if v is None else v

    @field_validator("recent_activity_days", mode="before")
    @classmethod
    def activity_days_optional(cls, v: object) -> object:
        return _optional_int(v)

    @field_validator("bio_keywords", mode="before")
    @classmethod
    def null_bio_keywords_empty(cls, v: object) -> object:
        return _none_as_list(v)


class SearchStrategy(BaseModel):
    """Ordered search plan: primary query first, then fallbacks in list order."""

    model_config = ConfigDict(frozen=True)

    primary_search: SearchQuery
    fallback_searches: list[SearchQuery] = Field(default_factory=list)
    repository_search: RepositorySearch = Field(default_factory=RepositorySearch)
    post_filters: PostFilters = Field(default_factory=PostFilters)
    strategy_notes: str = ""

    @field_validator("fallback_searches", mode="before")
    @classmethod
    def null_fallbacks_empty(cls, v: object) -> object:
        return _none_as_list(v)

    @field_validator("repository_search", "post_filters", mode="before")
    @classmethod
    def null_sections_default(cls, v: object) -> object:
        return {} if v is None else v

    @field_validator("strategy_notes", mode="before")
    @classmethod
    def null_notes_empty(cls, v: object) -> object:
        return "" if v is None else v

    @field_validator("primary_search")
    @classmethod
    def primary_language_required(cls, v: SearchQuery) -> SearchQuery:
        if not v.language:
            msg = "primary_search.language must not be empty"
            raise ValueError(msg)
        return v

    @property
    def queries(self) -> list[SearchQuery]:
        """Primary query followed by fallbacks, in execution order."""
        return [self.primary_search, *self.fallback_searches]


# ---------------------------------------------------------------------------
# Profile-search backend payloads
# ---------------------------------------------------------------------------


class ProfileQuery(BaseModel):
    """A bounded user-search request sent to the profile backend."""

    model_config = ConfigDict(frozen=True)

    language: str = ""
    location: str = ""
    followers: str | None = None
    keywords: list[str] = Field(default_factory=list)
    min_repos: int = Field(default=0, ge=0)
    max_results: int = Field(default=15, ge=1, le=100)


class ProfileCandidate(BaseModel):
    """A developer profile returned by the backend."""

    model_config = ConfigDict(frozen=True)

    username: str
    name: str = ""
    location: str = ""
    bio: str = ""
    public_repos: int = 0
    followers: int = 0
    github_url: str = ""
    created_at: datetime | None = None


class Repository(BaseModel):
    """A public repository owned by a candidate."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    language: str = ""
    stars: int = 0
    topics: list[str] = Field(default_factory=list)
    url: str = ""


class UserSearchResult(BaseModel):
    """Profiles returned for a single user search."""

    model_config = ConfigDict(frozen=True)

    candidates: list[ProfileCandidate] = Field(default_factory=list)
    total_found: int = 0  # backend match count, may exceed len(candidates)
    criteria: dict[str, object] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Stage 3: enriched candidates
# ---------------------------------------------------------------------------


class RelevantRepository(BaseModel):
    """A repository that scored above the relevance threshold."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    language: str = ""
    stars: int = 0
    topics: list[str] = Field(default_factory=list)
    url: str = ""
    relevance_score: float = Field(ge=0.0, le=1.0)
    relevance_reasons: list[str] = Field(default_factory=list)

    @property
    def relevance_reason(self) -> str:
        return ", ".join(self.relevance_reasons)


class ExperienceIndicators(BaseModel):
    model_config = ConfigDict(frozen=True)

    account_age_years: float = 0.0
    total_stars: int = 0
    has_popular_projects: bool = False


class EnrichedCandidate(BaseModel):
    """A profile augmented with repository relevance and experience signals."""

    model_config = ConfigDict(frozen=True)

    username: str
    name: str = ""
    location: str = ""
    bio: str = ""
    public_repos: int = 0
    followers: int = 0
    github_url: str = ""
    relevant_repositories: list[RelevantRepository] = Field(default_factory=list)
    skills_found: list[str] = Field(default_factory=list)
    experience_indicators: ExperienceIndicators = Field(default_factory=ExperienceIndicators)
    initial_match_score: float = Field(default=0.0, ge=0.0, le=1.0)


class SearchMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    searches_executed: int = 0
    total_profiles_found: int = 0
    profiles_analyzed: int = 0


class EnrichedCandidates(BaseModel):
    """Stage 3 envelope. ``candidates`` is always a list, possibly empty."""

    model_config = ConfigDict(frozen=True)

    candidates: list[EnrichedCandidate]
    search_metadata: SearchMetadata = Field(default_factory=SearchMetadata)


# ---------------------------------------------------------------------------
# Stage 4: final result
# ---------------------------------------------------------------------------


class MatchBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    required_skills_score: float = Field(default=0.0, ge=0.0, le=1.0)
    repository_relevance_score: float = Field(default=0.0, ge=0.0, le=1.0)
    experience_score: float = Field(default=0.0, ge=0.0, le=1.0)
    profile_quality_score: float = Field(default=0.0, ge=0.0, le=1.0)


class RelevantProject(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    url: str = ""
    why_relevant: str = ""


class RankedCandidate(BaseModel):
    """A candidate with its computed final score and presentation fields."""

    model_config = ConfigDict(frozen=True)

    rank: int = Field(default=0, ge=0)
    username: str
    name: str = ""
    location: str = ""
    github_url: str = ""
    final_match_score: float = 0.0
    match_breakdown: MatchBreakdown = Field(default_factory=MatchBreakdown)
    key_qualifications: list[str] = Field(default_factory=list)
    top_relevant_projects: list[RelevantProject] = Field(default_factory=list)
    match_reasoning: str = ""
    potential_concerns: str | None = None


class ResultSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_candidates_found: int = 0
    candidates_presented: int = 0
    average_match_score: float = 0.0
    search_quality: str = ""


class FinalResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    top_candidates: list[RankedCandidate] = Field(default_factory=list)
    summary: ResultSummary = Field(default_factory=ResultSummary)

    @property
    def degraded(self) -> bool:
        """True when the ranking stage was replaced by the fallback ranking."""
        return self.summary.search_quality == DEGRADED_SEARCH_QUALITY
