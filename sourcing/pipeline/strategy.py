"""Stage 2: plan the GitHub search cascade from Requirements."""

import logging

from pydantic import ValidationError

from sourcing.core.errors import LLMCallError, LLMResponseError
from sourcing.core.schemas import Requirements, SearchStrategy
from sourcing.llm.base import LLMProvider, parse_json_object

logger = logging.getLogger(__name__)

STAGE = "search strategy"

_STRATEGY_SYSTEM_PROMPT = (
    "You are a search strategy expert for GitHub developer sourcing.\n\n"
    "AVAILABLE SEARCH CAPABILITIES\n"
    "User search (primary):\n"
    "  - language: programming language, inferred from the user's repositories\n"
    "  - location: matches the free-text profile location field\n"
    "  - followers: minimum follower count, e.g. \">10\"\n"
    "Repository analysis (secondary):\n"
    "  - keywords: matched against repository names, descriptions, and topics\n"
    "  - min_stars: minimum star count\n"
    "Post-search filters (applied locally):\n"
    "  - min_repos: minimum public repository count\n"
    "  - bio_keywords: substrings expected in the user bio\n"
    "  - recent_activity_days: only users active within N days\n\n"
    "LIMITATIONS\n"
    "  - Years of experience cannot be searched directly\n"
    "  - Location is unreliable: often empty, inconsistent formats\n"
    "  - The language filter only works for public repositories\n"
    "  - Rate limits are strict: prefer precise queries over broad ones\n\n"
    "TASK\n"
    "Given structured job requirements, produce:\n"
    "  1. A primary search (most specific, highest signal)\n"
    "  2. Fallback searches, progressively broader, for when earlier searches "
    "return nothing (e.g. city -> country -> no location)\n"
    "  3. Repository keywords for relevance scoring\n"
    "  4. Post filters\n\n"
    'Return ONLY a JSON object (no markdown, no explanation):\n'
    "{\n"
    '  "primary_search": {"language": "string", "location": "string", '
    '"followers": "string or null"},\n'
    '  "fallback_searches": [\n'
    '    {"language": "string", "location": "string or empty", '
    '"followers": "string or null", "rationale": "why this fallback"}\n'
    "  ],\n"
    '  "repository_search": {"keywords": ["keyword"], "min_stars": null, '
    '"language": "string"},\n'
    '  "post_filters": {"min_repos": 5, "bio_keywords": ["keyword"], '
    '"recent_activity_days": null},\n'
    '  "strategy_notes": "brief explanation"\n'
    "}\n\n"
    "primary_search.language is mandatory. Use lowercase GitHub language names "
    "(e.g. \"go\", \"python\", \"typescript\")."
)


def _build_user_prompt(requirements: Requirements) -> str:
    return f"Requirements: {requirements.model_dump_json()}"


def parse_strategy(raw_text: str) -> SearchStrategy:
    """Parse and validate a model response into a SearchStrategy.

    Raises:
        LLMResponseError: On malformed JSON, a missing primary search, or an
            empty primary language.
    """
    data = parse_json_object(raw_text, STAGE)
    if not isinstance(data.get("primary_search"), dict):
        raise LLMResponseError(STAGE, "missing 'primary_search' object", raw_text)
    try:
        return SearchStrategy.model_validate(data)
    except ValidationError as e:
        raise LLMResponseError(STAGE, str(e), raw_text) from e


def plan_search_strategy(requirements: Requirements, provider: LLMProvider) -> SearchStrategy:
    """Run the strategy planning inference call.

    Raises:
        LLMCallError: If the inference call itself fails.
        LLMResponseError: If the response cannot be parsed or validated.
    """
    try:
        raw = provider.complete(
            _build_user_prompt(requirements), system=_STRATEGY_SYSTEM_PROMPT,
        )
    except Exception as e:
        raise LLMCallError(STAGE, e) from e

    strategy = parse_strategy(raw)
    logger.info(
        "Strategy: primary=(%s, %s) with %d fallback(s), repo keywords=%s",
        strategy.primary_search.language,
        strategy.primary_search.location or "any location",
        len(strategy.fallback_searches),
        strategy.repository_search.keywords,
    )
    return strategy
