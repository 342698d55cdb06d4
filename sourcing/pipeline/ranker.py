"""Stage 4: rank enriched candidates with a fixed weighting contract.

The model supplies component scores and presentation text; the final score
is always recomputed here:

  final = 0.4 * skills + 0.3 * repository relevance + 0.2 * experience
          + 0.1 * profile quality

When the ranking call fails for any reason, a deterministic fallback result
is built from the enriched candidates instead.
"""

import json
import logging
from typing import Any

from sourcing.core.config import RankingConfig
from sourcing.core.errors import LLMCallError, LLMResponseError
from sourcing.core.schemas import (
    DEGRADED_SEARCH_QUALITY,
    NO_RESULTS_SEARCH_QUALITY,
    EnrichedCandidate,
    EnrichedCandidates,
    FinalResult,
    MatchBreakdown,
    RankedCandidate,
    RelevantProject,
    Requirements,
    ResultSummary,
)
from sourcing.llm.base import LLMProvider, parse_json_object

logger = logging.getLogger(__name__)

STAGE = "ranking"

SKILLS_WEIGHT = 0.4
REPOSITORY_WEIGHT = 0.3
EXPERIENCE_WEIGHT = 0.2
PROFILE_QUALITY_WEIGHT = 0.1

FALLBACK_REASONING = "Ranking step unavailable; score is based on initial keyword match."
FALLBACK_SCORE_SCALE = 100

# component scores above this are percentages; between 1 and this they clamp to 1
_PERCENT_THRESHOLD = 1.5

_BREAKDOWN_FIELDS = (
    "required_skills_score",
    "repository_relevance_score",
    "experience_score",
    "profile_quality_score",
)

_RANKING_SYSTEM_PROMPT = (
    "You are a candidate ranking and presentation specialist.\n\n"
    "Given enriched GitHub candidate data and the original job requirements, "
    "evaluate each candidate's fit based on:\n"
    "  - Required skills coverage\n"
    "  - Repository relevance\n"
    "  - Experience indicators (account age, stars, popular projects)\n"
    "  - Profile quality (bio, followers, activity)\n\n"
    "Score every component on a 0.0-1.0 scale. Do not compute an overall score.\n"
    "Only rank candidates present in the input, using their exact username.\n\n"
    'Return ONLY a JSON object (no markdown, no explanation):\n'
    "{\n"
    '  "top_candidates": [\n'
    "    {\n"
    '      "username": "string",\n'
    '      "match_breakdown": {\n'
    '        "required_skills_score": 0.0,\n'
    '        "repository_relevance_score": 0.0,\n'
    '        "experience_score": 0.0,\n'
    '        "profile_quality_score": 0.0\n'
    "      },\n"
    '      "key_qualifications": ["qualification"],\n'
    '      "top_relevant_projects": [\n'
    '        {"name": "string", "url": "string", "why_relevant": "string"}\n'
    "      ],\n"
    '      "match_reasoning": "1-2 sentences",\n'
    '      "potential_concerns": "string or null"\n'
    "    }\n"
    "  ],\n"
    '  "search_quality": "short assessment of the candidate pool"\n'
    "}"
)


def compute_final_score(breakdown: MatchBreakdown) -> float:
    """Weighted sum of the four component scores."""
    return (
        SKILLS_WEIGHT * breakdown.required_skills_score
        + REPOSITORY_WEIGHT * breakdown.repository_relevance_score
        + EXPERIENCE_WEIGHT * breakdown.experience_score
        + PROFILE_QUALITY_WEIGHT * breakdown.profile_quality_score
    )


def _normalize_component(name: str, value: Any) -> float:
    """Coerce a model-supplied component score into [0, 1].

    Values above 1.5 are read as percentages; smaller overshoots clamp to 1.
    Missing or non-numeric values are a parse failure.
    """
    if isinstance(value, bool) or value is None:
        msg = f"match_breakdown.{name} is missing"
        raise ValueError(msg)
    try:
        score = float(value)
    except (TypeError, ValueError) as e:
        msg = f"match_breakdown.{name} is not numeric: {value!r}"
        raise ValueError(msg) from e
    if score > _PERCENT_THRESHOLD:
        score /= 100.0
    return max(0.0, min(1.0, score))


def _as_text_list(value: Any) -> list[str]:
    """Accept a list or a comma-separated string from the model."""
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, list):
        return [str(item) for item in value if item is not None]
    return []


def _build_user_prompt(enriched: EnrichedCandidates, requirements: Requirements) -> str:
    payload = {
        "requirements": requirements.model_dump(mode="json"),
        "candidates": [c.model_dump(mode="json") for c in enriched.candidates],
    }
    return f"Input Data: {json.dumps(payload)}"


def _parse_rankings(
    raw_text: str,
    enriched: EnrichedCandidates,
) -> tuple[list[RankedCandidate], str]:
    """Parse the ranking response into unranked candidates and a quality label.

    Entries naming unknown usernames are dropped. Identity fields always come
    from the enriched data, never from the model.

    Raises:
        LLMResponseError: On malformed JSON, missing component scores, or a
            response that ranks none of the known candidates.
    """
    data = parse_json_object(raw_text, STAGE)
    entries = data.get("top_candidates")
    if not isinstance(entries, list):
        raise LLMResponseError(STAGE, "missing 'top_candidates' list", raw_text)

    known = {c.username.lower(): c for c in enriched.candidates}
    seen: set[str] = set()
    ranked: list[RankedCandidate] = []

    for entry in entries:
        if not isinstance(entry, dict):
            raise LLMResponseError(STAGE, "candidate entry is not an object", raw_text)
        key = str(entry.get("username") or "").lower()
        source = known.get(key)
        if source is None:
            logger.warning("Ranking referenced unknown candidate '%s', dropping", key)
            continue
        if key in seen:
            continue
        seen.add(key)

        raw_breakdown = entry.get("match_breakdown")
        if not isinstance(raw_breakdown, dict):
            raise LLMResponseError(
                STAGE, f"candidate '{source.username}' has no match_breakdown", raw_text,
            )
        try:
            breakdown = MatchBreakdown(
                **{f: _normalize_component(f, raw_breakdown.get(f)) for f in _BREAKDOWN_FIELDS},
            )
            ranked.append(
                RankedCandidate(
                    username=source.username,
                    name=source.name,
                    location=source.location,
                    github_url=source.github_url,
                    final_match_score=compute_final_score(breakdown),
                    match_breakdown=breakdown,
                    key_qualifications=_as_text_list(entry.get("key_qualifications")),
                    top_relevant_projects=[
                        RelevantProject.model_validate(p)
                        for p in entry.get("top_relevant_projects") or []
                    ],
                    match_reasoning=str(entry.get("match_reasoning") or ""),
                    potential_concerns=entry.get("potential_concerns") or None,
                ),
            )
        except ValueError as e:
            raise LLMResponseError(STAGE, str(e), raw_text) from e

    if not ranked:
        raise LLMResponseError(STAGE, "no known candidates were ranked", raw_text)

    quality = data.get("search_quality")
    if not isinstance(quality, str):
        summary = data.get("summary")
        quality = summary.get("search_quality", "") if isinstance(summary, dict) else ""
    quality = str(quality or "")
    # the degraded label is reserved for the fallback path
    if quality == DEGRADED_SEARCH_QUALITY:
        quality = ""
    return ranked, quality


def _finalize(
    candidates: list[RankedCandidate],
    total_found: int,
    search_quality: str,
) -> FinalResult:
    """Sort by score descending (stable), assign ranks 1..N, recompute the summary."""
    ordered = sorted(candidates, key=lambda c: c.final_match_score, reverse=True)
    ranked = [c.model_copy(update={"rank": i}) for i, c in enumerate(ordered, start=1)]

    average = 0.0
    if ranked:
        average = sum(c.final_match_score for c in ranked) / len(ranked)

    return FinalResult(
        top_candidates=ranked,
        summary=ResultSummary(
            total_candidates_found=total_found,
            candidates_presented=len(ranked),
            average_match_score=average,
            search_quality=search_quality,
        ),
    )


def _fallback_candidate(candidate: EnrichedCandidate) -> RankedCandidate:
    return RankedCandidate(
        username=candidate.username,
        name=candidate.name,
        location=candidate.location,
        github_url=candidate.github_url,
        final_match_score=candidate.initial_match_score * FALLBACK_SCORE_SCALE,
        top_relevant_projects=[
            RelevantProject(
                name=repo.name,
                url=repo.url or f"{candidate.github_url}/{repo.name}",
                why_relevant=repo.relevance_reason,
            )
            for repo in candidate.relevant_repositories
        ],
        match_reasoning=FALLBACK_REASONING,
    )


def build_fallback_result(
    enriched: EnrichedCandidates,
    max_candidates: int = 10,
) -> FinalResult:
    """Deterministic ranking from initial match scores, marked as degraded."""
    candidates = [_fallback_candidate(c) for c in enriched.candidates[:max_candidates]]
    return _finalize(
        candidates,
        enriched.search_metadata.total_profiles_found,
        DEGRADED_SEARCH_QUALITY,
    )


def rank_candidates(
    enriched: EnrichedCandidates,
    requirements: Requirements,
    provider: LLMProvider,
    config: RankingConfig | None = None,
) -> FinalResult:
    """Rank candidates with one inference call, degrading to the fallback on failure.

    Never raises for ranking failures; the degraded result is recognisable by
    ``FinalResult.degraded``.
    """
    config = config or RankingConfig()
    total_found = enriched.search_metadata.total_profiles_found

    if not enriched.candidates:
        logger.info("No candidates to rank")
        return _finalize([], total_found, NO_RESULTS_SEARCH_QUALITY)

    logger.info("Ranking %d candidate(s)", len(enriched.candidates))
    try:
        try:
            raw = provider.complete(
                _build_user_prompt(enriched, requirements), system=_RANKING_SYSTEM_PROMPT,
            )
        except Exception as e:
            raise LLMCallError(STAGE, e) from e
        candidates, quality = _parse_rankings(raw, enriched)
    except Exception:
        logger.warning(
            "Ranking failed, using fallback ranking for %d candidate(s)",
            min(len(enriched.candidates), config.fallback_max_candidates),
            exc_info=True,
        )
        return build_fallback_result(enriched, config.fallback_max_candidates)

    result = _finalize(candidates, total_found, quality or "Ranked")
    logger.info(
        "Ranked %d candidate(s), average score %.3f",
        result.summary.candidates_presented,
        result.summary.average_match_score,
    )
    return result
