"""Stage 3: run the search cascade and enrich candidates with repository data.

Data flow:
  1. Primary + fallback queries -> first_non_empty cascade
  2. Per-candidate repository fetch (bounded concurrency, failures skipped)
  3. Relevance scoring per repository -> relevant repositories
  4. Experience indicators, skills found, initial match score
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, TypeVar

from sourcing.core.config import AcquisitionConfig
from sourcing.core.schemas import (
    EnrichedCandidate,
    EnrichedCandidates,
    ProfileCandidate,
    ProfileQuery,
    RelevantRepository,
    Repository,
    Requirements,
    SearchMetadata,
    SearchQuery,
    SearchStrategy,
    UserSearchResult,
)
from sourcing.pipeline.relevance import experience_indicators, find_skills, score_repository
from sourcing.platforms.base import ProfileSearchBackend
from sourcing.platforms.errors import SearchBackendError

logger = logging.getLogger(__name__)

INITIAL_BASE_SCORE = 0.5
RELEVANT_REPO_BONUS = 0.2

Q = TypeVar("Q")


@dataclass
class CascadeOutcome(Generic[Q]):
    """Result of running queries until one yields candidates."""

    result: UserSearchResult | None = None
    winner: Q | None = None
    attempts: int = 0
    errors: list[SearchBackendError] = field(default_factory=list)

    @property
    def all_failed(self) -> bool:
        """True when at least one query ran and every attempt raised."""
        return self.attempts > 0 and len(self.errors) == self.attempts


async def first_non_empty(
    queries: Sequence[Q],
    search: Callable[[Q], Awaitable[UserSearchResult]],
) -> CascadeOutcome[Q]:
    """Try ``queries`` in order; the first one returning >= 1 candidate wins.

    Later queries are never executed once a winner is found. A query that
    raises ``SearchBackendError`` counts as an attempt and the cascade moves on.
    """
    outcome: CascadeOutcome[Q] = CascadeOutcome()
    for index, query in enumerate(queries):
        outcome.attempts += 1
        try:
            result = await search(query)
        except SearchBackendError as e:
            logger.warning("Search %d/%d failed: %s", index + 1, len(queries), e)
            outcome.errors.append(e)
            continue

        if result.candidates:
            outcome.result = result
            outcome.winner = query
            return outcome

        if index + 1 < len(queries):
            logger.info(
                "Search %d/%d returned no results, switching to fallback %d",
                index + 1, len(queries), index + 1,
            )
    return outcome


def build_profile_query(
    search: SearchQuery,
    strategy: SearchStrategy,
    config: AcquisitionConfig,
) -> ProfileQuery:
    """Combine one cascade step with the strategy-wide keywords and filters."""
    return ProfileQuery(
        language=search.language,
        location=search.location,
        followers=search.followers,
        keywords=list(strategy.repository_search.keywords),
        min_repos=strategy.post_filters.min_repos,
        max_results=config.max_results,
    )


def enrich_profile(
    profile: ProfileCandidate,
    repos: list[Repository],
    requirements: Requirements,
    keywords: list[str],
    relevance_threshold: float = 0.3,
    now: datetime | None = None,
) -> EnrichedCandidate:
    """Build an EnrichedCandidate from a profile and its fetched repositories.

    Repositories scoring at or below ``relevance_threshold`` still count
    toward stars and skills but are not listed as relevant.
    """
    relevant: list[RelevantRepository] = []
    for repo in repos:
        analysis = score_repository(repo, requirements.required_skills, keywords)
        if analysis.score > relevance_threshold:
            relevant.append(
                RelevantRepository(
                    name=repo.name,
                    description=repo.description,
                    language=repo.language,
                    stars=repo.stars,
                    topics=list(repo.topics),
                    url=repo.url or f"{profile.github_url}/{repo.name}",
                    relevance_score=analysis.score,
                    relevance_reasons=analysis.reasons,
                ),
            )

    initial_score = INITIAL_BASE_SCORE
    if relevant:
        initial_score += RELEVANT_REPO_BONUS

    return EnrichedCandidate(
        username=profile.username,
        name=profile.name,
        location=profile.location,
        bio=profile.bio,
        public_repos=profile.public_repos,
        followers=profile.followers,
        github_url=profile.github_url,
        relevant_repositories=relevant,
        skills_found=find_skills(
            [*requirements.required_skills, *requirements.nice_to_have], profile, repos,
        ),
        experience_indicators=experience_indicators(profile, repos, now),
        initial_match_score=initial_score,
    )


async def acquire_candidates(
    strategy: SearchStrategy,
    requirements: Requirements,
    backend: ProfileSearchBackend,
    config: AcquisitionConfig | None = None,
) -> EnrichedCandidates:
    """Execute the search cascade and enrich every candidate it returns.

    Returns an envelope with an empty candidate list when no query finds
    anyone.

    Raises:
        SearchBackendError: Only when every attempted query failed.
    """
    config = config or AcquisitionConfig()
    queries = [build_profile_query(q, strategy, config) for q in strategy.queries]

    cascade = await first_non_empty(queries, backend.search_users)
    if cascade.all_failed:
        logger.error("All %d search attempts failed", cascade.attempts)
        raise cascade.errors[-1]

    if cascade.result is None:
        logger.warning("No candidates found after %d search(es)", cascade.attempts)
        return EnrichedCandidates(
            candidates=[],
            search_metadata=SearchMetadata(searches_executed=cascade.attempts),
        )

    profiles = cascade.result.candidates
    logger.info(
        "Search %d returned %d candidate(s); fetching repositories",
        cascade.attempts, len(profiles),
    )

    keywords = list(strategy.repository_search.keywords)
    semaphore = asyncio.Semaphore(config.max_concurrent_fetches)

    async def enrich_one(profile: ProfileCandidate) -> EnrichedCandidate | None:
        async with semaphore:
            try:
                repos = await backend.get_repositories(
                    profile.username, config.max_repos_per_candidate,
                )
            except SearchBackendError as e:
                logger.warning("Failed to get repos for %s: %s", profile.username, e)
                return None
        return enrich_profile(
            profile, repos, requirements, keywords, config.relevance_threshold,
        )

    # gather keeps input order, so output follows search ranking
    enriched = await asyncio.gather(*(enrich_one(p) for p in profiles))
    candidates = [c for c in enriched if c is not None]

    logger.info(
        "Analyzed %d/%d profiles (%d skipped)",
        len(candidates), len(profiles), len(profiles) - len(candidates),
    )
    return EnrichedCandidates(
        candidates=candidates,
        search_metadata=SearchMetadata(
            searches_executed=cascade.attempts,
            total_profiles_found=len(profiles),
            profiles_analyzed=len(candidates),
        ),
    )
