"""Orchestrator: wires the four sourcing stages into one linear run.

Data flow:
  1. Requirements extraction (stops here when the query is unclear)
  2. Search strategy planning
  3. Candidate acquisition: search cascade + repository enrichment
  4. Ranking (degrades to the fallback ranking on failure)
"""

import asyncio
import json
import logging

from pydantic import BaseModel, ConfigDict

from sourcing.core.config import Settings
from sourcing.core.schemas import EnrichedCandidates, FinalResult, Requirements, SearchStrategy
from sourcing.llm.base import LLMProvider
from sourcing.pipeline.acquirer import acquire_candidates
from sourcing.pipeline.ranker import rank_candidates
from sourcing.pipeline.requirements import extract_requirements
from sourcing.pipeline.strategy import plan_search_strategy
from sourcing.platforms.base import ProfileSearchBackend

logger = logging.getLogger(__name__)


class PipelineOutcome(BaseModel):
    """Everything a single pipeline run produced.

    Stages that did not run leave their field as None. ``result`` is None only
    when the query needed clarification.
    """

    model_config = ConfigDict(frozen=True)

    query: str
    requirements: Requirements
    strategy: SearchStrategy | None = None
    candidates: EnrichedCandidates | None = None
    result: FinalResult | None = None

    @property
    def needs_clarification(self) -> bool:
        return self.requirements.unclear

    @property
    def clarification_question(self) -> str | None:
        if not self.requirements.unclear:
            return None
        return self.requirements.clarification_question


async def run_pipeline(
    query: str,
    provider: LLMProvider,
    backend: ProfileSearchBackend,
    settings: Settings | None = None,
) -> PipelineOutcome:
    """Run all four stages for ``query``.

    Inference calls block, so they run in a worker thread; cancelling the
    task takes effect at the next stage boundary.

    Raises:
        ValueError: If the query is empty.
        LLMCallError: If requirements or strategy inference fails.
        LLMResponseError: If requirements or strategy output is invalid.
        SearchBackendError: If every search in the cascade failed.
    """
    if not query or not query.strip():
        msg = "query must not be empty"
        raise ValueError(msg)
    settings = settings or Settings()

    # Stage 1
    requirements = await asyncio.to_thread(extract_requirements, query, provider)
    if requirements.unclear:
        logger.info("Stopping before search: clarification needed")
        return PipelineOutcome(query=query, requirements=requirements)

    # Stage 2
    strategy = await asyncio.to_thread(plan_search_strategy, requirements, provider)

    # Stage 3
    enriched = await acquire_candidates(
        strategy, requirements, backend, settings.acquisition,
    )

    # Stage 4
    result = await asyncio.to_thread(
        rank_candidates, enriched, requirements, provider, settings.ranking,
    )

    logger.info(
        "Pipeline complete: %d search(es), %d profile(s) found, %d presented%s",
        enriched.search_metadata.searches_executed,
        enriched.search_metadata.total_profiles_found,
        result.summary.candidates_presented,
        " (degraded ranking)" if result.degraded else "",
    )
    return PipelineOutcome(
        query=query,
        requirements=requirements,
        strategy=strategy,
        candidates=enriched,
        result=result,
    )


def export_outcome_json(outcome: PipelineOutcome) -> str:
    """Export a pipeline outcome as a JSON string."""
    data: dict[str, object] = {
        "query": outcome.query,
        "requirements": outcome.requirements.model_dump(mode="json"),
    }
    if outcome.needs_clarification:
        data["clarification_question"] = outcome.clarification_question
        return json.dumps(data, indent=2)

    if outcome.candidates is not None:
        data["search_metadata"] = outcome.candidates.search_metadata.model_dump(mode="json")
    if outcome.result is not None:
        data["result"] = outcome.result.model_dump(mode="json")
        data["degraded"] = outcome.result.degraded
    return json.dumps(data, indent=2)
