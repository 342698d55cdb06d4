"""Tests for candidate ranking and the degraded fallback (stage 4)."""

import json
from unittest.mock import MagicMock

import pytest

from sourcing.core.config import RankingConfig
from sourcing.core.schemas import (
    DEGRADED_SEARCH_QUALITY,
    NO_RESULTS_SEARCH_QUALITY,
    EnrichedCandidate,
    EnrichedCandidates,
    MatchBreakdown,
    RelevantRepository,
    Requirements,
    SearchMetadata,
)
from sourcing.pipeline.ranker import (
    FALLBACK_REASONING,
    build_fallback_result,
    compute_final_score,
    rank_candidates,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _candidate(username: str, initial: float = 0.5, **overrides: object) -> EnrichedCandidate:
    defaults: dict[str, object] = {
        "username": username,
        "name": username.title(),
        "location": "Lima",
        "github_url": f"https://github.com/{username}",
        "initial_match_score": initial,
    }
    defaults.update(overrides)
    return EnrichedCandidate(**defaults)  # type: ignore[arg-type]


def _enriched(*candidates: EnrichedCandidate, total: int | None = None) -> EnrichedCandidates:
    return EnrichedCandidates(
        candidates=list(candidates),
        search_metadata=SearchMetadata(
            searches_executed=1,
            total_profiles_found=len(candidates) if total is None else total,
            profiles_analyzed=len(candidates),
        ),
    )


def _requirements() -> Requirements:
    return Requirements(required_skills=["Go"], keywords=["microservices"])


def _entry(username: str, skills: float, repo: float, exp: float, quality: float, **extra: object) -> dict[str, object]:
    entry: dict[str, object] = {
        "username": username,
        "match_breakdown": {
            "required_skills_score": skills,
            "repository_relevance_score": repo,
            "experience_score": exp,
            "profile_quality_score": quality,
        },
        "key_qualifications": ["Go expert"],
        "top_relevant_projects": [
            {"name": "svc", "url": f"https://github.com/{username}/svc", "why_relevant": "Go"},
        ],
        "match_reasoning": "Strong Go background.",
        "potential_concerns": None,
    }
    entry.update(extra)
    return entry


def _mock_provider(payload: dict[str, object] | str) -> MagicMock:
    provider = MagicMock()
    provider.complete.return_value = payload if isinstance(payload, str) else json.dumps(payload)
    return provider


# ---------------------------------------------------------------------------
# compute_final_score
# ---------------------------------------------------------------------------


class TestComputeFinalScore:
    def test_weights(self) -> None:
        b = MatchBreakdown(
            required_skills_score=1.0,
            repository_relevance_score=0.5,
            experience_score=0.25,
            profile_quality_score=0.0,
        )
        assert compute_final_score(b) == pytest.approx(0.4 + 0.15 + 0.05)

    def test_zero(self) -> None:
        assert compute_final_score(MatchBreakdown()) == 0.0


# ---------------------------------------------------------------------------
# rank_candidates
# ---------------------------------------------------------------------------


class TestRankCandidates:
    def test_recomputes_and_sorts(self) -> None:
        enriched = _enriched(_candidate("alice"), _candidate("bob"), _candidate("carol"))
        provider = _mock_provider({
            "top_candidates": [
                _entry("alice", 0.5, 0.5, 0.5, 0.5, final_match_score=99),
                _entry("bob", 1.0, 1.0, 1.0, 1.0),
                _entry("carol", 0.2, 0.2, 0.2, 0.2),
            ],
            "search_quality": "Good",
            "summary": {"average_match_score": 42},
        })

        result = rank_candidates(enriched, _requirements(), provider)

        assert [c.username for c in result.top_candidates] == ["bob", "alice", "carol"]
        assert [c.rank for c in result.top_candidates] == [1, 2, 3]
        for c in result.top_candidates:
            assert c.final_match_score == pytest.approx(compute_final_score(c.match_breakdown))
        assert result.summary.average_match_score == pytest.approx((1.0 + 0.5 + 0.2) / 3)
        assert result.summary.search_quality == "Good"
        assert result.summary.candidates_presented == 3
        assert result.degraded is False
        assert provider.complete.call_count == 1

    def test_ties_keep_model_order(self) -> None:
        enriched = _enriched(_candidate("alice"), _candidate("bob"), _candidate("carol"))
        provider = _mock_provider({"top_candidates": [
            _entry("carol", 0.5, 0.5, 0.5, 0.5),
            _entry("alice", 0.5, 0.5, 0.5, 0.5),
            _entry("bob", 0.9, 0.9, 0.9, 0.9),
        ]})

        result = rank_candidates(enriched, _requirements(), provider)

        assert [c.username for c in result.top_candidates] == ["bob", "carol", "alice"]
        assert [c.rank for c in result.top_candidates] == [1, 2, 3]

    def test_ranks_non_increasing_scores(self) -> None:
        names = [f"dev{i}" for i in range(6)]
        enriched = _enriched(*[_candidate(n) for n in names])
        scores = [0.3, 0.9, 0.1, 0.9, 0.5, 0.7]
        provider = _mock_provider({"top_candidates": [
            _entry(n, s, s, s, s) for n, s in zip(names, scores)
        ]})

        result = rank_candidates(enriched, _requirements(), provider)

        final = [c.final_match_score for c in result.top_candidates]
        assert final == sorted(final, reverse=True)
        assert [c.rank for c in result.top_candidates] == list(range(1, 7))

    def test_identity_from_enriched_data(self) -> None:
        enriched = _enriched(_candidate("alice", location="Cusco"))
        provider = _mock_provider({"top_candidates": [
            _entry("ALICE", 0.8, 0.8, 0.8, 0.8, location="Mars", github_url="https://evil"),
        ]})

        result = rank_candidates(enriched, _requirements(), provider)

        top = result.top_candidates[0]
        assert top.username == "alice"
        assert top.location == "Cusco"
        assert top.github_url == "https://github.com/alice"

    def test_percentage_components_normalized(self) -> None:
        enriched = _enriched(_candidate("alice"))
        provider = _mock_provider({"top_candidates": [_entry("alice", 80, 60, 40, 20)]})

        result = rank_candidates(enriched, _requirements(), provider)

        b = result.top_candidates[0].match_breakdown
        assert b.required_skills_score == pytest.approx(0.8)
        assert b.profile_quality_score == pytest.approx(0.2)
        assert result.top_candidates[0].final_match_score == pytest.approx(0.6)

    def test_small_overshoot_clamped(self) -> None:
        enriched = _enriched(_candidate("alice"))
        provider = _mock_provider({"top_candidates": [_entry("alice", 1.2, 0.8, 0.5, 0.6)]})

        result = rank_candidates(enriched, _requirements(), provider)

        top = result.top_candidates[0]
        assert top.match_breakdown.required_skills_score == pytest.approx(1.0)
        assert top.final_match_score == pytest.approx(0.4 + 0.24 + 0.1 + 0.06)
        assert result.degraded is False

    def test_qualifications_as_string(self) -> None:
        enriched = _enriched(_candidate("alice"))
        provider = _mock_provider({"top_candidates": [
            _entry("alice", 0.5, 0.5, 0.5, 0.5, key_qualifications="Go, Kubernetes"),
        ]})

        result = rank_candidates(enriched, _requirements(), provider)

        assert result.top_candidates[0].key_qualifications == ["Go", "Kubernetes"]

    def test_unknown_usernames_dropped(self) -> None:
        enriched = _enriched(_candidate("alice"))
        provider = _mock_provider({"top_candidates": [
            _entry("mallory", 1, 1, 1, 1),
            _entry("alice", 0.5, 0.5, 0.5, 0.5),
        ]})

        result = rank_candidates(enriched, _requirements(), provider)

        assert [c.username for c in result.top_candidates] == ["alice"]

    def test_total_found_from_metadata(self) -> None:
        enriched = _enriched(_candidate("alice"), total=12)
        provider = _mock_provider({
            "top_candidates": [_entry("alice", 0.5, 0.5, 0.5, 0.5)],
            "summary": {"total_candidates_found": 999},
        })

        result = rank_candidates(enriched, _requirements(), provider)

        assert result.summary.total_candidates_found == 12

    def test_model_cannot_claim_degraded(self) -> None:
        enriched = _enriched(_candidate("alice"))
        provider = _mock_provider({
            "top_candidates": [_entry("alice", 0.5, 0.5, 0.5, 0.5)],
            "search_quality": DEGRADED_SEARCH_QUALITY,
        })

        result = rank_candidates(enriched, _requirements(), provider)

        assert result.degraded is False

    def test_empty_candidates_skip_inference(self) -> None:
        provider = _mock_provider("unused")

        result = rank_candidates(_enriched(), _requirements(), provider)

        provider.complete.assert_not_called()
        assert result.top_candidates == []
        assert result.summary.search_quality == NO_RESULTS_SEARCH_QUALITY
        assert result.degraded is False


# ---------------------------------------------------------------------------
# Fallback path
# ---------------------------------------------------------------------------


class TestRankingFallback:
    @pytest.mark.parametrize(
        "response",
        [
            "not json at all",
            json.dumps({"candidates": []}),
            json.dumps({"top_candidates": [{"username": "alice"}]}),
            json.dumps({"top_candidates": [
                {"username": "alice", "match_breakdown": {"required_skills_score": 0.5}},
            ]}),
            json.dumps({"top_candidates": [_entry("alice", "high", 0.5, 0.5, 0.5)]}),
            json.dumps({"top_candidates": [_entry("nobody", 1, 1, 1, 1)]}),
        ],
    )
    def test_malformed_output_degrades(self, response: str) -> None:
        enriched = _enriched(_candidate("alice", 0.7), _candidate("bob", 0.5))

        result = rank_candidates(enriched, _requirements(), _mock_provider(response))

        assert result.degraded is True
        assert result.summary.search_quality == DEGRADED_SEARCH_QUALITY

    def test_transport_failure_degrades(self) -> None:
        provider = MagicMock()
        provider.complete.side_effect = TimeoutError("inference timed out")
        enriched = _enriched(_candidate("alice", 0.5), _candidate("bob", 0.7))

        result = rank_candidates(enriched, _requirements(), provider)

        assert result.degraded is True
        assert [c.username for c in result.top_candidates] == ["bob", "alice"]
        assert [c.final_match_score for c in result.top_candidates] == pytest.approx([70.0, 50.0])
        assert all(c.match_reasoning == FALLBACK_REASONING for c in result.top_candidates)
        assert [c.rank for c in result.top_candidates] == [1, 2]

    def test_fallback_caps_candidates(self) -> None:
        enriched = _enriched(*[_candidate(f"dev{i}") for i in range(15)])

        result = build_fallback_result(enriched)

        assert len(result.top_candidates) == 10
        assert {c.username for c in result.top_candidates} == {f"dev{i}" for i in range(10)}
        assert result.summary.candidates_presented == 10
        assert result.summary.total_candidates_found == 15

    def test_fallback_cap_configurable(self) -> None:
        provider = MagicMock()
        provider.complete.side_effect = RuntimeError("down")
        enriched = _enriched(*[_candidate(f"dev{i}") for i in range(5)])

        result = rank_candidates(
            enriched, _requirements(), provider, RankingConfig(fallback_max_candidates=3),
        )

        assert len(result.top_candidates) == 3

    def test_fallback_projects_and_average(self) -> None:
        repo = RelevantRepository(
            name="svc",
            relevance_score=0.6,
            relevance_reasons=["Uses Go", "Popular project"],
        )
        enriched = _enriched(
            _candidate("alice", 0.7, relevant_repositories=[repo]),
            _candidate("bob", 0.5),
        )

        result = build_fallback_result(enriched)

        alice = result.top_candidates[0]
        assert alice.top_relevant_projects[0].name == "svc"
        assert alice.top_relevant_projects[0].url == "https://github.com/alice/svc"
        assert alice.top_relevant_projects[0].why_relevant == "Uses Go, Popular project"
        assert alice.match_breakdown == MatchBreakdown()
        assert result.summary.average_match_score == pytest.approx(60.0)

    def test_fallback_ties_keep_search_order(self) -> None:
        enriched = _enriched(_candidate("zed"), _candidate("amy"), _candidate("kim"))

        result = build_fallback_result(enriched)

        assert [c.username for c in result.top_candidates] == ["zed", "amy", "kim"]
