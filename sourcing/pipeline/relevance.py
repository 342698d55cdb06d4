"""Deterministic repository relevance and experience signals.

Relevance score range: 0-1 (clamped). Contributions:
  +0.30 per required skill equal to the repository language
  +0.20 per keyword found in name + description
  +0.15 per keyword contained in any topic
  +0.10 when the repository has more than 50 stars
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sourcing.core.schemas import ExperienceIndicators, ProfileCandidate, Repository

LANGUAGE_MATCH_BONUS = 0.3
KEYWORD_MATCH_BONUS = 0.2
TOPIC_MATCH_BONUS = 0.15
POPULARITY_BONUS = 0.1
POPULAR_STARS_THRESHOLD = 50
MAX_RELEVANCE = 1.0


@dataclass(frozen=True)
class RelevanceAnalysis:
    score: float
    reasons: list[str] = field(default_factory=list)


def score_repository(
    repo: Repository,
    required_skills: list[str],
    keywords: list[str],
) -> RelevanceAnalysis:
    """Score how well a repository matches required skills and keywords.

    Pure function of its inputs. Blank skills or keywords never match.
    """
    score = 0.0
    reasons: list[str] = []

    language = repo.language.lower().strip()
    for skill in required_skills:
        if skill.strip() and skill.lower().strip() == language:
            score += LANGUAGE_MATCH_BONUS
            reasons.append(f"Uses {skill}")

    terms = [kw.strip() for kw in keywords if kw.strip()]

    repo_text = f"{repo.name} {repo.description}".lower()
    for kw in terms:
        if kw.lower() in repo_text:
            score += KEYWORD_MATCH_BONUS
            reasons.append(f"Contains '{kw}'")

    for kw in terms:
        matched = next((t for t in repo.topics if kw.lower() in t.lower()), None)
        if matched is not None:
            score += TOPIC_MATCH_BONUS
            reasons.append(f"Topic: {matched}")

    if repo.stars > POPULAR_STARS_THRESHOLD:
        score += POPULARITY_BONUS
        reasons.append("Popular project")

    # rounding removes float noise so threshold comparisons are exact
    return RelevanceAnalysis(score=round(min(score, MAX_RELEVANCE), 4), reasons=reasons)


def find_skills(
    skills: list[str],
    profile: ProfileCandidate,
    repos: list[Repository],
) -> list[str]:
    """Return the skills evidenced by repository languages, topics, or the bio."""
    languages = {r.language.lower() for r in repos if r.language}
    topics = {t.lower() for r in repos for t in r.topics}

    found: list[str] = []
    for skill in skills:
        key = skill.lower().strip()
        if not key:
            continue
        if (
            key in languages
            or key.replace(" ", "-") in topics
            or _mentions(profile.bio, key)
        ):
            found.append(skill)
    return found


def experience_indicators(
    profile: ProfileCandidate,
    repos: list[Repository],
    now: datetime | None = None,
) -> ExperienceIndicators:
    """Account age, total stars, and popular-project flag for a profile."""
    age_years = 0.0
    if profile.created_at is not None:
        now = now or datetime.now(timezone.utc)
        created = profile.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        age_years = max(0.0, round((now - created).days / 365.25, 1))

    return ExperienceIndicators(
        account_age_years=age_years,
        total_stars=sum(r.stars for r in repos),
        has_popular_projects=any(r.stars > POPULAR_STARS_THRESHOLD for r in repos),
    )


def _mentions(text: str, term: str) -> bool:
    """Case-insensitive whole-word match; handles terms like 'c++' and '.net'."""
    if not text:
        return False
    pattern = rf"(?<![\w]){re.escape(term)}(?![\w])"
    return re.search(pattern, text, re.IGNORECASE) is not None
