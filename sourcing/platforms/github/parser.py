"""Convert GitHub REST payloads into core models."""

import logging
from typing import Any

from pydantic import ValidationError

from sourcing.core.schemas import ProfileCandidate, Repository
from sourcing.platforms.errors import SearchBackendError

logger = logging.getLogger(__name__)


def parse_profile(data: dict[str, Any]) -> ProfileCandidate:
    """Parse a ``GET /users/{login}`` payload.

    Raises:
        SearchBackendError: If the payload lacks a login or has invalid fields.
    """
    login = data.get("login")
    if not login:
        msg = "GitHub user payload has no 'login'"
        raise SearchBackendError(msg)
    try:
        return ProfileCandidate(
            username=login,
            name=data.get("name") or "",
            location=data.get("location") or "",
            bio=(data.get("bio") or "").strip(),
            public_repos=data.get("public_repos") or 0,
            followers=data.get("followers") or 0,
            github_url=data.get("html_url") or f"https://github.com/{login}",
            created_at=data.get("created_at"),
        )
    except ValidationError as e:
        msg = f"Invalid GitHub user payload for '{login}': {e}"
        raise SearchBackendError(msg) from e


def parse_repositories(items: Any) -> list[Repository]:
    """Parse a ``GET /users/{login}/repos`` payload, skipping malformed entries."""
    if not isinstance(items, list):
        msg = "GitHub repositories payload is not a list"
        raise SearchBackendError(msg)

    repos: list[Repository] = []
    for item in items:
        if not isinstance(item, dict) or not item.get("name"):
            continue
        try:
            repos.append(
                Repository(
                    name=item["name"],
                    description=item.get("description") or "",
                    language=item.get("language") or "",
                    stars=item.get("stargazers_count") or 0,
                    topics=item.get("topics") or [],
                    url=item.get("html_url") or "",
                ),
            )
        except ValidationError:
            logger.debug("Skipping malformed repository entry: %s", item.get("name"))
    return repos
