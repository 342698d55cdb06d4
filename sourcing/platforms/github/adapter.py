"""GitHub profile-search backend: wires query builder, parser, and aiohttp session."""

import asyncio
import logging
import os
import random
from types import TracebackType
from typing import Any

import aiohttp

from sourcing.core.config import GitHubConfig
from sourcing.core.schemas import ProfileCandidate, ProfileQuery, Repository, UserSearchResult
from sourcing.platforms.base import ProfileSearchBackend
from sourcing.platforms.errors import (
    NetworkError,
    NotFoundError,
    RateLimitedError,
    SearchBackendError,
)
from sourcing.platforms.github.parser import parse_profile, parse_repositories
from sourcing.platforms.github.searcher import (
    SEARCH_PAGE_SIZE,
    build_search_query,
    search_criteria,
)

logger = logging.getLogger(__name__)


class GitHubAdapter(ProfileSearchBackend):
    """GitHub REST API backend.

    Owns one aiohttp session unless one is injected. Usage::

        async with GitHubAdapter(settings.github) as github:
            result = await github.search_users(query)
    """

    def __init__(
        self,
        config: GitHubConfig,
        *,
        session: Any | None = None,
        token: str | None = None,
    ) -> None:
        self._config = config
        self._token = token if token is not None else os.environ.get(config.token_env, "")
        self._session = session
        self._owns_session = session is None
        self.request_count = 0

    @property
    def platform_id(self) -> str:
        return "github"

    @property
    def session(self) -> Any:
        if self._session is None:
            msg = "GitHubAdapter not entered — use 'async with'"
            raise RuntimeError(msg)
        return self._session

    async def __aenter__(self) -> "GitHubAdapter":
        if self._session is None:
            self._session = aiohttp.ClientSession()
        if not self._token:
            logger.warning(
                "%s not set — GitHub requests are unauthenticated and heavily rate limited",
                self._config.token_env,
            )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def search_users(self, query: ProfileQuery) -> UserSearchResult:
        """Search users, then load each profile until ``max_results`` are collected.

        A failed profile lookup skips that user; a rate limit stops collection
        and returns what was gathered so far.
        """
        q = build_search_query(query)
        logger.info("GitHub user search: %s", q)
        data = await self._get_json(
            "/search/users",
            params={"q": q, "per_page": str(SEARCH_PAGE_SIZE)},
            timeout_seconds=self._config.search_timeout_seconds,
        )
        if not isinstance(data, dict):
            msg = "GitHub search response is not a JSON object"
            raise SearchBackendError(msg)

        items = data.get("items") or []
        candidates: list[ProfileCandidate] = []
        for item in items:
            if len(candidates) >= query.max_results:
                break
            login = item.get("login") if isinstance(item, dict) else None
            if not login:
                continue
            try:
                candidates.append(await self.get_profile(login))
            except RateLimitedError:
                logger.warning(
                    "Rate limited while loading profiles — keeping %d of %d",
                    len(candidates), len(items),
                )
                break
            except SearchBackendError as e:
                logger.warning("Failed to get details for user %s: %s", login, e)

        total_count = data.get("total_count")
        if not isinstance(total_count, int) or isinstance(total_count, bool):
            total_count = len(items)
        logger.info(
            "GitHub search matched %d users, loaded %d profiles", total_count, len(candidates),
        )
        return UserSearchResult(
            candidates=candidates,
            total_found=total_count,
            criteria=search_criteria(query),
        )

    async def get_profile(self, username: str) -> ProfileCandidate:
        data = await self._get_json(
            f"/users/{username}",
            timeout_seconds=self._config.profile_timeout_seconds,
        )
        if not isinstance(data, dict):
            msg = f"GitHub user response for '{username}' is not a JSON object"
            raise SearchBackendError(msg)
        return parse_profile(data)

    async def get_repositories(self, username: str, max_count: int) -> list[Repository]:
        """Return the ``max_count`` most-starred public repositories.

        The list endpoint cannot sort by stars, so one full page is fetched
        and sorted locally.
        """
        data = await self._get_json(
            f"/users/{username}/repos",
            params={"per_page": str(SEARCH_PAGE_SIZE), "type": "owner"},
            timeout_seconds=self._config.profile_timeout_seconds,
        )
        repos = parse_repositories(data)
        repos.sort(key=lambda r: r.stars, reverse=True)
        return repos[:max_count]

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github.v3+json"}
        if self._token:
            headers["Authorization"] = f"token {self._token}"
        return headers

    async def _get_json(
        self,
        path: str,
        *,
        params: dict[str, str] | None = None,
        timeout_seconds: float,
    ) -> Any:
        """GET returning parsed JSON with retry on transient failures.

        Retries 5xx responses, timeouts, and connection errors with
        exponential backoff + jitter. 404 and rate limits raise immediately.
        """
        url = f"{self._config.base_url}{path}"
        attempts = self._config.retries + 1
        last_error: SearchBackendError | None = None

        for attempt in range(attempts):
            self.request_count += 1
            logger.debug("GET %s %s (attempt %d/%d)", url, params or "", attempt + 1, attempts)
            try:
                async with self.session.get(
                    url,
                    params=params,
                    headers=self._headers(),
                    timeout=aiohttp.ClientTimeout(total=timeout_seconds),
                ) as resp:
                    if resp.status == 200:
                        return await _read_json(resp, url)
                    if resp.status == 404:
                        msg = f"GitHub resource not found: {path}"
                        raise NotFoundError(msg, status=404, url=url)
                    if _is_rate_limited(resp):
                        reset = resp.headers.get("X-RateLimit-Reset")
                        msg = f"GitHub rate limit exceeded (HTTP {resp.status})"
                        raise RateLimitedError(
                            msg, reset_at=int(reset) if reset and reset.isdigit() else None,
                            url=url,
                        )
                    if resp.status < 500:
                        body = await resp.text()
                        msg = f"GitHub API request failed with status {resp.status}: {body[:200]}"
                        raise SearchBackendError(msg, status=resp.status, url=url)
                    last_error = NetworkError(
                        f"GitHub API returned HTTP {resp.status}", status=resp.status, url=url,
                    )
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = NetworkError(f"Request to {url} failed: {e!r}", url=url)

            if attempt < attempts - 1:
                wait = self._config.backoff_seconds * (2 ** attempt) + random.uniform(
                    0, self._config.backoff_seconds,
                )
                logger.warning(
                    "%s, retrying in %.1fs (attempt %d/%d)",
                    last_error, wait, attempt + 1, attempts,
                )
                await asyncio.sleep(wait)

        logger.error("All %d attempts failed for %s: %s", attempts, url, last_error)
        if last_error is None:
            msg = f"GitHub request to {url} was not attempted"
            raise NetworkError(msg, url=url)
        raise last_error


async def _read_json(resp: Any, url: str) -> Any:
    try:
        return await resp.json()
    except (aiohttp.ContentTypeError, ValueError) as e:
        msg = f"Invalid JSON from {url}: {e}"
        raise SearchBackendError(msg, status=resp.status, url=url) from e


def _is_rate_limited(resp: Any) -> bool:
    if resp.status == 429:
        return True
    return resp.status == 403 and resp.headers.get("X-RateLimit-Remaining") == "0"
