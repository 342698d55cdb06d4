"""Abstract base class for profile-search backends."""

from abc import ABC, abstractmethod

from sourcing.core.schemas import ProfileQuery, Repository, UserSearchResult


class ProfileSearchBackend(ABC):
    """Base class that every profile-search backend must implement.

    Implementations raise ``SearchBackendError`` subclasses on failure and
    return an empty result (not an exception) when nothing matches.
    """

    @property
    @abstractmethod
    def platform_id(self) -> str:
        """Unique identifier for this backend (e.g. 'github')."""

    @abstractmethod
    async def search_users(self, query: ProfileQuery) -> UserSearchResult:
        """Search profiles and return at most ``query.max_results`` candidates."""

    @abstractmethod
    async def get_repositories(self, username: str, max_count: int) -> list[Repository]:
        """Return up to ``max_count`` repositories, most-starred first."""
