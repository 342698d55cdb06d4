"""GitHub user-search query builder."""

from sourcing.core.schemas import ProfileQuery

# GitHub search returns at most 100 items per page.
SEARCH_PAGE_SIZE = 100


def build_search_query(query: ProfileQuery) -> str:
    """Build the ``q`` parameter for ``GET /search/users``.

    Qualifiers are added only for populated fields; multi-word locations are
    quoted so GitHub treats them as one term.

    Example::

        build_search_query(ProfileQuery(language="go", location="san francisco", min_repos=5))
        # 'type:user language:go repos:>5 location:"san francisco"'
    """
    parts = ["type:user"]
    if query.language:
        parts.append(f"language:{_quote(query.language)}")
    if query.min_repos > 0:
        parts.append(f"repos:>{query.min_repos}")
    if query.location:
        parts.append(f"location:{_quote(query.location)}")
    if query.followers:
        parts.append(f"followers:{_followers_qualifier(query.followers)}")
    return " ".join(parts)


def search_criteria(query: ProfileQuery) -> dict[str, object]:
    """Describe a query for reporting; keywords are informational only."""
    return {
        "language": query.language,
        "location": query.location,
        "followers": query.followers,
        "keywords": " ".join(query.keywords),
        "min_repos": query.min_repos,
        "max_results": query.max_results,
    }


def _quote(value: str) -> str:
    value = value.strip().replace('"', "")
    return f'"{value}"' if " " in value else value


def _followers_qualifier(value: str) -> str:
    """Accept '>10', '>=10', '10..50' as given; a bare number means 'at least'."""
    value = value.replace(" ", "")
    if value.isdigit():
        return f">={value}"
    return value
