from pydantic import BaseModel

from ..domains import DEFAULT_DOMAIN


class SearchResult(BaseModel):
    """A recalled fact with its similarity to the query."""

    fact: str
    similarity: float
    domain: str = DEFAULT_DOMAIN


class SearchResultWithId(SearchResult):
    """Search result that also exposes the entry's identity and access metadata."""

    id: str
    created_at: str
    access_count: int = 0
