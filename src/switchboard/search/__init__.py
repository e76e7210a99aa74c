"""Web search collaborator."""

from .searxng import (
    NO_RESULTS,
    SearchResult,
    SearXNGClient,
    optimize_search_query,
    summarize_search_results,
)

__all__ = [
    "NO_RESULTS",
    "SearchResult",
    "SearXNGClient",
    "optimize_search_query",
    "summarize_search_results",
]
