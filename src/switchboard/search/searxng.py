"""SearXNG web search used to ground answers in current information."""

import logging
import os
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..exceptions import TransportError

logger = logging.getLogger(__name__)

DEFAULT_SEARXNG_URL = "https://searx.be/search"
DEFAULT_ENGINES = ("google", "bing", "duckduckgo")

NO_RESULTS = "No search results found."

_TIME_SENSITIVE_QUERY = ("latest", "recent", "today")
_TIME_SENSITIVE_TOPIC = ("latest", "recent", "new", "current")

_QUESTION_PREFIX = re.compile(
    r"^(can you|could you|please|tell me|find|search for|look up|"
    r"what is|who is|when is|where is|why is|how is)",
    re.IGNORECASE,
)
_FILLER_WORDS = re.compile(
    r"\b(the|a|an|that|this|these|those|it|they|we|I|you|he|she|about)\b",
    re.IGNORECASE,
)


@dataclass
class SearchResult:
    """A single web search hit."""

    title: str
    link: str
    snippet: str
    score: Optional[float] = None
    source: Optional[str] = None
    date: Optional[str] = None

    @classmethod
    def from_searxng(cls, data: Dict[str, Any]) -> "SearchResult":
        """Create a SearchResult from one entry of a SearXNG JSON response."""
        return cls(
            title=data.get("title") or "No title",
            link=data.get("url") or data.get("link") or "",
            snippet=data.get("content") or data.get("snippet") or data.get("description") or "",
            score=data.get("score"),
            source=data.get("engine"),
            date=(
                data.get("publishedDate") or data.get("published_date") or data.get("date") or ""
            ),
        )


class SearXNGClient:
    """Client for a SearXNG instance's JSON search API."""

    def __init__(self, base_url: Optional[str] = None, timeout: float = 10.0):
        """Initialize the search client.

        Args:
            base_url: Search endpoint. If None, reads SEARXNG_URL or uses the public default.
            timeout: Request timeout in seconds.
        """
        if base_url is None:
            base_url = os.getenv("SEARXNG_URL", DEFAULT_SEARXNG_URL)
        self.base_url = base_url
        self.timeout = timeout

    def search(
        self,
        query: str,
        time_range: str = "month",
        max_results: int = 5,
        language: str = "en",
        engines: Sequence[str] = DEFAULT_ENGINES,
    ) -> List[SearchResult]:
        """Run a web search.

        Args:
            query: The search query.
            time_range: One of "day", "week", "month" or "year".
            max_results: Maximum number of results to return.
            language: Result language code.
            engines: Engines SearXNG should query.

        Returns:
            Ordered list of results, empty when nothing was found or no
            endpoint is configured.

        Raises:
            TransportError: If the request fails.
        """
        if not self.base_url:
            logger.error("SearXNG URL not configured")
            return []

        if any(word in query for word in _TIME_SENSITIVE_QUERY):
            query = f"{query} {date.today().isoformat()}"

        try:
            response = httpx.get(
                self.base_url,
                params={
                    "q": query,
                    "format": "json",
                    "engines": ",".join(engines),
                    "time_range": time_range,
                    "language": language,
                    "categories": "general",
                    "safesearch": 1,
                },
                headers={"Accept": "application/json", "User-Agent": "SearchBot/1.0"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"SearXNG search error: {e}")
            raise TransportError(f"SearXNG search failed: {e}", provider="searxng") from e

        if not isinstance(data, dict) or not data.get("results"):
            logger.warning("SearXNG response contained no results")
            return []

        results = [SearchResult.from_searxng(r) for r in data["results"]]
        return results[:max_results]


def summarize_search_results(results: List[SearchResult]) -> str:
    """Render search results as a numbered plain-text block for a prompt."""
    if not results:
        return NO_RESULTS

    entries = []
    for index, result in enumerate(results, start=1):
        entry = f'[{index}] "{result.title}": {result.snippet}'
        if result.date:
            entry += f" (Published: {result.date})"
        entry += f" Source: {result.link}"
        entries.append(entry)

    return "\n\n".join(entries)


def optimize_search_query(query: str) -> str:
    """Strip conversational filler from a user message to get a search query."""
    optimized = _QUESTION_PREFIX.sub("", query).strip()
    optimized = _FILLER_WORDS.sub(" ", optimized)
    optimized = re.sub(r"\s+", " ", optimized).strip()

    current_year = str(date.today().year)
    if any(word in optimized for word in _TIME_SENSITIVE_TOPIC) and current_year not in optimized:
        optimized += f" {current_year}"

    return optimized or query
