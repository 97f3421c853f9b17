"""Hacker News discovery source (Algolia search API)."""
import logging

from aihub.services.discovery.sources import (
    BaseDiscoverySource,
    CandidateCollector,
    DiscoveredCandidate,
    SourceType,
)

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 300


class HackerNewsSource(BaseDiscoverySource):
    """Discovers AI launches from recent "Show HN" posts."""

    source_type = SourceType.HACKERNEWS
    default_name = "Hacker News (Show HN)"

    SEARCH_URL = "https://hn.algolia.com/api/v1/search_by_date"
    QUERY = "Show HN AI"

    def default_url(self) -> str:
        return self.SEARCH_URL

    async def fetch(self) -> list[DiscoveredCandidate]:
        """Search Show HN stories and keep those that link to a website."""
        collector = CandidateCollector(self.max_items)

        async with self._session() as client:
            response = await self._get(
                client,
                self.url,
                params={
                    "query": self.QUERY,
                    "tags": "show_hn",
                    "hitsPerPage": self.max_items,
                }
            )
            if response is None:
                return collector.items

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"[{self.name}] Invalid JSON from search API: {e}")
            return collector.items

        hits = data.get("hits") if isinstance(data, dict) else None
        if not isinstance(hits, list):
            logger.warning(f"[{self.name}] Unexpected search response shape: {type(data).__name__}")
            return collector.items

        for hit in hits:
            if not isinstance(hit, dict):
                continue
            url = hit.get("url")
            title = hit.get("title")
            if not isinstance(url, str) or not url.startswith("http"):
                continue
            if title is not None and not isinstance(title, str):
                continue
            story_text = hit.get("story_text")
            if not isinstance(story_text, str):
                story_text = ""
            collector.add(
                url,
                title=title,
                description=story_text[:MAX_DESCRIPTION_LENGTH]
            )

        logger.info(f"Hacker News: discovered {len(collector.items)} candidates")
        return collector.items
