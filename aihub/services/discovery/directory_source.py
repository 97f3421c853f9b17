"""Directory scraping discovery sources."""
import logging
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from aihub.services.discovery.sources import (
    BaseDiscoverySource,
    CandidateCollector,
    DiscoveredCandidate,
    SourceType,
)
from aihub.settings import settings

logger = logging.getLogger(__name__)


class TheresAnAISource(BaseDiscoverySource):
    """Discovers newly listed tools on There's An AI For That."""

    source_type = SourceType.THERESANAI
    default_name = "There's An AI For That"

    BASE_URL = "https://theresanaiforthat.com"
    LIST_URL = "https://theresanaiforthat.com/new/"

    def default_url(self) -> str:
        return self.LIST_URL

    async def fetch(self) -> list[DiscoveredCandidate]:
        """
        Scrape the "new" listing page.

        Directory detail pages (/ai/...) come first, then outbound
        nofollow links that open in a new tab, which point at the tools
        themselves.
        """
        collector = CandidateCollector(self.max_items)

        async with self._session() as client:
            response = await self._get(
                client,
                self.url,
                headers={"User-Agent": settings.BROWSER_USER_AGENT, "Accept": "text/html"}
            )
            if response is None:
                return collector.items

        try:
            soup = BeautifulSoup(response.text, "html.parser")

            for link in soup.select("a.ai_link, a[href*='/ai/']"):
                href = link.get("href")
                if not href:
                    continue
                full_url = href if href.startswith("http") else urljoin(self.BASE_URL, href)
                collector.add(full_url, title=link.get_text(strip=True))

            for link in soup.select('a[target="_blank"][rel*="nofollow"]'):
                href = link.get("href") or ""
                if href.startswith("http") and "theresanaiforthat.com" not in href:
                    collector.add(href, title=link.get_text(strip=True))
        except Exception as e:
            logger.error(f"[{self.name}] Error parsing listing page: {e}")

        logger.info(f"Directories: discovered {len(collector.items)} candidates")
        return collector.items
