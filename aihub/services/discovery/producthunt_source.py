"""Product Hunt discovery source."""
import logging
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from aihub.services.discovery.sources import (
    BaseDiscoverySource,
    CandidateCollector,
    DiscoveredCandidate,
    SourceType,
)

logger = logging.getLogger(__name__)


class ProductHuntSource(BaseDiscoverySource):
    """Discovers AI products from the Product Hunt artificial-intelligence topic page."""

    source_type = SourceType.PRODUCTHUNT
    default_name = "Product Hunt AI"

    BASE_URL = "https://www.producthunt.com"
    TOPIC_URL = "https://www.producthunt.com/topics/artificial-intelligence"

    def default_url(self) -> str:
        return self.TOPIC_URL

    async def fetch(self) -> list[DiscoveredCandidate]:
        """
        Collect product links from the topic page.

        Two passes over the page: Product Hunt post pages (/posts/...),
        then outbound nofollow links, which are usually the makers' own
        sites.
        """
        collector = CandidateCollector(self.max_items)

        async with self._session() as client:
            response = await self._get(client, self.url, headers={"Accept": "text/html"})
            if response is None:
                return collector.items

        try:
            soup = BeautifulSoup(response.text, "html.parser")

            for link in soup.select('a[href*="/posts/"]'):
                href = link.get("href")
                if not href:
                    continue
                full_url = href if href.startswith("http") else urljoin(self.BASE_URL, href)
                collector.add(full_url, title=link.get_text(strip=True))

            for link in soup.select('a[rel="nofollow"]'):
                href = link.get("href") or ""
                if href.startswith("http") and "producthunt.com" not in href:
                    collector.add(href, title=link.get_text(strip=True))
        except Exception as e:
            logger.error(f"[{self.name}] Error parsing topic page: {e}")

        logger.info(f"Product Hunt: discovered {len(collector.items)} candidates")
        return collector.items
