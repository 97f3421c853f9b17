"""GitHub trending discovery source."""
import asyncio
import logging
from typing import Any

import httpx
from bs4 import BeautifulSoup

from aihub.services.discovery.exceptions import ScrapeError
from aihub.services.discovery.security import fetch_public
from aihub.services.discovery.sources import (
    BaseDiscoverySource,
    CandidateCollector,
    DiscoveredCandidate,
    SourceType,
)
from aihub.settings import settings

logger = logging.getLogger(__name__)

# Matched as substrings of "<repo path> <description>", lower-cased
AI_KEYWORDS = [
    "ai",
    "ml",
    "llm",
    "gpt",
    "neural",
    "deep-learning",
    "machine-learning",
    "transformer",
    "diffusion",
    "chatbot",
]


class GitHubTrendingSource(BaseDiscoverySource):
    """
    Discovers AI projects from GitHub trending.

    Trending rows are filtered by AI keywords, then each repository is
    looked up in the GitHub REST API. Repositories below the star
    threshold are dropped, and a project homepage, when set, replaces
    the repository URL.
    """

    source_type = SourceType.GITHUB
    default_name = "GitHub Trending AI"

    BASE_URL = "https://github.com"
    TRENDING_URL = "https://github.com/trending"
    API_URL = "https://api.github.com"

    def __init__(
        self,
        name: str | None = None,
        url: str | None = None,
        client: httpx.AsyncClient | None = None,
        max_items: int | None = None,
        min_stars: int | None = None,
    ):
        super().__init__(
            name=name,
            url=url,
            client=client,
            max_items=max_items if max_items is not None else settings.GITHUB_MAX_ITEMS
        )
        self.min_stars = min_stars if min_stars is not None else settings.GITHUB_MIN_STARS
        self.rate_limit_delay = settings.DISCOVERY_RATE_LIMIT_DELAY

    def default_url(self) -> str:
        return self.TRENDING_URL

    def _api_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": settings.USER_AGENT,
        }
        if settings.GITHUB_TOKEN:
            headers["Authorization"] = f"token {settings.GITHUB_TOKEN}"
        return headers

    @staticmethod
    def is_ai_related(text: str) -> bool:
        lowered = text.lower()
        return any(keyword in lowered for keyword in AI_KEYWORDS)

    def parse_trending(self, html: str) -> list[tuple[str, str]]:
        """Return (repo path, description) for AI-looking trending rows, page order."""
        repos: list[tuple[str, str]] = []
        seen: set[str] = set()

        soup = BeautifulSoup(html, "html.parser")
        for row in soup.select("article.Box-row"):
            try:
                link = row.select_one("h2 a")
                href = (link.get("href") or "").strip() if link else ""
                if not href:
                    continue
                repo_path = href.strip("/")
                desc_elem = row.select_one("p")
                description = desc_elem.get_text(strip=True) if desc_elem else ""

                if repo_path in seen or not self.is_ai_related(f"{repo_path} {description}"):
                    continue
                seen.add(repo_path)
                repos.append((repo_path, description))
            except Exception as e:
                logger.debug(f"[{self.name}] Error parsing trending row: {e}")
                continue

        return repos

    async def _get_repo_details(self, client: httpx.AsyncClient, repo_path: str) -> dict[str, Any] | None:
        """Fetch repository metadata from the REST API."""
        try:
            response = await fetch_public(
                client,
                "GET",
                f"{self.API_URL}/repos/{repo_path}",
                headers=self._api_headers(),
                timeout=settings.ENRICHMENT_TIMEOUT
            )
        except (httpx.HTTPError, ScrapeError) as e:
            logger.warning(f"[{self.name}] Error fetching repo details for {repo_path}: {e!r}")
            return None

        if response.status_code == 403:
            logger.warning(f"[{self.name}] GitHub API rate limit reached")
            return None
        if not response.is_success:
            logger.debug(f"[{self.name}] {repo_path}: HTTP {response.status_code}")
            return None

        try:
            return response.json()
        except ValueError:
            return None

    async def fetch(self) -> list[DiscoveredCandidate]:
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
                repos = self.parse_trending(response.text)
            except Exception as e:
                logger.error(f"[{self.name}] Error parsing trending page: {e}")
                return collector.items

            for index, (repo_path, description) in enumerate(repos):
                if collector.full:
                    break
                if index > 0:
                    await asyncio.sleep(self.rate_limit_delay)

                details = await self._get_repo_details(client, repo_path)
                if details is None:
                    continue

                stars = details.get("stargazers_count") or 0
                if stars < self.min_stars:
                    logger.debug(f"[{self.name}] Skipping {repo_path}: {stars} stars")
                    continue

                homepage = (details.get("homepage") or "").strip()
                url = homepage if homepage.startswith("http") else f"{self.BASE_URL}/{repo_path}"
                collector.add(
                    url,
                    title=repo_path,
                    description=details.get("description") or description
                )

        logger.info(f"GitHub: discovered {len(collector.items)} candidates")
        return collector.items
