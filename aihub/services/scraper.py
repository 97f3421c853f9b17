"""Service metadata extraction from a landing page."""
import logging
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from aihub.services.discovery.classifier import suggest_category
from aihub.services.discovery.exceptions import ScrapeError
from aihub.services.discovery.security import ensure_public_url, fetch_public
from aihub.settings import settings

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 300


@dataclass
class ScrapeResult:
    """Metadata extracted from a service's landing page."""

    name: str
    description: Optional[str]
    og_image_url: Optional[str]
    favicon_url: str
    suggested_category: str
    suggested_tags: list[str] = field(default_factory=list)


def _meta_content(soup: BeautifulSoup, *selectors: str) -> Optional[str]:
    for selector in selectors:
        tag = soup.select_one(selector)
        if tag and tag.get("content"):
            content = tag["content"].strip()
            if content:
                return content
    return None


def parse_service_metadata(html: str, url: str, domain: str) -> ScrapeResult:
    """Build a ScrapeResult from fetched HTML."""
    soup = BeautifulSoup(html, "html.parser")

    title_tag = soup.find("title")
    name = (
        _meta_content(soup, 'meta[property="og:title"]', 'meta[name="twitter:title"]')
        or (title_tag.get_text(strip=True) if title_tag else "")
        or domain
    )

    description = _meta_content(
        soup,
        'meta[property="og:description"]',
        'meta[name="description"]',
        'meta[name="twitter:description"]',
    )

    og_image = _meta_content(soup, 'meta[property="og:image"]', 'meta[name="twitter:image"]')
    if og_image and not og_image.startswith("http"):
        og_image = urljoin(url, og_image)

    icon = (
        soup.select_one('link[rel="icon"]')
        or soup.select_one('link[rel="shortcut icon"]')
        or soup.select_one('link[rel="apple-touch-icon"]')
    )
    if icon and icon.get("href"):
        favicon_url = urljoin(url, icon["href"])
    else:
        favicon_url = f"https://www.google.com/s2/favicons?domain={domain}&sz=128"

    headings = " ".join(h.get_text(" ", strip=True) for h in soup.find_all(["h1", "h2"]))
    suggestion = suggest_category(f"{name} {description or ''} {headings}")

    return ScrapeResult(
        name=name[:MAX_NAME_LENGTH],
        description=description[:MAX_DESCRIPTION_LENGTH] if description else None,
        og_image_url=og_image,
        favicon_url=favicon_url,
        suggested_category=suggestion.primary,
        suggested_tags=[suggestion.primary, *suggestion.alternatives],
    )


async def scrape_service_metadata(url: str, client: Optional[httpx.AsyncClient] = None) -> ScrapeResult:
    """
    Fetch a service's landing page and extract its metadata.

    Args:
        url: Public http(s) URL of the service
        client: Optional shared client (tests inject a mock transport)

    Raises:
        UnsafeURLError: If the URL or a redirect target is an internal host
        ScrapeError: On non-2xx responses and network failures
    """
    domain = ensure_public_url(url)
    headers = {
        "User-Agent": settings.USER_AGENT,
        "Accept": "text/html,application/xhtml+xml",
    }

    try:
        if client is not None:
            response = await fetch_public(client, "GET", url, headers=headers, timeout=settings.HTTP_TIMEOUT)
        else:
            async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT) as own_client:
                response = await fetch_public(own_client, "GET", url, headers=headers)
    except httpx.HTTPError as e:
        raise ScrapeError(url=url, reason=str(e) or e.__class__.__name__) from e

    if not response.is_success:
        raise ScrapeError(url=url, reason=f"HTTP {response.status_code}", status_code=response.status_code)

    logger.debug(f"Fetched {url} ({len(response.text)} bytes)")
    return parse_service_metadata(response.text, url, domain)
