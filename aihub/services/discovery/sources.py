"""Base source protocol and data types for discovery pipeline."""
import logging
from abc import abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Protocol, runtime_checkable

import httpx

from aihub.services.discovery.exceptions import ScrapeError
from aihub.services.discovery.security import fetch_public
from aihub.settings import settings

logger = logging.getLogger(__name__)


class SourceType(str, Enum):
    """Directory types the crawler knows how to read."""

    PRODUCTHUNT = "producthunt"
    HACKERNEWS = "hackernews"
    GITHUB = "github"
    THERESANAI = "theresanai"


@dataclass
class DiscoveredCandidate:
    """A URL proposed by a source, not yet part of the catalog."""

    url: str
    title: str | None = None
    description: str | None = None


@runtime_checkable
class DiscoverySourceProtocol(Protocol):
    """Protocol for discovery sources."""

    @property
    def name(self) -> str:
        """Human-readable name for this source (e.g., 'GitHub Trending')."""
        ...

    @property
    def source_type(self) -> SourceType:
        ...

    async def fetch(self) -> list[DiscoveredCandidate]:
        """
        Fetch candidates from this source.

        Never raises for network or parse failures; returns whatever was
        extracted, deduplicated by URL, in page order, capped at the
        source's item limit.
        """
        ...


class BaseDiscoverySource:
    """Base class with common functionality for discovery sources."""

    source_type: SourceType
    default_name: str = ""

    def __init__(
        self,
        name: str | None = None,
        url: str | None = None,
        client: httpx.AsyncClient | None = None,
        max_items: int | None = None,
    ):
        self._name = name or self.default_name
        self.url = url or self.default_url()
        self._client = client
        self.max_items = max_items if max_items is not None else settings.SOURCE_MAX_ITEMS

    @property
    def name(self) -> str:
        return self._name

    def default_url(self) -> str:
        return ""

    @abstractmethod
    async def fetch(self) -> list[DiscoveredCandidate]:
        """Fetch candidates from this source."""
        raise NotImplementedError

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        """Yield the injected client, or a short-lived one with crawler defaults."""
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(
            timeout=settings.HTTP_TIMEOUT,
            headers={"User-Agent": settings.USER_AGENT}
        ) as client:
            yield client

    async def _get(self, client: httpx.AsyncClient, url: str, **kwargs) -> httpx.Response | None:
        """GET a page, returning None (and logging) on any failure or non-2xx."""
        try:
            response = await fetch_public(client, "GET", url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"[{self.name}] Error fetching {url}: {e!r}")
            return None
        except ScrapeError as e:
            logger.warning(f"[{self.name}] Refusing {url}: {e.message}")
            return None
        if not response.is_success:
            logger.warning(f"[{self.name}] {url} returned HTTP {response.status_code}")
            return None
        return response


class CandidateCollector:
    """Order-preserving, URL-deduplicated, capped list of candidates."""

    def __init__(self, limit: int):
        self.limit = limit
        self._items: list[DiscoveredCandidate] = []
        self._seen: set[str] = set()

    def add(self, url: str, title: str | None = None, description: str | None = None) -> bool:
        """Add a candidate; returns False if it was a repeat or the list is full."""
        if not url or url in self._seen or self.full:
            return False
        self._seen.add(url)
        self._items.append(DiscoveredCandidate(
            url=url,
            title=title or None,
            description=description or None
        ))
        return True

    @property
    def full(self) -> bool:
        return len(self._items) >= self.limit

    @property
    def items(self) -> list[DiscoveredCandidate]:
        return list(self._items)
