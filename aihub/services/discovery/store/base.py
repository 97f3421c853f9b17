"""
Discovery Store Base - Interface between the pipeline and persistence.

Every pipeline component receives a store explicitly instead of reaching
for a global session, so the same code runs against SQLAlchemy in
production and against the in-memory backend in tests.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Optional

from aihub.models import CrawlRun, DiscoveryLog, DiscoverySource, Service


class DiscoveryStore(ABC):
    """
    Base class for discovery storage backends.

    Writes are single-row and take effect immediately, except inside
    ``transaction()``, where they become visible together or not at all.
    Unique violations (``DiscoveryLog.normalized_url``, ``Service.slug``,
    ``Service.url``, ``DiscoverySource.url``) raise ``StoreIntegrityError``;
    any other rejected write raises ``StoreError`` and leaves the store usable.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Storage backend name."""
        ...

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """Group the enclosed writes into one atomic unit."""
        ...

    # Crawl runs

    @abstractmethod
    def create_crawl_run(self) -> CrawlRun:
        """Create a run record in ``running`` state."""
        ...

    @abstractmethod
    def finish_crawl_run(self, run_id: str, **fields: Any) -> CrawlRun:
        """Apply the final status, counts and error text to a run."""
        ...

    @abstractmethod
    def get_crawl_run(self, run_id: str) -> Optional[CrawlRun]:
        ...

    @abstractmethod
    def list_stale_runs(self, started_before: datetime) -> list[CrawlRun]:
        """Runs still marked ``running`` that started before the cutoff."""
        ...

    # Sources

    @abstractmethod
    def get_active_sources(self, limit: int) -> list[DiscoverySource]:
        """Active sources ordered by descending priority."""
        ...

    @abstractmethod
    def upsert_source(self, *, name: str, type: str, url: str, priority: int) -> DiscoverySource:
        """Create a source keyed by URL, leaving an existing one untouched."""
        ...

    @abstractmethod
    def touch_source(self, source_id: str, crawled_at: datetime) -> None:
        """Record when a source was last crawled."""
        ...

    # Discovery log

    @abstractmethod
    def get_log_by_normalized_url(self, normalized_url: str) -> Optional[DiscoveryLog]:
        ...

    @abstractmethod
    def create_log(self, **fields: Any) -> DiscoveryLog:
        ...

    @abstractmethod
    def list_logs(self, status: Optional[str] = None) -> list[DiscoveryLog]:
        ...

    # Services

    @abstractmethod
    def list_services(self) -> list[Service]:
        """Every catalog service (id, url and name are what callers use)."""
        ...

    @abstractmethod
    def get_services_by_ids(self, service_ids: list[str]) -> list[Service]:
        ...

    @abstractmethod
    def get_recent_auto_services(self, since: datetime) -> list[Service]:
        """Crawler-created services created at or after ``since``, oldest first."""
        ...

    @abstractmethod
    def slug_exists(self, slug: str) -> bool:
        ...

    @abstractmethod
    def create_service(self, **fields: Any) -> Service:
        ...
