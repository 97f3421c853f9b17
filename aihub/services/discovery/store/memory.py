"""
Discovery Store - In-Memory Backend.

Holds model instances in dictionaries. Suitable for tests and local dry
runs; nothing survives a restart. Enforces the same unique keys as the
database schema so pipeline behaviour matches production.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from aihub.models import CrawlRun, DiscoveryLog, DiscoverySource, Service
from aihub.models.discovery import new_id
from aihub.services.discovery.exceptions import StoreIntegrityError
from aihub.services.discovery.store.base import DiscoveryStore


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryDiscoveryStore(DiscoveryStore):
    """In-memory discovery store."""

    def __init__(self):
        self._sources: Dict[str, DiscoverySource] = {}
        self._runs: Dict[str, CrawlRun] = {}
        self._logs: Dict[str, DiscoveryLog] = {}
        self._services: Dict[str, Service] = {}

    @property
    def name(self) -> str:
        return "in_memory"

    @contextmanager
    def transaction(self) -> Iterator["InMemoryDiscoveryStore"]:
        snapshot = (dict(self._logs), dict(self._services))
        try:
            yield self
        except Exception:
            self._logs, self._services = snapshot
            raise

    # Crawl runs

    def create_crawl_run(self) -> CrawlRun:
        run = CrawlRun(
            id=new_id(),
            started_at=_utcnow(),
            status="running",
            sources_checked=0,
            urls_discovered=0,
            urls_new=0,
            urls_duplicate=0,
            services_created=0,
        )
        self._runs[run.id] = run
        return run

    def finish_crawl_run(self, run_id: str, **fields: Any) -> CrawlRun:
        run = self._runs.get(run_id)
        if not run:
            raise ValueError(f"Crawl run not found: {run_id}")
        for key, value in fields.items():
            setattr(run, key, value)
        return run

    def get_crawl_run(self, run_id: str) -> Optional[CrawlRun]:
        return self._runs.get(run_id)

    def list_stale_runs(self, started_before: datetime) -> List[CrawlRun]:
        return [
            run for run in self._runs.values()
            if run.status == "running" and run.started_at < started_before
        ]

    def list_runs(self) -> List[CrawlRun]:
        return sorted(self._runs.values(), key=lambda r: r.started_at)

    # Sources

    def add_source(self, **fields: Any) -> DiscoverySource:
        """Insert a source directly (test fixtures and local seeding)."""
        fields.setdefault("is_active", True)
        fields.setdefault("priority", 0)
        source = DiscoverySource(id=new_id(), created_at=_utcnow(), **fields)
        if any(s.url == source.url for s in self._sources.values()):
            raise StoreIntegrityError("DiscoverySource", "url", source.url)
        self._sources[source.id] = source
        return source

    def get_active_sources(self, limit: int) -> List[DiscoverySource]:
        active = [s for s in self._sources.values() if s.is_active]
        active.sort(key=lambda s: s.priority, reverse=True)
        return active[:limit]

    def upsert_source(self, *, name: str, type: str, url: str, priority: int) -> DiscoverySource:
        for source in self._sources.values():
            if source.url == url:
                return source
        return self.add_source(name=name, type=type, url=url, priority=priority)

    def touch_source(self, source_id: str, crawled_at: datetime) -> None:
        source = self._sources.get(source_id)
        if source:
            source.last_crawled = crawled_at

    def list_sources(self) -> List[DiscoverySource]:
        return list(self._sources.values())

    # Discovery log

    def get_log_by_normalized_url(self, normalized_url: str) -> Optional[DiscoveryLog]:
        for log in self._logs.values():
            if log.normalized_url == normalized_url:
                return log
        return None

    def create_log(self, **fields: Any) -> DiscoveryLog:
        fields.setdefault("created_at", _utcnow())
        log = DiscoveryLog(id=new_id(), **fields)
        if self.get_log_by_normalized_url(log.normalized_url):
            raise StoreIntegrityError("DiscoveryLog", "normalized_url", log.normalized_url)
        self._logs[log.id] = log
        return log

    def list_logs(self, status: Optional[str] = None) -> List[DiscoveryLog]:
        logs = sorted(self._logs.values(), key=lambda l: l.created_at)
        if status:
            logs = [l for l in logs if l.status == status]
        return logs

    # Services

    def list_services(self) -> List[Service]:
        return list(self._services.values())

    def get_services_by_ids(self, service_ids: List[str]) -> List[Service]:
        return [self._services[sid] for sid in service_ids if sid in self._services]

    def get_recent_auto_services(self, since: datetime) -> List[Service]:
        recent = [
            s for s in self._services.values()
            if s.source == "auto" and s.created_at >= since
        ]
        return sorted(recent, key=lambda s: s.created_at)

    def slug_exists(self, slug: str) -> bool:
        return any(s.slug == slug for s in self._services.values())

    def create_service(self, **fields: Any) -> Service:
        fields.setdefault("created_at", _utcnow())
        fields.setdefault("source", "user")
        fields.setdefault("tags", [])
        fields.setdefault("pricing_model", "free")
        fields.setdefault("score", 0.0)
        fields["tags"] = list(fields["tags"])
        service = Service(id=new_id(), **fields)
        if self.slug_exists(service.slug):
            raise StoreIntegrityError("Service", "slug", service.slug)
        if any(s.url == service.url for s in self._services.values()):
            raise StoreIntegrityError("Service", "url", service.url)
        self._services[service.id] = service
        return service
