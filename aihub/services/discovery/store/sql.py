"""SQLAlchemy-backed discovery store."""
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from aihub.models import CrawlRun, DiscoveryLog, DiscoverySource, Service
from aihub.services.discovery.exceptions import StoreError, StoreIntegrityError
from aihub.services.discovery.store.base import DiscoveryStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _conflicting_field(error: IntegrityError, candidates: tuple[str, ...]) -> str:
    """Best guess at which unique column an IntegrityError refers to."""
    text = str(error.orig).lower()
    for candidate in candidates:
        if candidate in text:
            return candidate
    return candidates[0]


class SqlAlchemyDiscoveryStore(DiscoveryStore):
    """
    Discovery store over a SQLAlchemy session.

    Each write commits on its own unless it happens inside ``transaction()``,
    which commits once on exit and rolls everything back on error. A failed
    write always rolls the session back before raising.
    """

    def __init__(self, db: Session):
        self.db = db
        self._depth = 0

    @property
    def name(self) -> str:
        return "sqlalchemy"

    @contextmanager
    def transaction(self) -> Iterator["SqlAlchemyDiscoveryStore"]:
        self._depth += 1
        try:
            yield self
        except Exception:
            self._depth -= 1
            self.db.rollback()
            raise
        self._depth -= 1
        if self._depth == 0:
            try:
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                raise StoreError("transaction", str(getattr(e, "orig", None) or e)) from e

    def _save(self, obj: Any, entity: str, unique_fields: tuple[str, ...]) -> None:
        self.db.add(obj)
        try:
            self.db.flush()
            if self._depth == 0:
                self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            field = _conflicting_field(e, unique_fields)
            raise StoreIntegrityError(entity, field, getattr(obj, field, None)) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error saving {entity}: {e}")
            raise StoreError(entity, str(getattr(e, "orig", None) or e)) from e

    # Crawl runs

    def create_crawl_run(self) -> CrawlRun:
        run = CrawlRun(status="running", started_at=_utcnow())
        self._save(run, "CrawlRun", ("id",))
        return run

    def finish_crawl_run(self, run_id: str, **fields: Any) -> CrawlRun:
        run = self.db.query(CrawlRun).filter(CrawlRun.id == run_id).first()
        if not run:
            raise ValueError(f"Crawl run not found: {run_id}")
        for key, value in fields.items():
            setattr(run, key, value)
        self._save(run, "CrawlRun", ("id",))
        return run

    def get_crawl_run(self, run_id: str) -> Optional[CrawlRun]:
        return self.db.query(CrawlRun).filter(CrawlRun.id == run_id).first()

    def list_stale_runs(self, started_before: datetime) -> list[CrawlRun]:
        return self.db.query(CrawlRun).filter(
            CrawlRun.status == "running",
            CrawlRun.started_at < started_before
        ).all()

    # Sources

    def get_active_sources(self, limit: int) -> list[DiscoverySource]:
        return self.db.query(DiscoverySource).filter(
            DiscoverySource.is_active.is_(True)
        ).order_by(
            DiscoverySource.priority.desc()
        ).limit(limit).all()

    def upsert_source(self, *, name: str, type: str, url: str, priority: int) -> DiscoverySource:
        existing = self.db.query(DiscoverySource).filter(DiscoverySource.url == url).first()
        if existing:
            return existing
        source = DiscoverySource(
            name=name,
            type=type,
            url=url,
            priority=priority,
            is_active=True,
            created_at=_utcnow()
        )
        self._save(source, "DiscoverySource", ("url",))
        return source

    def touch_source(self, source_id: str, crawled_at: datetime) -> None:
        source = self.db.query(DiscoverySource).filter(DiscoverySource.id == source_id).first()
        if source:
            source.last_crawled = crawled_at
            self._save(source, "DiscoverySource", ("url",))

    # Discovery log

    def get_log_by_normalized_url(self, normalized_url: str) -> Optional[DiscoveryLog]:
        return self.db.query(DiscoveryLog).filter(
            DiscoveryLog.normalized_url == normalized_url
        ).first()

    def create_log(self, **fields: Any) -> DiscoveryLog:
        fields.setdefault("created_at", _utcnow())
        log = DiscoveryLog(**fields)
        self._save(log, "DiscoveryLog", ("normalized_url",))
        return log

    def list_logs(self, status: Optional[str] = None) -> list[DiscoveryLog]:
        query = self.db.query(DiscoveryLog)
        if status:
            query = query.filter(DiscoveryLog.status == status)
        return query.order_by(DiscoveryLog.created_at.asc()).all()

    # Services

    def list_services(self) -> list[Service]:
        return self.db.query(Service).all()

    def get_services_by_ids(self, service_ids: list[str]) -> list[Service]:
        if not service_ids:
            return []
        return self.db.query(Service).filter(Service.id.in_(service_ids)).all()

    def get_recent_auto_services(self, since: datetime) -> list[Service]:
        return self.db.query(Service).filter(
            Service.source == "auto",
            Service.created_at >= since
        ).order_by(Service.created_at.asc()).all()

    def slug_exists(self, slug: str) -> bool:
        return self.db.query(Service.id).filter(Service.slug == slug).first() is not None

    def create_service(self, **fields: Any) -> Service:
        fields.setdefault("created_at", _utcnow())
        service = Service(**fields)
        self._save(service, "Service", ("slug", "url"))
        logger.debug(f"Created service {service.slug} ({service.url})")
        return service
