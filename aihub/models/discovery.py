"""Discovery pipeline models: configured sources, crawl runs and the discovery log."""
import uuid

from sqlalchemy import (
    Column, String, Boolean, DateTime, Integer, Text, Float,
    ForeignKey, CheckConstraint
)
from sqlalchemy.sql import func

from aihub.db import Base


def new_id() -> str:
    return str(uuid.uuid4())


class DiscoverySource(Base):
    """External directory crawled for candidate services.

    The crawler selects active sources by priority and only ever updates
    ``last_crawled``; everything else is managed by an admin.
    """

    __tablename__ = "discovery_sources"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False, index=True)  # SourceType value, e.g. "hackernews"
    url = Column(String, nullable=False, unique=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    priority = Column(Integer, nullable=False, default=0, index=True)
    last_crawled = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class CrawlRun(Base):
    """One invocation of the daily crawl across all active sources."""

    __tablename__ = "crawl_runs"

    id = Column(String(36), primary_key=True, default=new_id)
    started_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String, nullable=False, default="running", index=True)
    # Status values: "running", "completed", "failed"

    # Stats
    sources_checked = Column(Integer, nullable=False, default=0)
    urls_discovered = Column(Integer, nullable=False, default=0)
    urls_new = Column(Integer, nullable=False, default=0)
    urls_duplicate = Column(Integer, nullable=False, default=0)
    services_created = Column(Integer, nullable=False, default=0)

    error_message = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('running', 'completed', 'failed')",
            name='ck_crawl_run_status'
        ),
    )


class DiscoveryLog(Base):
    """Every URL the crawler has ever looked at, one row per canonical URL.

    ``normalized_url`` is unique: it is what keeps later runs (or racing
    runs) from processing the same candidate twice.
    """

    __tablename__ = "discovery_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    source_id = Column(
        String(36),
        ForeignKey("discovery_sources.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    discovered_url = Column(String, nullable=False)
    normalized_url = Column(String, nullable=False, unique=True, index=True)
    domain = Column(String, nullable=False, index=True)
    title = Column(String, nullable=True)
    description = Column(Text, nullable=True)

    status = Column(String, nullable=False, default="pending", index=True)
    # Status values: "pending", "approved", "rejected", "duplicate", "error"
    service_id = Column(
        String(36),
        ForeignKey("services.id", ondelete="SET NULL"),
        nullable=True
    )
    duplicate_of_id = Column(
        String(36),
        ForeignKey("services.id", ondelete="SET NULL"),
        nullable=True
    )
    similarity_score = Column(Float, nullable=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'duplicate', 'error')",
            name='ck_discovery_log_status'
        ),
    )
