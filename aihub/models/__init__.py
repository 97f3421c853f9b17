"""Database models."""
from aihub.models.discovery import DiscoverySource, CrawlRun, DiscoveryLog
from aihub.models.service import Service

__all__ = [
    "DiscoverySource",
    "CrawlRun",
    "DiscoveryLog",
    "Service",
]
