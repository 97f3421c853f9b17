"""Storage backends for the discovery pipeline."""
from aihub.services.discovery.store.base import DiscoveryStore
from aihub.services.discovery.store.memory import InMemoryDiscoveryStore
from aihub.services.discovery.store.sql import SqlAlchemyDiscoveryStore

__all__ = [
    "DiscoveryStore",
    "InMemoryDiscoveryStore",
    "SqlAlchemyDiscoveryStore",
]
