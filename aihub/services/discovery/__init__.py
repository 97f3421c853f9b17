"""Discovery service package for the automated service discovery pipeline."""
from aihub.services.discovery.sources import DiscoveredCandidate, DiscoverySourceProtocol, SourceType
from aihub.services.discovery.dedup import check_duplicate, normalize_url, extract_root_domain, name_similarity
from aihub.services.discovery.classifier import suggest_category

__all__ = [
    "DiscoveredCandidate",
    "DiscoverySourceProtocol",
    "SourceType",
    "check_duplicate",
    "normalize_url",
    "extract_root_domain",
    "name_similarity",
    "suggest_category",
]
