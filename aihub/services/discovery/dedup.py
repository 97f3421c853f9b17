"""Deduplication service for discovered services."""
import logging
from dataclasses import dataclass
from urllib.parse import urlparse

from aihub.services.discovery.store import DiscoveryStore
from aihub.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class DuplicateCheckResult:
    """Outcome of the three-tier duplicate check."""

    is_duplicate: bool
    match_type: str | None  # "exact_url", "domain", "name" or None
    matched_service_id: str | None
    matched_service_name: str | None
    similarity_score: float

    @classmethod
    def no_match(cls) -> "DuplicateCheckResult":
        return cls(
            is_duplicate=False,
            match_type=None,
            matched_service_id=None,
            matched_service_name=None,
            similarity_score=0.0
        )


def extract_hostname(raw_url: str) -> str | None:
    """Lower-cased hostname without a leading www., or None if unparseable."""
    try:
        hostname = urlparse(raw_url.strip()).hostname
    except ValueError:
        return None
    if not hostname:
        return None
    hostname = hostname.lower()
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname


def normalize_url(raw_url: str) -> str:
    """
    Reduce a URL to the key used for exact-match comparison.

    Drops the scheme, a leading www., trailing slashes, the query string
    and the fragment. Input that does not parse as a URL is only trimmed
    and lower-cased.

    Examples:
        HTTPS://WWW.Foo.com/bar/ -> foo.com/bar
        https://foo.com/bar?ref=ph#top -> foo.com/bar
        not a url -> not a url
    """
    hostname = extract_hostname(raw_url)
    if hostname is None:
        return raw_url.strip().lower()

    path = urlparse(raw_url.strip()).path.rstrip("/")
    return f"{hostname}{path}"


def extract_root_domain(raw_url: str) -> str:
    """
    Extract the root domain (last two host labels) from a URL.

    Multi-part public suffixes are not special-cased, so foo.co.kr
    collapses to co.kr.

    Examples:
        https://chat.openai.com/ -> openai.com
        https://www.example.com/path -> example.com
        http://localhost:3000 -> localhost
    """
    hostname = extract_hostname(raw_url)
    if hostname is None:
        return raw_url.strip().lower()

    parts = hostname.split(".")
    if len(parts) <= 2:
        return hostname
    return ".".join(parts[-2:])


def levenshtein_distance(s1: str, s2: str) -> int:
    """Calculate Levenshtein distance between two strings."""
    if len(s1) < len(s2):
        return levenshtein_distance(s2, s1)

    if len(s2) == 0:
        return len(s1)

    previous_row = range(len(s2) + 1)
    for i, c1 in enumerate(s1):
        current_row = [i + 1]
        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row

    return previous_row[-1]


def name_similarity(a: str, b: str) -> float:
    """
    Edit-distance similarity of two names in [0, 1].

    Case-insensitive and whitespace-trimmed. Identical names score 1.0,
    an empty name scores 0.0 against anything else.
    """
    s1 = a.lower().strip()
    s2 = b.lower().strip()

    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0

    distance = levenshtein_distance(s1, s2)
    return 1.0 - distance / max(len(s1), len(s2))


def check_duplicate(url: str, name: str, store: DiscoveryStore) -> DuplicateCheckResult:
    """
    Check a candidate against the discovery log and the live catalog.

    Tiers are evaluated in order and the first hit wins:
        1. Canonical URL seen before (log or catalog): duplicate, score 1.0
        2. Same root domain as a catalog service: flagged only, score 0.7,
           since one domain can host several distinct services
        3. Name similarity above NAME_DUPLICATE_THRESHOLD: duplicate

    Args:
        url: Candidate URL
        name: Candidate display name (may be empty)
        store: Discovery store

    Returns:
        DuplicateCheckResult describing the strongest match
    """
    normalized = normalize_url(url)
    domain = extract_root_domain(url)

    # 1. Exact URL against the discovery log
    existing_log = store.get_log_by_normalized_url(normalized)
    if existing_log:
        return DuplicateCheckResult(
            is_duplicate=True,
            match_type="exact_url",
            matched_service_id=existing_log.duplicate_of_id or existing_log.service_id,
            matched_service_name=existing_log.title,
            similarity_score=1.0
        )

    services = store.list_services()

    # 1b. Exact URL against the catalog
    for service in services:
        if normalize_url(service.url) == normalized:
            return DuplicateCheckResult(
                is_duplicate=True,
                match_type="exact_url",
                matched_service_id=service.id,
                matched_service_name=service.name,
                similarity_score=1.0
            )

    # 2. Shared root domain
    for service in services:
        if extract_root_domain(service.url) == domain:
            return DuplicateCheckResult(
                is_duplicate=False,
                match_type="domain",
                matched_service_id=service.id,
                matched_service_name=service.name,
                similarity_score=0.7
            )

    # 3. Fuzzy name match
    if name:
        for service in services:
            similarity = name_similarity(name, service.name)
            if similarity > settings.NAME_DUPLICATE_THRESHOLD:
                logger.debug(f"Name match: {name!r} ~ {service.name!r} ({similarity:.2f})")
                return DuplicateCheckResult(
                    is_duplicate=True,
                    match_type="name",
                    matched_service_id=service.id,
                    matched_service_name=service.name,
                    similarity_score=similarity
                )

    return DuplicateCheckResult.no_match()
