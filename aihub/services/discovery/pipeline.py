"""Daily crawl orchestrator for the discovery pipeline."""
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

from aihub.models import DiscoverySource
from aihub.services.discovery.classifier import suggest_category
from aihub.services.discovery.dedup import (
    DuplicateCheckResult,
    check_duplicate,
    extract_root_domain,
    normalize_url,
)
from aihub.services.discovery.exceptions import StoreIntegrityError
from aihub.services.discovery.registry import get_source_adapter
from aihub.services.discovery.sources import DiscoveredCandidate, DiscoverySourceProtocol, SourceType
from aihub.services.discovery.store import DiscoveryStore
from aihub.services.discovery.validator import ValidationReport, validate_crawled_services
from aihub.services.ranking import calculate_gravity_score
from aihub.services.scraper import ScrapeResult, scrape_service_metadata
from aihub.settings import settings

logger = logging.getLogger(__name__)

Extractor = Callable[[str], Awaitable[ScrapeResult]]
AdapterFactory = Callable[[DiscoverySource], DiscoverySourceProtocol]
Validator = Callable[[DiscoveryStore, list[str]], Awaitable[ValidationReport]]
Notifier = Callable[["CrawlResult"], Awaitable[Any]]

DEFAULT_SOURCES = [
    {
        "name": "Hacker News (Show HN)",
        "type": SourceType.HACKERNEWS.value,
        "url": "https://hn.algolia.com/api/v1/search_by_date",
        "priority": 10,
    },
    {
        "name": "GitHub Trending",
        "type": SourceType.GITHUB.value,
        "url": "https://github.com/trending",
        "priority": 5,
    },
    {
        "name": "Product Hunt AI",
        "type": SourceType.PRODUCTHUNT.value,
        "url": "https://www.producthunt.com/topics/artificial-intelligence",
        "priority": 8,
    },
    {
        "name": "There's An AI For That",
        "type": SourceType.THERESANAI.value,
        "url": "https://theresanaiforthat.com/new/",
        "priority": 7,
    },
]

# Candidate outcomes
SKIPPED = "skipped"
DUPLICATE = "duplicate"
ERROR = "error"
PENDING = "pending"
APPROVED = "approved"


@dataclass
class CrawlResult:
    """Aggregate outcome of one crawl run."""

    run_id: str
    status: str = "running"
    sources_checked: int = 0
    urls_discovered: int = 0
    urls_new: int = 0
    urls_duplicate: int = 0
    services_created: int = 0
    errors: list[str] = field(default_factory=list)
    created_service_ids: list[str] = field(default_factory=list)
    validation: ValidationReport | None = None

    def error_text(self) -> str | None:
        if not self.errors:
            return None
        return "\n".join(self.errors)[:settings.RUN_ERROR_MAX_LENGTH]

    def to_dict(self) -> dict[str, Any]:
        return {
            "crawl_run_id": self.run_id,
            "status": self.status,
            "sources_checked": self.sources_checked,
            "urls_discovered": self.urls_discovered,
            "urls_new": self.urls_new,
            "urls_duplicate": self.urls_duplicate,
            "services_created": self.services_created,
            "errors": list(self.errors),
            "validation": self.validation.to_dict() if self.validation else None,
        }


def create_slug(name: str) -> str:
    """
    Generate a URL-friendly slug from a service name.

    Only ASCII letters, digits and hyphens survive; a name with none of
    those (e.g. purely Korean) becomes "service".
    """
    slug = re.sub(r"[^a-z0-9\s-]", "", name.lower())
    slug = re.sub(r"[-\s]+", "-", slug).strip("-")
    return slug or "service"


def _base36(number: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    encoded = ""
    while number:
        number, remainder = divmod(number, 36)
        encoded = digits[remainder] + encoded
    return encoded or "0"


def resolve_slug(store: DiscoveryStore, name: str) -> str:
    """Slug for a new service, suffixed with a base-36 millisecond timestamp on collision."""
    slug = create_slug(name)
    if store.slug_exists(slug):
        slug = f"{slug}-{_base36(int(time.time() * 1000))}"
    return slug


def seed_default_sources(store: DiscoveryStore) -> list[DiscoverySource]:
    """Create the built-in sources that do not exist yet (matched by URL)."""
    return [store.upsert_source(**source) for source in DEFAULT_SOURCES]


def _default_adapter(source: DiscoverySource) -> DiscoverySourceProtocol:
    return get_source_adapter(source.type, name=source.name, url=source.url)


def _truncate_log_error(message: str) -> str:
    return message[:settings.LOG_ERROR_MAX_LENGTH]


def _log_duplicate(store: DiscoveryStore, base: dict[str, Any], match: DuplicateCheckResult) -> None:
    """Write a duplicate log row; a row written meanwhile by another run is fine."""
    try:
        store.create_log(
            **base,
            status=DUPLICATE,
            duplicate_of_id=match.matched_service_id,
            similarity_score=match.similarity_score
        )
    except StoreIntegrityError:
        logger.debug(f"Log for {base['normalized_url']} already written by another run")


async def process_discovered_url(
    store: DiscoveryStore,
    source: DiscoverySource,
    candidate: DiscoveredCandidate,
    extractor: Extractor = scrape_service_metadata,
) -> tuple[str, str | None]:
    """
    Route one candidate through dedup, extraction and classification.

    Exactly one discovery log row is written per new canonical URL.

    Returns:
        (outcome, created service id). Outcome is "skipped" (URL already
        logged), "duplicate", "error", "pending" or "approved".
    """
    normalized = normalize_url(candidate.url)

    if store.get_log_by_normalized_url(normalized):
        return SKIPPED, None

    base = {
        "source_id": source.id,
        "discovered_url": candidate.url,
        "normalized_url": normalized,
        "domain": extract_root_domain(candidate.url),
    }

    match = check_duplicate(candidate.url, candidate.title or "", store)
    if match.is_duplicate:
        _log_duplicate(store, {**base, "title": candidate.title, "description": candidate.description}, match)
        return DUPLICATE, None

    try:
        metadata = await extractor(candidate.url)
    except Exception as e:
        message = str(e) or e.__class__.__name__
        logger.warning(f"Metadata extraction failed for {candidate.url}: {message}")
        try:
            store.create_log(
                **base,
                title=candidate.title,
                description=candidate.description,
                status=ERROR,
                error_message=_truncate_log_error(message)
            )
        except StoreIntegrityError:
            return DUPLICATE, None
        return ERROR, None

    # Domain matches are flagged on the log row, not rejected
    flagged = {
        "duplicate_of_id": match.matched_service_id,
        "similarity_score": match.similarity_score if match.match_type else None,
    }
    suggestion = suggest_category(f"{metadata.name} {metadata.description or ''}")

    if suggestion.confidence < settings.AUTO_APPROVE_CONFIDENCE:
        try:
            store.create_log(
                **base,
                title=metadata.name,
                description=metadata.description,
                status=PENDING,
                **flagged
            )
        except StoreIntegrityError:
            return DUPLICATE, None
        logger.info(f"Queued for review: {metadata.name} (confidence: {suggestion.confidence:.2f})")
        return PENDING, None

    try:
        with store.transaction():
            service = store.create_service(
                slug=resolve_slug(store, metadata.name),
                url=candidate.url,
                name=metadata.name,
                description=metadata.description,
                category=suggestion.primary,
                tags=list(metadata.suggested_tags),
                pricing_model="free",
                favicon_url=metadata.favicon_url,
                og_image_url=metadata.og_image_url,
                source="auto",
                score=calculate_gravity_score(0, datetime.now(timezone.utc))
            )
            store.create_log(
                **base,
                title=metadata.name,
                description=metadata.description,
                status=APPROVED,
                service_id=service.id,
                **flagged
            )
    except StoreIntegrityError as e:
        logger.info(f"Lost race for {candidate.url} ({e.message}), recording as duplicate")
        _log_duplicate(store, {**base, "title": metadata.name, "description": metadata.description}, match)
        return DUPLICATE, None

    logger.info(f"Auto-approved: {metadata.name} -> {suggestion.primary} (confidence: {suggestion.confidence:.2f})")
    return APPROVED, service.id


async def _crawl_source(
    store: DiscoveryStore,
    source: DiscoverySource,
    result: CrawlResult,
    adapter_factory: AdapterFactory,
    extractor: Extractor,
) -> None:
    adapter = adapter_factory(source)
    candidates = await adapter.fetch()
    result.urls_discovered += len(candidates)

    for candidate in candidates:
        try:
            outcome, service_id = await process_discovered_url(store, source, candidate, extractor)
        except Exception as e:
            logger.error(f"[{source.name}] Error processing {candidate.url}: {e}")
            result.errors.append(f"[{source.name}] {candidate.url}: {e}")
            continue

        if outcome in (SKIPPED, DUPLICATE):
            result.urls_duplicate += 1
            continue

        result.urls_new += 1
        if outcome == APPROVED:
            result.services_created += 1
            result.created_service_ids.append(service_id)

    store.touch_source(source.id, datetime.now(timezone.utc))


async def run_daily_crawl(
    store: DiscoveryStore,
    *,
    adapter_factory: AdapterFactory | None = None,
    extractor: Extractor | None = None,
    validator: Validator | None = None,
    notifier: Notifier | None = None,
    validate: bool = True,
) -> CrawlResult:
    """
    Run one crawl across the highest-priority active sources.

    A failing candidate or source is recorded in ``errors`` and the run
    moves on; anything that escapes marks the run failed. The run record
    is always finished, and this function does not raise.

    Args:
        store: Discovery store
        adapter_factory: Builds an adapter for a configured source
            (default: the SourceType registry)
        extractor: Metadata extractor (default: scrape_service_metadata)
        validator: Post-hoc validator for the services created by this run
        notifier: Optional best-effort callback receiving the result
        validate: Set False to skip validating newly created services

    Returns:
        CrawlResult with aggregate counts
    """
    adapter_factory = adapter_factory or _default_adapter
    extractor = extractor or scrape_service_metadata
    validator = validator or validate_crawled_services

    run = store.create_crawl_run()
    run_id = run.id
    result = CrawlResult(run_id=run_id)
    logger.info(f"Starting crawl run {run_id} ({store.name} store)")

    try:
        sources = store.get_active_sources(settings.CRAWL_MAX_SOURCES)
        if not sources:
            logger.info("No active discovery sources, seeding defaults")
            seed_default_sources(store)
            sources = store.get_active_sources(settings.CRAWL_MAX_SOURCES)

        for source in sources:
            result.sources_checked += 1
            logger.info(f"Running discovery source: {source.name}")
            try:
                await _crawl_source(store, source, result, adapter_factory, extractor)
            except Exception as e:
                logger.error(f"[{source.name}] Source error: {e}")
                result.errors.append(f"[{source.name}] Source error: {e}")

        if validate and result.created_service_ids:
            try:
                result.validation = await validator(store, list(result.created_service_ids))
            except Exception as e:
                logger.error(f"Validation of new services failed: {e}")
                result.errors.append(f"Validation error: {e}")

        result.status = "completed"
        store.finish_crawl_run(
            run_id,
            status="completed",
            completed_at=datetime.now(timezone.utc),
            sources_checked=result.sources_checked,
            urls_discovered=result.urls_discovered,
            urls_new=result.urls_new,
            urls_duplicate=result.urls_duplicate,
            services_created=result.services_created,
            error_message=result.error_text()
        )
        logger.info(
            f"Crawl completed: {result.sources_checked} sources, {result.urls_discovered} discovered, "
            f"{result.urls_new} new, {result.urls_duplicate} duplicate, {result.services_created} created"
        )

    except Exception as e:
        message = str(e) or e.__class__.__name__
        logger.exception(f"Crawl run {run_id} failed: {message}")
        result.status = "failed"
        result.errors.append(f"Fatal: {message}")
        try:
            store.finish_crawl_run(
                run_id,
                status="failed",
                completed_at=datetime.now(timezone.utc),
                error_message=message[:settings.RUN_ERROR_MAX_LENGTH]
            )
        except Exception as finish_error:
            logger.error(f"Could not mark crawl run {run_id} as failed: {finish_error}")

    if notifier is not None:
        try:
            await notifier(result)
        except Exception as e:
            logger.warning(f"Crawl notification failed: {e}")

    return result


def mark_stale_runs_failed(store: DiscoveryStore, max_age: timedelta | None = None) -> int:
    """
    Fail runs left in ``running`` by a killed process.

    Args:
        store: Discovery store
        max_age: Age after which a running run counts as dead
            (default: CRAWL_STALE_RUN_MINUTES)

    Returns:
        Number of runs marked failed
    """
    max_age = max_age or timedelta(minutes=settings.CRAWL_STALE_RUN_MINUTES)
    now = datetime.now(timezone.utc)
    stale = store.list_stale_runs(now - max_age)

    for run in stale:
        store.finish_crawl_run(
            run.id,
            status="failed",
            completed_at=now,
            error_message="Run did not finish (stale)"
        )
        logger.warning(f"Marked stale crawl run {run.id} as failed")

    return len(stale)
