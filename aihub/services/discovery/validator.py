"""Post-hoc data quality checks for crawler-created services."""
import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from aihub.models import Service
from aihub.services.discovery.classifier import suggest_category
from aihub.services.discovery.dedup import extract_hostname, extract_root_domain, name_similarity
from aihub.services.discovery.exceptions import ScrapeError
from aihub.services.discovery.store import DiscoveryStore
from aihub.services.discovery.security import ensure_public_url, fetch_public
from aihub.settings import settings

logger = logging.getLogger(__name__)

# A redirect without a Location, or a bot wall, still means the site exists
ALIVE_STATUS_CODES = {301, 302, 308, 403}
MAX_NAME_LENGTH = 60
DEFAULT_LOOKBACK = timedelta(hours=24)


@dataclass
class ValidationWarning:
    service_id: str
    service_name: str
    service_url: str
    type: str  # url_dead, missing_description, name_is_domain, bad_name, wrong_category, possible_duplicate
    message: str
    severity: str  # "error" or "warning"


@dataclass
class ValidationReport:
    total_checked: int = 0
    passed: int = 0
    warnings: list[ValidationWarning] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(1 for w in self.warnings if w.severity == "error")

    @property
    def warning_count(self) -> int:
        return sum(1 for w in self.warnings if w.severity == "warning")

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_checked": self.total_checked,
            "passed": self.passed,
            "warnings": [asdict(w) for w in self.warnings],
        }


async def check_url_alive(client: httpx.AsyncClient, url: str) -> tuple[bool, int | None]:
    """
    Probe a URL with HEAD, falling back to GET when HEAD fails outright.

    Redirects are followed hop by hop; one that leads to an internal host
    counts as dead.

    Returns:
        (alive, status code or None when no response was received)
    """
    headers = {"User-Agent": settings.BROWSER_USER_AGENT}
    try:
        try:
            response = await fetch_public(client, "HEAD", url, headers=headers, timeout=settings.LIVENESS_TIMEOUT)
            alive = response.is_success or response.status_code in ALIVE_STATUS_CODES
            return alive, response.status_code
        except httpx.HTTPError as e:
            logger.debug(f"HEAD {url} failed ({e!r}), retrying with GET")

        # Some servers reject HEAD entirely
        try:
            response = await fetch_public(client, "GET", url, headers=headers, timeout=settings.LIVENESS_TIMEOUT)
            return response.is_success or response.status_code == 403, response.status_code
        except httpx.HTTPError as e:
            logger.debug(f"GET {url} failed: {e!r}")
            return False, None
    except ScrapeError as e:
        logger.warning(f"Not following {url}: {e.message}")
        return False, None


def is_name_just_domain(name: str, url: str) -> bool:
    """True when a name is only the domain, the hostname or its first label."""
    hostname = extract_hostname(url)
    if hostname is None:
        return False
    name_lower = name.lower().strip()
    return name_lower in (extract_root_domain(url), hostname, hostname.split(".")[0])


def check_name_quality(name: str) -> str | None:
    """Return a message describing what is wrong with a name, or None."""
    if name.startswith("GitHub -"):
        return "Name is a GitHub repository page title"
    if " | " in name or len(name) > MAX_NAME_LENGTH:
        return f"Name is too long or contains a pipe ({len(name)} chars)"
    return None


def _check_service(
    service: Service,
    all_services: list[Service],
    alive: bool,
    status: int | None,
) -> list[ValidationWarning]:
    found: list[ValidationWarning] = []

    def warn(type_: str, message: str, severity: str = "warning") -> None:
        found.append(ValidationWarning(
            service_id=service.id,
            service_name=service.name,
            service_url=service.url,
            type=type_,
            message=message,
            severity=severity
        ))

    if not alive:
        warn("url_dead", f"URL not responding (status: {status if status is not None else 'timeout'})", "error")

    if not service.description:
        warn("missing_description", "Description is missing")

    if is_name_just_domain(service.name, service.url):
        warn("name_is_domain", f'Name is the same as the domain ("{service.name}")')

    name_problem = check_name_quality(service.name)
    if name_problem:
        warn("bad_name", name_problem)

    suggestion = suggest_category(f"{service.name} {service.description or ''}")
    if suggestion.confidence < settings.CATEGORY_DRIFT_CONFIDENCE and suggestion.primary != service.category:
        warn(
            "wrong_category",
            f"Category mismatch: stored {service.category}, suggested {suggestion.primary} "
            f"(confidence: {suggestion.confidence:.2f})"
        )

    # Report only the first similar service
    for other in all_services:
        if other.id == service.id:
            continue
        similarity = name_similarity(service.name, other.name)
        if similarity >= settings.VALIDATION_DUPLICATE_WARNING:
            severity = "error" if similarity >= settings.VALIDATION_DUPLICATE_ERROR else "warning"
            warn("possible_duplicate", f'Similar to "{other.name}" (similarity: {similarity:.0%})', severity)
            break

    return found


async def _validate(
    store: DiscoveryStore,
    services: list[Service],
    client: httpx.AsyncClient,
) -> ValidationReport:
    report = ValidationReport()
    all_services = store.list_services()

    for index, service in enumerate(services):
        if index > 0:
            await asyncio.sleep(settings.VALIDATION_PROBE_DELAY)

        report.total_checked += 1
        try:
            ensure_public_url(service.url)
        except ScrapeError as e:
            logger.warning(f"Not probing {service.url}: {e.reason}")
            alive, status = False, None
        else:
            alive, status = await check_url_alive(client, service.url)

        findings = _check_service(service, all_services, alive, status)
        if findings:
            report.warnings.extend(findings)
        else:
            report.passed += 1

    return report


async def validate_crawled_services(
    store: DiscoveryStore,
    service_ids: list[str] | None = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> ValidationReport:
    """
    Re-check catalog entries for link rot and data-quality problems.

    Args:
        store: Discovery store
        service_ids: Services to check; when empty, every crawler-created
            service from the last 24 hours
        client: Optional shared HTTP client for liveness probes

    Returns:
        ValidationReport with every finding, in service order
    """
    if service_ids:
        services = store.get_services_by_ids(service_ids)
    else:
        since = datetime.now(timezone.utc) - DEFAULT_LOOKBACK
        services = store.get_recent_auto_services(since)

    if not services:
        return ValidationReport()

    logger.info(f"Validating {len(services)} services")

    if client is not None:
        report = await _validate(store, services, client)
    else:
        async with httpx.AsyncClient() as own_client:
            report = await _validate(store, services, own_client)

    logger.info(
        f"Validation completed: {report.total_checked} checked, {report.passed} passed, "
        f"{len(report.warnings)} issues"
    )
    return report
