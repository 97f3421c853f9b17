"""Guards that keep the crawler off internal networks."""
import ipaddress
import logging
from urllib.parse import urljoin, urlparse

import httpx

from aihub.services.discovery.exceptions import ScrapeError, UnsafeURLError
from aihub.settings import settings

logger = logging.getLogger(__name__)

BLOCKED_HOSTNAMES = {
    "localhost",
    "metadata.google.internal",
    "metadata.goog",
}


def is_private_host(hostname: str) -> bool:
    """True for loopback, private, link-local and cloud-metadata hosts."""
    host = hostname.strip("[]").lower()
    if host in BLOCKED_HOSTNAMES or host.endswith(".localhost"):
        return True
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return False
    return ip.is_private or ip.is_loopback or ip.is_link_local or ip.is_unspecified or ip.is_reserved


def ensure_public_url(url: str) -> str:
    """
    Reject URLs that would make the crawler fetch internal resources.

    Returns:
        The URL's hostname

    Raises:
        ScrapeError: If the URL is not http(s) or has no host
        UnsafeURLError: If the host is internal
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise ScrapeError(url=url, reason=f"unsupported scheme '{parsed.scheme}'")
    if not parsed.hostname:
        raise ScrapeError(url=url, reason="missing host")
    if is_private_host(parsed.hostname):
        raise UnsafeURLError(url=url, host=parsed.hostname)
    return parsed.hostname


async def fetch_public(client: httpx.AsyncClient, method: str, url: str, **kwargs) -> httpx.Response:
    """
    Send a request, following redirects by hand.

    Every hop goes through ``ensure_public_url`` before it is requested,
    so a public page cannot bounce the crawler onto an internal host.

    Raises:
        UnsafeURLError: If the URL or any redirect target is internal
        ScrapeError: On a non-http(s) hop or too many redirects
        httpx.HTTPError: On network failures
    """
    for _ in range(settings.HTTP_MAX_REDIRECTS + 1):
        ensure_public_url(url)
        response = await client.request(method, url, follow_redirects=False, **kwargs)
        if not response.is_redirect:
            return response
        url = urljoin(str(response.url), response.headers["location"])
        logger.debug(f"Following redirect to {url}")
    raise ScrapeError(url=url, reason=f"more than {settings.HTTP_MAX_REDIRECTS} redirects")

