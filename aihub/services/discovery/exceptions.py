"""
Discovery Exceptions - Error hierarchy for the discovery pipeline.

Transient network failures are caught close to where they happen and
recorded as text; these types exist so callers can tell the expected
failure modes apart from genuine bugs.
"""

from typing import Any, Dict, Optional


class DiscoveryError(Exception):
    """
    Base exception for discovery pipeline errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or "DISCOVERY_ERROR"
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary representation."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ScrapeError(DiscoveryError):
    """
    Raised when service metadata cannot be fetched.

    Example:
        raise ScrapeError(url="https://example.com", reason="HTTP 503")
    """

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code

        super().__init__(
            message=f"Failed to fetch {url}: {reason}",
            code="SCRAPE_FAILED",
            details={"url": url, "reason": reason, "status_code": status_code},
        )


class UnsafeURLError(ScrapeError):
    """Raised when a URL points at a private, loopback or metadata host."""

    def __init__(self, url: str, host: str):
        self.host = host
        super().__init__(url=url, reason=f"host '{host}' is on an internal network")
        self.code = "UNSAFE_URL"


class UnknownSourceTypeError(DiscoveryError):
    """
    Raised when a configured source has no registered adapter.

    Example:
        raise UnknownSourceTypeError("rss", available=["github", "hackernews"])
    """

    def __init__(self, source_type: str, available: Optional[list[str]] = None):
        self.source_type = source_type
        self.available = available or []

        message = f"Unknown source type: {source_type}"
        if self.available:
            message += f". Available: {', '.join(self.available)}"

        super().__init__(
            message=message,
            code="UNKNOWN_SOURCE_TYPE",
            details={"source_type": source_type, "available": self.available},
        )


class StoreIntegrityError(DiscoveryError):
    """
    Raised by a store when a write violates a uniqueness constraint.

    The pipeline treats this as an expected outcome (another run got
    there first), never as a failure.
    """

    def __init__(self, entity: str, field: str, value: Any):
        self.entity = entity
        self.field = field
        self.value = value

        super().__init__(
            message=f"{entity} with {field}={value!r} already exists",
            code="STORE_INTEGRITY",
            details={"entity": entity, "field": field, "value": value},
        )


class StoreError(DiscoveryError):
    """Raised by a store when the database rejects a write for any other reason."""

    def __init__(self, entity: str, reason: str):
        self.entity = entity
        self.reason = reason

        super().__init__(
            message=f"Could not save {entity}: {reason}",
            code="STORE_ERROR",
            details={"entity": entity, "reason": reason},
        )
