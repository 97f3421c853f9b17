"""Source adapter registry keyed by SourceType."""
import httpx

from aihub.services.discovery.directory_source import TheresAnAISource
from aihub.services.discovery.exceptions import UnknownSourceTypeError
from aihub.services.discovery.github_source import GitHubTrendingSource
from aihub.services.discovery.hackernews_source import HackerNewsSource
from aihub.services.discovery.producthunt_source import ProductHuntSource
from aihub.services.discovery.sources import BaseDiscoverySource, SourceType

SOURCE_ADAPTERS: dict[SourceType, type[BaseDiscoverySource]] = {
    SourceType.PRODUCTHUNT: ProductHuntSource,
    SourceType.HACKERNEWS: HackerNewsSource,
    SourceType.GITHUB: GitHubTrendingSource,
    SourceType.THERESANAI: TheresAnAISource,
}

_missing = [t.value for t in SourceType if t not in SOURCE_ADAPTERS]
if _missing:
    raise RuntimeError(f"No discovery adapter registered for: {', '.join(_missing)}")

_mismatched = [t.value for t, cls in SOURCE_ADAPTERS.items() if cls.source_type is not t]
if _mismatched:
    raise RuntimeError(f"Adapter registered under the wrong source type: {', '.join(_mismatched)}")


def get_source_adapter(
    source_type: SourceType | str,
    *,
    name: str | None = None,
    url: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> BaseDiscoverySource:
    """
    Build the adapter for a configured source.

    Raises:
        UnknownSourceTypeError: If the type string matches no SourceType
    """
    try:
        resolved = SourceType(source_type)
    except ValueError:
        raise UnknownSourceTypeError(
            str(source_type),
            available=[t.value for t in SourceType]
        )

    adapter_cls = SOURCE_ADAPTERS[resolved]
    return adapter_cls(name=name, url=url, client=client)
