from __future__ import annotations

from collections.abc import Iterable, Iterator
from types import MappingProxyType

from lead_radar.config import Settings
from lead_radar.models import PlatformInfo
from lead_radar.sources.common import Source
from lead_radar.sources.hackernews import HackerNewsSource
from lead_radar.sources.reddit import RedditSource


class SourceRegistry:
    """Static platform id -> Source table, fixed at construction."""

    def __init__(self, sources: Iterable[Source]) -> None:
        table: dict[str, Source] = {}
        for source in sources:
            if source.platform_id in table:
                raise ValueError(f"duplicate platform id: {source.platform_id}")
            table[source.platform_id] = source
        self._sources = MappingProxyType(table)

    def get(self, platform_id: str) -> Source | None:
        return self._sources.get(platform_id)

    def list_ids(self) -> list[str]:
        return list(self._sources)

    def list_info(self) -> list[PlatformInfo]:
        return [
            PlatformInfo(id=platform_id, display_name=source.display_name)
            for platform_id, source in self._sources.items()
        ]

    def __contains__(self, platform_id: object) -> bool:
        return platform_id in self._sources

    def __iter__(self) -> Iterator[Source]:
        return iter(self._sources.values())

    def __len__(self) -> int:
        return len(self._sources)


def build_default_registry(settings: Settings) -> SourceRegistry:
    return SourceRegistry([RedditSource(settings), HackerNewsSource(settings)])
