"""
Relay Registry

Primary and fallback relay sets for one bridge.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Tuple

from .contracts import RelayRole, RelaySource


@dataclass
class RelayRegistry:
    """
    Registry of configured relays.

    A URL listed as primary is never also used as a fallback.
    """

    _primary: Tuple[RelaySource, ...]
    _fallback: Tuple[RelaySource, ...]

    @classmethod
    def from_urls(cls, primary: Iterable[str], fallback: Iterable[str] = ()) -> 'RelayRegistry':
        seen = set()
        primaries: List[RelaySource] = []
        fallbacks: List[RelaySource] = []

        for url in primary:
            url = url.strip()
            if url and url not in seen:
                seen.add(url)
                primaries.append(RelaySource(url, RelayRole.PRIMARY))

        for url in fallback:
            url = url.strip()
            if url and url not in seen:
                seen.add(url)
                fallbacks.append(RelaySource(url, RelayRole.FALLBACK))

        return cls(_primary=tuple(primaries), _fallback=tuple(fallbacks))

    @classmethod
    def from_config(cls, config) -> 'RelayRegistry':
        """Build from an IngestionConfig."""
        return cls.from_urls(config.relays, config.fallback_relays)

    def primary_sources(self) -> Tuple[RelaySource, ...]:
        return self._primary

    def fallback_sources(self) -> Tuple[RelaySource, ...]:
        return self._fallback

    def all_sources(self) -> Iterator[RelaySource]:
        """Iterate all sources, primaries first."""
        yield from self._primary
        yield from self._fallback

    @property
    def total_count(self) -> int:
        return len(self._primary) + len(self._fallback)

    def stats(self) -> dict:
        return {
            'total': self.total_count,
            'primary': [s.url for s in self._primary],
            'fallback': [s.url for s in self._fallback],
        }
