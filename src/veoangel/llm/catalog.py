"""
Model catalog cache.

Read-through, time-bounded cache of the models a backend reports. Entries
are replaced as a whole tuple, never mutated in place, so a read racing a
refresh sees either the old or the new catalog.
"""

import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from veoangel.core.logging import get_logger
from veoangel.llm.base import ModelDescriptor
from veoangel.llm.errors import FetchError, ProviderError

logger = get_logger("llm.catalog")

CatalogFetcher = Callable[[], Awaitable[Sequence[ModelDescriptor]]]


@dataclass(frozen=True)
class CatalogRead:
    entries: tuple[ModelDescriptor, ...]
    cached: bool


class ModelCatalogCache:
    """TTL cache around one adapter's catalog fetch."""

    def __init__(
        self,
        fetch: CatalogFetcher,
        ttl: float,
        name: str = "catalog",
        clock: Callable[[], float] = time.time,
    ):
        self._fetch = fetch
        self.ttl = ttl
        self.name = name
        self._clock = clock
        self._entries: tuple[ModelDescriptor, ...] = ()
        self._fetched_at: float | None = None

    @property
    def entries(self) -> tuple[ModelDescriptor, ...]:
        return self._entries

    @property
    def fetched_at(self) -> float | None:
        return self._fetched_at

    def is_fresh(self) -> bool:
        if not self._entries or self._fetched_at is None:
            return False
        return (self._clock() - self._fetched_at) < self.ttl

    async def read(self, force_refresh: bool = False) -> CatalogRead:
        """Return cached entries when fresh, otherwise fetch and replace.

        On fetch failure the cache is left untouched and FetchError is raised;
        callers decide whether to serve `entries` as stale data.
        """
        if not force_refresh and self.is_fresh():
            logger.debug(f"Using cached {self.name} models ({len(self._entries)})")
            return CatalogRead(self._entries, cached=True)

        try:
            fetched = tuple(await self._fetch())
        except FetchError:
            raise
        except ProviderError as e:
            raise FetchError(f"Failed to fetch models: {e.message}", e.provider) from e
        except Exception as e:
            raise FetchError(f"Failed to fetch models: {e}") from e

        self._entries, self._fetched_at = fetched, self._clock()
        logger.info(f"Fetched {len(fetched)} {self.name} models")
        return CatalogRead(fetched, cached=False)

    def clear(self) -> None:
        self._entries, self._fetched_at = (), None
        logger.info(f"{self.name} models cache cleared")
