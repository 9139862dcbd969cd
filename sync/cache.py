"""Query Cache.

Keyed, TTL-less, invalidation-driven store of fetched records and listings.

Semantics:
- ``read`` returns the stored value while the entry is valid; otherwise it
  fetches, stores the result as valid and returns it.
- ``invalidate`` marks an entry invalid without evicting its value, so
  ``peek`` keeps showing the last value while the next read refetches
  (stale-while-revalidate).
- Concurrent reads of an entry that is not valid share one in-flight fetch.
- A failed fetch leaves the entry invalid; every caller sharing that fetch
  receives the exception and the next read starts over.
- Invalidating an entry while its fetch is in flight detaches that fetch: the
  callers already waiting still get its result, but the result is not stored
  as valid and the next read starts a fresh fetch.

Fetches run as asyncio tasks awaited through ``asyncio.shield``: a caller that
is cancelled stops waiting, the fetch itself runs to completion and populates
the entry for later readers.

Nothing but ``read`` (through a fetch) writes values; there is no ``set``.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, TypeVar

from core.models import EntityKind
from core.observability import MetricsCollector, get_logger, with_correlation
from sync.keys import CacheKey, SelectorScope

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class CacheSnapshot:
    """Read-only view of an entry, as returned by ``QueryCache.peek``."""
    value: Any = None
    has_value: bool = False
    is_valid: bool = False
    is_fetching: bool = False
    fetched_at: Optional[datetime] = None

    @property
    def is_stale(self) -> bool:
        """A value is shown but a refetch is due or running."""
        return self.has_value and not self.is_valid


@dataclass
class CacheEntry:
    value: Any = None
    has_value: bool = False
    is_valid: bool = False
    generation: int = 0
    in_flight: Optional[asyncio.Task] = None
    fetched_at: Optional[datetime] = None


def _retrieve_exception(task: asyncio.Task) -> None:
    # Abandoned fetches must not warn "exception was never retrieved"
    if not task.cancelled():
        task.exception()


class QueryCache:
    """Shared store of fetched entity data.

    Construct one per client and pass it to the coordinator and stores.

    Usage:
        cache = QueryCache()
        batches = await cache.read(CacheKey.all(EntityKind.BATCH), gateway.get_all)
        cache.invalidate(CacheKey.all(EntityKind.BATCH))
    """

    def __init__(self, metrics: Optional[MetricsCollector] = None):
        self.metrics = metrics or MetricsCollector.instance()
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._tasks: Set[asyncio.Task] = set()

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self, kind: Optional[EntityKind] = None) -> List[CacheKey]:
        """Keys with an entry, optionally limited to one kind."""
        return [k for k in self._entries if kind is None or k.kind == kind]

    # =========================================================================
    # Reads
    # =========================================================================

    async def read(self, key: CacheKey, fetch: Callable[[], Awaitable[T]]) -> T:
        """Return the value for ``key``, fetching it if the entry is not valid.

        Args:
            key: Cache key
            fetch: Zero-argument coroutine function producing the value

        Raises:
            Whatever ``fetch`` raises; the entry stays invalid
        """
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = CacheEntry()

        kind = key.kind.value

        if entry.is_valid:
            self.metrics.record_cache_hit(kind)
            logger.debug("Cache hit", extra_fields={"cache_key": str(key)})
            return entry.value

        if entry.in_flight is not None:
            self.metrics.record_cache_coalesced(kind)
            logger.debug("Joining in-flight fetch", extra_fields={"cache_key": str(key)})
            task = entry.in_flight
        else:
            self.metrics.record_cache_miss(kind)
            logger.debug("Cache miss", extra_fields={"cache_key": str(key)})
            task = self._start_fetch(key, entry, fetch)

        return await asyncio.shield(task)

    def _start_fetch(self, key: CacheKey, entry: CacheEntry, fetch: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        generation = entry.generation
        kind = key.kind.value

        async def run():
            started = time.monotonic()
            try:
                with with_correlation(entity_kind=kind, operation="read", cache_key=str(key)):
                    value = await fetch()
            except Exception as e:
                self.metrics.record_fetch_failed(kind)
                logger.warning(
                    f"Fetch failed: {type(e).__name__}: {e}",
                    extra_fields={"cache_key": str(key)},
                )
                raise
            finally:
                if entry.in_flight is task:
                    entry.in_flight = None

            self.metrics.record_fetch_completed(kind, (time.monotonic() - started) * 1000)

            if entry.generation != generation:
                logger.debug(
                    "Fetch result superseded by invalidation, not stored",
                    extra_fields={"cache_key": str(key)},
                )
                return value

            entry.value = value
            entry.has_value = True
            entry.is_valid = True
            entry.fetched_at = datetime.now(timezone.utc)
            return value

        self.metrics.record_fetch_started(kind)
        task = asyncio.ensure_future(run())
        entry.in_flight = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(_retrieve_exception)
        return task

    def peek(self, key: CacheKey) -> CacheSnapshot:
        """Current state of an entry without fetching."""
        entry = self._entries.get(key)
        if entry is None:
            return CacheSnapshot()
        return CacheSnapshot(
            value=entry.value,
            has_value=entry.has_value,
            is_valid=entry.is_valid,
            is_fetching=entry.in_flight is not None,
            fetched_at=entry.fetched_at,
        )

    # =========================================================================
    # Invalidation
    # =========================================================================

    def _mark_invalid(self, entry: CacheEntry) -> None:
        entry.is_valid = False
        entry.generation += 1
        entry.in_flight = None

    def invalidate(self, key: CacheKey) -> bool:
        """Mark one entry invalid, keeping its value.

        Returns:
            True if an entry existed for the key
        """
        entry = self._entries.get(key)
        if entry is None:
            return False

        self._mark_invalid(entry)
        self.metrics.record_invalidation(key.kind.value)
        logger.debug("Invalidated", extra_fields={"cache_key": str(key)})
        return True

    def _invalidate_matching(self, kind: EntityKind, predicate: Callable[[CacheKey], bool]) -> int:
        matched = [k for k in self._entries if k.kind == kind and predicate(k)]
        for key in matched:
            self._mark_invalid(self._entries[key])

        if matched:
            self.metrics.record_invalidation(kind.value, len(matched))
        logger.info(
            f"Invalidated {len(matched)} {kind.value} keys",
            extra_fields={"cache_keys": [str(k) for k in matched]},
        )
        return len(matched)

    def invalidate_kind(self, kind: EntityKind) -> int:
        """Mark every entry of a kind invalid. Returns the number of entries."""
        return self._invalidate_matching(kind, lambda key: True)

    def invalidate_scope(
        self,
        kind: EntityKind,
        scope: SelectorScope,
        parent_kind: Optional[EntityKind] = None,
    ) -> int:
        """Mark every entry of one selector scope invalid.

        Args:
            kind: Entity kind
            scope: Selector scope (ALL, ID or PARENT)
            parent_kind: With PARENT scope, limit to one parent kind
        """
        def matches(key: CacheKey) -> bool:
            if key.scope is not scope:
                return False
            return parent_kind is None or key.selector.parent_kind == parent_kind

        return self._invalidate_matching(kind, matches)
