"""Sync Layer - cached reads and coordinated writes of farm entities.

Components:
- QueryCache: keyed, invalidation-driven cache with coalesced fetches
- MutationCoordinator: write-then-invalidate for every remote write
- EntitySpec: per-kind configuration (request structs, parents, actions)
- EntityStore: per-kind facade over cache + coordinator

Usage:
    from sync import QueryCache, MutationCoordinator, EntityStore

    cache = QueryCache()
    coordinator = MutationCoordinator(cache, gateways)
    batches = EntityStore(EntityKind.BATCH, gateways[EntityKind.BATCH], cache, coordinator)
"""

from sync.keys import CacheKey, Selector, SelectorScope
from sync.cache import CacheSnapshot, QueryCache
from sync.specs import DEFAULT_ENTITY_SPECS, ActionSpec, EntitySpec
from sync.coordinator import MutationCoordinator
from sync.stores import EntityStore

__all__ = [
    # Keys
    "CacheKey",
    "Selector",
    "SelectorScope",
    # Cache
    "QueryCache",
    "CacheSnapshot",
    # Configuration
    "EntitySpec",
    "ActionSpec",
    "DEFAULT_ENTITY_SPECS",
    # Writes
    "MutationCoordinator",
    # Facade
    "EntityStore",
]
