"""Entity stores - the per-kind read/write facade.

An EntityStore binds one kind's gateway to the shared cache and coordinator.
Reads go through the cache, writes through the coordinator; a store never
writes cache entries itself.

Usage:
    batches = EntityStore(EntityKind.BATCH, gateway, cache, coordinator)
    in_cage = await batches.list_by_parent(EntityKind.CAGE, "c-1")
    await batches.update("b-1", {"quantity": 40})
"""

from functools import partial
from typing import List, Optional

from pydantic import BaseModel

from connectors.gateway_base import EntityGateway, UnsupportedOperationError
from core.models import EntityKind
from sync.cache import CacheSnapshot, QueryCache
from sync.coordinator import MutationCoordinator, Payload
from sync.keys import CacheKey


class EntityStore:
    """Cached reads and coordinated writes for one entity kind."""

    def __init__(
        self,
        kind: EntityKind,
        gateway: EntityGateway,
        cache: QueryCache,
        coordinator: MutationCoordinator,
    ):
        self.kind = kind
        self.gateway = gateway
        self.cache = cache
        self.coordinator = coordinator
        self.spec = coordinator.specs[kind]

    def __repr__(self) -> str:
        return f"EntityStore({self.kind.value})"

    def _parent_key(self, parent_kind: EntityKind, parent_id: str) -> CacheKey:
        if parent_kind not in self.spec.parents:
            raise UnsupportedOperationError(
                f"{self.kind.value} records have no {parent_kind.value} parent"
            )
        return CacheKey.by_parent(self.kind, parent_kind, parent_id)

    # =========================================================================
    # Reads
    # =========================================================================

    async def list(self) -> List[BaseModel]:
        """All records of the kind."""
        return await self.cache.read(CacheKey.all(self.kind), self.gateway.get_all)

    async def get(self, entity_id: str) -> Optional[BaseModel]:
        """One record, or None if it does not exist."""
        return await self.cache.read(
            CacheKey.by_id(self.kind, entity_id),
            partial(self.gateway.get_by_id, entity_id),
        )

    async def list_by_parent(self, parent_kind: EntityKind, parent_id: str) -> List[BaseModel]:
        """Records belonging to a parent (e.g. feed records of a group)."""
        return await self.cache.read(
            self._parent_key(parent_kind, parent_id),
            partial(self.gateway.get_by_parent, parent_kind, parent_id),
        )

    def peek_list(self) -> CacheSnapshot:
        return self.cache.peek(CacheKey.all(self.kind))

    def peek(self, entity_id: str) -> CacheSnapshot:
        return self.cache.peek(CacheKey.by_id(self.kind, entity_id))

    def peek_by_parent(self, parent_kind: EntityKind, parent_id: str) -> CacheSnapshot:
        return self.cache.peek(self._parent_key(parent_kind, parent_id))

    # =========================================================================
    # Writes
    # =========================================================================

    async def create(self, payload: Payload) -> BaseModel:
        return await self.coordinator.create(self.kind, payload)

    async def update(self, entity_id: str, payload: Payload) -> BaseModel:
        return await self.coordinator.update(self.kind, entity_id, payload)

    async def delete(self, entity_id: str) -> None:
        await self.coordinator.delete(self.kind, entity_id)

    async def perform(self, action: str, entity_id: str, payload: Payload) -> Optional[BaseModel]:
        return await self.coordinator.perform(self.kind, action, entity_id, payload)

    # =========================================================================
    # In-flight State
    # =========================================================================

    @property
    def is_creating(self) -> bool:
        return self.coordinator.is_pending(self.kind, "create")

    @property
    def is_updating(self) -> bool:
        return self.coordinator.is_pending(self.kind, "update")

    @property
    def is_deleting(self) -> bool:
        return self.coordinator.is_pending(self.kind, "delete")

    def is_performing(self, action: Optional[str] = None) -> bool:
        if action is None:
            return any(self.coordinator.is_pending(self.kind, name) for name in self.spec.actions)
        return self.coordinator.is_pending(self.kind, action)
