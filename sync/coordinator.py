"""Mutation Coordinator.

Every write to the system of record goes through here:

1. The payload is validated into the kind's request struct (a dict is
   accepted); a ValidationError is raised before anything is sent.
2. Exactly one gateway call is made. No retries, no deduplication of
   concurrent identical writes, no optimistic cache edits.
3. Only after the gateway acknowledges, the affected cache keys are marked
   invalid. A failed write invalidates nothing and the error reaches the
   caller unchanged. A CommittedWriteError (acknowledged write, failed
   follow-up) still invalidates, using the parents known before the call,
   and is then re-raised.

Affected keys (fan-out):
- create: kind listing + parent listings of the new record
- update: kind listing + detail + parent listings (new and previous parents)
- delete: kind listing + detail + parent listings of the cached record
- action: as update, plus the listings of ``ActionSpec.also_invalidates``
When an update, delete or action cannot determine any parent id for a kind
that has parents, every parent-scoped listing of the kind is invalidated.
"""

import time
from collections import Counter
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Type, Union

from pydantic import BaseModel

from connectors.gateway_base import CommittedWriteError, EntityGateway, UnsupportedOperationError
from core.models import EntityKind, RequestBase
from core.observability import MetricsCollector, get_logger, with_correlation
from sync.cache import QueryCache
from sync.keys import CacheKey, SelectorScope
from sync.specs import DEFAULT_ENTITY_SPECS, EntitySpec

logger = get_logger(__name__)

Payload = Union[RequestBase, Dict[str, Any]]


def _validate(model: Type[RequestBase], payload: Payload) -> RequestBase:
    """Coerce a payload into its request struct.

    Raises:
        pydantic.ValidationError: Payload does not satisfy the struct
        TypeError: Payload is a struct of another type
    """
    if isinstance(payload, model):
        return payload
    if isinstance(payload, BaseModel):
        raise TypeError(f"Expected {model.__name__}, got {type(payload).__name__}")
    return model.model_validate(payload)


class MutationCoordinator:
    """Performs remote writes and invalidates the cache after they succeed.

    Usage:
        coordinator = MutationCoordinator(cache, gateways)
        batch = await coordinator.update(EntityKind.BATCH, "b-1", {"quantity": 40})
    """

    def __init__(
        self,
        cache: QueryCache,
        gateways: Mapping[EntityKind, EntityGateway],
        specs: Optional[Mapping[EntityKind, EntitySpec]] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.cache = cache
        self.gateways = dict(gateways)
        self.specs = dict(specs or DEFAULT_ENTITY_SPECS)
        self.metrics = metrics or cache.metrics
        self._pending: Counter = Counter()

    def _resolve(self, kind: EntityKind):
        if kind not in self.gateways or kind not in self.specs:
            raise UnsupportedOperationError(f"No gateway configured for {kind.value}")
        return self.gateways[kind], self.specs[kind]

    # =========================================================================
    # In-flight State
    # =========================================================================

    def is_pending(self, kind: EntityKind, operation: Optional[str] = None) -> bool:
        """Whether a write of this kind (and operation) has started and not settled."""
        if operation is not None:
            return self._pending[(kind, operation)] > 0
        return any(count > 0 for (k, _), count in self._pending.items() if k == kind)

    @asynccontextmanager
    async def _tracked(self, kind: EntityKind, operation: str, entity_id: Optional[str] = None):
        self._pending[(kind, operation)] += 1
        self.metrics.record_mutation_started(kind.value, operation)
        started = time.monotonic()

        with with_correlation(entity_kind=kind.value, entity_id=entity_id, operation=operation):
            try:
                yield
            except CommittedWriteError as e:
                self.metrics.record_mutation_failed(kind.value, operation)
                logger.warning(f"Write committed but not confirmed, cache invalidated: {e}")
                raise
            except Exception as e:
                self.metrics.record_mutation_failed(kind.value, operation)
                logger.warning(f"Write failed, cache left untouched: {type(e).__name__}: {e}")
                raise
            else:
                duration_ms = (time.monotonic() - started) * 1000
                self.metrics.record_mutation_succeeded(kind.value, operation, duration_ms)
                logger.info(
                    "Write acknowledged",
                    extra_fields={"duration_ms": round(duration_ms, 1)},
                )
            finally:
                self._pending[(kind, operation)] -= 1

    # =========================================================================
    # Fan-out
    # =========================================================================

    def _cached_record(self, kind: EntityKind, entity_id: str) -> Optional[BaseModel]:
        """Last known copy of a record: its detail entry, else the kind listing."""
        detail = self.cache.peek(CacheKey.by_id(kind, entity_id))
        if detail.has_value and detail.value is not None:
            return detail.value

        listing = self.cache.peek(CacheKey.all(kind))
        if listing.has_value:
            for record in listing.value or []:
                if getattr(record, "id", None) == entity_id:
                    return record
        return None

    def _parent_keys(self, spec: EntitySpec, *sources: Any) -> Optional[List[CacheKey]]:
        """Parent listing keys named by the sources; None if a kind with parents has none."""
        if not spec.parents:
            return []

        keys = []
        for source in sources:
            for parent_kind, parent_id in spec.parent_ids(source).items():
                key = CacheKey.by_parent(spec.kind, parent_kind, parent_id)
                if key not in keys:
                    keys.append(key)
        return keys or None

    def _invalidate(
        self,
        spec: EntitySpec,
        keys: List[CacheKey],
        parent_keys: Optional[List[CacheKey]],
        also_invalidates: Sequence[EntityKind] = (),
    ) -> None:
        keys = keys + [CacheKey.all(other) for other in also_invalidates]
        invalidated = [key for key in keys if self.cache.invalidate(key)]

        if parent_keys is None:
            self.cache.invalidate_scope(spec.kind, SelectorScope.PARENT)
        else:
            invalidated.extend(key for key in parent_keys if self.cache.invalidate(key))

        logger.info(
            f"Invalidated {len(invalidated)} cached keys",
            extra_fields={
                "cache_keys": [str(k) for k in invalidated],
                "all_parent_scopes": parent_keys is None,
            },
        )

    # =========================================================================
    # Writes
    # =========================================================================

    async def _write(
        self,
        spec: EntitySpec,
        call: Callable[[], Awaitable[Any]],
        keys: List[CacheKey],
        parent_sources: Sequence[Any],
        also_invalidates: Sequence[EntityKind] = (),
        unknown_parent_is_none: bool = False,
    ) -> Any:
        """Run one gateway write, then invalidate the keys it affected.

        Args:
            call: The gateway write
            keys: Listing/detail keys affected regardless of the record
            parent_sources: Requests or cached records naming parent ids;
                the returned record is consulted first
            unknown_parent_is_none: With no parent id found, invalidate no
                parent listing instead of all of them (creates)
        """
        def fan_out(*sources: Any) -> Optional[List[CacheKey]]:
            parent_keys = self._parent_keys(spec, *sources)
            if parent_keys is None and unknown_parent_is_none:
                return []
            return parent_keys

        try:
            record = await call()
        except CommittedWriteError:
            self._invalidate(spec, keys, fan_out(*parent_sources), also_invalidates)
            raise

        self._invalidate(spec, keys, fan_out(record, *parent_sources), also_invalidates)
        return record

    async def create(self, kind: EntityKind, payload: Payload) -> BaseModel:
        """Create a record.

        Returns:
            The record as stored by the backend
        """
        gateway, spec = self._resolve(kind)
        request = _validate(spec.create_request, payload)

        async with self._tracked(kind, "create"):
            return await self._write(
                spec,
                lambda: gateway.create(request),
                [CacheKey.all(kind)],
                [request],
                unknown_parent_is_none=True,
            )

    async def update(self, kind: EntityKind, entity_id: str, payload: Payload) -> BaseModel:
        """Update a record.

        Raises:
            EntityNotFoundError: No record has this id
            CommittedWriteError: Updated, but the record could not be read back
        """
        gateway, spec = self._resolve(kind)
        request = _validate(spec.update_request, payload)
        previous = self._cached_record(kind, entity_id)

        async with self._tracked(kind, "update", entity_id):
            return await self._write(
                spec,
                lambda: gateway.update(entity_id, request),
                [CacheKey.all(kind), CacheKey.by_id(kind, entity_id)],
                [request.changes(), previous],
            )

    async def delete(self, kind: EntityKind, entity_id: str) -> None:
        """Delete a record.

        Raises:
            EntityNotFoundError: No record has this id
        """
        gateway, spec = self._resolve(kind)
        previous = self._cached_record(kind, entity_id)

        async with self._tracked(kind, "delete", entity_id):
            await self._write(
                spec,
                lambda: gateway.delete(entity_id),
                [CacheKey.all(kind), CacheKey.by_id(kind, entity_id)],
                [previous],
            )

    async def perform(self, kind: EntityKind, action: str, entity_id: str, payload: Payload) -> Optional[BaseModel]:
        """Run a kind-specific action (e.g. finalize an incubation).

        Raises:
            UnsupportedOperationError: The kind has no such action
        """
        gateway, spec = self._resolve(kind)
        action_spec = spec.action(action)
        request = _validate(action_spec.request_model, payload)
        previous = self._cached_record(kind, entity_id)

        async with self._tracked(kind, action, entity_id):
            return await self._write(
                spec,
                lambda: gateway.perform(action, entity_id, request),
                [CacheKey.all(kind), CacheKey.by_id(kind, entity_id)],
                [request.changes(), previous],
                also_invalidates=action_spec.also_invalidates,
            )
