"""In-memory gateways.

Process-local stand-in for the farm backend: records live in a dict per kind,
ids are generated on create, and missing ids behave like the real backend
(``None`` on reads, ``EntityNotFoundError`` on writes). Used by tests and for
running the client offline.
"""

import asyncio
import uuid
from collections import Counter
from typing import Dict, List, Optional

from pydantic import BaseModel

from connectors.gateway_base import (
    EntityGateway,
    EntityNotFoundError,
    UnsupportedOperationError,
    register_gateway_factory,
)
from core.models import (
    ENTITY_MODELS,
    PARENT_FIELDS,
    CreateIncubationRequest,
    CreateSaleRequest,
    EntityKind,
    FinalizeIncubationRequest,
    IncubationStatus,
    RequestBase,
)


class InMemoryGateway(EntityGateway):
    """Gateway for one kind backed by a plain dict.

    Attributes:
        records: id -> record, in insertion order
        calls: number of calls per gateway method (``calls["get_all"]``)
        latency: seconds every call suspends for, so callers interleave
    """

    def __init__(self, kind: EntityKind, latency: float = 0.0):
        self.kind = kind
        self.model = ENTITY_MODELS[kind]
        self.records: Dict[str, BaseModel] = {}
        self.calls: Counter = Counter()
        self.latency = latency

    async def _enter(self, method: str) -> None:
        self.calls[method] += 1
        await asyncio.sleep(self.latency)

    def seed(self, *records: BaseModel) -> None:
        """Insert records directly, bypassing the call counters."""
        for record in records:
            self.records[record.id] = record

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_all(self) -> List[BaseModel]:
        await self._enter("get_all")
        return list(self.records.values())

    async def get_by_id(self, entity_id: str) -> Optional[BaseModel]:
        await self._enter("get_by_id")
        return self.records.get(entity_id)

    async def get_by_parent(self, parent_kind: EntityKind, parent_id: str) -> List[BaseModel]:
        await self._enter("get_by_parent")
        field = PARENT_FIELDS.get(self.kind, {}).get(parent_kind)
        if field is None:
            raise UnsupportedOperationError(
                f"{self.kind.value} records have no {parent_kind.value} parent"
            )
        return [r for r in self.records.values() if getattr(r, field) == parent_id]

    # =========================================================================
    # Writes
    # =========================================================================

    async def create(self, payload: RequestBase) -> BaseModel:
        await self._enter("create")
        data = payload.model_dump()
        data["id"] = str(uuid.uuid4())

        if isinstance(payload, CreateSaleRequest):
            data["total_price"] = payload.total_price
        elif isinstance(payload, CreateIncubationRequest):
            data["status"] = IncubationStatus.INCUBATING

        record = self.model.model_validate(data)
        self.records[record.id] = record
        return record

    async def update(self, entity_id: str, payload: RequestBase) -> BaseModel:
        await self._enter("update")
        current = self._require(entity_id)
        data = current.model_dump()
        data.update(payload.model_dump(exclude_unset=True))
        record = self.model.model_validate(data)
        self.records[entity_id] = record
        return record

    async def delete(self, entity_id: str) -> None:
        await self._enter("delete")
        self._require(entity_id)
        del self.records[entity_id]

    async def perform(self, action: str, entity_id: str, payload: RequestBase) -> Optional[BaseModel]:
        if self.kind is EntityKind.INCUBATION and action == "finalize":
            await self._enter("finalize")
            return self._finalize(entity_id, payload)
        return await super().perform(action, entity_id, payload)

    def _finalize(self, entity_id: str, payload: FinalizeIncubationRequest) -> BaseModel:
        current = self._require(entity_id)
        data = current.model_dump()
        data["status"] = IncubationStatus.COMPLETED
        data["finalization"] = {
            "actual_hatch_date": payload.actual_hatch_date,
            "hatched_quantity": payload.hatched_quantity,
            "losses": payload.losses,
            "growth_box_id": payload.growth_box_id,
            "notes": payload.notes,
        }
        record = self.model.model_validate(data)
        self.records[entity_id] = record
        return record

    def _require(self, entity_id: str) -> BaseModel:
        if entity_id not in self.records:
            raise EntityNotFoundError(self.kind, entity_id)
        return self.records[entity_id]


@register_gateway_factory("memory")
def build_in_memory_gateways(latency: float = 0.0) -> Dict[EntityKind, InMemoryGateway]:
    """One in-memory gateway per entity kind."""
    return {kind: InMemoryGateway(kind, latency=latency) for kind in EntityKind}
