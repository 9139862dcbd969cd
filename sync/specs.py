"""Per-kind sync configuration.

One EntitySpec per entity kind replaces per-kind hand-written cache and
mutation wiring: the coordinator and stores are generic and read everything
kind-specific (request structs, parent relations, extra actions) from here.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Tuple, Type

from pydantic import BaseModel

from connectors.gateway_base import UnsupportedOperationError
from core.models import (
    ENTITY_MODELS,
    PARENT_FIELDS,
    CreateBatchRequest,
    CreateCageRequest,
    CreateFeedRecordRequest,
    CreateGroupRequest,
    CreateIncubationRequest,
    CreateSaleRequest,
    EntityKind,
    FinalizeIncubationRequest,
    RequestBase,
    UpdateBatchRequest,
    UpdateCageRequest,
    UpdateFeedRecordRequest,
    UpdateGroupRequest,
    UpdateIncubationRequest,
    UpdateSaleRequest,
)


@dataclass(frozen=True)
class ActionSpec:
    """A kind-specific write beyond create/update/delete.

    Attributes:
        name: Action name passed to ``EntityGateway.perform``
        request_model: Payload struct
        also_invalidates: Other kinds whose listings the action changes
    """
    name: str
    request_model: Type[RequestBase]
    also_invalidates: Tuple[EntityKind, ...] = ()


@dataclass(frozen=True)
class EntitySpec:
    """Everything the sync layer needs to know about one kind.

    Attributes:
        kind: Entity kind (also the cache key prefix)
        model: Record model
        create_request: Payload struct for create
        update_request: Payload struct for update
        parents: Parent kind -> field holding the parent id
        actions: Action name -> ActionSpec
    """
    kind: EntityKind
    model: Type[BaseModel]
    create_request: Type[RequestBase]
    update_request: Type[RequestBase]
    parents: Mapping[EntityKind, str] = field(default_factory=dict)
    actions: Mapping[str, ActionSpec] = field(default_factory=dict)

    def action(self, name: str) -> ActionSpec:
        """Look up an action.

        Raises:
            UnsupportedOperationError: The kind has no such action
        """
        if name not in self.actions:
            raise UnsupportedOperationError(f"{self.kind.value} has no action '{name}'")
        return self.actions[name]

    def parent_ids(self, source: Any) -> Dict[EntityKind, str]:
        """Parent ids present on a record, request struct or dict."""
        if source is None:
            return {}

        found = {}
        for parent_kind, field_name in self.parents.items():
            if isinstance(source, dict):
                value = source.get(field_name)
            else:
                value = getattr(source, field_name, None)
            if value:
                found[parent_kind] = str(value)
        return found


def _spec(kind: EntityKind, create_request, update_request, **kwargs) -> EntitySpec:
    return EntitySpec(
        kind=kind,
        model=ENTITY_MODELS[kind],
        create_request=create_request,
        update_request=update_request,
        parents=dict(PARENT_FIELDS.get(kind, {})),
        **kwargs,
    )


DEFAULT_ENTITY_SPECS: Dict[EntityKind, EntitySpec] = {
    EntityKind.GROUP: _spec(EntityKind.GROUP, CreateGroupRequest, UpdateGroupRequest),
    EntityKind.CAGE: _spec(EntityKind.CAGE, CreateCageRequest, UpdateCageRequest),
    EntityKind.BATCH: _spec(EntityKind.BATCH, CreateBatchRequest, UpdateBatchRequest),
    EntityKind.FEED_RECORD: _spec(EntityKind.FEED_RECORD, CreateFeedRecordRequest, UpdateFeedRecordRequest),
    EntityKind.INCUBATION: _spec(
        EntityKind.INCUBATION,
        CreateIncubationRequest,
        UpdateIncubationRequest,
        # Hatched chicks move into a growth box as a new batch
        actions={
            "finalize": ActionSpec(
                "finalize",
                FinalizeIncubationRequest,
                also_invalidates=(EntityKind.BATCH,),
            ),
        },
    ),
    EntityKind.SALE: _spec(EntityKind.SALE, CreateSaleRequest, UpdateSaleRequest),
}
