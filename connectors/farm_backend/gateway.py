"""Farm Backend REST Gateways.

Implements the EntityGateway interface for each entity kind against the farm
backend REST API. Records are translated with the functions in mappers.py.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ValidationError

from connectors.farm_backend import mappers
from connectors.farm_backend.client import FarmApiClient, FarmApiConfig, FarmNotFoundError
from connectors.gateway_base import (
    CommittedWriteError,
    EntityGateway,
    EntityNotFoundError,
    GatewayError,
    UnsupportedOperationError,
    register_gateway_factory,
)
from core.config import FarmSettings
from core.models import (
    ENTITY_MODELS,
    EntityKind,
    FinalizeIncubationRequest,
    RequestBase,
    UpdateSaleRequest,
)
from core.observability import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class BackendMapping:
    """Translation functions for one entity kind."""
    from_backend: Callable[[Dict[str, Any]], BaseModel]
    create_to_backend: Callable[[Any], Dict[str, Any]]
    update_to_backend: Callable[[Any], Dict[str, Any]]


BACKEND_MAPPINGS: Dict[EntityKind, BackendMapping] = {
    EntityKind.GROUP: BackendMapping(
        mappers.group_from_backend, mappers.group_to_backend, mappers.group_update_to_backend,
    ),
    EntityKind.CAGE: BackendMapping(
        mappers.cage_from_backend, mappers.cage_to_backend, mappers.cage_update_to_backend,
    ),
    EntityKind.BATCH: BackendMapping(
        mappers.batch_from_backend, mappers.batch_to_backend, mappers.batch_update_to_backend,
    ),
    EntityKind.FEED_RECORD: BackendMapping(
        mappers.feed_record_from_backend,
        mappers.feed_record_to_backend,
        mappers.feed_record_update_to_backend,
    ),
    EntityKind.INCUBATION: BackendMapping(
        mappers.incubation_from_backend,
        mappers.incubation_to_backend,
        mappers.incubation_update_to_backend,
    ),
    EntityKind.SALE: BackendMapping(
        mappers.sale_from_backend, mappers.sale_to_backend, mappers.sale_update_to_backend,
    ),
}


def _records(body: Any) -> List[Dict[str, Any]]:
    """Unwrap a list response (bare list or ``{"data": [...]}``)."""
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        data = body.get("data")
        if isinstance(data, list):
            return data
    return []


def _record(body: Any) -> Dict[str, Any]:
    """Unwrap a single-record response (object, ``{"data": {...}}`` or one-element list)."""
    if isinstance(body, list):
        return body[0] if body else {}
    if isinstance(body, dict) and isinstance(body.get("data"), dict):
        return body["data"]
    return body or {}


class RestEntityGateway(EntityGateway):
    """Gateway for one entity kind backed by a REST collection.

    Collection layout:
        GET    {endpoint}                 all records
        GET    {endpoint}?{parent}={id}   records of a parent
        GET    {endpoint}/{id}            one record
        POST   {endpoint}                 create
        PUT    {endpoint}/{id}            update
        DELETE {endpoint}/{id}            delete
    """

    def __init__(
        self,
        kind: EntityKind,
        client: FarmApiClient,
        endpoint: str,
        mapping: Optional[BackendMapping] = None,
    ):
        self.kind = kind
        self.model = ENTITY_MODELS[kind]
        self.client = client
        self.endpoint = endpoint.strip("/")
        self.mapping = mapping or BACKEND_MAPPINGS[kind]

    def _path(self, entity_id: Optional[str] = None, suffix: str = "") -> str:
        path = self.endpoint if entity_id is None else f"{self.endpoint}/{entity_id}"
        return f"{path}/{suffix}" if suffix else path

    def _map_one(self, data: Dict[str, Any]) -> BaseModel:
        if not data:
            raise GatewayError(f"{self.kind.value}: backend returned an empty record")
        return self.mapping.from_backend(data)

    def _map_many(self, rows: List[Dict[str, Any]]) -> List[BaseModel]:
        """Map list rows; rows that fail validation are logged and left out."""
        results = []
        for row in rows:
            try:
                results.append(self.mapping.from_backend(row))
            except (ValidationError, KeyError) as e:
                logger.warning(
                    f"Skipping malformed {self.kind.value} record",
                    extra_fields={"record_id": row.get("id"), "error": str(e)},
                )
        return results

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_all(self) -> List[BaseModel]:
        body = await self.client.get(self._path())
        return self._map_many(_records(body))

    async def get_by_id(self, entity_id: str) -> Optional[BaseModel]:
        try:
            body = await self.client.get(self._path(entity_id))
        except FarmNotFoundError:
            return None

        data = _record(body)
        if not data:
            return None
        return self._map_one(data)

    async def get_by_parent(self, parent_kind: EntityKind, parent_id: str) -> List[BaseModel]:
        query_field = mappers.PARENT_QUERY_FIELDS.get(self.kind, {}).get(parent_kind)
        if query_field is None:
            raise UnsupportedOperationError(
                f"{self.kind.value} cannot be listed by {parent_kind.value}"
            )
        body = await self.client.get(self._path(), params={query_field: parent_id})
        return self._map_many(_records(body))

    # =========================================================================
    # Writes
    # =========================================================================

    async def create(self, payload: RequestBase) -> BaseModel:
        body = await self.client.post(self._path(), data=self.mapping.create_to_backend(payload))
        return await self._settle(None, body)

    async def update(self, entity_id: str, payload: RequestBase) -> BaseModel:
        try:
            body = await self.client.put(
                self._path(entity_id),
                data=self.mapping.update_to_backend(payload),
            )
        except FarmNotFoundError as e:
            raise EntityNotFoundError(self.kind, entity_id) from e

        return await self._settle(entity_id, body)

    async def delete(self, entity_id: str) -> None:
        try:
            await self.client.delete(self._path(entity_id))
        except FarmNotFoundError as e:
            raise EntityNotFoundError(self.kind, entity_id) from e

    async def _reread(self, entity_id: str) -> BaseModel:
        record = await self.get_by_id(entity_id)
        if record is None:
            raise EntityNotFoundError(self.kind, entity_id)
        return record

    async def _settle(self, entity_id: Optional[str], body: Any) -> BaseModel:
        """Record for a write the backend has already acknowledged.

        Uses the response body when it carries the record, else reads the
        record back. Any failure from here on is a CommittedWriteError.
        """
        try:
            data = _record(body)
            if entity_id is not None and "id" not in data:
                return await self._reread(entity_id)
            return self._map_one(data)
        except (GatewayError, ValidationError, KeyError) as e:
            logger.warning(
                f"{self.kind.value} write acknowledged but no record available",
                extra_fields={"entity_id": entity_id, "error": f"{type(e).__name__}: {e}"},
            )
            raise CommittedWriteError(self.kind, entity_id) from e


class SaleGateway(RestEntityGateway):
    """Sales: status has its own endpoint and there is no group filter."""

    async def get_by_parent(self, parent_kind: EntityKind, parent_id: str) -> List[BaseModel]:
        if parent_kind is not EntityKind.GROUP:
            return await super().get_by_parent(parent_kind, parent_id)
        sales = await self.get_all()
        return [s for s in sales if s.group_id == parent_id]

    async def update(self, entity_id: str, payload: UpdateSaleRequest) -> BaseModel:
        """Status changes go to PATCH {id}/status, other fields to PUT {id}.

        A request carries one or the other (see UpdateSaleRequest), so each
        update is a single write.
        """
        if payload.status is not None:
            try:
                await self.client.patch(
                    self._path(entity_id, "status"),
                    data={"status": payload.status.value},
                )
            except FarmNotFoundError as e:
                raise EntityNotFoundError(self.kind, entity_id) from e
            return await self._settle(entity_id, None)

        group_id = None
        if "notes" in payload.model_fields_set:
            # Edited notes must keep the group marker of the stored sale
            group_id = (await self._reread(entity_id)).group_id

        fields = mappers.sale_update_to_backend(payload, group_id=group_id)
        if not fields:
            return await self._reread(entity_id)

        try:
            body = await self.client.put(self._path(entity_id), data=fields)
        except FarmNotFoundError as e:
            raise EntityNotFoundError(self.kind, entity_id) from e
        return await self._settle(entity_id, body)


class IncubationGateway(RestEntityGateway):
    """Incubations support the ``finalize`` action."""

    async def perform(self, action: str, entity_id: str, payload: RequestBase) -> Optional[BaseModel]:
        if action != "finalize":
            return await super().perform(action, entity_id, payload)
        return await self._finalize(entity_id, payload)

    async def _finalize(self, entity_id: str, payload: FinalizeIncubationRequest) -> BaseModel:
        try:
            body = await self.client.put(
                self._path(entity_id, "finalizar"),
                data=mappers.incubation_finalize_to_backend(payload),
            )
        except FarmNotFoundError as e:
            raise EntityNotFoundError(self.kind, entity_id) from e

        logger.info(
            "Incubation finalized",
            extra_fields={
                "entity_id": entity_id,
                "hatched": payload.hatched_quantity,
                "losses": payload.losses,
            },
        )
        return await self._settle(entity_id, body)


_GATEWAY_CLASSES = {
    EntityKind.SALE: SaleGateway,
    EntityKind.INCUBATION: IncubationGateway,
}


@register_gateway_factory("rest")
def build_rest_gateways(
    settings: FarmSettings,
    client: Optional[FarmApiClient] = None,
) -> Dict[EntityKind, RestEntityGateway]:
    """Build one REST gateway per entity kind sharing a single HTTP client.

    Args:
        settings: Backend URL, credential, timeout and endpoint paths
        client: Existing client to share (default: a new one from settings)
    """
    if client is None:
        client = FarmApiClient(FarmApiConfig(
            base_url=settings.api_url,
            api_key=settings.api_key,
            timeout_seconds=settings.timeout_seconds,
        ))

    return {
        kind: _GATEWAY_CLASSES.get(kind, RestEntityGateway)(
            kind, client, settings.endpoint_for(kind)
        )
        for kind in EntityKind
    }
