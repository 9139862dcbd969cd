"""Abstract Entity Gateway Interface.

This module defines the contract every remote-entity gateway implements, one
gateway instance per entity kind. It is intentionally backend-agnostic: no HTTP,
table names or Portuguese column names here.

Gateways:
1. Read records (all, by id, by parent id)
2. Write records (create, update, delete) exactly once per call
3. Run kind-specific actions (e.g. finalizing an incubation)
4. Translate backend records into the normalized models in core.models

Key Design Principles:
- All methods return NORMALIZED models (Batch, Cage, ...), never raw payloads
- The sync layer (cache + coordinator) depends ONLY on this interface
- Not-found on reads is a typed absence (``None``); on writes it is an error
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Type

from pydantic import BaseModel

from core.models import EntityKind, RequestBase


# =============================================================================
# Errors
# =============================================================================

class GatewayError(Exception):
    """Base exception for gateway failures."""


class TransportError(GatewayError):
    """Backend unreachable or returned a non-success response."""


class EntityNotFoundError(GatewayError):
    """The addressed record does not exist (update/delete/action of a missing id)."""

    def __init__(self, kind: EntityKind, entity_id: str, message: str = ""):
        super().__init__(message or f"{kind.value} record not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class UnsupportedOperationError(GatewayError):
    """The gateway has no implementation for the requested operation or action."""


class CommittedWriteError(GatewayError):
    """The write was acknowledged, but a follow-up request failed.

    The backend state has changed even though no record can be returned.
    The original failure is chained as ``__cause__``.
    """

    committed = True

    def __init__(self, kind: EntityKind, entity_id: Optional[str], message: str = ""):
        super().__init__(
            message or f"{kind.value} write committed but follow-up failed: {entity_id or '<new>'}"
        )
        self.kind = kind
        self.entity_id = entity_id


# =============================================================================
# Abstract Gateway Interface
# =============================================================================

class EntityGateway(ABC):
    """Request functions for one entity kind against the system of record.

    Implementations:
    - connectors/farm_backend/gateway.py (REST backend)
    - connectors/in_memory.py (process-local store)
    """

    kind: EntityKind
    model: Type[BaseModel]

    # =========================================================================
    # Reads
    # =========================================================================

    @abstractmethod
    async def get_all(self) -> List[BaseModel]:
        """List every record of this kind."""
        pass

    @abstractmethod
    async def get_by_id(self, entity_id: str) -> Optional[BaseModel]:
        """Get one record.

        Returns:
            The record, or None if no record has this id
        """
        pass

    @abstractmethod
    async def get_by_parent(self, parent_kind: EntityKind, parent_id: str) -> List[BaseModel]:
        """List records belonging to the given parent.

        Args:
            parent_kind: Kind of the parent (e.g. GROUP for feed records)
            parent_id: Parent record id
        """
        pass

    # =========================================================================
    # Writes
    # =========================================================================

    @abstractmethod
    async def create(self, payload: RequestBase) -> BaseModel:
        """Create a record and return it as stored by the backend.

        Raises:
            CommittedWriteError: Created, but the record could not be read back
        """
        pass

    @abstractmethod
    async def update(self, entity_id: str, payload: RequestBase) -> BaseModel:
        """Apply the fields set on ``payload`` and return the updated record.

        Raises:
            EntityNotFoundError: No record has this id
            CommittedWriteError: Updated, but the record could not be read back
        """
        pass

    @abstractmethod
    async def delete(self, entity_id: str) -> None:
        """Delete a record.

        Raises:
            EntityNotFoundError: No record has this id
        """
        pass

    async def perform(self, action: str, entity_id: str, payload: RequestBase) -> Optional[BaseModel]:
        """Run a kind-specific action. Gateways without actions reject every call."""
        raise UnsupportedOperationError(f"{self.kind.value} has no action '{action}'")


# =============================================================================
# Gateway Registry
# =============================================================================

_gateway_registry: Dict[str, Callable[..., Dict[EntityKind, EntityGateway]]] = {}


def register_gateway_factory(backend_type: str):
    """Decorator to register a factory building one gateway per entity kind."""
    def decorator(factory):
        _gateway_registry[backend_type] = factory
        return factory
    return decorator


def create_gateways(backend_type: str, **kwargs) -> Dict[EntityKind, EntityGateway]:
    """Build the gateway set for a backend type.

    Raises:
        ValueError: If backend_type is not registered
    """
    backend_type = backend_type.lower()

    if backend_type not in _gateway_registry:
        available = list(_gateway_registry.keys())
        raise ValueError(
            f"Unknown backend type: {backend_type}. "
            f"Available: {available}"
        )

    return _gateway_registry[backend_type](**kwargs)


def list_available_backends() -> List[str]:
    """List all registered backend types."""
    return list(_gateway_registry.keys())
