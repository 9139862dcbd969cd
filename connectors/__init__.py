"""Gateways - pluggable access to the farm system of record.

This package contains the abstract gateway interface and concrete
implementations, one gateway instance per entity kind:

- farm_backend/: REST backend (aiohttp)
- in_memory.py: process-local dicts (tests, offline use)

Key Design Principle:
- The sync layer depends ONLY on the EntityGateway interface
- All methods return NORMALIZED models (Batch, Sale, ...)
- No backend field names leak through the interface

To add a new backend:
1. Create a new module or folder
2. Implement EntityGateway for each kind
3. Register a factory using the @register_gateway_factory decorator
"""

from connectors.gateway_base import (
    # Core interface
    EntityGateway,

    # Errors
    GatewayError,
    TransportError,
    EntityNotFoundError,
    UnsupportedOperationError,
    CommittedWriteError,

    # Factory functions
    create_gateways,
    register_gateway_factory,
    list_available_backends,
)
from connectors.in_memory import InMemoryGateway, build_in_memory_gateways
from connectors.farm_backend import build_rest_gateways

__all__ = [
    # Core interface
    "EntityGateway",

    # Errors
    "GatewayError",
    "TransportError",
    "EntityNotFoundError",
    "UnsupportedOperationError",
    "CommittedWriteError",

    # Implementations
    "InMemoryGateway",
    "build_in_memory_gateways",
    "build_rest_gateways",

    # Factory
    "create_gateways",
    "register_gateway_factory",
    "list_available_backends",
]
