"""Farm backend REST connector.

Usage:
    from connectors.farm_backend import build_rest_gateways
    gateways = build_rest_gateways(settings)
"""

from connectors.farm_backend.client import (
    FarmApiClient,
    FarmApiConfig,
    FarmApiError,
    FarmAuthenticationError,
    FarmNotFoundError,
    FarmRateLimitError,
    FarmValidationError,
    RetryConfig,
)
from connectors.farm_backend.gateway import (
    BACKEND_MAPPINGS,
    IncubationGateway,
    RestEntityGateway,
    SaleGateway,
    build_rest_gateways,
)

__all__ = [
    # Client
    "FarmApiClient",
    "FarmApiConfig",
    "RetryConfig",

    # Errors
    "FarmApiError",
    "FarmAuthenticationError",
    "FarmNotFoundError",
    "FarmRateLimitError",
    "FarmValidationError",

    # Gateways
    "BACKEND_MAPPINGS",
    "RestEntityGateway",
    "SaleGateway",
    "IncubationGateway",
    "build_rest_gateways",
]
