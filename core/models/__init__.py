"""Core data models - farm entities and write request structs.

Backend-specific field names never appear here; see connectors/farm_backend.
"""

from core.models.entities import (
    # Base
    FarmBase,
    DecimalValue,
    DateValue,

    # Enums
    EntityKind,
    GroupClassification,
    CageStatus,
    BatchStatus,
    BatchPhase,
    IncubationStatus,
    SaleStatus,
    PaymentMethod,

    # Entities
    Group,
    Cage,
    Batch,
    FeedRecord,
    Incubation,
    IncubationFinalization,
    Sale,
    ENTITY_MODELS,
    PARENT_FIELDS,
)

from core.models.requests import (
    RequestBase,
    CreateGroupRequest,
    UpdateGroupRequest,
    CreateCageRequest,
    UpdateCageRequest,
    CreateBatchRequest,
    UpdateBatchRequest,
    CreateFeedRecordRequest,
    UpdateFeedRecordRequest,
    CreateIncubationRequest,
    UpdateIncubationRequest,
    FinalizeIncubationRequest,
    SaleItem,
    CreateSaleRequest,
    UpdateSaleRequest,
)

__all__ = [
    # Base
    "FarmBase",
    "DecimalValue",
    "DateValue",

    # Enums
    "EntityKind",
    "GroupClassification",
    "CageStatus",
    "BatchStatus",
    "BatchPhase",
    "IncubationStatus",
    "SaleStatus",
    "PaymentMethod",

    # Entities
    "Group",
    "Cage",
    "Batch",
    "FeedRecord",
    "Incubation",
    "IncubationFinalization",
    "Sale",
    "ENTITY_MODELS",
    "PARENT_FIELDS",

    # Requests
    "RequestBase",
    "CreateGroupRequest",
    "UpdateGroupRequest",
    "CreateCageRequest",
    "UpdateCageRequest",
    "CreateBatchRequest",
    "UpdateBatchRequest",
    "CreateFeedRecordRequest",
    "UpdateFeedRecordRequest",
    "CreateIncubationRequest",
    "UpdateIncubationRequest",
    "FinalizeIncubationRequest",
    "SaleItem",
    "CreateSaleRequest",
    "UpdateSaleRequest",
]
