"""Per-operation request structs.

Every write goes through one of these models before reaching a gateway, so a
malformed payload fails with ``pydantic.ValidationError`` at the boundary and
never reaches the backend. Create requests list their required fields; update
requests make every field optional and only the fields the caller actually set
are sent (see ``changes()``).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from core.models.entities import (
    BatchPhase,
    BatchStatus,
    CageStatus,
    DateValue,
    DecimalValue,
    GroupClassification,
    IncubationStatus,
    PaymentMethod,
    SaleStatus,
)


class RequestBase(BaseModel):
    """Base for write payloads. Unknown fields are rejected."""
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, extra="forbid")

    def changes(self) -> Dict[str, Any]:
        """Fields explicitly set by the caller (python names, enums as values)."""
        return self.model_dump(mode="json", exclude_unset=True)


# =============================================================================
# Group
# =============================================================================

class CreateGroupRequest(RequestBase):
    name: str = Field(..., min_length=1)
    classification: GroupClassification
    description: Optional[str] = None


class UpdateGroupRequest(RequestBase):
    name: Optional[str] = Field(default=None, min_length=1)
    classification: Optional[GroupClassification] = None
    description: Optional[str] = None


# =============================================================================
# Cage
# =============================================================================

class CreateCageRequest(RequestBase):
    name: str = Field(..., min_length=1)
    group_id: str = Field(..., min_length=1)
    capacity: int = Field(..., ge=0)
    status: CageStatus = CageStatus.ACTIVE


class UpdateCageRequest(RequestBase):
    name: Optional[str] = Field(default=None, min_length=1)
    group_id: Optional[str] = None
    capacity: Optional[int] = Field(default=None, ge=0)
    current_quantity: Optional[int] = Field(default=None, ge=0)
    status: Optional[CageStatus] = None


# =============================================================================
# Batch
# =============================================================================

class CreateBatchRequest(RequestBase):
    name: str = Field(..., min_length=1)
    species: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=0)
    cage_id: Optional[str] = None
    birth_date: Optional[DateValue] = None
    phase: Optional[BatchPhase] = None
    notes: Optional[str] = None
    males: int = Field(default=0, ge=0)
    females: int = Field(default=0, ge=0)


class UpdateBatchRequest(RequestBase):
    name: Optional[str] = Field(default=None, min_length=1)
    species: Optional[str] = None
    quantity: Optional[int] = Field(default=None, ge=0)
    cage_id: Optional[str] = None
    birth_date: Optional[DateValue] = None
    status: Optional[BatchStatus] = None
    phase: Optional[BatchPhase] = None
    notes: Optional[str] = None
    males: Optional[int] = Field(default=None, ge=0)
    females: Optional[int] = Field(default=None, ge=0)


# =============================================================================
# Feed
# =============================================================================

class CreateFeedRecordRequest(RequestBase):
    """Feed consumption entry. Exactly one of batch_id / group_id."""
    batch_id: Optional[str] = None
    group_id: Optional[str] = None
    feed_type: str = Field(..., min_length=1)
    quantity: DecimalValue = Field(..., gt=Decimal("0"))
    date: DateValue
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one_owner(self) -> "CreateFeedRecordRequest":
        if (self.batch_id is None) == (self.group_id is None):
            raise ValueError("exactly one of batch_id or group_id must be set")
        return self


class UpdateFeedRecordRequest(RequestBase):
    feed_type: Optional[str] = Field(default=None, min_length=1)
    quantity: Optional[DecimalValue] = Field(default=None, gt=Decimal("0"))
    date: Optional[DateValue] = None
    notes: Optional[str] = None


# =============================================================================
# Incubation
# =============================================================================

class CreateIncubationRequest(RequestBase):
    batch_number: str = Field(..., min_length=1)
    egg_quantity: int = Field(..., gt=0)
    start_date: DateValue
    expected_hatch_date: DateValue
    species: str = "Codornas Japonesas"
    notes: Optional[str] = None


class UpdateIncubationRequest(RequestBase):
    status: Optional[IncubationStatus] = None
    notes: Optional[str] = None
    expected_hatch_date: Optional[DateValue] = None


class FinalizeIncubationRequest(RequestBase):
    """Terminal transition of an incubation; hatched chicks move to a growth box."""
    actual_hatch_date: DateValue
    hatched_quantity: int = Field(..., ge=0)
    egg_quantity: int = Field(..., ge=0)
    growth_box_id: str = Field(..., min_length=1)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _hatched_within_eggs(self) -> "FinalizeIncubationRequest":
        if self.hatched_quantity > self.egg_quantity:
            raise ValueError("hatched_quantity cannot exceed egg_quantity")
        return self

    @property
    def losses(self) -> int:
        return self.egg_quantity - self.hatched_quantity


# =============================================================================
# Sale
# =============================================================================

class SaleItem(RequestBase):
    product_name: str
    quantity: int = Field(..., gt=0)
    unit_price: DecimalValue
    stock_item_id: Optional[str] = None


class CreateSaleRequest(RequestBase):
    group_id: Optional[str] = None
    date: DateValue
    quantity: int = Field(..., gt=0)
    unit_price: DecimalValue = Field(..., ge=Decimal("0"))
    product_type: str = Field(..., min_length=1)
    payment_method: PaymentMethod
    buyer: Optional[str] = None
    notes: Optional[str] = None
    items: List[SaleItem] = Field(default_factory=list)

    @property
    def total_price(self) -> Decimal:
        if self.items:
            return sum((i.unit_price * i.quantity for i in self.items), Decimal("0"))
        return self.unit_price * self.quantity


class UpdateSaleRequest(RequestBase):
    """Either a status transition or an edit of the other fields, never both."""
    status: Optional[SaleStatus] = None
    buyer: Optional[str] = None
    notes: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None

    @model_validator(mode="after")
    def _status_alone(self) -> "UpdateSaleRequest":
        if "status" in self.model_fields_set and len(self.model_fields_set) > 1:
            raise ValueError("status must be updated on its own")
        return self
