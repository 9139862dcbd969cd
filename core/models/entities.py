"""Farm entity models - client-side copies of remote-owned records.

These models represent the records held by the farm backend (the system of
record). The client only ever holds cached copies; identity (``id``) is
assigned by the backend and never changes afterwards.

Backend wire formats (Portuguese column names, joined tables, notes markers)
are translated in /connectors/farm_backend/mappers.py, not here.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


# =============================================================================
# Value Parsers
# =============================================================================

def _parse_decimal(value):
    """Parse decimal from numbers or strings ("12,5" and "12.5" both accepted)."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return None
        return Decimal(s.replace(",", "."))
    return value


def _parse_date(value):
    """Parse date from ISO strings, datetimes (time part dropped) or dates."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return None
        # Backend timestamps look like 2025-03-01T00:00:00.000Z
        return date.fromisoformat(s[:10])
    return value


DecimalValue = Annotated[Decimal, BeforeValidator(_parse_decimal)]
DateValue = Annotated[date, BeforeValidator(_parse_date)]


# =============================================================================
# Enums
# =============================================================================

class EntityKind(str, Enum):
    """Entity kinds managed by the sync layer.

    The value is also the cache key prefix for the kind.
    """
    GROUP = "groups"
    CAGE = "cages"
    BATCH = "batches"
    FEED_RECORD = "feed"
    INCUBATION = "incubation"
    SALE = "sales"


class GroupClassification(str, Enum):
    """Fixed group categories of the aviary."""
    PRODUCERS = "Produtoras"
    MALES = "Machos"
    BREEDERS = "Reprodutoras"
    GROWTH = "Crescimento"


class CageStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


class BatchStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SOLD = "sold"


class BatchPhase(str, Enum):
    """Life phase of a batch."""
    CARICOTO = "caricoto"
    CRESCIMENTO = "crescimento"
    POSTURA = "postura"
    MACHOS = "machos"
    REPRODUTORAS = "reprodutoras"


class IncubationStatus(str, Enum):
    INCUBATING = "incubating"
    HATCHED = "hatched"
    FAILED = "failed"
    COMPLETED = "completed"


class SaleStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CHECK = "check"
    TRANSFER = "transfer"
    PAYMENT_APP = "payment_app"
    OTHER = "other"


# =============================================================================
# Base Model
# =============================================================================

class FarmBase(BaseModel):
    """Base model for all farm entities.

    Fields are snake_case in Python; camelCase names are accepted on input so
    records coming from the web client format validate unchanged.
    """
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


# =============================================================================
# Entities
# =============================================================================

class Group(FarmBase):
    """A group (shed) of animals sharing a classification."""
    id: str
    name: str
    classification: Optional[GroupClassification] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Cage(FarmBase):
    """A cage belonging to a group."""
    id: str
    group_id: str
    name: str
    capacity: int = Field(default=0, ge=0)
    current_quantity: int = Field(default=0, ge=0)
    status: CageStatus = CageStatus.ACTIVE


class Batch(FarmBase):
    """A batch (lote) of animals housed in a cage."""
    id: str
    cage_id: Optional[str] = None
    name: str = ""
    species: str = "Codornas Japonesas"
    quantity: int = Field(default=0, ge=0)
    birth_date: Optional[DateValue] = None
    status: BatchStatus = BatchStatus.ACTIVE
    phase: Optional[BatchPhase] = None
    notes: Optional[str] = None
    males: int = 0
    females: int = 0


class FeedRecord(FarmBase):
    """Feed consumption attributed to a batch or to a whole group."""
    id: str
    batch_id: Optional[str] = None
    group_id: Optional[str] = None
    feed_type: str
    quantity: DecimalValue = Field(..., description="Quantity in kg")
    date: DateValue
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one_owner(self) -> "FeedRecord":
        if (self.batch_id is None) == (self.group_id is None):
            raise ValueError("feed record must belong to exactly one of batch_id or group_id")
        return self


class IncubationFinalization(FarmBase):
    """Outcome recorded when an incubation reaches its terminal state."""
    actual_hatch_date: DateValue
    hatched_quantity: int = Field(..., ge=0)
    losses: int = Field(default=0, ge=0)
    growth_box_id: Optional[str] = None
    notes: Optional[str] = None


class Incubation(FarmBase):
    """An incubation run (eggs in the incubator)."""
    id: str
    start_date: DateValue
    status: IncubationStatus = IncubationStatus.INCUBATING
    egg_quantity: int = Field(default=0, ge=0)
    expected_hatch_date: Optional[DateValue] = None
    batch_number: Optional[str] = None
    notes: Optional[str] = None
    finalization: Optional[IncubationFinalization] = None


class Sale(FarmBase):
    """A sale, optionally attributed to a group."""
    id: str
    group_id: Optional[str] = None
    batch_id: Optional[str] = None
    quantity: int = Field(default=0, ge=0)
    date: DateValue
    unit_price: DecimalValue = Decimal("0")
    total_price: DecimalValue = Decimal("0")
    buyer: Optional[str] = None
    product_type: str = "Unknown"
    payment_method: Optional[PaymentMethod] = None
    status: SaleStatus = SaleStatus.PENDING
    notes: Optional[str] = None


ENTITY_MODELS = {
    EntityKind.GROUP: Group,
    EntityKind.CAGE: Cage,
    EntityKind.BATCH: Batch,
    EntityKind.FEED_RECORD: FeedRecord,
    EntityKind.INCUBATION: Incubation,
    EntityKind.SALE: Sale,
}


# Parent relations: kind -> {parent kind: field on the child holding the parent id}
PARENT_FIELDS = {
    EntityKind.CAGE: {EntityKind.GROUP: "group_id"},
    EntityKind.BATCH: {EntityKind.CAGE: "cage_id"},
    EntityKind.FEED_RECORD: {EntityKind.BATCH: "batch_id", EntityKind.GROUP: "group_id"},
    EntityKind.SALE: {EntityKind.GROUP: "group_id"},
}
