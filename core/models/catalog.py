"""Catalog and pricing domain models.

Written by the admin pricing screens; read-only for the pipeline.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class ItemType(str, Enum):
    """What a pricing entry prices."""

    TRUCK_TYPE = "truck_type"
    TRUCK_SIZE = "truck_size"
    EQUIPMENT = "equipment"


class TruckType(BaseModel):
    """Food truck body type."""

    id: UUID
    name: str
    name_he: str | None = None

    model_config = {"from_attributes": True}

    @property
    def display_name(self) -> str:
        """Customer-facing (localized) name."""
        return self.name_he or self.name


class TruckSize(BaseModel):
    """Size option of a truck type."""

    id: UUID
    name: str
    dimensions: str | None = None
    truck_type_id: UUID | None = None

    model_config = {"from_attributes": True}

    @property
    def display_name(self) -> str:
        if self.dimensions:
            return f"{self.name} - {self.dimensions}"
        return self.name


class Equipment(BaseModel):
    """Equipment catalog item."""

    id: UUID
    name: str
    description: str | None = None

    model_config = {"from_attributes": True}

    @property
    def display_name(self) -> str:
        if self.description:
            return f"{self.name} ({self.description})"
        return self.name


class PricingEntry(BaseModel):
    """Configured price of one catalog item."""

    item_type: ItemType
    item_id: UUID
    cost_price: Decimal | None = None
    sale_price: Decimal = Field(default=Decimal("0"), ge=0)
    currency: str = "ILS"
    is_active: bool = True

    model_config = {"from_attributes": True}


@dataclass
class CatalogSnapshot:
    """Everything the pricing resolver needs, loaded once per operation."""

    truck_types: list[TruckType] = field(default_factory=list)
    truck_sizes: list[TruckSize] = field(default_factory=list)
    equipment: list[Equipment] = field(default_factory=list)
    pricing: list[PricingEntry] = field(default_factory=list)
