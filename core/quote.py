"""
Quote breakdown and invoicing line-item layout.

The invoicing document always uses the same three-part layout:

1. one line named after the truck type carrying the whole subtotal,
2. a zero-price "Package contents:" header,
3. one zero-price descriptive line per size / equipment item.

The document therefore shows a single taxable amount, and the priced lines
always sum to the subtotal.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any
from uuid import UUID

from core.models import Lead
from core.pricing import PricingResolver, ResolvedEquipment, ResolvedItem

DEFAULT_TRUCK_LABEL = "Food truck"
PACKAGE_HEADER = "Package contents:"

# Provider vatType for lines and documents whose prices exclude VAT
VAT_TYPE_EXCLUDED = 1


@dataclass(frozen=True)
class IncomeLine:
    """One line of the invoicing document."""

    description: str
    price: Decimal
    quantity: int = 1
    vat_type: int = VAT_TYPE_EXCLUDED

    def to_payload(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "quantity": self.quantity,
            "price": float(self.price),
            "vatType": self.vat_type,
        }


@dataclass
class QuoteBreakdown:
    """Priced view of a lead's configurator selections."""

    truck_type_name: str
    truck_type_id: UUID | None = None
    size: ResolvedItem | None = None
    equipment: list[ResolvedEquipment] = field(default_factory=list)

    @property
    def size_price(self) -> Decimal:
        return self.size.unit_price if self.size else Decimal("0")

    @property
    def subtotal(self) -> Decimal:
        """Size price plus every equipment unit price times its quantity."""
        return self.size_price + sum((e.line_total for e in self.equipment), Decimal("0"))


def build_quote_breakdown(lead: Lead, resolver: PricingResolver) -> QuoteBreakdown:
    """Resolve a lead's truck type, size and equipment against the catalog."""
    truck_type = resolver.resolve_truck_type(lead.selected_truck_type)
    truck_type_id = truck_type.id if truck_type else None

    if truck_type:
        truck_type_name = truck_type.display_name
    else:
        truck_type_name = lead.selected_truck_type or DEFAULT_TRUCK_LABEL

    return QuoteBreakdown(
        truck_type_name=truck_type_name,
        truck_type_id=truck_type_id,
        size=resolver.resolve_truck_size(lead.selected_truck_size, truck_type_id),
        equipment=[resolver.resolve_equipment(raw) for raw in lead.selected_equipment],
    )


def _equipment_description(item: ResolvedEquipment) -> str:
    if item.quantity > 1:
        return f"{item.name} (×{item.quantity})"
    return item.name


def build_income_lines(breakdown: QuoteBreakdown) -> list[IncomeLine]:
    """Invoicing lines for a breakdown. Prices sum to exactly the subtotal."""
    lines = [
        IncomeLine(description=breakdown.truck_type_name, price=breakdown.subtotal),
        IncomeLine(description=PACKAGE_HEADER, price=Decimal("0")),
    ]

    if breakdown.size is not None:
        lines.append(IncomeLine(description=breakdown.size.name, price=Decimal("0")))

    for item in breakdown.equipment:
        lines.append(IncomeLine(description=_equipment_description(item), price=Decimal("0")))

    return lines


def total_with_vat(subtotal: Decimal, vat_rate: Decimal) -> Decimal:
    """Subtotal plus VAT, rounded half-up to whole currency units."""
    return (subtotal * (Decimal("1") + vat_rate)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def total_without_vat(total: Decimal, vat_rate: Decimal) -> Decimal:
    """Inverse of total_with_vat, for display of stored VAT-inclusive totals."""
    return (total / (Decimal("1") + vat_rate)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def build_document_request(
    lead: Lead,
    lines: list[IncomeLine],
    send_email: bool,
    document_type: int,
    currency: str = "ILS",
    language: str = "he",
) -> dict[str, Any]:
    """
    Price quote document body for the invoicing API.

    The client email is only included when the quote should be emailed.
    """
    client: dict[str, Any] = {"name": lead.full_name, "add": False}
    if lead.phone:
        client["phone"] = lead.phone
    if lead.id_number:
        client["taxId"] = lead.id_number
    if lead.email and send_email:
        client["emails"] = [lead.email]

    document: dict[str, Any] = {
        "type": document_type,
        "lang": language,
        "currency": currency,
        "vatType": VAT_TYPE_EXCLUDED,
        "client": client,
        "income": [line.to_payload() for line in lines],
    }
    if lead.notes:
        document["remarks"] = lead.notes

    return document
