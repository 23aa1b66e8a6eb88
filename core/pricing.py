"""
Pricing resolution for configurator selections.

Pure lookup over a CatalogSnapshot - no I/O. Unknown items resolve to a
price of 0 instead of raising, so a quote can always be built; an unpriced
item simply shows up as a free line.

Equipment selections arrive either as catalog UUIDs or as display labels
("Name (description)"), optionally with a trailing quantity marker
("Griddle (×3)"). parse_equipment_selection normalizes both forms once.
"""

import re
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from core.models import CatalogSnapshot, Equipment, ItemType, TruckSize, TruckType

_UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
_QUANTITY_SUFFIX = re.compile(r"^(?P<label>.*?)\s*\(×\s*(?P<quantity>\d+)\)\s*$")

ZERO = Decimal("0")


@dataclass(frozen=True)
class EquipmentSelection:
    """One equipment entry of a lead, normalized."""

    raw: str
    label: str
    item_id: UUID | None
    quantity: int


@dataclass(frozen=True)
class ResolvedItem:
    """A catalog item with its display name and unit price."""

    item_id: UUID | None
    name: str
    unit_price: Decimal


@dataclass(frozen=True)
class ResolvedEquipment:
    """An equipment selection resolved against the catalog."""

    selection: EquipmentSelection
    item_id: UUID | None
    name: str
    unit_price: Decimal

    @property
    def quantity(self) -> int:
        return self.selection.quantity

    @property
    def line_total(self) -> Decimal:
        """Contribution to the quote subtotal."""
        return self.unit_price * self.quantity


def is_uuid(value: str) -> bool:
    """Whether value is a canonical 8-4-4-4-12 UUID string."""
    return bool(_UUID_PATTERN.match(value.strip()))


def parse_equipment_selection(raw: str) -> EquipmentSelection:
    """
    Split a stored equipment entry into label, catalog id and quantity.

    "Griddle (×3)" -> label "Griddle", quantity 3. No marker means quantity 1.
    A zero quantity marker is treated as 1.
    """
    text = raw.strip()
    quantity = 1

    match = _QUANTITY_SUFFIX.match(text)
    if match:
        text = match.group("label").strip()
        quantity = max(int(match.group("quantity")), 1)

    item_id = UUID(text) if is_uuid(text) else None
    return EquipmentSelection(raw=raw, label=text, item_id=item_id, quantity=quantity)


class PricingResolver:
    """Maps truck type / size / equipment selections to configured sale prices."""

    def __init__(self, snapshot: CatalogSnapshot):
        self.snapshot = snapshot
        self._prices: dict[tuple[ItemType, UUID], Decimal] = {
            (entry.item_type, entry.item_id): entry.sale_price
            for entry in snapshot.pricing
            if entry.is_active
        }
        self._equipment_by_id: dict[UUID, Equipment] = {e.id: e for e in snapshot.equipment}

    def price_for(self, item_type: ItemType, item_id: UUID | None) -> Decimal:
        """Sale price of an item, 0 when unpriced or unknown."""
        if item_id is None:
            return ZERO
        return self._prices.get((item_type, item_id), ZERO)

    def resolve_truck_type(self, selection: str | None) -> TruckType | None:
        """Find a truck type by id, name or localized name."""
        if not selection:
            return None

        for truck_type in self.snapshot.truck_types:
            if selection in (str(truck_type.id), truck_type.name, truck_type.name_he):
                return truck_type

        return None

    def resolve_truck_size(self, name: str | None, truck_type_id: UUID | None = None) -> ResolvedItem | None:
        """
        Find a truck size by name.

        Prefers a size belonging to truck_type_id; falls back to the first
        size with that name under any type.
        """
        if not name:
            return None

        candidates = [s for s in self.snapshot.truck_sizes if s.name == name]
        if not candidates:
            return None

        size: TruckSize = candidates[0]
        if truck_type_id is not None:
            scoped = [s for s in candidates if s.truck_type_id == truck_type_id]
            if scoped:
                size = scoped[0]

        return ResolvedItem(
            item_id=size.id,
            name=size.display_name,
            unit_price=self.price_for(ItemType.TRUCK_SIZE, size.id),
        )

    def _match_equipment_label(self, label: str) -> Equipment | None:
        """Catalog item whose name starts the label; longest name wins."""
        prefixed = [e for e in self.snapshot.equipment if e.name and label.startswith(e.name)]
        if prefixed:
            return max(prefixed, key=lambda e: len(e.name))

        for item in self.snapshot.equipment:
            if item.name == label:
                return item

        return None

    def resolve_equipment(self, raw: str) -> ResolvedEquipment:
        """Resolve one stored equipment entry. Never raises for unknown items."""
        selection = parse_equipment_selection(raw)

        if selection.item_id is not None:
            item = self._equipment_by_id.get(selection.item_id)
            return ResolvedEquipment(
                selection=selection,
                item_id=selection.item_id,
                name=item.display_name if item else selection.label,
                unit_price=self.price_for(ItemType.EQUIPMENT, selection.item_id),
            )

        item = self._match_equipment_label(selection.label)
        if item is None:
            return ResolvedEquipment(
                selection=selection, item_id=None, name=selection.label, unit_price=ZERO
            )

        # A bare catalog name gets the description appended; a longer label
        # already carries it.
        name = item.display_name if item.name == selection.label else selection.label
        return ResolvedEquipment(
            selection=selection,
            item_id=item.id,
            name=name,
            unit_price=self.price_for(ItemType.EQUIPMENT, item.id),
        )
