"""Tests for quote breakdown, invoicing line layout and VAT totals."""

from decimal import Decimal
from uuid import uuid4

import pytest

from core.models import CatalogSnapshot, Equipment, ItemType, Lead, PricingEntry, TruckSize, TruckType
from core.pricing import PricingResolver
from core.quote import (
    DEFAULT_TRUCK_LABEL,
    PACKAGE_HEADER,
    build_document_request,
    build_income_lines,
    build_quote_breakdown,
    total_with_vat,
    total_without_vat,
)
from utils.timezone import now_utc

VAT = Decimal("0.18")


@pytest.fixture
def catalog():
    truck_type = TruckType(id=uuid4(), name="Trailer", name_he="נגרר")
    size = TruckSize(id=uuid4(), name="Vesuvia 40", truck_type_id=truck_type.id)
    griddle = Equipment(id=uuid4(), name="Griddle")
    sink = Equipment(id=uuid4(), name="Sink", description="Double")
    return CatalogSnapshot(
        truck_types=[truck_type],
        truck_sizes=[size],
        equipment=[griddle, sink],
        pricing=[
            PricingEntry(item_type=ItemType.TRUCK_SIZE, item_id=size.id, sale_price=Decimal("50000")),
            PricingEntry(item_type=ItemType.EQUIPMENT, item_id=griddle.id, sale_price=Decimal("1500")),
            PricingEntry(item_type=ItemType.EQUIPMENT, item_id=sink.id, sale_price=Decimal("800")),
        ],
    )


def _lead(**fields) -> Lead:
    now = now_utc()
    data = {
        "id": uuid4(),
        "full_name": "Dana Levi",
        "phone": "050-1234567",
        "created_at": now,
        "updated_at": now,
    }
    data.update(fields)
    return Lead(**data)


class TestBreakdown:

    def test_reference_example(self, catalog):
        lead = _lead(
            selected_truck_type="Trailer",
            selected_truck_size="Vesuvia 40",
            selected_equipment=["Griddle (×2)"],
        )

        breakdown = build_quote_breakdown(lead, PricingResolver(catalog))

        assert breakdown.subtotal == Decimal("53000")
        assert total_with_vat(breakdown.subtotal, VAT) == Decimal("62540")

    def test_truck_type_uses_localized_name(self, catalog):
        lead = _lead(selected_truck_type="Trailer")
        assert build_quote_breakdown(lead, PricingResolver(catalog)).truck_type_name == "נגרר"

    def test_unknown_truck_type_keeps_selection_text(self, catalog):
        lead = _lead(selected_truck_type="Custom bus")
        assert build_quote_breakdown(lead, PricingResolver(catalog)).truck_type_name == "Custom bus"

    def test_no_truck_type_uses_default_label(self, catalog):
        breakdown = build_quote_breakdown(_lead(), PricingResolver(catalog))
        assert breakdown.truck_type_name == DEFAULT_TRUCK_LABEL
        assert breakdown.subtotal == Decimal("0")


class TestIncomeLines:

    @pytest.fixture
    def breakdown(self, catalog):
        lead = _lead(
            selected_truck_type="Trailer",
            selected_truck_size="Vesuvia 40",
            selected_equipment=["Griddle (×2)", "Sink", "Unknown thing"],
        )
        return build_quote_breakdown(lead, PricingResolver(catalog))

    def test_lines_sum_to_subtotal(self, breakdown):
        lines = build_income_lines(breakdown)
        assert sum(line.price * line.quantity for line in lines) == breakdown.subtotal
        assert breakdown.subtotal == Decimal("53800")

    def test_three_part_layout(self, breakdown):
        lines = build_income_lines(breakdown)

        assert lines[0].description == "נגרר"
        assert lines[0].price == breakdown.subtotal
        assert lines[1].description == PACKAGE_HEADER
        assert [line.description for line in lines[2:]] == [
            "Vesuvia 40",
            "Griddle (×2)",
            "Sink (Double)",
            "Unknown thing",
        ]
        assert all(line.price == 0 for line in lines[1:])

    def test_payload_shape(self, breakdown):
        payload = build_income_lines(breakdown)[0].to_payload()
        assert payload == {
            "description": "נגרר",
            "quantity": 1,
            "price": 53800.0,
            "vatType": 1,
        }


class TestDocumentRequest:

    def test_email_only_when_sending(self):
        lead = _lead(email="dana@example.com", id_number="123456782", notes="Wants it by May")

        silent = build_document_request(lead, [], send_email=False, document_type=10)
        emailed = build_document_request(lead, [], send_email=True, document_type=10)

        assert "emails" not in silent["client"]
        assert emailed["client"]["emails"] == ["dana@example.com"]
        assert silent["client"]["taxId"] == "123456782"
        assert silent["remarks"] == "Wants it by May"
        assert silent["type"] == 10
        assert silent["currency"] == "ILS"
        assert silent["client"]["add"] is False


class TestVat:

    def test_rounds_half_up_to_whole_units(self):
        assert total_with_vat(Decimal("125"), VAT) == Decimal("148")  # 147.5
        assert total_with_vat(Decimal("0"), VAT) == Decimal("0")

    def test_without_vat_inverts(self):
        assert total_without_vat(Decimal("62540"), VAT) == Decimal("53000")
