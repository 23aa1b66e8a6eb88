"""API test fixtures - TestClient over in-memory stores and a mocked invoicing client."""

from decimal import Decimal
from unittest.mock import Mock
from uuid import uuid4

import pytest
from starlette.testclient import TestClient

from api.app import create_app
from core.config import PipelineConfig
from core.event_bus import EventBus
from core.handlers.lead_completion_handler import register_lead_completion_handlers
from core.models import CatalogSnapshot, Equipment, ItemType, PricingEntry, TruckSize, TruckType
from core.services.notification_service import NotificationService
from core.services.quote_service import QuoteService
from core.services.sweep_service import PartialLeadSweeper


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def lead_store(lead_store, event_bus):
    """The shared in-memory store, publishing LeadCompleted on the app's bus."""
    lead_store.event_bus = event_bus
    return lead_store


@pytest.fixture
def catalog():
    truck_type = TruckType(id=uuid4(), name="Trailer", name_he="נגרר")
    size = TruckSize(id=uuid4(), name="Vesuvia 40", truck_type_id=truck_type.id)
    griddle = Equipment(id=uuid4(), name="Griddle")
    catalog = Mock()
    catalog.load_snapshot.return_value = CatalogSnapshot(
        truck_types=[truck_type],
        truck_sizes=[size],
        equipment=[griddle],
        pricing=[
            PricingEntry(item_type=ItemType.TRUCK_SIZE, item_id=size.id, sale_price=Decimal("50000")),
            PricingEntry(item_type=ItemType.EQUIPMENT, item_id=griddle.id, sale_price=Decimal("1500")),
        ],
    )
    return catalog


@pytest.fixture
def invoicing():
    invoicing = Mock()
    invoicing.authenticate.return_value = "token-1"
    invoicing.create_document.return_value = {
        "id": "doc-1", "number": "50001", "url": "https://docs.example/doc-1",
    }
    return invoicing


# =============================================================================
# SERVICES DICT
# =============================================================================


@pytest.fixture
def services(event_bus, lead_store, log_store, settings_service, email_client, catalog, invoicing):
    config = PipelineConfig()
    quote_svc = QuoteService(lead_store, catalog, invoicing, config)
    notification_svc = NotificationService(lead_store, log_store, settings_service, email_client, config)
    register_lead_completion_handlers(event_bus, quote_svc, notification_svc)

    return {
        "event_bus": event_bus,
        "lead": lead_store,
        "email_log": log_store,
        "quote": quote_svc,
        "notification": notification_svc,
        "sweeper": PartialLeadSweeper(lead_store, log_store, notification_svc, config),
    }


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(services):
    return create_app(services=services)


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)
