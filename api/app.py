"""Application wiring: services from Vault secrets, routes and handlers."""

import logging
from datetime import timedelta

from fastapi import FastAPI

from api.errors import register_error_handlers
from api.functions import create_functions_router
from api.middleware import RequestIDMiddleware
from clients.email_client import EmailDeliveryClient
from clients.invoicing_client import InvoicingClient
from clients.postgres_client import PostgresClient
from clients.vault_client import get_database_url, get_email_config, get_invoicing_config
from core.config import PipelineConfig
from core.event_bus import EventBus
from core.handlers.lead_completion_handler import register_lead_completion_handlers
from core.services.catalog_service import CatalogService
from core.services.email_log_service import EmailLogService
from core.services.lead_service import LeadService
from core.services.notification_service import NotificationService
from core.services.quote_service import QuoteService
from core.services.settings_service import SettingsService
from core.services.sweep_service import PartialLeadSweeper

logger = logging.getLogger(__name__)


def build_services(
    postgres: PostgresClient,
    invoicing: InvoicingClient,
    email_client: EmailDeliveryClient,
    config: PipelineConfig | None = None,
) -> dict:
    """
    Construct every service and subscribe the lead completion handlers.

    Returns:
        Services dict as consumed by create_functions_router
    """
    config = config or PipelineConfig()
    event_bus = EventBus()

    lead_svc = LeadService(postgres, event_bus)
    email_log_svc = EmailLogService(
        postgres,
        error_max_length=config.error_message_max_length,
        stale_queued_after=timedelta(seconds=config.queued_stale_after_seconds),
    )
    settings_svc = SettingsService(postgres, default_site_url=config.default_site_url)
    catalog_svc = CatalogService(postgres)

    quote_svc = QuoteService(lead_svc, catalog_svc, invoicing, config)
    notification_svc = NotificationService(lead_svc, email_log_svc, settings_svc, email_client, config)
    sweeper = PartialLeadSweeper(lead_svc, email_log_svc, notification_svc, config)

    register_lead_completion_handlers(event_bus, quote_svc, notification_svc)

    return {
        "event_bus": event_bus,
        "lead": lead_svc,
        "email_log": email_log_svc,
        "settings": settings_svc,
        "catalog": catalog_svc,
        "quote": quote_svc,
        "notification": notification_svc,
        "sweeper": sweeper,
    }


def create_app(services: dict | None = None, config: PipelineConfig | None = None) -> FastAPI:
    """
    Build the FastAPI app.

    Without services, real clients are created from Vault secrets.
    """
    config = config or PipelineConfig()

    if services is None:
        invoicing_creds = get_invoicing_config()
        services = build_services(
            PostgresClient(get_database_url()),
            InvoicingClient(
                api_key_id=invoicing_creds["api_key_id"],
                api_key_secret=invoicing_creds["api_key_secret"],
                api_url=config.invoicing_api_url,
                timeout=config.http_timeout_seconds,
            ),
            EmailDeliveryClient(
                api_key=get_email_config()["api_key"],
                api_url=config.email_api_url,
                timeout=config.http_timeout_seconds,
            ),
            config,
        )
        logger.info("Pipeline services initialized")

    app = FastAPI(title="Food Truck Lead Pipeline")
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)
    app.include_router(create_functions_router(services), prefix="/functions")

    return app
