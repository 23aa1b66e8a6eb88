"""
Handlers for LeadCompleted events.

When a lead finishes the configurator, a price quote is created without
emailing the customer, then the business lists get the complete-lead
notification. Subscribe the quote handler first so the notification can
include the new quote. Both are best-effort: the lead update has already
committed and a failure here only shows up in the logs and email log.
"""

import logging
from typing import Callable

from core.events import LeadCompleted
from core.exceptions import PipelineError
from core.models import NotificationRequest

logger = logging.getLogger(__name__)


def handle_lead_completed_quote(quote_service) -> Callable:
    """
    Factory that returns a LeadCompleted handler creating the quote.

    Args:
        quote_service: QuoteService instance

    Returns:
        Handler callable that processes LeadCompleted events
    """

    def handler(event: LeadCompleted):
        lead = event.lead
        try:
            result = quote_service.create_quote(lead.id, send_email=False)
        except PipelineError as e:
            logger.warning(f"Automatic quote for lead {lead.id} failed ({e.code}): {e}")
            return

        logger.info(f"Automatic quote {result.quote_number} created for lead {lead.id}")

    return handler


def handle_lead_completed_notification(notification_service) -> Callable:
    """
    Factory that returns a LeadCompleted handler sending the notification.

    Args:
        notification_service: NotificationService instance

    Returns:
        Handler callable that processes LeadCompleted events
    """

    def handler(event: LeadCompleted):
        lead = event.lead
        try:
            notification_service.send_lead_notification(NotificationRequest(lead_id=lead.id))
        except PipelineError as e:
            logger.warning(f"Completion notification for lead {lead.id} failed ({e.code}): {e}")

    return handler


def register_lead_completion_handlers(event_bus, quote_service, notification_service) -> None:
    """Subscribe both handlers in the required order."""
    event_bus.subscribe("LeadCompleted", handle_lead_completed_quote(quote_service))
    event_bus.subscribe("LeadCompleted", handle_lead_completed_notification(notification_service))
