"""Core domain models."""

from core.models.lead import Lead, LeadCreate, LeadUpdate, LeadStatus
from core.models.email_log import (
    EmailLog, EmailLogCreate, EmailStatus, EmailType,
    NotificationStage, Recipient, stage_types,
    Inserted, AlreadySent, Reservation,
)
from core.models.notification import NotificationRequest
from core.models.catalog import (
    ItemType, TruckType, TruckSize, Equipment, PricingEntry, CatalogSnapshot,
)

__all__ = [
    # Lead
    "Lead", "LeadCreate", "LeadUpdate", "LeadStatus",
    # Email log
    "EmailLog", "EmailLogCreate", "EmailStatus", "EmailType",
    "NotificationStage", "Recipient", "stage_types",
    "Inserted", "AlreadySent", "Reservation",
    # Notification
    "NotificationRequest",
    # Catalog
    "ItemType", "TruckType", "TruckSize", "Equipment", "PricingEntry", "CatalogSnapshot",
]
