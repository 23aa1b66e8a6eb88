"""Email log domain models.

One row per send attempt. Rows are inserted as QUEUED before the provider
call and moved to SENT or FAILED once it returns; they are never edited
after that. A manual retry writes a new row under a suffixed key.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class EmailStatus(str, Enum):
    """Delivery status of one attempt."""

    QUEUED = "queued"
    SENT = "sent"
    FAILED = "failed"


class NotificationStage(str, Enum):
    """Which lead notification round an email belongs to."""

    COMPLETE = "complete"
    PARTIAL_FIRST = "partial_first"
    PARTIAL_REMINDER = "partial_reminder"


class Recipient(str, Enum):
    """Recipient group of a lead notification."""

    BUSINESS_1 = "business_1"
    BUSINESS_2 = "business_2"
    CLIENT = "client"


class EmailType(str, Enum):
    """Logical email kind. Doubles as the idempotency key prefix."""

    LEAD_NOTIFICATION_BUSINESS_1 = "lead_notification_business_1"
    LEAD_NOTIFICATION_BUSINESS_2 = "lead_notification_business_2"
    LEAD_CONFIRMATION_CLIENT = "lead_confirmation_client"

    LEAD_NOTIFICATION_BUSINESS_1_PARTIAL = "lead_notification_business_1_partial"
    LEAD_NOTIFICATION_BUSINESS_2_PARTIAL = "lead_notification_business_2_partial"
    LEAD_CONFIRMATION_CLIENT_PARTIAL = "lead_confirmation_client_partial"

    LEAD_NOTIFICATION_BUSINESS_1_REMINDER = "lead_notification_business_1_reminder"
    LEAD_NOTIFICATION_BUSINESS_2_REMINDER = "lead_notification_business_2_reminder"
    LEAD_CONFIRMATION_CLIENT_REMINDER = "lead_confirmation_client_reminder"

    QUOTE_TO_CLIENT = "quote_to_client"
    COMPLETION_LINK = "completion_link"

    @classmethod
    def for_notification(cls, recipient: Recipient, stage: NotificationStage) -> "EmailType":
        """Email type for one recipient group of one notification round."""
        return _NOTIFICATION_TYPES[(recipient, stage)]

    @property
    def notification_stage(self) -> NotificationStage | None:
        """Notification round of a lead notification type, None for other types."""
        for (_, stage), email_type in _NOTIFICATION_TYPES.items():
            if email_type is self:
                return stage
        return None

    @property
    def notification_recipient(self) -> Recipient | None:
        for (recipient, _), email_type in _NOTIFICATION_TYPES.items():
            if email_type is self:
                return recipient
        return None

    def idempotency_key(self, lead_id: UUID) -> str:
        """Deterministic key for this email to this lead."""
        return f"{self.value}:{lead_id}"


_NOTIFICATION_TYPES: dict[tuple[Recipient, NotificationStage], EmailType] = {
    (Recipient.BUSINESS_1, NotificationStage.COMPLETE): EmailType.LEAD_NOTIFICATION_BUSINESS_1,
    (Recipient.BUSINESS_2, NotificationStage.COMPLETE): EmailType.LEAD_NOTIFICATION_BUSINESS_2,
    (Recipient.CLIENT, NotificationStage.COMPLETE): EmailType.LEAD_CONFIRMATION_CLIENT,
    (Recipient.BUSINESS_1, NotificationStage.PARTIAL_FIRST): EmailType.LEAD_NOTIFICATION_BUSINESS_1_PARTIAL,
    (Recipient.BUSINESS_2, NotificationStage.PARTIAL_FIRST): EmailType.LEAD_NOTIFICATION_BUSINESS_2_PARTIAL,
    (Recipient.CLIENT, NotificationStage.PARTIAL_FIRST): EmailType.LEAD_CONFIRMATION_CLIENT_PARTIAL,
    (Recipient.BUSINESS_1, NotificationStage.PARTIAL_REMINDER): EmailType.LEAD_NOTIFICATION_BUSINESS_1_REMINDER,
    (Recipient.BUSINESS_2, NotificationStage.PARTIAL_REMINDER): EmailType.LEAD_NOTIFICATION_BUSINESS_2_REMINDER,
    (Recipient.CLIENT, NotificationStage.PARTIAL_REMINDER): EmailType.LEAD_CONFIRMATION_CLIENT_REMINDER,
}


def stage_types(stage: NotificationStage) -> set[EmailType]:
    """All email types that belong to a notification round."""
    return {t for (_, s), t in _NOTIFICATION_TYPES.items() if s == stage}


class EmailLogCreate(BaseModel):
    """Data for a new QUEUED log row."""

    lead_id: UUID
    type: EmailType
    to_email: str = Field(..., max_length=2000)
    subject: str = Field(..., max_length=500)
    idempotency_key: str = Field(..., max_length=255)
    attempt: int = Field(1, ge=1)
    provider: str = "resend"
    metadata: dict[str, Any] | None = None


class EmailLog(BaseModel):
    """Full email log entity as stored."""

    id: UUID
    lead_id: UUID
    type: EmailType
    to_email: str
    subject: str
    status: EmailStatus
    attempt: int
    idempotency_key: str
    provider: str
    provider_message_id: str | None = None
    error_message: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


# Reservation outcomes


@dataclass(frozen=True)
class Inserted:
    """A QUEUED row was written; the caller owns this send."""

    log: EmailLog


@dataclass(frozen=True)
class AlreadySent:
    """A non-failed row already holds the key; the caller must not send."""

    idempotency_key: str


Reservation = Inserted | AlreadySent
