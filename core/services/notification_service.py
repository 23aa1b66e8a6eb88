"""
Notification service - the Notifier.

Every email goes through _deliver(), which implements the idempotency
protocol:

    key = "<type>:<lead_id>"
    - without override_retry, a SENT row for key means "already done"
    - with override_retry, the attempt number is max(prior attempts) + 1 and
      the row is written under "<key>:retry_<attempt>"
    - a QUEUED row is reserved before the provider call and moved to SENT or
      FAILED as soon as the call returns
    - a live QUEUED row under the key means another attempt is in flight:
      nothing is sent and the result is not counted as sent. QUEUED rows
      left behind by a crashed attempt expire (see EmailLogService.reserve)

Recipient groups (business list 1, business list 2, the customer) are
independent attempts; one failing never blocks the others.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable
from uuid import UUID

from clients.email_client import EmailDeliveryClient, EmailDeliveryError
from core import email_templates
from core.config import PipelineConfig
from core.email_templates import LeadSummary, QuoteSummary, RenderedEmail
from core.exceptions import (
    PreconditionFailedError,
    UpstreamError,
    UpstreamRejected,
    UpstreamTimeout,
)
from core.models import (
    AlreadySent,
    EmailLogCreate,
    EmailType,
    Lead,
    NotificationRequest,
    NotificationStage,
    Recipient,
)
from core.quote import total_without_vat
from core.services.email_log_service import EmailLogService
from core.services.lead_service import LeadService
from core.services.settings_service import EmailSettings, SettingsService
from utils.timezone import format_local, now_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one send attempt to one recipient group."""

    email_type: EmailType
    sent: bool
    skipped: bool = False
    attempt: int | None = None
    log_id: UUID | None = None
    error: str | None = None
    failure: EmailDeliveryError | None = field(default=None, compare=False, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.email_type.value,
            "sent": self.sent,
            "skipped": self.skipped,
            "attempt": self.attempt,
            "error": self.error,
        }


@dataclass(frozen=True)
class NotificationResult:
    """Outcome of a lead notification round."""

    stage: NotificationStage
    results: list[DeliveryResult] = field(default_factory=list)

    @property
    def sent_count(self) -> int:
        return sum(1 for r in self.results if r.sent)

    @property
    def delivered_count(self) -> int:
        """Emails actually handed to the provider in this round."""
        return sum(1 for r in self.results if r.sent and not r.skipped)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.sent and not r.skipped)

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "sentCount": self.sent_count,
            "results": [r.to_dict() for r in self.results],
        }


def upstream_error(failure: EmailDeliveryError) -> UpstreamError:
    """Typed pipeline error for an email provider failure."""
    if failure.timed_out:
        return UpstreamTimeout(str(failure))
    if failure.status_code is not None:
        return UpstreamRejected(str(failure))
    return UpstreamError(str(failure))


def _has_address(email: str | None) -> bool:
    return bool(email) and "@" in email


class NotificationService:
    """Sends lead notifications, quote emails and completion links."""

    def __init__(
        self,
        leads: LeadService,
        email_logs: EmailLogService,
        settings: SettingsService,
        email_client: EmailDeliveryClient,
        config: PipelineConfig | None = None,
    ):
        self.leads = leads
        self.email_logs = email_logs
        self.settings = settings
        self.email_client = email_client
        self.config = config or PipelineConfig()

        self._retry_handlers: dict[EmailType, Callable[[UUID], Any]] = {
            EmailType.QUOTE_TO_CLIENT: self._follow_up_retry_handler(self.send_quote_to_client),
            EmailType.COMPLETION_LINK: self._follow_up_retry_handler(self.send_completion_link),
        }
        for email_type in EmailType:
            if email_type.notification_stage is not None:
                self._retry_handlers[email_type] = self._notification_retry_handler(email_type)

    # -------------------------------------------------------------------------
    # Delivery primitive
    # -------------------------------------------------------------------------

    def _deliver(
        self,
        lead_id: UUID,
        email_type: EmailType,
        sender: str,
        to: list[str],
        email: RenderedEmail,
        override_retry: bool = False,
        metadata: dict[str, Any] | None = None,
    ) -> DeliveryResult:
        """Send one email under the idempotency protocol."""
        base_key = email_type.idempotency_key(lead_id)

        if override_retry:
            attempt, key = self.email_logs.next_attempt(base_key)
        else:
            if self.email_logs.has_sent(base_key):
                logger.info(f"Skipped {email_type.value} for lead {lead_id} (already sent)")
                return DeliveryResult(email_type=email_type, sent=True, skipped=True)
            attempt, key = 1, base_key

        reservation = self.email_logs.reserve(EmailLogCreate(
            lead_id=lead_id,
            type=email_type,
            to_email=", ".join(to),
            subject=email.subject,
            idempotency_key=key,
            attempt=attempt,
            metadata=metadata,
        ))
        if isinstance(reservation, AlreadySent):
            if self.email_logs.has_sent(key):
                return DeliveryResult(email_type=email_type, sent=True, skipped=True)
            logger.warning(f"Skipped {email_type.value} for lead {lead_id} (another attempt in flight)")
            return DeliveryResult(
                email_type=email_type,
                sent=False,
                skipped=True,
                error="Another send attempt is in flight",
            )

        log = reservation.log
        try:
            message_id = self.email_client.send(sender, to, email.subject, email.html)
        except EmailDeliveryError as e:
            self.email_logs.mark_failed(log.id, str(e))
            logger.error(f"Failed to send {email_type.value} for lead {lead_id} (attempt {attempt}): {e}")
            return DeliveryResult(
                email_type=email_type,
                sent=False,
                attempt=attempt,
                log_id=log.id,
                error=str(e)[:self.config.error_message_max_length],
                failure=e,
            )
        except Exception as e:
            self.email_logs.mark_failed(log.id, f"Unexpected error: {e}")
            raise

        self.email_logs.mark_sent(log.id, message_id)
        logger.info(f"Sent {email_type.value} for lead {lead_id} (attempt {attempt}, id={message_id})")
        return DeliveryResult(email_type=email_type, sent=True, attempt=attempt, log_id=log.id)

    # -------------------------------------------------------------------------
    # Lead notifications
    # -------------------------------------------------------------------------

    @staticmethod
    def _summary(request: NotificationRequest, lead: Lead) -> LeadSummary:
        """Request values win over stored lead values."""
        equipment = request.selected_equipment
        if equipment is None:
            equipment = lead.selected_equipment

        return LeadSummary(
            full_name=request.full_name or lead.full_name,
            phone=request.phone or lead.phone or "",
            email=request.email or lead.email or "",
            notes=request.notes or lead.notes or "",
            selected_truck_type=request.selected_truck_type or lead.selected_truck_type or "",
            selected_truck_size=request.selected_truck_size or lead.selected_truck_size or "",
            selected_equipment=list(equipment),
        )

    def _render(
        self,
        stage: NotificationStage,
        summary: LeadSummary,
        lead: Lead,
        settings: EmailSettings,
    ) -> tuple[RenderedEmail, RenderedEmail, dict[str, Any]]:
        """Business email, client email and log metadata for a stage."""
        if stage == NotificationStage.COMPLETE:
            quote = None
            if lead.has_quote:
                quote = QuoteSummary(
                    quote_number=lead.quote_number,
                    quote_total=lead.quote_total,
                    quote_url=lead.quote_url,
                )
            return (
                email_templates.complete_business(summary, quote),
                email_templates.client_confirmation(summary),
                {"stage": stage.value, "included_quote": quote is not None},
            )

        link = email_templates.continue_url(settings.site_url, lead.id)
        if stage == NotificationStage.PARTIAL_REMINDER:
            return (
                email_templates.reminder_business(summary),
                email_templates.reminder_client(summary, link),
                {"stage": stage.value, "is_partial": True, "is_reminder": True},
            )

        return (
            email_templates.partial_business(summary),
            email_templates.partial_client(summary, link),
            {"stage": stage.value, "is_partial": True},
        )

    def send_lead_notification(
        self,
        request: NotificationRequest,
        override_retry: bool = False,
        only: Recipient | None = None,
    ) -> NotificationResult:
        """
        Notify the business lists and the customer about a lead.

        Args:
            request: Lead id, optional contact/selection overrides and stage flags
            override_retry: Send again even if already sent, under a retry key
            only: Restrict the round to one recipient group

        Returns:
            NotificationResult with one DeliveryResult per attempted recipient group

        Raises:
            LeadNotFoundError: If lead not found
        """
        lead = self.leads.require(request.lead_id)
        settings = self.settings.get_email_settings()
        stage = request.stage
        summary = self._summary(request, lead)

        business_email, client_email, metadata = self._render(stage, summary, lead, settings)

        targets: list[tuple[Recipient, str, list[str], RenderedEmail]] = []
        if settings.notification_emails:
            targets.append((Recipient.BUSINESS_1, settings.business_sender,
                            settings.notification_emails, business_email))
        if settings.customer_notification_emails:
            targets.append((Recipient.BUSINESS_2, settings.secondary_sender,
                            settings.customer_notification_emails, business_email))
        if _has_address(summary.email):
            targets.append((Recipient.CLIENT, settings.secondary_sender,
                            [summary.email], client_email))

        result = NotificationResult(stage=stage)
        for recipient, sender, to, email in targets:
            if only is not None and recipient != only:
                continue
            result.results.append(self._deliver(
                lead.id,
                EmailType.for_notification(recipient, stage),
                sender,
                to,
                email,
                override_retry=override_retry,
                metadata=metadata,
            ))

        if any(r.sent and not r.skipped for r in result.results):
            self.leads.mark_notification_sent(lead.id)

        logger.info(
            f"Lead {lead.id} {stage.value} notification: "
            f"{result.sent_count} sent, {result.failed_count} failed"
        )
        return result

    # -------------------------------------------------------------------------
    # Customer follow-ups
    # -------------------------------------------------------------------------

    def send_quote_to_client(self, lead_id: UUID, override_retry: bool = False) -> DeliveryResult:
        """
        Email the lead's existing quote to the customer.

        Sets quote_sent_at and status=quoted on success.

        Raises:
            LeadNotFoundError: If lead not found
            PreconditionFailedError: If the lead has no quote or no email
            UpstreamError: If the email provider fails
        """
        lead = self.leads.require(lead_id)
        if not lead.quote_id or not lead.quote_url:
            raise PreconditionFailedError("No quote exists for this lead. Create a quote first.")
        if not _has_address(lead.email):
            raise PreconditionFailedError("Lead has no email address")

        settings = self.settings.get_email_settings()
        total_incl_vat = lead.quote_total or 0
        email = email_templates.quote_to_client(
            full_name=lead.full_name,
            company_name=settings.company_name,
            quote_number=lead.quote_number or lead.quote_id,
            quote_url=lead.quote_url,
            total_excl_vat=total_without_vat(total_incl_vat, self.config.vat_rate),
            total_incl_vat=total_incl_vat,
        )

        result = self._deliver(
            lead.id,
            EmailType.QUOTE_TO_CLIENT,
            settings.client_sender,
            [lead.email],
            email,
            override_retry=override_retry,
            metadata={"quote_id": lead.quote_id, "quote_number": lead.quote_number},
        )
        if result.failure is not None:
            raise upstream_error(result.failure)

        if not result.skipped:
            self.leads.mark_quote_sent(lead.id)

        return result

    def send_completion_link(self, lead_id: UUID, override_retry: bool = False) -> DeliveryResult:
        """
        Email the customer a link back into the configurator.

        On success advances NEW -> CONTACTED and appends a timestamped note.

        Raises:
            LeadNotFoundError: If lead not found
            PreconditionFailedError: If the lead has no email
            UpstreamError: If the email provider fails
        """
        lead = self.leads.require(lead_id)
        if not _has_address(lead.email):
            raise PreconditionFailedError("Lead has no email address")

        settings = self.settings.get_email_settings()
        link = email_templates.continue_url(settings.site_url, lead.id)
        email = email_templates.completion_link(lead.full_name, settings.company_name, link)

        result = self._deliver(
            lead.id,
            EmailType.COMPLETION_LINK,
            settings.client_sender,
            [lead.email],
            email,
            override_retry=override_retry,
            metadata={"link": link},
        )
        if result.failure is not None:
            raise upstream_error(result.failure)

        if not result.skipped:
            stamp = format_local(now_utc(), self.config.display_timezone)
            self.leads.mark_contacted(lead.id, f"[{stamp}] Completion link sent to {lead.email}")

        return result

    # -------------------------------------------------------------------------
    # Manual retry
    # -------------------------------------------------------------------------

    @staticmethod
    def _follow_up_retry_handler(
        send: Callable[..., DeliveryResult],
    ) -> Callable[[UUID], DeliveryResult]:
        def retry_follow_up(lead_id: UUID) -> DeliveryResult:
            return send(lead_id, override_retry=True)

        return retry_follow_up

    def _notification_retry_handler(self, email_type: EmailType) -> Callable[[UUID], NotificationResult]:
        stage = email_type.notification_stage
        recipient = email_type.notification_recipient

        def retry_notification(lead_id: UUID) -> NotificationResult:
            request = NotificationRequest(
                lead_id=lead_id,
                is_partial=stage != NotificationStage.COMPLETE,
                is_reminder=stage == NotificationStage.PARTIAL_REMINDER,
            )
            return self.send_lead_notification(request, override_retry=True, only=recipient)

        return retry_notification

    def retry(self, lead_id: UUID, email_type: EmailType) -> NotificationResult | DeliveryResult:
        """
        Re-send one email type for a lead, always as an override retry.

        Returns:
            NotificationResult for lead notification types, DeliveryResult otherwise
        """
        handler = self._retry_handlers.get(email_type)
        if handler is None:
            raise ValueError(f"No retry handler for email type {email_type.value}")

        logger.info(f"Retrying {email_type.value} for lead {lead_id}")
        return handler(lead_id)
