"""
Partial-lead sweeper.

Runs on an external schedule. Each run rebuilds all state from the lead and
email log tables, so runs are independent and can overlap safely:

    FRESH                  age < notice delay          nothing
    AWAITING_FIRST_NOTICE  no partial_first sent       first notice
    AWAITING_REMINDER      first sent, age >= 24h,     reminder
                           no partial_reminder sent
    DONE                   both sent                   nothing

Only leads due an email are selected: completed leads, DONE leads and
leads waiting for their reminder stay out of the batch. A lead gets at
most two notifications no matter how often the sweep runs.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from core.config import PipelineConfig
from core.models import EmailType, Lead, NotificationRequest, NotificationStage, stage_types
from core.services.email_log_service import EmailLogService
from core.services.lead_service import LeadService
from core.services.notification_service import NotificationService
from utils.timezone import now_utc, to_utc

logger = logging.getLogger(__name__)


class SweepState(str, Enum):
    FRESH = "fresh"
    AWAITING_FIRST_NOTICE = "awaiting_first_notice"
    AWAITING_REMINDER = "awaiting_reminder"
    DONE = "done"


class SweepOutcome(str, Enum):
    NOTIFIED = "notified"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class SweepResult:
    """Counts for one sweep run."""

    checked: int = 0
    notified: int = 0
    failed: int = 0
    skipped: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "checked": self.checked,
            "notified": self.notified,
            "failed": self.failed,
            "skipped": self.skipped,
        }


def sent_stages(sent_types: set[EmailType]) -> set[NotificationStage]:
    """Stages with at least one SENT email of that stage."""
    return {
        stage
        for stage in (NotificationStage.PARTIAL_FIRST, NotificationStage.PARTIAL_REMINDER)
        if sent_types & stage_types(stage)
    }


class PartialLeadSweeper:
    """Sends the first notice and the reminder for leads that never completed."""

    def __init__(
        self,
        leads: LeadService,
        email_logs: EmailLogService,
        notifier: NotificationService,
        config: PipelineConfig | None = None,
    ):
        self.leads = leads
        self.email_logs = email_logs
        self.notifier = notifier
        self.config = config or PipelineConfig()

    @property
    def notice_delay(self) -> timedelta:
        return timedelta(minutes=self.config.partial_notice_delay_minutes)

    @property
    def reminder_delay(self) -> timedelta:
        return timedelta(hours=self.config.partial_reminder_delay_hours)

    def classify(self, lead: Lead, stages_sent: set[NotificationStage], now: datetime) -> SweepState:
        """State of one partial lead at time now."""
        if lead.is_complete:
            return SweepState.DONE

        age = now - to_utc(lead.created_at)
        if age < self.notice_delay:
            return SweepState.FRESH

        if NotificationStage.PARTIAL_FIRST not in stages_sent:
            return SweepState.AWAITING_FIRST_NOTICE

        if NotificationStage.PARTIAL_REMINDER in stages_sent:
            return SweepState.DONE

        if age >= self.reminder_delay:
            return SweepState.AWAITING_REMINDER

        return SweepState.FRESH

    def _notify(self, lead: Lead, state: SweepState) -> SweepOutcome:
        """Trigger the notifier and reduce its per-recipient results to one outcome."""
        request = NotificationRequest(
            lead_id=lead.id,
            full_name=lead.full_name,
            email=lead.email,
            phone=lead.phone,
            notes=lead.notes,
            is_partial=True,
            is_reminder=state == SweepState.AWAITING_REMINDER,
        )
        result = self.notifier.send_lead_notification(request)

        if result.failed_count:
            return SweepOutcome.FAILED
        if result.delivered_count:
            return SweepOutcome.NOTIFIED
        # No recipients configured, or every send already held by another attempt
        return SweepOutcome.SKIPPED

    def run(self, now: datetime | None = None) -> SweepResult:
        """
        Run one sweep.

        Only leads due a first notice or a reminder are selected, so leads
        that are finished or waiting never crowd newer ones out of the batch.
        Per-lead failures are logged and counted; they never abort the batch.

        Returns:
            SweepResult with checked / notified / failed / skipped counts
        """
        now = now or now_utc()
        result = SweepResult()

        leads = self.leads.list_partial_due(
            notice_cutoff=now - self.notice_delay,
            reminder_cutoff=now - self.reminder_delay,
            limit=self.config.sweep_batch_limit,
        )
        if not leads:
            logger.info("No partial leads due for notification")
            return result

        sent_by_lead = self.email_logs.sent_types_for_leads([lead.id for lead in leads])

        for lead in leads:
            result.checked += 1
            try:
                state = self.classify(lead, sent_stages(sent_by_lead.get(lead.id, set())), now)
                if state in (SweepState.FRESH, SweepState.DONE):
                    result.skipped += 1
                    continue

                outcome = self._notify(lead, state)
            except Exception:
                logger.exception(f"Partial lead sweep failed for lead {lead.id}")
                result.failed += 1
                continue

            if outcome == SweepOutcome.NOTIFIED:
                result.notified += 1
            elif outcome == SweepOutcome.FAILED:
                result.failed += 1
            else:
                result.skipped += 1

        logger.info(
            f"Partial lead sweep: {result.checked} checked, {result.notified} notified, "
            f"{result.failed} failed, {result.skipped} skipped"
        )
        return result
