"""
Lead service - the Lead Store.

Leads are created incomplete by the public contact form, then updated in
place by the configurator continuation flow, admin edits and the
quote/notification operations. The pipeline never deletes leads.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient
from core.event_bus import EventBus
from core.events import LeadCompleted, LeadCreated
from core.exceptions import LeadNotFoundError
from core.models import Lead, LeadCreate, LeadStatus, LeadUpdate, NotificationStage, stage_types
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_UPDATABLE_COLUMNS = {
    "full_name", "email", "phone", "id_number", "notes",
    "selected_truck_type", "selected_truck_size", "selected_equipment",
    "is_complete", "status",
}


class LeadService:
    """Service for lead persistence."""

    def __init__(self, postgres: PostgresClient, event_bus: EventBus | None = None):
        self.postgres = postgres
        self.event_bus = event_bus

    def create(self, data: LeadCreate) -> Lead:
        """
        Create an incomplete lead from a contact-form submission.

        Args:
            data: Validated submission (name/phone trimmed, consent given)

        Returns:
            Created lead in NEW status
        """
        lead_id = uuid4()
        now = now_utc()

        row = self.postgres.execute_returning(
            """
            INSERT INTO leads (
                id, full_name, phone, email, notes,
                status, is_complete, privacy_accepted, privacy_accepted_at,
                selected_equipment, created_at, updated_at
            ) VALUES (
                %s, %s, %s, %s, %s,
                %s, %s, %s, %s,
                %s, %s, %s
            )
            RETURNING *
            """,
            (
                lead_id, data.full_name, data.phone, data.email, data.notes,
                LeadStatus.NEW.value, False, True, now,
                [], now, now
            )
        )[0]

        lead = Lead.model_validate(row)
        logger.info(f"Lead {lead.id} created")

        if self.event_bus is not None:
            self.event_bus.publish(LeadCreated.create(lead))

        return lead

    def get_by_id(self, lead_id: UUID) -> Lead | None:
        """
        Get lead by ID.

        Returns:
            Lead if found, None otherwise.
        """
        row = self.postgres.execute_single(
            "SELECT * FROM leads WHERE id = %s",
            (lead_id,)
        )

        if row is None:
            return None

        return Lead.model_validate(row)

    def require(self, lead_id: UUID) -> Lead:
        """Get lead by ID or raise LeadNotFoundError."""
        lead = self.get_by_id(lead_id)
        if lead is None:
            raise LeadNotFoundError(lead_id)
        return lead

    def _update_columns(self, lead_id: UUID, values: dict[str, Any]) -> Lead:
        """Single-row UPDATE of the given columns, returning the new state."""
        set_parts = []
        params = []
        for column, value in values.items():
            set_parts.append(f"{column} = %s")
            params.append(value)

        set_parts.append("updated_at = %s")
        params.append(now_utc())
        params.append(lead_id)

        rows = self.postgres.execute_returning(
            f"""
            UPDATE leads
            SET {', '.join(set_parts)}
            WHERE id = %s
            RETURNING *
            """,
            tuple(params)
        )
        if not rows:
            raise LeadNotFoundError(lead_id)

        return Lead.model_validate(rows[0])

    def update(self, lead_id: UUID, data: LeadUpdate) -> Lead:
        """
        Update lead fields from the configurator or an admin edit.

        Publishes LeadCompleted when is_complete flips from false to true.

        Raises:
            LeadNotFoundError: If lead not found
        """
        current = self.require(lead_id)

        updates = data.model_dump(exclude_unset=True)
        for field in updates:
            if field not in _UPDATABLE_COLUMNS:
                logger.warning(f"Attempted to update unknown field '{field}' on lead {lead_id}")

        valid_updates = {k: v for k, v in updates.items() if k in _UPDATABLE_COLUMNS}
        if "status" in valid_updates and valid_updates["status"] is not None:
            valid_updates["status"] = LeadStatus(valid_updates["status"]).value
        if "selected_equipment" in valid_updates and valid_updates["selected_equipment"] is None:
            valid_updates["selected_equipment"] = []

        if not valid_updates:
            return current

        updated = self._update_columns(lead_id, valid_updates)

        if updated.is_complete and not current.is_complete and self.event_bus is not None:
            logger.info(f"Lead {lead_id} completed the configurator")
            self.event_bus.publish(LeadCompleted.create(lead=updated))

        return updated

    def record_quote(
        self,
        lead_id: UUID,
        quote_id: str,
        quote_number: str,
        quote_url: str,
        quote_total: Decimal,
        sent: bool,
    ) -> Lead:
        """
        Store a freshly created quote on the lead, replacing any previous one.

        Marks the lead complete and clears a previous validation error. Only
        stamps quote_sent_at / status=quoted when the quote was emailed.
        """
        now = now_utc()
        values: dict[str, Any] = {
            "quote_id": quote_id,
            "quote_number": quote_number,
            "quote_url": quote_url,
            "quote_total": quote_total,
            "quote_created_at": now,
            "quote_validation_error": None,
            "is_complete": True,
        }
        if sent:
            values["quote_sent_at"] = now
            values["status"] = LeadStatus.QUOTED.value

        return self._update_columns(lead_id, values)

    def set_quote_validation_error(self, lead_id: UUID, message: str) -> Lead:
        """Persist a human-readable reason the invoicing provider refused the quote."""
        return self._update_columns(lead_id, {"quote_validation_error": message})

    def mark_quote_sent(self, lead_id: UUID, sent_at: datetime | None = None) -> Lead:
        """Record a successful quote email to the customer."""
        return self._update_columns(lead_id, {
            "quote_sent_at": sent_at or now_utc(),
            "status": LeadStatus.QUOTED.value,
        })

    def mark_notification_sent(self, lead_id: UUID) -> Lead:
        """Stamp lead_notification_sent_at."""
        return self._update_columns(lead_id, {"lead_notification_sent_at": now_utc()})

    def mark_contacted(self, lead_id: UUID, note: str) -> Lead:
        """
        Advance NEW -> CONTACTED and append a line to the notes.

        Existing notes are kept; the new line is appended after a blank line.
        """
        rows = self.postgres.execute_returning(
            """
            UPDATE leads
            SET status = CASE WHEN status = %s THEN %s ELSE status END,
                notes = CASE
                    WHEN notes IS NULL OR notes = '' THEN %s
                    ELSE notes || E'\\n\\n' || %s
                END,
                updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (
                LeadStatus.NEW.value, LeadStatus.CONTACTED.value,
                note, note,
                now_utc(), lead_id
            )
        )
        if not rows:
            raise LeadNotFoundError(lead_id)

        return Lead.model_validate(rows[0])

    def list_partial_due(
        self,
        notice_cutoff: datetime,
        reminder_cutoff: datetime,
        limit: int = 500,
    ) -> list[Lead]:
        """
        List incomplete leads that are due a partial-lead email.

        A lead is due when it was created before notice_cutoff and has no
        SENT reminder, and either has no SENT first notice or was created
        before reminder_cutoff. Leads that already got both emails, or that
        wait for the reminder, are left out so they never fill the batch.

        Returns:
            Leads ordered by creation time ASC
        """
        rows = self.postgres.execute(
            """
            SELECT l.* FROM leads l
            WHERE l.is_complete = false
              AND l.created_at < %(notice_cutoff)s
              AND NOT EXISTS (
                  SELECT 1 FROM email_logs e
                  WHERE e.lead_id = l.id AND e.status = 'sent'
                    AND e.type = ANY(%(reminder_types)s::text[])
              )
              AND (
                  l.created_at < %(reminder_cutoff)s
                  OR NOT EXISTS (
                      SELECT 1 FROM email_logs e
                      WHERE e.lead_id = l.id AND e.status = 'sent'
                        AND e.type = ANY(%(first_types)s::text[])
                  )
              )
            ORDER BY l.created_at ASC
            LIMIT %(limit)s
            """,
            {
                "notice_cutoff": notice_cutoff,
                "reminder_cutoff": reminder_cutoff,
                "first_types": sorted(t.value for t in stage_types(NotificationStage.PARTIAL_FIRST)),
                "reminder_types": sorted(t.value for t in stage_types(NotificationStage.PARTIAL_REMINDER)),
                "limit": limit,
            }
        )

        return [Lead.model_validate(row) for row in rows]
