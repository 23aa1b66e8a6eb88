"""
Email log service - the Email Log Store.

Append-only record of every email send attempt. Idempotency is enforced by
the storage layer: a partial unique index on idempotency_key covers every
row that is not FAILED, and reserve() inserts with ON CONFLICT DO NOTHING.
Two concurrent senders can therefore never both own the same key.

A QUEUED row that outlives stale_queued_after belongs to an attempt that
died before recording its outcome. reserve() marks it FAILED first, so
the key is free again and the crashed attempt stays in the log.
"""

import logging
from datetime import timedelta
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient
from core.models import (
    AlreadySent, EmailLog, EmailLogCreate, EmailStatus, EmailType, Inserted, Reservation,
)
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MAX_LENGTH = 500
DEFAULT_STALE_QUEUED_AFTER = timedelta(minutes=5)
ABANDONED_ERROR = "Abandoned: no outcome recorded for this attempt"


class EmailLogService:
    """Service for email log persistence."""

    def __init__(
        self,
        postgres: PostgresClient,
        error_max_length: int = DEFAULT_ERROR_MAX_LENGTH,
        stale_queued_after: timedelta = DEFAULT_STALE_QUEUED_AFTER,
    ):
        self.postgres = postgres
        self.error_max_length = error_max_length
        self.stale_queued_after = stale_queued_after

    def has_sent(self, idempotency_key: str) -> bool:
        """Whether a SENT row exists for exactly this key."""
        count = self.postgres.execute_scalar(
            """
            SELECT COUNT(*) FROM email_logs
            WHERE idempotency_key = %s AND status = %s
            """,
            (idempotency_key, EmailStatus.SENT.value)
        )
        return bool(count)

    def next_attempt(self, base_key: str) -> tuple[int, str]:
        """
        Attempt number and key for a manual retry.

        Looks at every row whose key starts with base_key (the plain key and
        its ":retry_N" variants). With no prior rows the plain key is used as
        attempt 1; otherwise the key is suffixed with the next attempt number.

        Returns:
            (attempt, idempotency_key)
        """
        max_attempt = self.postgres.execute_scalar(
            """
            SELECT MAX(attempt) FROM email_logs
            WHERE idempotency_key = %s OR idempotency_key LIKE %s
            """,
            (base_key, f"{base_key}:retry_%")
        )

        if max_attempt is None:
            return 1, base_key

        attempt = int(max_attempt) + 1
        return attempt, f"{base_key}:retry_{attempt}"

    def expire_stale(self, idempotency_key: str) -> int:
        """Mark QUEUED rows for key older than stale_queued_after as FAILED."""
        now = now_utc()
        rows = self.postgres.execute_returning(
            """
            UPDATE email_logs
            SET status = %s, error_message = %s, updated_at = %s
            WHERE idempotency_key = %s AND status = %s AND updated_at < %s
            RETURNING id
            """,
            (
                EmailStatus.FAILED.value, ABANDONED_ERROR, now,
                idempotency_key, EmailStatus.QUEUED.value, now - self.stale_queued_after
            )
        )

        if rows:
            logger.warning(f"Expired {len(rows)} abandoned queued email(s) for {idempotency_key}")
        return len(rows)

    def reserve(self, data: EmailLogCreate) -> Reservation:
        """
        Insert a QUEUED row unless a non-failed row already holds the key.

        Abandoned QUEUED rows for the key are expired first.

        Returns:
            Inserted(log) when the caller owns the send,
            AlreadySent(key) when a SENT or live QUEUED row holds it.
        """
        self.expire_stale(data.idempotency_key)
        now = now_utc()

        rows = self.postgres.execute_returning(
            """
            INSERT INTO email_logs (
                id, lead_id, type, to_email, subject, status,
                attempt, idempotency_key, provider, metadata,
                created_at, updated_at
            ) VALUES (
                %s, %s, %s, %s, %s, %s,
                %s, %s, %s, %s,
                %s, %s
            )
            ON CONFLICT (idempotency_key) WHERE status <> 'failed' DO NOTHING
            RETURNING *
            """,
            (
                uuid4(), data.lead_id, data.type.value, data.to_email, data.subject,
                EmailStatus.QUEUED.value,
                data.attempt, data.idempotency_key, data.provider, data.metadata,
                now, now
            )
        )

        if not rows:
            logger.info(f"Email {data.idempotency_key} already sent or in flight, skipping")
            return AlreadySent(idempotency_key=data.idempotency_key)

        return Inserted(log=EmailLog.model_validate(rows[0]))

    def mark_sent(self, log_id: UUID, provider_message_id: str | None) -> EmailLog:
        """Move a QUEUED row to SENT."""
        row = self.postgres.execute_returning(
            """
            UPDATE email_logs
            SET status = %s, provider_message_id = %s, updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (EmailStatus.SENT.value, provider_message_id, now_utc(), log_id)
        )[0]

        return EmailLog.model_validate(row)

    def mark_failed(self, log_id: UUID, error_message: str) -> EmailLog:
        """Move a QUEUED row to FAILED. The error text is truncated."""
        row = self.postgres.execute_returning(
            """
            UPDATE email_logs
            SET status = %s, error_message = %s, updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (
                EmailStatus.FAILED.value,
                error_message[:self.error_max_length],
                now_utc(),
                log_id
            )
        )[0]

        return EmailLog.model_validate(row)

    def list_for_lead(self, lead_id: UUID, limit: int = 100) -> list[EmailLog]:
        """
        List email attempts for a lead.

        Returns:
            Logs ordered newest first
        """
        rows = self.postgres.execute(
            """
            SELECT * FROM email_logs
            WHERE lead_id = %s
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (lead_id, limit)
        )

        return [EmailLog.model_validate(row) for row in rows]

    def sent_types_for_leads(self, lead_ids: list[UUID]) -> dict[UUID, set[EmailType]]:
        """
        Email types with at least one SENT row, per lead, in one query.

        Leads with nothing sent map to an empty set.
        """
        result: dict[UUID, set[EmailType]] = {lead_id: set() for lead_id in lead_ids}
        if not lead_ids:
            return result

        rows = self.postgres.execute(
            """
            SELECT DISTINCT lead_id, type FROM email_logs
            WHERE lead_id = ANY(%s::uuid[]) AND status = %s
            """,
            ([str(lead_id) for lead_id in lead_ids], EmailStatus.SENT.value)
        )

        for row in rows:
            lead_id = row["lead_id"] if isinstance(row["lead_id"], UUID) else UUID(str(row["lead_id"]))
            try:
                email_type = EmailType(row["type"])
            except ValueError:
                logger.warning(f"Unknown email type '{row['type']}' in log for lead {lead_id}")
                continue
            result.setdefault(lead_id, set()).add(email_type)

        return result
