"""Database-backed tests for EmailLogService. Need TEST_DATABASE_URL."""

import pytest

from core.models import AlreadySent, EmailLogCreate, EmailStatus, EmailType, Inserted, LeadCreate
from core.services.email_log_service import EmailLogService
from core.services.lead_service import LeadService


@pytest.fixture
def lead(clean_db):
    return LeadService(clean_db).create(LeadCreate(
        full_name="Dana Levi", phone="050-1234567", email="dana@example.com", privacy_accepted=True,
    ))


@pytest.fixture
def logs(clean_db):
    return EmailLogService(clean_db)


def _entry(lead, key, attempt=1):
    return EmailLogCreate(
        lead_id=lead.id,
        type=EmailType.COMPLETION_LINK,
        to_email="dana@example.com",
        subject="Complete your selections",
        idempotency_key=key,
        attempt=attempt,
        metadata={"link": "https://configurator.example?continue=x"},
    )


class TestReservation:

    def test_second_reservation_of_live_key_is_rejected(self, lead, logs):
        key = EmailType.COMPLETION_LINK.idempotency_key(lead.id)

        first = logs.reserve(_entry(lead, key))
        second = logs.reserve(_entry(lead, key))

        assert isinstance(first, Inserted)
        assert first.log.status == EmailStatus.QUEUED
        assert second == AlreadySent(idempotency_key=key)

    def test_failed_row_does_not_block_key(self, lead, logs):
        key = EmailType.COMPLETION_LINK.idempotency_key(lead.id)
        first = logs.reserve(_entry(lead, key))
        logs.mark_failed(first.log.id, "HTTP 500")

        again = logs.reserve(_entry(lead, key))

        assert isinstance(again, Inserted)

    def test_live_queued_row_blocks_key(self, lead, logs):
        key = EmailType.COMPLETION_LINK.idempotency_key(lead.id)
        logs.reserve(_entry(lead, key))

        assert logs.expire_stale(key) == 0
        assert isinstance(logs.reserve(_entry(lead, key)), AlreadySent)

    def test_abandoned_queued_row_is_expired(self, lead, logs, clean_db):
        key = EmailType.COMPLETION_LINK.idempotency_key(lead.id)
        abandoned = logs.reserve(_entry(lead, key))
        clean_db.execute(
            "UPDATE email_logs SET updated_at = now() - interval '1 hour' WHERE id = %s",
            (abandoned.log.id,)
        )

        again = logs.reserve(_entry(lead, key))

        assert isinstance(again, Inserted)
        rows = {row.id: row for row in logs.list_for_lead(lead.id)}
        assert rows[abandoned.log.id].status == EmailStatus.FAILED
        assert rows[abandoned.log.id].error_message.startswith("Abandoned")
        assert rows[again.log.id].status == EmailStatus.QUEUED

    def test_error_message_is_truncated(self, lead, logs):
        key = EmailType.COMPLETION_LINK.idempotency_key(lead.id)
        reserved = logs.reserve(_entry(lead, key))

        failed = logs.mark_failed(reserved.log.id, "x" * 2000)

        assert len(failed.error_message) == 500


class TestAttempts:

    def test_next_attempt_without_history_uses_plain_key(self, lead, logs):
        key = EmailType.COMPLETION_LINK.idempotency_key(lead.id)
        assert logs.next_attempt(key) == (1, key)

    def test_next_attempt_counts_retry_rows(self, lead, logs):
        key = EmailType.COMPLETION_LINK.idempotency_key(lead.id)
        sent = logs.reserve(_entry(lead, key))
        logs.mark_sent(sent.log.id, "msg-1")
        logs.reserve(_entry(lead, f"{key}:retry_2", attempt=2))

        assert logs.next_attempt(key) == (3, f"{key}:retry_3")
        assert logs.has_sent(key)
        assert not logs.has_sent(f"{key}:retry_2")

    def test_sent_types_for_leads(self, lead, logs):
        key = EmailType.COMPLETION_LINK.idempotency_key(lead.id)
        sent = logs.reserve(_entry(lead, key))
        logs.mark_sent(sent.log.id, "msg-1")

        assert logs.sent_types_for_leads([lead.id]) == {lead.id: {EmailType.COMPLETION_LINK}}
