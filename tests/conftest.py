"""Shared test fixtures for the lead pipeline test suite."""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from clients.email_client import EmailDeliveryError
from core.events import LeadCompleted
from core.exceptions import LeadNotFoundError
from core.models import (
    AlreadySent, EmailLog, EmailLogCreate, EmailStatus, EmailType, Inserted,
    Lead, LeadCreate, LeadStatus, LeadUpdate, NotificationStage, stage_types,
)
from core.services.email_log_service import ABANDONED_ERROR
from core.services.settings_service import EmailSettings
from utils.timezone import now_utc


# =============================================================================
# IN-MEMORY STORES
# =============================================================================


class InMemoryLeadStore:
    """Drop-in for LeadService, keyed by lead id."""

    def __init__(self, event_bus=None, email_logs=None):
        self.leads: dict[UUID, Lead] = {}
        self.event_bus = event_bus
        self.email_logs = email_logs

    def add(self, **fields) -> Lead:
        now = now_utc()
        data = {
            "id": uuid4(),
            "full_name": "Dana Levi",
            "phone": "050-1234567",
            "email": "dana@example.com",
            "status": LeadStatus.NEW,
            "privacy_accepted": True,
            "privacy_accepted_at": now,
            "created_at": now - timedelta(hours=1),
            "updated_at": now,
        }
        data.update(fields)
        lead = Lead(**data)
        self.leads[lead.id] = lead
        return lead

    def create(self, data: LeadCreate) -> Lead:
        return self.add(**data.model_dump(), created_at=now_utc())

    def update(self, lead_id: UUID, data: LeadUpdate) -> Lead:
        current = self.require(lead_id)
        values = data.model_dump(exclude_unset=True)
        if not values:
            return current
        updated = self._set(lead_id, **values)
        if updated.is_complete and not current.is_complete and self.event_bus is not None:
            self.event_bus.publish(LeadCompleted.create(updated))
        return updated

    def get_by_id(self, lead_id: UUID) -> Lead | None:
        return self.leads.get(lead_id)

    def require(self, lead_id: UUID) -> Lead:
        lead = self.leads.get(lead_id)
        if lead is None:
            raise LeadNotFoundError(lead_id)
        return lead

    def _set(self, lead_id: UUID, **values) -> Lead:
        lead = self.require(lead_id).model_copy(update={**values, "updated_at": now_utc()})
        self.leads[lead_id] = lead
        return lead

    def record_quote(self, lead_id, quote_id, quote_number, quote_url, quote_total, sent) -> Lead:
        values = {
            "quote_id": quote_id,
            "quote_number": quote_number,
            "quote_url": quote_url,
            "quote_total": quote_total,
            "quote_created_at": now_utc(),
            "quote_validation_error": None,
            "is_complete": True,
        }
        if sent:
            values["quote_sent_at"] = now_utc()
            values["status"] = LeadStatus.QUOTED
        return self._set(lead_id, **values)

    def set_quote_validation_error(self, lead_id, message) -> Lead:
        return self._set(lead_id, quote_validation_error=message)

    def mark_quote_sent(self, lead_id, sent_at=None) -> Lead:
        return self._set(lead_id, quote_sent_at=sent_at or now_utc(), status=LeadStatus.QUOTED)

    def mark_notification_sent(self, lead_id) -> Lead:
        return self._set(lead_id, lead_notification_sent_at=now_utc())

    def mark_contacted(self, lead_id, note) -> Lead:
        lead = self.require(lead_id)
        status = LeadStatus.CONTACTED if lead.status == LeadStatus.NEW else lead.status
        notes = f"{lead.notes}\n\n{note}" if lead.notes else note
        return self._set(lead_id, status=status, notes=notes)

    def list_partial_due(self, notice_cutoff, reminder_cutoff, limit=500) -> list[Lead]:
        candidates = [l for l in self.leads.values() if not l.is_complete and l.created_at < notice_cutoff]
        sent = self.email_logs.sent_types_for_leads([l.id for l in candidates]) if self.email_logs else {}
        first = stage_types(NotificationStage.PARTIAL_FIRST)
        reminder = stage_types(NotificationStage.PARTIAL_REMINDER)

        def due(lead):
            types = sent.get(lead.id, set())
            if types & reminder:
                return False
            return lead.created_at < reminder_cutoff or not types & first

        return sorted(filter(due, candidates), key=lambda l: l.created_at)[:limit]


class InMemoryEmailLogStore:
    """Drop-in for EmailLogService with the same live-key uniqueness rule."""

    def __init__(self, error_max_length: int = 500, stale_queued_after: timedelta = timedelta(minutes=5)):
        self.rows: list[EmailLog] = []
        self.error_max_length = error_max_length
        self.stale_queued_after = stale_queued_after

    def has_sent(self, idempotency_key: str) -> bool:
        return any(
            r.idempotency_key == idempotency_key and r.status == EmailStatus.SENT
            for r in self.rows
        )

    def next_attempt(self, base_key: str) -> tuple[int, str]:
        attempts = [
            r.attempt for r in self.rows
            if r.idempotency_key == base_key or r.idempotency_key.startswith(f"{base_key}:retry_")
        ]
        if not attempts:
            return 1, base_key
        attempt = max(attempts) + 1
        return attempt, f"{base_key}:retry_{attempt}"

    def expire_stale(self, idempotency_key: str) -> int:
        cutoff = now_utc() - self.stale_queued_after
        stale = [
            r for r in self.rows
            if r.idempotency_key == idempotency_key and r.status == EmailStatus.QUEUED and r.updated_at < cutoff
        ]
        for row in stale:
            self._replace(row.id, status=EmailStatus.FAILED, error_message=ABANDONED_ERROR, updated_at=now_utc())
        return len(stale)

    def reserve(self, data: EmailLogCreate):
        self.expire_stale(data.idempotency_key)
        for row in self.rows:
            if row.idempotency_key == data.idempotency_key and row.status != EmailStatus.FAILED:
                return AlreadySent(idempotency_key=data.idempotency_key)

        now = now_utc()
        log = EmailLog(
            id=uuid4(),
            status=EmailStatus.QUEUED,
            created_at=now,
            updated_at=now,
            **data.model_dump(),
        )
        self.rows.append(log)
        return Inserted(log=log)

    def _replace(self, log_id: UUID, **values) -> EmailLog:
        for i, row in enumerate(self.rows):
            if row.id == log_id:
                self.rows[i] = row.model_copy(update=values)
                return self.rows[i]
        raise KeyError(log_id)

    def mark_sent(self, log_id, provider_message_id) -> EmailLog:
        return self._replace(log_id, status=EmailStatus.SENT, provider_message_id=provider_message_id)

    def mark_failed(self, log_id, error_message) -> EmailLog:
        return self._replace(
            log_id, status=EmailStatus.FAILED, error_message=error_message[:self.error_max_length]
        )

    def list_for_lead(self, lead_id, limit=100) -> list[EmailLog]:
        rows = [r for r in self.rows if r.lead_id == lead_id]
        return sorted(rows, key=lambda r: r.created_at, reverse=True)[:limit]

    def sent_types_for_leads(self, lead_ids) -> dict[UUID, set[EmailType]]:
        result = {lead_id: set() for lead_id in lead_ids}
        for row in self.rows:
            if row.lead_id in result and row.status == EmailStatus.SENT:
                result[row.lead_id].add(row.type)
        return result

    def sent_rows(self, email_type: EmailType | None = None) -> list[EmailLog]:
        return [
            r for r in self.rows
            if r.status == EmailStatus.SENT and (email_type is None or r.type == email_type)
        ]


@dataclass
class SentEmail:
    sender: str
    to: list[str]
    subject: str
    html: str


@dataclass
class FakeEmailClient:
    """Records sends. Recipients in fail_for get an EmailDeliveryError."""

    fail_for: set[str] = field(default_factory=set)
    error: EmailDeliveryError = field(
        default_factory=lambda: EmailDeliveryError("HTTP 500: provider down", status_code=500)
    )
    sent: list[SentEmail] = field(default_factory=list)

    def send(self, sender, to, subject, html):
        if self.fail_for & set(to):
            raise self.error
        self.sent.append(SentEmail(sender=sender, to=list(to), subject=subject, html=html))
        return f"msg-{len(self.sent)}"


class FakeSettingsService:
    def __init__(self, settings: EmailSettings):
        self.settings = settings

    def get_email_settings(self) -> EmailSettings:
        return self.settings


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def lead_store(log_store):
    return InMemoryLeadStore(email_logs=log_store)


@pytest.fixture
def log_store():
    return InMemoryEmailLogStore()


@pytest.fixture
def email_client():
    return FakeEmailClient()


@pytest.fixture
def email_settings():
    return EmailSettings(
        sender_email="leads@foodtrucks.example",
        sender_name="Food Trucks",
        notification_emails=["sales@foodtrucks.example"],
        customer_notification_emails=["office@foodtrucks.example"],
        site_url="https://configurator.example",
        company_name="Food Trucks Ltd",
        from_email="quotes@foodtrucks.example",
    )


@pytest.fixture
def settings_service(email_settings):
    return FakeSettingsService(email_settings)


@pytest.fixture
def notifier(lead_store, log_store, settings_service, email_client):
    from core.services.notification_service import NotificationService
    return NotificationService(lead_store, log_store, settings_service, email_client)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def db():
    """Session-scoped PostgresClient. Skips unless TEST_DATABASE_URL is set."""
    database_url = os.environ.get("TEST_DATABASE_URL")
    if not database_url:
        pytest.skip("TEST_DATABASE_URL not set")

    from clients.postgres_client import PostgresClient

    client = PostgresClient(database_url)
    schema = (Path(__file__).parent.parent / "db" / "schema.sql").read_text()
    client.execute(schema)
    yield client
    client.close()


@pytest.fixture
def clean_db(db):
    """Empty pipeline tables before each database test."""
    db.execute("TRUNCATE email_logs, leads, pricing, equipment, truck_sizes, truck_types CASCADE")
    db.execute("TRUNCATE email_config, site_content")
    yield db
