"""
Domain events for the lead pipeline.

Immutable event objects describing lead state changes. A service publishes
what happened; handlers (quote creation, business notification) react
without the publisher knowing who is listening.

Events carry the full lead so handlers don't need to re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class PipelineEvent:
    """Base class for all pipeline domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


@dataclass(frozen=True)
class LeadEvent(PipelineEvent):
    """Events related to lead lifecycle."""
    pass


@dataclass(frozen=True)
class LeadCreated(LeadEvent):
    """A contact-form submission created an incomplete lead."""
    lead: Any = None  # Lead, Any to avoid circular import

    @classmethod
    def create(cls, lead: Any) -> "LeadCreated":
        return cls(lead=lead)


@dataclass(frozen=True)
class LeadCompleted(LeadEvent):
    """A lead finished the configurator (is_complete went false -> true)."""
    lead: Any = None

    @classmethod
    def create(cls, lead: Any) -> "LeadCompleted":
        return cls(lead=lead)
