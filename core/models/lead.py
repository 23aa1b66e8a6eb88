"""Lead domain models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, EmailStr, field_validator

from utils.tax_id import validate_tax_id


class LeadStatus(str, Enum):
    """Lead lifecycle status."""

    NEW = "new"
    CONTACTED = "contacted"
    IN_PROGRESS = "in_progress"
    QUOTED = "quoted"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"


class LeadCreate(BaseModel):
    """Public contact-form submission. Creates an incomplete lead."""

    full_name: str = Field(..., max_length=255)
    phone: str = Field(..., max_length=50)
    email: EmailStr | None = None
    notes: str | None = Field(None, max_length=5000)
    privacy_accepted: bool

    @field_validator("full_name", "phone")
    @classmethod
    def strip_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("email", "notes", mode="before")
    @classmethod
    def empty_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("privacy_accepted")
    @classmethod
    def require_consent(cls, value: bool) -> bool:
        if value is not True:
            raise ValueError("privacy policy must be accepted")
        return value


class LeadUpdate(BaseModel):
    """Configurator continuation / admin edit. All fields optional."""

    full_name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, min_length=1, max_length=50)
    id_number: str | None = Field(None, max_length=20)
    notes: str | None = Field(None, max_length=5000)
    selected_truck_type: str | None = Field(None, max_length=255)
    selected_truck_size: str | None = Field(None, max_length=255)
    selected_equipment: list[str] | None = None
    is_complete: bool | None = None
    status: LeadStatus | None = None

    @field_validator("id_number")
    @classmethod
    def check_tax_id(cls, value: str | None) -> str | None:
        if value is None:
            return None
        check = validate_tax_id(value)
        if not check.is_valid:
            raise ValueError(check.message)
        return value.strip() or None


class Lead(BaseModel):
    """Full lead entity as stored."""

    id: UUID
    full_name: str
    phone: str
    email: str | None = None
    id_number: str | None = None
    notes: str | None = None
    selected_truck_type: str | None = None
    selected_truck_size: str | None = None
    selected_equipment: list[str] = Field(default_factory=list)
    is_complete: bool = False
    status: LeadStatus = LeadStatus.NEW
    privacy_accepted: bool = False
    privacy_accepted_at: datetime | None = None
    quote_id: str | None = None
    quote_number: str | None = None
    quote_total: Decimal | None = None
    quote_url: str | None = None
    quote_created_at: datetime | None = None
    quote_sent_at: datetime | None = None
    quote_validation_error: str | None = None
    lead_notification_sent_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("selected_equipment", mode="before")
    @classmethod
    def null_equipment(cls, value):
        return value or []

    @property
    def has_quote(self) -> bool:
        """Whether an external quote document is linked."""
        return bool(self.quote_id or self.quote_created_at)

    @property
    def first_name(self) -> str:
        """First word of the full name, for greetings."""
        parts = self.full_name.split()
        return parts[0] if parts else self.full_name
