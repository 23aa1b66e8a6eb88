"""Lead notification request model."""

from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from core.models.email_log import NotificationStage


class NotificationRequest(BaseModel):
    """
    Request to notify about a lead.

    Contact and selection fields are optional; anything missing is taken
    from the stored lead.
    """

    lead_id: UUID
    full_name: str | None = Field(None, max_length=255)
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)
    notes: str | None = Field(None, max_length=5000)
    selected_truck_type: str | None = None
    selected_truck_size: str | None = None
    selected_equipment: list[str] | None = None
    is_partial: bool = False
    is_reminder: bool = False

    @model_validator(mode="after")
    def reminder_implies_partial(self):
        if self.is_reminder:
            self.is_partial = True
        return self

    @property
    def stage(self) -> NotificationStage:
        if self.is_reminder:
            return NotificationStage.PARTIAL_REMINDER
        if self.is_partial:
            return NotificationStage.PARTIAL_FIRST
        return NotificationStage.COMPLETE
