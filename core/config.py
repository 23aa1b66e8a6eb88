"""Pipeline configuration."""

from decimal import Decimal

from pydantic import BaseModel, Field

from clients.email_client import DEFAULT_API_URL as DEFAULT_EMAIL_API_URL
from clients.invoicing_client import DEFAULT_API_URL as DEFAULT_INVOICING_API_URL


class PipelineConfig(BaseModel):
    """
    Lead-to-quote pipeline configuration.

    Durations are in their natural units (minutes for the first notice,
    hours for the reminder) to keep configuration readable.
    """

    # Partial-lead sweep
    partial_notice_delay_minutes: int = Field(
        default=30,
        description="Age a partial lead must reach before the first notice",
        ge=1,
    )
    partial_reminder_delay_hours: int = Field(
        default=24,
        description="Age a partial lead must reach before the reminder",
        ge=1,
    )
    sweep_batch_limit: int = Field(
        default=500,
        description="Max partial leads examined per sweep run",
        ge=1,
    )

    # Pricing
    vat_rate: Decimal = Field(
        default=Decimal("0.18"),
        description="VAT rate applied on top of the quote subtotal",
        ge=0,
        le=1,
    )
    currency: str = Field(default="ILS")
    document_language: str = Field(default="he")

    # External APIs
    invoicing_api_url: str = Field(default=DEFAULT_INVOICING_API_URL)
    email_api_url: str = Field(default=DEFAULT_EMAIL_API_URL)
    http_timeout_seconds: float = Field(
        default=15,
        description="Timeout applied to every outbound HTTP call",
        gt=0,
        le=120,
    )

    # Email log
    queued_stale_after_seconds: int = Field(
        default=300,
        description="A QUEUED row older than this is treated as an abandoned attempt",
        ge=30,
    )
    error_message_max_length: int = Field(
        default=500,
        description="Provider error text is truncated to this length in the email log",
        ge=50,
    )

    # Display
    default_site_url: str = Field(
        default="https://caravan-creator.lovable.app",
        description="Configurator URL used when site_content has no site_url",
    )
    display_timezone: str = Field(
        default="Asia/Jerusalem",
        description="Timezone for timestamps written into lead notes",
    )
