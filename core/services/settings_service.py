"""
Runtime email settings.

Sender identities, business recipient lists and the configurator URL are
editable from the admin panel and live in two key/value tables:
email_config (config_key, config_value) and site_content
(content_key, content_value). site_content wins when both define a key.
"""

import logging

from pydantic import BaseModel, Field

from clients.postgres_client import PostgresClient

logger = logging.getLogger(__name__)

_SITE_CONTENT_KEYS = [
    "sender_name", "customer_sender_name", "customer_notification_emails", "site_url",
]


def parse_recipients(value: str | None) -> list[str]:
    """Split a comma-separated address list, dropping blanks."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def format_sender(name: str, email: str) -> str:
    return f"{name} <{email}>"


class EmailSettings(BaseModel):
    """Resolved email settings with defaults applied."""

    sender_email: str = "noreply@foodtrucks.example"
    sender_name: str = "Food Truck Configurator"
    customer_sender_email: str | None = None
    customer_sender_name: str | None = None
    notification_emails: list[str] = Field(default_factory=list)
    customer_notification_emails: list[str] = Field(default_factory=list)
    site_url: str = "https://caravan-creator.lovable.app"
    company_name: str = "Food Truck Configurator"
    from_email: str | None = None
    from_name: str | None = None

    @property
    def business_sender(self) -> str:
        """Sender for business list 1."""
        return format_sender(self.sender_name, self.sender_email)

    @property
    def secondary_sender(self) -> str:
        """Sender for business list 2 and lead confirmations to the customer."""
        return format_sender(
            self.customer_sender_name or self.sender_name,
            self.customer_sender_email or self.sender_email,
        )

    @property
    def client_sender(self) -> str:
        """Sender for quote and completion-link emails to the customer."""
        return format_sender(
            self.from_name or self.company_name,
            self.from_email or self.sender_email,
        )


class SettingsService:
    """Reads email settings from the admin-editable tables."""

    def __init__(self, postgres: PostgresClient, default_site_url: str | None = None):
        self.postgres = postgres
        self.default_site_url = default_site_url

    def _load_values(self) -> dict[str, str]:
        values: dict[str, str] = {}

        for row in self.postgres.execute("SELECT config_key, config_value FROM email_config"):
            if row["config_value"]:
                values[row["config_key"]] = row["config_value"]

        rows = self.postgres.execute(
            """
            SELECT content_key, content_value FROM site_content
            WHERE content_key = ANY(%s)
            """,
            (_SITE_CONTENT_KEYS,)
        )
        for row in rows:
            if row["content_value"]:
                values[row["content_key"]] = row["content_value"]

        return values

    def get_email_settings(self) -> EmailSettings:
        """Current settings. Missing keys fall back to defaults."""
        values = self._load_values()

        data: dict = {
            key: values[key]
            for key in (
                "sender_email", "sender_name", "customer_sender_email",
                "customer_sender_name", "site_url", "company_name",
                "from_email", "from_name",
            )
            if key in values
        }
        data["notification_emails"] = parse_recipients(values.get("notification_emails"))
        data["customer_notification_emails"] = parse_recipients(
            values.get("customer_notification_emails")
        )
        if "site_url" not in data and self.default_site_url:
            data["site_url"] = self.default_site_url

        settings = EmailSettings.model_validate(data)
        if not settings.notification_emails and not settings.customer_notification_emails:
            logger.warning("No business notification recipients configured")

        return settings
