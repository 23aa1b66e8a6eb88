"""
Email delivery client for the transactional email API.

Posts {from, to[], subject, html} to POST /emails with a bearer API key and
returns the provider message id. Every failure, including timeouts, surfaces
as EmailDeliveryError so callers can record it in the email log.
"""

import json
import logging

import requests

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.resend.com"


class EmailDeliveryError(Exception):
    """Raised when the email API request fails."""

    def __init__(self, message: str, status_code: int | None = None, timed_out: bool = False):
        self.status_code = status_code
        self.timed_out = timed_out
        super().__init__(message)


class EmailDeliveryClient:
    """Send HTML emails through the delivery API."""

    def __init__(self, api_key: str, api_url: str = DEFAULT_API_URL, timeout: float = 15):
        """
        Initialize with API credentials.

        Args:
            api_key: Bearer API key
            api_url: Base URL of the email API
            timeout: Per-request timeout in seconds

        Raises:
            ValueError: If any credential is empty
        """
        if not api_key:
            raise ValueError("api_key is required")
        if not api_url:
            raise ValueError("api_url is required")

        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    def send(self, sender: str, to: list[str], subject: str, html: str) -> str | None:
        """
        Send one email.

        Args:
            sender: "Name <address>" sender string
            to: Recipient addresses
            subject: Subject line
            html: HTML body

        Returns:
            Provider message id, or None if the provider returned none.

        Raises:
            ValueError: If there are no recipients
            EmailDeliveryError: On any transport or provider failure
        """
        if not to:
            raise ValueError("at least one recipient is required")

        payload = {"from": sender, "to": to, "subject": subject, "html": html}
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = requests.post(
                f"{self.api_url}/emails",
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"Email API timed out: {e}")
            raise EmailDeliveryError(f"Timed out after {self.timeout}s", timed_out=True)
        except (requests.exceptions.RequestException, ConnectionError) as e:
            logger.error(f"Email API connection failed: {e}")
            raise EmailDeliveryError(f"Connection failed: {e}")

        if not response.ok:
            logger.error(f"Email API error: HTTP {response.status_code}")
            raise EmailDeliveryError(
                f"HTTP {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            message_id = response.json().get("id")
        except (json.JSONDecodeError, ValueError, AttributeError):
            message_id = None

        logger.info(f"Email sent to {', '.join(to)}: {subject}")
        return message_id
