"""
Invoicing API client (price quote documents).

Token-exchange auth: POST /account/token with the API key id and secret
returns a short-lived bearer token. Documents are created with
POST /documents and voided with POST /documents/{id}/close.

Error bodies may carry a numeric `errorCode`; it is preserved on
InvoicingRejected so callers can react to specific codes.
"""

import json
import logging
from typing import Any

import requests

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.greeninvoice.co.il/api/v1"

# Document types understood by the invoicing provider
DOCUMENT_TYPE_PRICE_QUOTE = 10

# Provider error code for an invalid client tax id
ERROR_CODE_INVALID_TAX_ID = 1111


class InvoicingError(Exception):
    """Base error for invoicing API failures."""


class InvoicingAuthError(InvoicingError):
    """Token exchange failed or returned no token."""


class InvoicingTimeout(InvoicingError):
    """The invoicing API did not answer in time."""


class InvoicingRejected(InvoicingError):
    """The invoicing API answered with an error response."""

    def __init__(self, message: str, status_code: int, error_code: int | None = None):
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)


class InvoicingClient:
    """Thin wrapper over the invoicing HTTP API."""

    def __init__(
        self,
        api_key_id: str,
        api_key_secret: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 15,
    ):
        if not api_key_id:
            raise ValueError("api_key_id is required")
        if not api_key_secret:
            raise ValueError("api_key_secret is required")

        self.api_key_id = api_key_id
        self.api_key_secret = api_key_secret
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    def _post(self, path: str, payload: dict | None, token: str | None = None) -> requests.Response:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            return requests.post(
                f"{self.api_url}{path}",
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"Invoicing API timed out on {path}: {e}")
            raise InvoicingTimeout(f"Invoicing API timed out after {self.timeout}s")
        except (requests.exceptions.RequestException, ConnectionError) as e:
            logger.error(f"Invoicing API connection failed on {path}: {e}")
            raise InvoicingError(f"Connection failed: {e}")

    @staticmethod
    def _rejection(response: requests.Response) -> InvoicingRejected:
        """Build an InvoicingRejected from an error response."""
        error_code = None
        message = response.text
        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError):
            body = None

        if isinstance(body, dict):
            raw_code = body.get("errorCode")
            if raw_code is not None:
                try:
                    error_code = int(raw_code)
                except (TypeError, ValueError):
                    error_code = None
            message = body.get("errorMessage") or message

        return InvoicingRejected(
            f"HTTP {response.status_code}: {message}",
            status_code=response.status_code,
            error_code=error_code,
        )

    def authenticate(self) -> str:
        """
        Exchange the API key for a bearer token.

        Returns:
            Bearer token

        Raises:
            InvoicingAuthError: If the exchange fails or yields no token
            InvoicingTimeout: On timeout
        """
        response = self._post(
            "/account/token",
            {"id": self.api_key_id, "secret": self.api_key_secret},
        )

        if not response.ok:
            logger.error(f"Invoicing auth failed: HTTP {response.status_code}")
            raise InvoicingAuthError(f"Authentication failed: HTTP {response.status_code}: {response.text}")

        try:
            token = response.json().get("token")
        except (json.JSONDecodeError, ValueError, AttributeError):
            token = None

        if not token:
            raise InvoicingAuthError("No token received from invoicing API")

        return token

    def create_document(self, token: str, document: dict[str, Any]) -> dict[str, Any]:
        """
        Create a document.

        Args:
            token: Bearer token from authenticate()
            document: Document request body

        Returns:
            Dict with keys: id, number, url

        Raises:
            InvoicingRejected: On an error response
            InvoicingTimeout: On timeout
        """
        response = self._post("/documents", document, token=token)

        if not response.ok:
            rejection = self._rejection(response)
            logger.error(f"Document creation rejected: {rejection}")
            raise rejection

        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError):
            raise InvoicingError("Invalid response from invoicing API")

        url = body.get("url")
        if isinstance(url, dict):
            url = url.get("origin") or url.get("he") or ""

        number = body.get("number")
        created = {
            "id": body.get("id"),
            "number": str(number) if number is not None else body.get("id"),
            "url": url or "",
        }
        logger.info(f"Invoicing document {created['number']} created")
        return created

    def close_document(self, token: str, document_id: str) -> None:
        """
        Close (void) a document.

        Raises:
            InvoicingRejected: On an error response
            InvoicingTimeout: On timeout
        """
        response = self._post(f"/documents/{document_id}/close", None, token=token)

        if not response.ok:
            raise self._rejection(response)

        logger.info(f"Invoicing document {document_id} closed")
