"""
Quote service - creates price quote documents with the invoicing provider.

A quote is priced from the lead's configurator selections, submitted as a
price-quote document and only then written onto the lead. Any failure
before that write leaves the lead's previous quote fields as they were.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from clients.invoicing_client import (
    DOCUMENT_TYPE_PRICE_QUOTE,
    ERROR_CODE_INVALID_TAX_ID,
    InvoicingAuthError,
    InvoicingClient,
    InvoicingError,
    InvoicingRejected,
    InvoicingTimeout,
)
from core.config import PipelineConfig
from core.exceptions import (
    InvoiceRejectedError,
    UpstreamAuthFailed,
    UpstreamError,
    UpstreamRejected,
    UpstreamTimeout,
)
from core.pricing import PricingResolver
from core.quote import (
    build_document_request,
    build_income_lines,
    build_quote_breakdown,
    total_with_vat,
)
from core.services.catalog_service import CatalogService
from core.services.lead_service import LeadService

logger = logging.getLogger(__name__)

INVALID_TAX_ID_MESSAGE = (
    "The invoicing provider rejected the customer's ID / company number. "
    "Correct the number on the lead and create the quote again."
)


@dataclass(frozen=True)
class QuoteResult:
    """Outcome of a successful quote creation."""

    quote_id: str
    quote_number: str
    quote_url: str
    total_excl_vat: Decimal
    total_incl_vat: Decimal
    email_sent: bool


class QuoteService:
    """Builds and submits price quotes for leads."""

    def __init__(
        self,
        leads: LeadService,
        catalog: CatalogService,
        invoicing: InvoicingClient,
        config: PipelineConfig | None = None,
    ):
        self.leads = leads
        self.catalog = catalog
        self.invoicing = invoicing
        self.config = config or PipelineConfig()

    def _authenticate(self) -> str:
        try:
            return self.invoicing.authenticate()
        except InvoicingAuthError as e:
            raise UpstreamAuthFailed(str(e)) from e
        except InvoicingTimeout as e:
            raise UpstreamTimeout(str(e)) from e
        except InvoicingError as e:
            raise UpstreamError(str(e)) from e

    def _close_previous(self, token: str, quote_id: str) -> None:
        """Best-effort close of a superseded quote. Never raises."""
        try:
            self.invoicing.close_document(token, quote_id)
        except InvoicingError as e:
            logger.warning(f"Failed to close previous quote {quote_id}: {e}")

    def create_quote(self, lead_id: UUID, send_email: bool = False) -> QuoteResult:
        """
        Create a price quote for a lead.

        Args:
            lead_id: Lead to quote
            send_email: Let the invoicing provider email the document to the customer

        Returns:
            QuoteResult with totals before and after VAT

        Raises:
            LeadNotFoundError: If lead not found
            UpstreamAuthFailed: If the token exchange fails
            InvoiceRejectedError: If the provider rejects the customer's tax id
            UpstreamRejected: If the provider rejects the document otherwise
            UpstreamTimeout: If the provider does not answer in time
            UpstreamError: On any other provider failure
        """
        lead = self.leads.require(lead_id)

        resolver = PricingResolver(self.catalog.load_snapshot())
        breakdown = build_quote_breakdown(lead, resolver)
        lines = build_income_lines(breakdown)
        subtotal = breakdown.subtotal

        token = self._authenticate()

        if lead.quote_id:
            self._close_previous(token, lead.quote_id)

        email_sent = send_email and bool(lead.email)
        document = build_document_request(
            lead,
            lines,
            send_email=email_sent,
            document_type=DOCUMENT_TYPE_PRICE_QUOTE,
            currency=self.config.currency,
            language=self.config.document_language,
        )

        try:
            created = self.invoicing.create_document(token, document)
        except InvoicingRejected as e:
            if e.error_code == ERROR_CODE_INVALID_TAX_ID:
                logger.warning(f"Quote for lead {lead_id} rejected: invalid tax id")
                self.leads.set_quote_validation_error(lead_id, INVALID_TAX_ID_MESSAGE)
                raise InvoiceRejectedError(INVALID_TAX_ID_MESSAGE, error_code=e.error_code) from e
            raise UpstreamRejected(str(e), error_code=e.error_code) from e
        except InvoicingTimeout as e:
            raise UpstreamTimeout(str(e)) from e
        except InvoicingError as e:
            raise UpstreamError(str(e)) from e

        if not created.get("id"):
            raise UpstreamError("Invoicing API returned no document id")

        total_incl_vat = total_with_vat(subtotal, self.config.vat_rate)

        self.leads.record_quote(
            lead_id,
            quote_id=str(created["id"]),
            quote_number=created["number"],
            quote_url=created["url"],
            quote_total=total_incl_vat,
            sent=email_sent,
        )

        logger.info(
            f"Quote {created['number']} created for lead {lead_id} "
            f"(subtotal {subtotal}, incl. VAT {total_incl_vat}, emailed={email_sent})"
        )

        return QuoteResult(
            quote_id=str(created["id"]),
            quote_number=created["number"],
            quote_url=created["url"],
            total_excl_vat=subtotal,
            total_incl_vat=total_incl_vat,
            email_sent=email_sent,
        )
