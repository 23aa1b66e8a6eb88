"""Typed exceptions for pipeline failures.

Every exception carries a machine-readable `code`; the API layer turns it
into the `{success: false, error: {code, message}}` envelope.
"""


class PipelineError(Exception):
    """Base class for lead-to-quote pipeline errors."""

    code = "INTERNAL_ERROR"


class InvalidSubmissionError(PipelineError):
    """Required submission fields are missing or malformed. Nothing was persisted."""

    code = "VALIDATION_ERROR"


class LeadNotFoundError(PipelineError):
    """Lead id does not resolve."""

    code = "NOT_FOUND"

    def __init__(self, lead_id):
        self.lead_id = lead_id
        super().__init__(f"Lead {lead_id} not found")


class PreconditionFailedError(PipelineError):
    """Lead is not in a state that allows the operation (no quote, no email)."""

    code = "PRECONDITION_FAILED"


class UpstreamError(PipelineError):
    """An external provider (invoicing or email) failed."""

    code = "UPSTREAM_ERROR"


class UpstreamAuthFailed(UpstreamError):
    """Credential exchange with an external provider failed."""

    code = "UPSTREAM_AUTH_FAILED"


class UpstreamTimeout(UpstreamError):
    """An external provider did not answer in time."""

    code = "UPSTREAM_TIMEOUT"


class UpstreamRejected(UpstreamError):
    """An external provider answered with an error response."""

    code = "UPSTREAM_REJECTED"

    def __init__(self, message: str, error_code: int | None = None):
        self.error_code = error_code
        super().__init__(message)


class InvoiceRejectedError(UpstreamRejected):
    """The invoicing provider refused the document (e.g. invalid tax id)."""

    code = "INVOICE_REJECTED"
