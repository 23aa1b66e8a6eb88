"""POST /functions/* - the pipeline's entry points."""

import logging
from uuid import UUID

from fastapi import APIRouter, Body, Request
from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_camel

from api.base import success_response
from core.exceptions import InvalidSubmissionError
from core.models import EmailType, LeadCreate, LeadUpdate, NotificationRequest

logger = logging.getLogger(__name__)


class CamelModel(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class CreateQuoteBody(CamelModel):
    lead_id: UUID
    send_email: bool = False


class LeadEmailBody(CamelModel):
    lead_id: UUID
    override_retry: bool = False


class NotificationBody(CamelModel):
    lead_id: UUID
    full_name: str | None = None
    email: str | None = None
    phone: str | None = None
    notes: str | None = None
    selected_truck_type: str | None = None
    selected_truck_size: str | None = None
    selected_equipment: list[str] | None = None
    is_partial: bool = False
    is_reminder: bool = False
    override_retry: bool = False


class RetryBody(CamelModel):
    lead_id: UUID
    type: EmailType


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "body"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def _parse_submission(model: type[BaseModel], data: dict):
    """Validate a submission body; failures become InvalidSubmissionError."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidSubmissionError(_validation_message(e)) from e


def create_functions_router(services: dict) -> APIRouter:
    router = APIRouter()

    lead_svc = services["lead"]
    quote_svc = services["quote"]
    notification_svc = services["notification"]
    sweeper = services["sweeper"]
    email_log_svc = services["email_log"]

    # -------------------------------------------------------------------------
    # Lead intake
    # -------------------------------------------------------------------------

    @router.post("/create-lead")
    async def create_lead(request: Request, body: dict = Body(...)):
        data = _parse_submission(LeadCreate, body)
        lead = lead_svc.create(data)
        return success_response({"id": str(lead.id)}, request).model_dump(mode="json")

    @router.post("/update-lead")
    async def update_lead(request: Request, body: dict = Body(...)):
        body = dict(body)
        raw_lead_id = body.pop("leadId", None)
        if not raw_lead_id:
            raise InvalidSubmissionError("leadId is required")
        try:
            lead_id = UUID(str(raw_lead_id))
        except ValueError as e:
            raise InvalidSubmissionError(f"Invalid leadId: {raw_lead_id}") from e

        data = _parse_submission(LeadUpdate, body)
        lead = lead_svc.update(lead_id, data)
        return success_response(
            {"leadId": str(lead.id), "isComplete": lead.is_complete}, request
        ).model_dump(mode="json")

    # -------------------------------------------------------------------------
    # Quotes
    # -------------------------------------------------------------------------

    @router.post("/create-price-quote")
    async def create_price_quote(request: Request, body: CreateQuoteBody):
        result = quote_svc.create_quote(body.lead_id, send_email=body.send_email)
        return success_response({
            "quoteId": result.quote_id,
            "quoteNumber": result.quote_number,
            "quoteUrl": result.quote_url,
            "totalExclVat": str(result.total_excl_vat),
            "totalInclVat": str(result.total_incl_vat),
            "emailSent": result.email_sent,
        }, request).model_dump(mode="json")

    # -------------------------------------------------------------------------
    # Emails
    # -------------------------------------------------------------------------

    @router.post("/send-lead-notification")
    async def send_lead_notification(request: Request, body: NotificationBody):
        notification = NotificationRequest.model_validate(
            body.model_dump(exclude={"override_retry"})
        )
        result = notification_svc.send_lead_notification(
            notification, override_retry=body.override_retry
        )
        return success_response(result.to_dict(), request).model_dump(mode="json")

    @router.post("/send-quote-to-client")
    async def send_quote_to_client(request: Request, body: LeadEmailBody):
        result = notification_svc.send_quote_to_client(body.lead_id, override_retry=body.override_retry)
        return success_response(result.to_dict(), request).model_dump(mode="json")

    @router.post("/send-completion-link")
    async def send_completion_link(request: Request, body: LeadEmailBody):
        result = notification_svc.send_completion_link(body.lead_id, override_retry=body.override_retry)
        return success_response(result.to_dict(), request).model_dump(mode="json")

    @router.post("/retry-email")
    async def retry_email(request: Request, body: RetryBody):
        result = notification_svc.retry(body.lead_id, body.type)
        return success_response(result.to_dict(), request).model_dump(mode="json")

    # -------------------------------------------------------------------------
    # Sweep
    # -------------------------------------------------------------------------

    @router.post("/check-partial-leads")
    async def check_partial_leads(request: Request):
        result = sweeper.run()
        return success_response(result.to_dict(), request).model_dump(mode="json")

    # -------------------------------------------------------------------------
    # Admin reads
    # -------------------------------------------------------------------------

    @router.get("/leads/{lead_id}/email-logs")
    async def list_email_logs(request: Request, lead_id: UUID):
        lead_svc.require(lead_id)
        logs = email_log_svc.list_for_lead(lead_id)
        return success_response(
            [log.model_dump(mode="json") for log in logs], request
        ).model_dump(mode="json")

    return router
