"""
HTML bodies and subjects for pipeline emails.

Markup is plain: one wrapper, a few tables. Every value that
comes from a lead is escaped.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from html import escape


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str


@dataclass(frozen=True)
class LeadSummary:
    """Lead details as shown in notification emails."""

    full_name: str
    phone: str = ""
    email: str = ""
    notes: str = ""
    selected_truck_type: str = ""
    selected_truck_size: str = ""
    selected_equipment: list[str] = field(default_factory=list)

    @property
    def first_name(self) -> str:
        parts = self.full_name.split()
        return parts[0] if parts else self.full_name


@dataclass(frozen=True)
class QuoteSummary:
    """Quote section of the business notification."""

    quote_number: str | None = None
    quote_total: Decimal | None = None
    quote_url: str | None = None


def format_amount(amount: Decimal | None, currency_symbol: str = "₪") -> str:
    """Whole-unit amount with thousands separators, e.g. ₪62,540."""
    if amount is None:
        return ""
    return f"{currency_symbol}{amount:,.0f}"


def _wrap(body: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f"{body}"
        "</div>"
    )


def _rows(pairs: list[tuple[str, str]]) -> str:
    """Two-column table. Values are expected to be escaped already."""
    cells = "".join(
        f'<tr><td style="padding: 8px; font-weight: bold; width: 140px;">{escape(label)}</td>'
        f'<td style="padding: 8px;">{value}</td></tr>'
        for label, value in pairs
        if value
    )
    return f'<table style="width: 100%; border-collapse: collapse;">{cells}</table>'


def _contact_table(lead: LeadSummary) -> str:
    return _rows([
        ("Full name:", escape(lead.full_name)),
        ("Phone:", f'<a href="tel:{escape(lead.phone)}">{escape(lead.phone)}</a>' if lead.phone else ""),
        ("Email:", f'<a href="mailto:{escape(lead.email)}">{escape(lead.email)}</a>' if lead.email else ""),
    ])


def _selection_section(lead: LeadSummary) -> str:
    parts = []
    if lead.selected_truck_type:
        parts.append("<h2>Configuration:</h2>")
        parts.append(_rows([
            ("Truck type:", escape(lead.selected_truck_type)),
            ("Size:", escape(lead.selected_truck_size)),
        ]))

    parts.append("<h2>Selected equipment:</h2>")
    if lead.selected_equipment:
        items = "".join(f"<li>{escape(item)}</li>" for item in lead.selected_equipment)
        parts.append(f"<ul>{items}</ul>")
    else:
        parts.append("<em>No equipment selected</em>")

    if lead.notes:
        parts.append(f'<h2>Notes:</h2><p style="background: #f5f5f5; padding: 15px;">{escape(lead.notes)}</p>')

    return "".join(parts)


def _button(url: str, label: str) -> str:
    return (
        f'<p style="text-align: center; margin: 30px 0;"><a href="{escape(url)}" '
        'style="background: #D4AF37; color: #1a1a1a; padding: 15px 40px; '
        f'text-decoration: none; border-radius: 8px; font-weight: bold;">{escape(label)}</a></p>'
    )


def continue_url(site_url: str, lead_id) -> str:
    """Configurator link that resumes the given lead."""
    return f"{site_url.rstrip('/')}?continue={lead_id}"


# Partial leads


def partial_business(lead: LeadSummary) -> RenderedEmail:
    body = (
        "<h1>New lead (partial)</h1>"
        "<p>This lead left contact details but has not finished the configurator yet.</p>"
        f"{_contact_table(lead)}"
        f"{_rows([('Notes:', escape(lead.notes))])}"
    )
    return RenderedEmail(subject=f"New lead (partial): {lead.full_name}", html=_wrap(body))


def partial_client(lead: LeadSummary, link: str) -> RenderedEmail:
    body = (
        f"<h1>Hi {escape(lead.first_name)}!</h1>"
        "<p>Thanks for your interest. You are only a few steps away from your food truck.</p>"
        f"{_button(link, 'Finish my configuration')}"
    )
    return RenderedEmail(subject="Finish configuring your food truck", html=_wrap(body))


def reminder_business(lead: LeadSummary) -> RenderedEmail:
    body = (
        "<h1>Reminder: lead still incomplete</h1>"
        "<p>This lead has not finished the configurator 24 hours after signing up.</p>"
        f"{_contact_table(lead)}"
    )
    return RenderedEmail(subject=f"Reminder: partial lead {lead.full_name}", html=_wrap(body))


def reminder_client(lead: LeadSummary, link: str) -> RenderedEmail:
    body = (
        f"<h1>Hi {escape(lead.first_name)},</h1>"
        "<p>Your food truck configuration is waiting for you. Pick up where you left off:</p>"
        f"{_button(link, 'Continue my configuration')}"
    )
    return RenderedEmail(subject="Your food truck configuration is waiting", html=_wrap(body))


# Complete leads


def _quote_section(quote: QuoteSummary) -> str:
    link = f'<a href="{escape(quote.quote_url)}">View quote</a>' if quote.quote_url else ""
    return "<h2>Price quote</h2>" + _rows([
        ("Quote number:", escape(quote.quote_number or "")),
        ("Total:", format_amount(quote.quote_total)),
        ("Link:", link),
    ])


def complete_business(lead: LeadSummary, quote: QuoteSummary | None = None) -> RenderedEmail:
    subject = f"New lead: {lead.full_name}"
    if quote is not None:
        subject += " - price quote attached"

    body = (
        "<h1>New lead!</h1>"
        "<h2>Customer details:</h2>"
        f"{_contact_table(lead)}"
        f"{_selection_section(lead)}"
        f"{_quote_section(quote) if quote is not None else ''}"
    )
    return RenderedEmail(subject=subject, html=_wrap(body))


def client_confirmation(lead: LeadSummary) -> RenderedEmail:
    """Confirmation to the customer. Never includes quote details."""
    body = (
        f"<h1>Hi {escape(lead.first_name)}!</h1>"
        "<p>Thanks for reaching out. We received your request and will get back to you soon.</p>"
        "<h2>Your request:</h2>"
        f"{_selection_section(lead)}"
    )
    return RenderedEmail(subject="We received your food truck request", html=_wrap(body))


# Customer-facing follow-ups


def quote_to_client(
    full_name: str,
    company_name: str,
    quote_number: str,
    quote_url: str,
    total_excl_vat: Decimal,
    total_incl_vat: Decimal,
) -> RenderedEmail:
    body = (
        f"<h1>Hi {escape(full_name)},</h1>"
        f"<p>Here is your price quote from {escape(company_name)}.</p>"
        + _rows([
            ("Quote number:", escape(quote_number)),
            ("Total before VAT:", format_amount(total_excl_vat)),
            ("Total incl. VAT:", format_amount(total_incl_vat)),
        ])
        + _button(quote_url, "View the full quote")
    )
    return RenderedEmail(
        subject=f"Price quote from {company_name} - No. {quote_number}",
        html=_wrap(body),
    )


def completion_link(full_name: str, company_name: str, link: str) -> RenderedEmail:
    body = (
        f"<h1>{escape(company_name)}</h1>"
        f"<p>Hi {escape(full_name)},</p>"
        "<p>We received your food truck request. Use the button below to complete your selections:</p>"
        f"{_button(link, 'Complete my selections')}"
    )
    return RenderedEmail(
        subject=f"Complete your food truck selections - {company_name}",
        html=_wrap(body),
    )
