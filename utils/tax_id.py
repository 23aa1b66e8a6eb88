"""
Israeli ID / company number validation.

- Personal ID: 9 digits (shorter inputs are left-padded with zeros) with a
  Luhn-variant check digit.
- Company number: 9 digits starting with 51-59. There is no public checksum;
  the invoicing provider verifies it when a document is created.
"""

import re
from dataclasses import dataclass

_SEPARATORS = re.compile(r"[-\s]")


@dataclass(frozen=True)
class TaxIdCheck:
    """Outcome of validate_tax_id."""

    is_valid: bool
    kind: str  # "id", "company" or "unknown"
    message: str = ""


def has_valid_id_checksum(value: str) -> bool:
    """Luhn-variant checksum for personal ID numbers."""
    digits = re.sub(r"\D", "", value).zfill(9)
    if len(digits) != 9:
        return False

    total = 0
    for index, char in enumerate(digits):
        digit = int(char)
        if index % 2:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit

    return total % 10 == 0


def _looks_like_company_number(digits: str) -> bool:
    return len(digits) == 9 and 51 <= int(digits[:2]) <= 59


def validate_tax_id(value: str | None) -> TaxIdCheck:
    """
    Validate a personal ID or company number.

    Empty input is valid (the field is optional). 5-7 digit numbers are
    accepted as legacy formats, and 8 digit numbers that fail the ID checksum
    are accepted as possible business numbers.
    """
    stripped = _SEPARATORS.sub("", value or "")
    if not stripped:
        return TaxIdCheck(True, "unknown")

    if not stripped.isdigit():
        return TaxIdCheck(False, "unknown", "Digits only")

    if len(stripped) < 5:
        return TaxIdCheck(False, "unknown", "Number is too short")

    if len(stripped) > 9:
        return TaxIdCheck(False, "unknown", "Number is too long (at most 9 digits)")

    if len(stripped) == 9:
        if _looks_like_company_number(stripped):
            return TaxIdCheck(True, "company")
        if has_valid_id_checksum(stripped):
            return TaxIdCheck(True, "id")
        return TaxIdCheck(False, "id", "Invalid ID number - check digit mismatch")

    if len(stripped) == 8 and has_valid_id_checksum(stripped):
        return TaxIdCheck(True, "id")

    return TaxIdCheck(True, "unknown")
