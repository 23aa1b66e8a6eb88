"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, to_utc, to_local, format_local
from utils.tax_id import TaxIdCheck, validate_tax_id, has_valid_id_checksum
