"""HTTP surface of the lead pipeline: the /functions router and its response envelope."""

from api.base import (
    STATUS_BY_CODE,
    APIResponse,
    ErrorCodes,
    error_response,
    request_id_of,
    success_response,
)
