"""Tests for api/base.py - response envelope and error code mapping."""

from datetime import timezone
from unittest.mock import Mock

from api.base import STATUS_BY_CODE, ErrorCodes, error_response, request_id_of, success_response
from core.exceptions import (
    InvalidSubmissionError,
    InvoiceRejectedError,
    LeadNotFoundError,
    PreconditionFailedError,
    UpstreamAuthFailed,
    UpstreamError,
    UpstreamRejected,
    UpstreamTimeout,
)


class TestEnvelope:

    def test_success_structure(self):
        resp = success_response({"id": "abc"})
        assert resp.success is True
        assert resp.data == {"id": "abc"}
        assert resp.error is None
        assert resp.meta.timestamp.tzinfo == timezone.utc

    def test_error_structure(self):
        resp = error_response("NOT_FOUND", "Lead x not found")
        assert resp.success is False
        assert resp.data is None
        assert resp.error.code == "NOT_FOUND"
        assert resp.error.message == "Lead x not found"

    def test_request_id_from_request_state(self):
        request = Mock()
        request.state.request_id = "req-1"
        assert success_response({}, request).meta.request_id == "req-1"

    def test_request_id_generated_without_request(self):
        assert request_id_of(None)
        assert request_id_of(None) != request_id_of(None)


class TestStatusByCode:

    def test_every_code_has_a_status(self):
        codes = [value for name, value in vars(ErrorCodes).items() if name.isupper()]
        assert set(codes) == set(STATUS_BY_CODE)

    def test_exception_codes_map_to_http_statuses(self):
        expected = {
            InvalidSubmissionError: 400,
            LeadNotFoundError: 404,
            PreconditionFailedError: 409,
            UpstreamAuthFailed: 502,
            UpstreamRejected: 502,
            InvoiceRejectedError: 422,
            UpstreamTimeout: 504,
            UpstreamError: 502,
        }
        for exc_type, status in expected.items():
            assert STATUS_BY_CODE[exc_type.code] == status
