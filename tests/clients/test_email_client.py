"""
Tests for EmailDeliveryClient.

Uses the responses library for HTTP mocking.
"""

import json

import pytest
import requests
import responses

from clients.email_client import EmailDeliveryClient, EmailDeliveryError

API_URL = "https://mail.example.com"
SEND_URL = f"{API_URL}/emails"


@pytest.fixture
def client():
    return EmailDeliveryClient(api_key="re_test_key", api_url=API_URL, timeout=5)


class TestEmailDeliveryClientInit:
    """Fail-fast on invalid config."""

    def test_init_rejects_empty_api_key(self):
        with pytest.raises(ValueError, match="api_key"):
            EmailDeliveryClient(api_key="", api_url=API_URL)

    def test_init_rejects_empty_api_url(self):
        with pytest.raises(ValueError, match="api_url"):
            EmailDeliveryClient(api_key="re_test_key", api_url="")

    def test_trailing_slash_is_stripped(self):
        client = EmailDeliveryClient(api_key="k", api_url=f"{API_URL}/")
        assert client.api_url == API_URL


class TestSend:

    @responses.activate
    def test_successful_send_returns_message_id(self, client):
        responses.add(responses.POST, SEND_URL, json={"id": "msg_123"}, status=200)

        message_id = client.send(
            sender="Food Trucks <leads@foodtrucks.example>",
            to=["sales@foodtrucks.example"],
            subject="New lead",
            html="<p>hi</p>",
        )

        assert message_id == "msg_123"

    @responses.activate
    def test_request_body_and_auth_header(self, client):
        responses.add(responses.POST, SEND_URL, json={"id": "msg_1"}, status=200)

        client.send("A <a@x.example>", ["b@x.example", "c@x.example"], "Subject", "<b>x</b>")

        request = responses.calls[0].request
        assert request.headers["Authorization"] == "Bearer re_test_key"
        assert json.loads(request.body) == {
            "from": "A <a@x.example>",
            "to": ["b@x.example", "c@x.example"],
            "subject": "Subject",
            "html": "<b>x</b>",
        }

    @responses.activate
    def test_missing_id_returns_none(self, client):
        responses.add(responses.POST, SEND_URL, json={}, status=200)

        assert client.send("a@x.example", ["b@x.example"], "s", "h") is None

    @responses.activate
    def test_error_response_raises_with_status(self, client):
        responses.add(responses.POST, SEND_URL, json={"message": "invalid from"}, status=422)

        with pytest.raises(EmailDeliveryError) as exc_info:
            client.send("a@x.example", ["b@x.example"], "s", "h")

        assert exc_info.value.status_code == 422
        assert "HTTP 422" in str(exc_info.value)
        assert exc_info.value.timed_out is False

    @responses.activate
    def test_timeout_raises_timed_out_error(self, client):
        responses.add(responses.POST, SEND_URL, body=requests.exceptions.Timeout("slow"))

        with pytest.raises(EmailDeliveryError) as exc_info:
            client.send("a@x.example", ["b@x.example"], "s", "h")

        assert exc_info.value.timed_out is True
        assert exc_info.value.status_code is None

    @responses.activate
    def test_connection_error_raises(self, client):
        responses.add(responses.POST, SEND_URL, body=requests.exceptions.ConnectionError("refused"))

        with pytest.raises(EmailDeliveryError, match="Connection failed"):
            client.send("a@x.example", ["b@x.example"], "s", "h")

    def test_no_recipients_raises_value_error(self, client):
        with pytest.raises(ValueError, match="recipient"):
            client.send("a@x.example", [], "s", "h")
