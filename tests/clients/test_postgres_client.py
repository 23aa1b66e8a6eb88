"""Tests for PostgresClient. Query tests need TEST_DATABASE_URL."""

from decimal import Decimal
from uuid import uuid4

import psycopg2.extras
import pytest

from clients.postgres_client import PostgresClient


class TestConvertParams:
    """Parameter adaptation, no database needed."""

    @pytest.fixture
    def client(self):
        # Pool is created lazily, so no database is touched
        return PostgresClient("postgresql://unused/db")

    def test_uuids_become_strings(self, client):
        value = uuid4()
        assert client._convert_params((value, 1)) == (str(value), 1)

    def test_dicts_become_json(self, client):
        converted = client._convert_params(({"stage": "complete"},))
        assert isinstance(converted[0], psycopg2.extras.Json)

    def test_lists_of_uuids_are_converted(self, client):
        a, b = uuid4(), uuid4()
        assert client._convert_params(([a, b],)) == ([str(a), str(b)],)

    def test_decimals_pass_through(self, client):
        assert client._convert_params((Decimal("62540.00"),)) == (Decimal("62540.00"),)

    def test_none_params(self, client):
        assert client._convert_params(None) is None


class TestExecuteMethods:
    """Query execution methods."""

    def test_execute_returns_list_of_dicts(self, db):
        results = db.execute("SELECT 1 as num, 'hello' as word")
        assert results == [{"num": 1, "word": "hello"}]

    def test_execute_empty_returns_empty_list(self, db):
        assert db.execute("SELECT 1 WHERE false") == []

    def test_execute_single_no_rows_returns_none(self, db):
        assert db.execute_single("SELECT 1 WHERE false") is None

    def test_execute_scalar_returns_value(self, db):
        assert db.execute_scalar("SELECT 'test'") == "test"

    def test_execute_scalar_no_rows_returns_none(self, db):
        assert db.execute_scalar("SELECT 1 WHERE false") is None

    def test_failed_statement_rolls_back(self, clean_db):
        with pytest.raises(psycopg2.Error):
            clean_db.execute("INSERT INTO email_config (config_key) VALUES (NULL)")

        assert clean_db.execute_scalar("SELECT count(*) FROM email_config") == 0

    def test_dict_params_are_stored_as_jsonb(self, clean_db):
        row = clean_db.execute_single("SELECT %s::jsonb AS meta", ({"stage": "complete"},))
        assert row["meta"] == {"stage": "complete"}
