"""
Tests for the Record Stores

Tests cover:
- In-memory store ids, call log and failure injection
- Supabase REST requests (URL, headers, Prefer, select)
- Supabase error handling (HTTP errors, transport errors, bad bodies)
- Store selection from configuration
"""

from __future__ import annotations

import json

import pytest
import requests

from core.onboarding import (
    InMemoryRecordStore,
    InsertFailure,
    InsertSuccess,
    StoreConfigurationError,
    SupabaseRecordStore,
    create_record_store,
    get_record_store,
    reset_record_store,
    set_record_store,
)
from utils.config import Config


# =============================================================================
# Fixtures
# =============================================================================


def make_response(status_code: int, body=None, text: str | None = None) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    if text is not None:
        response._content = text.encode()
    elif body is not None:
        response._content = json.dumps(body).encode()
    else:
        response._content = b""
    return response


class FakeSession:
    """Stand-in for requests.Session recording POST calls."""

    def __init__(self, responses=None, error: Exception | None = None):
        self.headers: dict = {}
        self.calls: list[dict] = []
        self._responses = list(responses or [])
        self._error = error
        self.closed = False

    def post(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        if self._error:
            raise self._error
        return self._responses.pop(0)

    def close(self):
        self.closed = True


@pytest.fixture
def make_store():
    def _make(responses=None, error=None):
        session = FakeSession(responses, error)
        store = SupabaseRecordStore(
            url="https://project.supabase.co/",
            api_key="anon-key",
            session=session,
        )
        return store, session

    return _make


@pytest.fixture(autouse=True)
def clean_singleton():
    reset_record_store()
    yield
    reset_record_store()


# =============================================================================
# In-Memory Store
# =============================================================================


class TestInMemoryStore:
    """Tests for InMemoryRecordStore."""

    def test_ids_increment_per_table(self):
        store = InMemoryRecordStore()

        first = store.insert("clients", [{"name": "A"}], returning="id")
        second = store.insert("clients", [{"name": "B"}], returning="id")
        other = store.insert("properties", [{"address": "X"}], returning="id")

        assert (first.returned, second.returned, other.returned) == (1, 2, 1)

    def test_batch_insert_reports_count(self):
        store = InMemoryRecordStore()

        result = store.insert("services", [{"service_name": "a"}, {"service_name": "b"}])

        assert result == InsertSuccess(table="services", row_count=2)
        assert len(store.rows("services")) == 2

    def test_returning_requires_single_row(self):
        store = InMemoryRecordStore()

        result = store.insert("clients", [{"name": "A"}, {"name": "B"}], returning="id")

        assert isinstance(result, InsertFailure)
        assert store.rows("clients") == []

    def test_failure_injection(self):
        store = InMemoryRecordStore()
        store.fail_on("properties")

        result = store.insert("properties", [{"address": "X"}], returning="id")

        assert isinstance(result, InsertFailure)
        assert result.message == "simulated store error"
        assert len(store.calls) == 1


# =============================================================================
# Supabase Store
# =============================================================================


class TestSupabaseRequests:
    """Tests for the requests sent to PostgREST."""

    def test_auth_headers_set(self, make_store):
        _, session = make_store()

        assert session.headers["apikey"] == "anon-key"
        assert session.headers["Authorization"] == "Bearer anon-key"

    def test_single_insert_returns_id(self, make_store):
        store, session = make_store([make_response(201, [{"id": 42}])])

        result = store.insert("clients", [{"name": "Ana"}], returning="id")

        assert result == InsertSuccess(table="clients", row_count=1, returned=42)
        call = session.calls[0]
        assert call["url"] == "https://project.supabase.co/rest/v1/clients"
        assert call["json"] == [{"name": "Ana"}]
        assert call["params"] == {"select": "id"}
        assert call["headers"]["Prefer"] == "return=representation"
        assert call["timeout"] is None

    def test_batch_insert_minimal(self, make_store):
        store, session = make_store([make_response(201)])

        rows = [{"property_id": 1, "service_name": "a"}, {"property_id": 1, "service_name": "b"}]
        result = store.insert("services", rows)

        assert result == InsertSuccess(table="services", row_count=2)
        assert session.calls[0]["params"] == {}
        assert session.calls[0]["headers"]["Prefer"] == "return=minimal"


class TestSupabaseErrors:
    """Tests for failures reported by the Supabase store."""

    def test_http_error_message(self, make_store):
        body = {"code": "23502", "message": "null value in column", "details": "Failing row"}
        store, _ = make_store([make_response(400, body)])

        result = store.insert("properties", [{}], returning="id")

        assert isinstance(result, InsertFailure)
        assert result.status_code == 400
        assert "null value in column" in result.message
        assert "Failing row" in result.message

    def test_http_error_non_json_body(self, make_store):
        store, _ = make_store([make_response(502, text="Bad Gateway")])

        result = store.insert("clients", [{}], returning="id")

        assert isinstance(result, InsertFailure)
        assert "Bad Gateway" in result.message

    def test_transport_error(self, make_store):
        store, _ = make_store(error=requests.ConnectionError("refused"))

        result = store.insert("clients", [{}], returning="id")

        assert isinstance(result, InsertFailure)
        assert "refused" in result.message
        assert result.status_code is None

    def test_no_rows_returned(self, make_store):
        store, _ = make_store([make_response(201, [])])

        result = store.insert("clients", [{}], returning="id")

        assert isinstance(result, InsertFailure)
        assert "exactly one" in result.message

    def test_invalid_json(self, make_store):
        store, _ = make_store([make_response(201, text="not json")])

        result = store.insert("clients", [{}], returning="id")

        assert isinstance(result, InsertFailure)

    def test_missing_column(self, make_store):
        store, _ = make_store([make_response(201, [{"uuid": "x"}])])

        result = store.insert("clients", [{}], returning="id")

        assert isinstance(result, InsertFailure)

    def test_close_closes_session(self, make_store):
        store, session = make_store()

        store.close()

        assert session.closed


# =============================================================================
# Configuration
# =============================================================================


class TestStoreSelection:
    """Tests for building the store from configuration."""

    def test_in_memory_without_url(self):
        config = Config(supabase_url="", supabase_key="")

        assert isinstance(create_record_store(config), InMemoryRecordStore)

    def test_supabase_with_url_and_key(self):
        config = Config(supabase_url="https://p.supabase.co", supabase_key="k")

        assert isinstance(create_record_store(config), SupabaseRecordStore)

    def test_url_without_key_rejected(self):
        config = Config(supabase_url="https://p.supabase.co", supabase_key="")

        with pytest.raises(StoreConfigurationError):
            create_record_store(config)

    def test_singleton_from_environment(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)

        store = get_record_store()

        assert isinstance(store, InMemoryRecordStore)
        assert get_record_store() is store

    def test_set_record_store(self):
        store = InMemoryRecordStore()
        set_record_store(store)

        assert get_record_store() is store
