"""
Record Store - Table Inserts Against the Hosted Database

The wizard writes through a small interface: one insert operation per
table, returning either the generated identifier of a single inserted row
or a plain success indicator for batch inserts. Failures are values, not
exceptions, so the submission pipeline can short-circuit on them.

Implementations:
- SupabaseRecordStore: PostgREST endpoint of a Supabase project
- InMemoryRecordStore: development and tests
"""

from __future__ import annotations

import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, Union

import requests

from utils.config import Config


logger = logging.getLogger(__name__)


Row = dict[str, Any]


class StoreConfigurationError(ValueError):
    """Raised when the record store settings are incomplete."""


# =============================================================================
# Insert Results
# =============================================================================


@dataclass(frozen=True)
class InsertSuccess:
    """Returned when an insert succeeded."""

    table: str
    row_count: int
    # Value of the requested column for single-row inserts, else None
    returned: Any = None


@dataclass(frozen=True)
class InsertFailure:
    """Returned when an insert failed. `message` is diagnostic only."""

    table: str
    message: str
    status_code: Optional[int] = None


InsertResult = Union[InsertSuccess, InsertFailure]


# =============================================================================
# Interface
# =============================================================================


class RecordStore(ABC):
    """Abstract table-insert interface."""

    @abstractmethod
    def insert(
        self,
        table: str,
        rows: Sequence[Row],
        returning: Optional[str] = None,
    ) -> InsertResult:
        """
        Insert rows into a table.

        Args:
            table: Table name
            rows: Rows to insert
            returning: Column to return; the insert must then produce
                exactly one row

        Returns:
            InsertSuccess or InsertFailure
        """

    def close(self) -> None:
        """Release any held resources."""


# =============================================================================
# Supabase (PostgREST)
# =============================================================================


class SupabaseRecordStore(RecordStore):
    """
    Record store backed by the Supabase REST API.

    Each insert is a single POST to /rest/v1/<table>. Nothing is retried.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        if not url:
            raise StoreConfigurationError("Supabase URL is required")
        if not api_key:
            raise StoreConfigurationError("Supabase API key is required")

        self._base_url = f"{url.rstrip('/')}/rest/v1"
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    def insert(
        self,
        table: str,
        rows: Sequence[Row],
        returning: Optional[str] = None,
    ) -> InsertResult:
        params = {}
        headers = {"Prefer": "return=minimal"}
        if returning:
            params["select"] = returning
            headers["Prefer"] = "return=representation"

        try:
            response = self._session.post(
                f"{self._base_url}/{table}",
                json=list(rows),
                params=params,
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            return InsertFailure(table=table, message=f"Request failed: {e}")

        if not response.ok:
            return InsertFailure(
                table=table,
                message=self._error_message(response),
                status_code=response.status_code,
            )

        if not returning:
            return InsertSuccess(table=table, row_count=len(rows))

        try:
            inserted = response.json()
        except ValueError:
            return InsertFailure(
                table=table,
                message="Response body is not valid JSON",
                status_code=response.status_code,
            )

        if not isinstance(inserted, list) or len(inserted) != 1:
            count = len(inserted) if isinstance(inserted, list) else 0
            return InsertFailure(
                table=table,
                message=f"Expected exactly one inserted row, got {count}",
                status_code=response.status_code,
            )

        row = inserted[0]
        if returning not in row:
            return InsertFailure(
                table=table,
                message=f"Inserted row has no column '{returning}'",
                status_code=response.status_code,
            )

        return InsertSuccess(table=table, row_count=1, returned=row[returning])

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        """Extract the PostgREST error message, falling back to the body."""
        try:
            body = response.json()
        except ValueError:
            return f"HTTP {response.status_code}: {response.text[:200]}"
        if isinstance(body, dict):
            message = body.get("message") or body.get("error") or str(body)
            details = body.get("details")
            if details:
                message = f"{message} ({details})"
            return f"HTTP {response.status_code}: {message}"
        return f"HTTP {response.status_code}: {body}"

    def close(self) -> None:
        """Close the HTTP session."""
        self._session.close()


# =============================================================================
# In-Memory
# =============================================================================


@dataclass
class InsertCall:
    """One recorded call to InMemoryRecordStore.insert."""

    table: str
    rows: list[Row]
    returning: Optional[str] = None


@dataclass
class InMemoryRecordStore(RecordStore):
    """
    In-memory record store for development and tests.

    Every row gets an auto-incremented `id` per table. Tables listed in
    `failing_tables` reject all inserts.
    """

    tables: dict[str, list[Row]] = field(default_factory=dict)
    calls: list[InsertCall] = field(default_factory=list)
    failing_tables: set[str] = field(default_factory=set)
    failure_message: str = "simulated store error"

    def __post_init__(self) -> None:
        self._counters: dict[str, itertools.count] = {}

    def fail_on(self, table: str) -> None:
        """Make every insert into `table` fail."""
        self.failing_tables.add(table)

    def rows(self, table: str) -> list[Row]:
        return list(self.tables.get(table, []))

    def insert(
        self,
        table: str,
        rows: Sequence[Row],
        returning: Optional[str] = None,
    ) -> InsertResult:
        self.calls.append(InsertCall(table=table, rows=[dict(r) for r in rows], returning=returning))

        if table in self.failing_tables:
            return InsertFailure(table=table, message=self.failure_message)
        if returning and len(rows) != 1:
            return InsertFailure(
                table=table,
                message=f"Expected exactly one inserted row, got {len(rows)}",
            )

        counter = self._counters.setdefault(table, itertools.count(1))
        stored = []
        for row in rows:
            record = {"id": next(counter), **row}
            stored.append(record)
        self.tables.setdefault(table, []).extend(stored)

        if returning:
            if returning not in stored[0]:
                return InsertFailure(
                    table=table,
                    message=f"Inserted row has no column '{returning}'",
                )
            return InsertSuccess(table=table, row_count=1, returned=stored[0][returning])
        return InsertSuccess(table=table, row_count=len(stored))


# =============================================================================
# Singleton Instance
# =============================================================================

_store_instance: Optional[RecordStore] = None


def create_record_store(config: Optional[Config] = None) -> RecordStore:
    """
    Build a record store from configuration.

    Supabase when SUPABASE_URL is set, in-memory otherwise.

    Raises:
        StoreConfigurationError: If the URL is set without a key
    """
    config = config or Config.load()
    if config.uses_supabase:
        logger.info("Using Supabase record store at %s", config.supabase_url)
        return SupabaseRecordStore(
            url=config.supabase_url,
            api_key=config.supabase_key,
            timeout=config.store_timeout,
        )
    logger.warning("SUPABASE_URL not set; submissions are kept in memory only")
    return InMemoryRecordStore()


def get_record_store() -> RecordStore:
    """Get the record store singleton."""
    global _store_instance
    if _store_instance is None:
        _store_instance = create_record_store()
    return _store_instance


def set_record_store(store: RecordStore) -> None:
    """Replace the singleton instance (for tests and embedding)."""
    global _store_instance
    _store_instance = store


def reset_record_store() -> None:
    """Reset the singleton instance (for testing)."""
    global _store_instance
    if _store_instance is not None:
        _store_instance.close()
    _store_instance = None
