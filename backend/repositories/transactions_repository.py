"""Transactions record store adapters.

The store owns timestamp stamping: `insert` sets `created_at` and `updated_at`,
`save` keeps `created_at` and refreshes `updated_at`.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Protocol
from uuid import UUID

from backend.db.supabase_client import SupabaseClient
from backend.errors import DuplicateTransactionError, TransactionNotFoundError, TransactionStoreError
from shared.models import TransactionRecord, TransactionType


Clock = Callable[[], datetime]

_SELECT_COLUMNS = "id,type,amount,account_id,related_account_id,description,created_at,updated_at"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TransactionsRepository(Protocol):
    def exists(self, transaction_id: UUID) -> bool:
        """Return whether a record is stored under the id."""

    def get(self, transaction_id: UUID) -> TransactionRecord | None:
        """Return the stored record or None when absent."""

    def insert(self, record: TransactionRecord) -> TransactionRecord:
        """Store a new record, stamping both timestamps."""

    def save(self, record: TransactionRecord) -> TransactionRecord:
        """Overwrite an existing record by id, refreshing `updated_at`."""

    def delete(self, transaction_id: UUID) -> None:
        """Remove the record stored under the id, if any."""

    def list_page(self, offset: int, limit: int) -> tuple[list[TransactionRecord], int]:
        """Return one page of records in store order plus the total count."""


class InMemoryTransactionsRepository:
    """In-process store used for local dev/tests when Supabase is not configured."""

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._rows: dict[UUID, TransactionRecord] = {}
        self._lock = threading.Lock()

    def exists(self, transaction_id: UUID) -> bool:
        with self._lock:
            return transaction_id in self._rows

    def get(self, transaction_id: UUID) -> TransactionRecord | None:
        with self._lock:
            return self._rows.get(transaction_id)

    def insert(self, record: TransactionRecord) -> TransactionRecord:
        with self._lock:
            if record.id in self._rows:
                raise DuplicateTransactionError(record.id)
            now = self._clock()
            stored = record.model_copy(update={"created_at": now, "updated_at": now})
            self._rows[record.id] = stored
            return stored

    def save(self, record: TransactionRecord) -> TransactionRecord:
        with self._lock:
            previous = self._rows.get(record.id)
            if previous is None:
                raise TransactionNotFoundError(record.id)
            now = self._clock()
            # updated_at must move forward even when the clock has not ticked.
            if previous.updated_at is not None and now <= previous.updated_at:
                now = previous.updated_at + timedelta(microseconds=1)
            stored = record.model_copy(update={"created_at": previous.created_at, "updated_at": now})
            self._rows[record.id] = stored
            return stored

    def delete(self, transaction_id: UUID) -> None:
        with self._lock:
            self._rows.pop(transaction_id, None)

    def list_page(self, offset: int, limit: int) -> tuple[list[TransactionRecord], int]:
        with self._lock:
            rows = list(self._rows.values())
        return rows[offset : offset + limit], len(rows)


class SupabaseTransactionsRepository:
    """Supabase repository where transactions are stored in a PostgREST table."""

    def __init__(self, client: SupabaseClient, table: str = "transactions", clock: Clock = utc_now) -> None:
        self._client = client
        self._table = table
        self._clock = clock

    @staticmethod
    def _parse_datetime(value: object) -> datetime | None:
        if isinstance(value, datetime):
            return value
        if isinstance(value, str) and value:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        return None

    @staticmethod
    def _optional_uuid(value: object) -> UUID | None:
        if value is None or value == "":
            return None
        return value if isinstance(value, UUID) else UUID(str(value))

    @classmethod
    def _parse_row(cls, row: dict[str, object]) -> TransactionRecord:
        raw_id = row.get("id")
        raw_account_id = row.get("account_id")
        if raw_id is None or raw_account_id is None:
            raise TransactionStoreError(f"Malformed transaction row returned by store: {row!r}")

        return TransactionRecord(
            id=UUID(str(raw_id)),
            type=TransactionType(str(row.get("type"))),
            amount=Decimal(str(row.get("amount"))),
            account_id=UUID(str(raw_account_id)),
            related_account_id=cls._optional_uuid(row.get("related_account_id")),
            description=row.get("description"),
            created_at=cls._parse_datetime(row.get("created_at")),
            updated_at=cls._parse_datetime(row.get("updated_at")),
        )

    @staticmethod
    def _serialize(record: TransactionRecord) -> dict[str, object]:
        return {
            "type": record.type.value,
            "amount": str(record.amount),
            "account_id": str(record.account_id),
            "related_account_id": str(record.related_account_id) if record.related_account_id else None,
            "description": record.description,
        }

    def exists(self, transaction_id: UUID) -> bool:
        rows, _ = self._client.get_rows(
            table=self._table,
            query=[("id", f"eq.{transaction_id}"), ("select", "id"), ("limit", 1)],
            with_count=False,
        )
        return bool(rows)

    def get(self, transaction_id: UUID) -> TransactionRecord | None:
        rows, _ = self._client.get_rows(
            table=self._table,
            query=[("id", f"eq.{transaction_id}"), ("select", _SELECT_COLUMNS), ("limit", 1)],
            with_count=False,
        )
        if not rows:
            return None
        return self._parse_row(rows[0])

    def insert(self, record: TransactionRecord) -> TransactionRecord:
        now = self._clock().isoformat()
        payload = {
            "id": str(record.id),
            **self._serialize(record),
            "created_at": now,
            "updated_at": now,
        }
        rows = self._client.post_rows(table=self._table, payload=payload)
        if not rows:
            raise TransactionStoreError(f"Store returned no row for inserted transaction {record.id}")
        return self._parse_row(rows[0])

    def save(self, record: TransactionRecord) -> TransactionRecord:
        payload = {**self._serialize(record), "updated_at": self._clock().isoformat()}
        rows = self._client.patch_rows(
            table=self._table,
            query=[("id", f"eq.{record.id}")],
            payload=payload,
        )
        if not rows:
            raise TransactionNotFoundError(record.id)
        return self._parse_row(rows[0])

    def delete(self, transaction_id: UUID) -> None:
        self._client.delete_rows(table=self._table, query=[("id", f"eq.{transaction_id}")])

    def list_page(self, offset: int, limit: int) -> tuple[list[TransactionRecord], int]:
        rows, total = self._client.get_rows(
            table=self._table,
            query=[
                ("select", _SELECT_COLUMNS),
                ("order", "created_at.asc,id.asc"),
                ("limit", limit),
                ("offset", offset),
            ],
            with_count=True,
        )
        items = [self._parse_row(row) for row in rows]
        return items, total if total is not None else offset + len(items)
