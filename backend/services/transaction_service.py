"""Transaction access service: locking, existence checks, store access and cache upkeep."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID

from backend.errors import (
    DuplicateTransactionError,
    InvalidTransactionError,
    TransactionNotFoundError,
)
from backend.repositories.transactions_repository import TransactionsRepository
from backend.services.shard_locks import ShardLockTable
from backend.services.transaction_cache import LIST_REGION, RECORD_REGION, TransactionCache
from shared.models import TransactionPayload, TransactionRecord


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TransactionService:
    """Create, read, list, update and delete transaction records.

    Mutations on one id are serialized through the shard lock table. Reads
    never take a shard lock.
    """

    repository: TransactionsRepository
    locks: ShardLockTable = field(default_factory=ShardLockTable)
    cache: TransactionCache = field(default_factory=TransactionCache)

    def create_transaction(self, payload: TransactionPayload) -> TransactionRecord:
        if payload.id is None:
            raise InvalidTransactionError("Validation failed: id - field required;")
        transaction_id = payload.id

        with self.locks.locked(transaction_id):
            if self.repository.exists(transaction_id):
                logger.warning("transaction_duplicate_rejected transaction_id=%s", transaction_id)
                raise DuplicateTransactionError(transaction_id)

            stored = self.repository.insert(payload.to_record(transaction_id))
            self.cache.evict_all(LIST_REGION)

        logger.info(
            "transaction_created transaction_id=%s type=%s account_id=%s",
            transaction_id,
            stored.type.value,
            stored.account_id,
        )
        return stored

    def get_transaction(self, transaction_id: UUID) -> TransactionRecord:
        record = self.cache.read_through(
            RECORD_REGION,
            str(transaction_id),
            lambda: self.repository.get(transaction_id),
        )
        if record is None:
            logger.warning("transaction_not_found transaction_id=%s operation=get", transaction_id)
            raise TransactionNotFoundError(transaction_id)
        return record

    def list_transactions(self, page: int, size: int) -> list[TransactionRecord]:
        if page < 0 or size <= 0:
            raise InvalidTransactionError(
                "page must be greater than or equal to 0 and size must be greater than 0"
            )

        def _load_page() -> tuple[TransactionRecord, ...]:
            items, _ = self.repository.list_page(offset=page * size, limit=size)
            return tuple(items)

        items = self.cache.read_through(LIST_REGION, (page, size), _load_page)
        return list(items or ())

    def update_transaction(self, transaction_id: UUID, payload: TransactionPayload) -> TransactionRecord:
        if payload.id is not None and payload.id != transaction_id:
            logger.warning(
                "transaction_id_mismatch path_id=%s body_id=%s",
                transaction_id,
                payload.id,
            )
            raise InvalidTransactionError(
                f"Body id {payload.id} does not match path id {transaction_id}"
            )

        with self.locks.locked(transaction_id):
            if not self.repository.exists(transaction_id):
                logger.warning("transaction_not_found transaction_id=%s operation=update", transaction_id)
                raise TransactionNotFoundError(transaction_id)

            stored = self.repository.save(payload.to_record(transaction_id))
            self.cache.evict(RECORD_REGION, str(transaction_id))
            self.cache.evict_all(LIST_REGION)

        logger.info("transaction_updated transaction_id=%s", transaction_id)
        return stored

    def delete_transaction(self, transaction_id: UUID) -> None:
        with self.locks.locked(transaction_id):
            if not self.repository.exists(transaction_id):
                logger.warning("transaction_not_found transaction_id=%s operation=delete", transaction_id)
                raise TransactionNotFoundError(transaction_id)

            self.repository.delete(transaction_id)
            self.cache.evict(RECORD_REGION, str(transaction_id))
            self.cache.evict_all(LIST_REGION)

        logger.info("transaction_deleted transaction_id=%s", transaction_id)
