"""Error kinds raised by the transaction backend."""

from __future__ import annotations

from uuid import UUID

from shared.models import ErrorCode


class TransactionError(Exception):
    """Base class for failures that map to a stable error code."""

    code: ErrorCode = ErrorCode.INTERNAL

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TransactionNotFoundError(TransactionError):
    """Raised when an operation targets an id absent from the store."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, transaction_id: UUID) -> None:
        super().__init__(f"Transaction {transaction_id} not found")
        self.transaction_id = transaction_id


class DuplicateTransactionError(TransactionError):
    """Raised when a create targets an id already present in the store."""

    code = ErrorCode.DUPLICATE_RECORD

    def __init__(self, transaction_id: UUID) -> None:
        super().__init__(f"Transaction {transaction_id} already exists")
        self.transaction_id = transaction_id


class InvalidTransactionError(TransactionError):
    """Raised for malformed pagination or payload parameters."""

    code = ErrorCode.INVALID_REQUEST


class TransactionStoreError(TransactionError):
    """Raised when the backing record store fails unexpectedly."""

    code = ErrorCode.INTERNAL


class LockAcquisitionTimeout(TransactionError):
    """Raised when a shard lock cannot be acquired within the configured timeout."""

    code = ErrorCode.UNAVAILABLE
