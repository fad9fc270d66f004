"""Pydantic contracts shared across the backend layers and the HTTP surface."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


DESCRIPTION_MAX_LENGTH = 255


class TransactionType(str, Enum):
    """Closed set of transaction record variants."""

    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    TRANSFER_OUT = "TRANSFER_OUT"
    TRANSFER_IN = "TRANSFER_IN"


class ErrorCode(str, Enum):
    """Stable error codes surfaced at the HTTP boundary."""

    NOT_FOUND = "NOT_FOUND"
    DUPLICATE_RECORD = "DUPLICATE_RECORD"
    INVALID_REQUEST = "INVALID_REQUEST"
    INTERNAL = "INTERNAL"
    UNAVAILABLE = "UNAVAILABLE"


class TransactionRecord(BaseModel):
    """Stored representation of a transaction, as returned to clients."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: UUID
    type: TransactionType
    amount: Decimal = Field(gt=0, max_digits=19, decimal_places=4)
    account_id: UUID
    related_account_id: UUID | None = None
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TransactionPayload(BaseModel):
    """Client body for create and update; server-set timestamps are ignored."""

    model_config = ConfigDict(extra="ignore")

    id: UUID | None = None
    type: TransactionType
    amount: Decimal = Field(gt=0, max_digits=19, decimal_places=4)
    account_id: UUID
    related_account_id: UUID | None = None
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)

    def to_record(self, transaction_id: UUID) -> TransactionRecord:
        """Build an unstamped record carrying the given identifier."""

        return TransactionRecord(
            id=transaction_id,
            type=self.type,
            amount=self.amount,
            account_id=self.account_id,
            related_account_id=self.related_account_id,
            description=self.description,
        )


class TransactionCreatePayload(TransactionPayload):
    """Create body; the client-supplied id is mandatory."""

    id: UUID


class ErrorResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: ErrorCode
    message: str
    details: list[dict[str, object]] | None = None
