"""Composition root for backend services."""

from __future__ import annotations

import logging
from functools import lru_cache

from backend.db.supabase_client import SupabaseClient, SupabaseSettings
from backend.repositories.transactions_repository import (
    InMemoryTransactionsRepository,
    SupabaseTransactionsRepository,
    TransactionsRepository,
)
from backend.services.shard_locks import ShardLockTable
from backend.services.transaction_cache import TransactionCache
from backend.services.transaction_service import TransactionService
from shared import config


logger = logging.getLogger(__name__)


def build_transactions_repository() -> TransactionsRepository:
    """Return the Supabase store when configured, the in-memory store otherwise."""

    supabase_url = config.supabase_url()
    supabase_key = config.supabase_service_role_key()
    if supabase_url and supabase_key:
        supabase_client = SupabaseClient(
            settings=SupabaseSettings(
                url=supabase_url,
                service_role_key=supabase_key,
            )
        )
        logger.info("transactions_repository=supabase table=%s", config.supabase_transactions_table())
        return SupabaseTransactionsRepository(
            client=supabase_client,
            table=config.supabase_transactions_table(),
        )

    logger.info("transactions_repository=in_memory")
    return InMemoryTransactionsRepository()


def build_transaction_service() -> TransactionService:
    """Build the transaction service with its lock table, cache and store."""

    return TransactionService(
        repository=build_transactions_repository(),
        locks=ShardLockTable(
            stripes=config.transaction_lock_stripes(),
            timeout_seconds=config.transaction_lock_timeout_seconds(),
        ),
        cache=TransactionCache(enabled=config.transaction_cache_enabled()),
    )


@lru_cache(maxsize=1)
def get_transaction_service() -> TransactionService:
    """Create and cache the transaction service once per process."""

    return build_transaction_service()
