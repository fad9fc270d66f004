"""Tests for transaction service locking, existence checks and cache consistency."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from backend.errors import (
    DuplicateTransactionError,
    InvalidTransactionError,
    LockAcquisitionTimeout,
    TransactionNotFoundError,
)
from backend.services.shard_locks import ShardLockTable
from backend.services.transaction_cache import LIST_REGION, RECORD_REGION, TransactionCache
from backend.services.transaction_service import TransactionService
from shared.models import TransactionType
from tests.fakes import (
    ACCOUNT_ID,
    RecordingRepository,
    SlowRepository,
    build_create_payload,
    build_payload,
    transaction_id,
)


def _build_service(repository: RecordingRepository | None = None, **kwargs) -> TransactionService:
    return TransactionService(repository=repository or RecordingRepository(), **kwargs)


def test_create_get_update_delete_scenario() -> None:
    service = _build_service()
    record_id = transaction_id(0)

    created = service.create_transaction(build_create_payload(record_id))
    assert created.created_at is not None

    fetched = service.get_transaction(record_id)
    assert fetched.amount == Decimal("100.00")
    assert fetched.type is TransactionType.DEPOSIT
    assert fetched.account_id == ACCOUNT_ID

    with pytest.raises(DuplicateTransactionError):
        service.create_transaction(build_create_payload(record_id))

    service.update_transaction(
        record_id, build_payload(record_id, type=TransactionType.WITHDRAWAL, amount="50.00")
    )
    updated = service.get_transaction(record_id)
    assert updated.amount == Decimal("50.00")
    assert updated.type is TransactionType.WITHDRAWAL
    assert updated.created_at == created.created_at
    assert updated.updated_at > updated.created_at

    service.delete_transaction(record_id)
    with pytest.raises(TransactionNotFoundError):
        service.get_transaction(record_id)


def test_duplicate_create_leaves_store_and_listing_cache_untouched() -> None:
    repository = RecordingRepository()
    service = _build_service(repository)
    record_id = transaction_id(0)
    service.create_transaction(build_create_payload(record_id, description="first"))
    service.list_transactions(0, 10)
    generation = service.cache.generation(LIST_REGION)

    with pytest.raises(DuplicateTransactionError):
        service.create_transaction(build_create_payload(record_id, description="second"))

    assert repository.calls["insert"] == 1
    assert service.cache.generation(LIST_REGION) == generation
    assert service.get_transaction(record_id).description == "first"


def test_create_invalidates_listing_but_does_not_populate_record_cache() -> None:
    service = _build_service()
    service.create_transaction(build_create_payload(transaction_id(0)))
    assert len(service.list_transactions(0, 10)) == 1

    service.create_transaction(build_create_payload(transaction_id(1)))

    assert len(service.list_transactions(0, 10)) == 2
    assert service.cache.stats(RECORD_REGION).size == 0


def test_create_without_id_is_rejected() -> None:
    service = _build_service()

    with pytest.raises(InvalidTransactionError):
        service.create_transaction(build_payload(None))


def test_get_serves_second_read_from_cache() -> None:
    repository = RecordingRepository()
    service = _build_service(repository)
    record_id = transaction_id(0)
    service.create_transaction(build_create_payload(record_id))

    first = service.get_transaction(record_id)
    second = service.get_transaction(record_id)

    assert first == second
    assert repository.calls["get"] == 1


def test_not_found_result_is_never_cached() -> None:
    repository = RecordingRepository()
    service = _build_service(repository)
    record_id = transaction_id(0)

    for _ in range(2):
        with pytest.raises(TransactionNotFoundError):
            service.get_transaction(record_id)

    assert repository.calls["get"] == 2
    assert service.cache.stats(RECORD_REGION).size == 0


def test_list_returns_first_page_in_store_order() -> None:
    service = _build_service()
    for index in range(15):
        service.create_transaction(build_create_payload(transaction_id(index)))

    first_page = service.list_transactions(0, 10)
    second_page = service.list_transactions(1, 10)

    assert [item.id for item in first_page] == [transaction_id(index) for index in range(10)]
    assert [item.id for item in second_page] == [transaction_id(index) for index in range(10, 15)]


def test_list_hits_short_circuit_the_store() -> None:
    repository = RecordingRepository()
    service = _build_service(repository)
    service.create_transaction(build_create_payload(transaction_id(0)))

    service.list_transactions(0, 10)
    service.list_transactions(0, 10)
    service.list_transactions(0, 5)

    assert repository.calls["list_page"] == 2


@pytest.mark.parametrize(("page", "size"), [(-1, 10), (0, 0), (0, -5)])
def test_list_rejects_invalid_pagination(page: int, size: int) -> None:
    repository = RecordingRepository()
    service = _build_service(repository)

    with pytest.raises(InvalidTransactionError):
        service.list_transactions(page, size)

    assert "list_page" not in repository.calls


def test_update_evicts_record_and_listing_entries() -> None:
    service = _build_service()
    record_id = transaction_id(0)
    service.create_transaction(build_create_payload(record_id))
    service.get_transaction(record_id)
    service.list_transactions(0, 10)

    service.update_transaction(record_id, build_payload(record_id, amount="75.50"))

    assert service.get_transaction(record_id).amount == Decimal("75.50")
    assert service.list_transactions(0, 10)[0].amount == Decimal("75.50")


def test_delete_evicts_record_and_listing_entries() -> None:
    service = _build_service()
    record_id = transaction_id(0)
    service.create_transaction(build_create_payload(record_id))
    service.get_transaction(record_id)
    assert len(service.list_transactions(0, 10)) == 1

    service.delete_transaction(record_id)

    with pytest.raises(TransactionNotFoundError):
        service.get_transaction(record_id)
    assert service.list_transactions(0, 10) == []


def test_update_and_delete_of_unknown_id_do_not_mutate_anything() -> None:
    repository = RecordingRepository()
    service = _build_service(repository)
    service.create_transaction(build_create_payload(transaction_id(0)))
    service.list_transactions(0, 10)
    record_generation = service.cache.generation(RECORD_REGION)
    list_generation = service.cache.generation(LIST_REGION)
    missing_id = transaction_id(99)

    with pytest.raises(TransactionNotFoundError):
        service.update_transaction(missing_id, build_payload(missing_id))
    with pytest.raises(TransactionNotFoundError):
        service.delete_transaction(missing_id)

    assert repository.mutation_count() == 1
    assert service.cache.generation(RECORD_REGION) == record_generation
    assert service.cache.generation(LIST_REGION) == list_generation
    assert service.cache.stats(LIST_REGION).size == 1


def test_update_rejects_body_id_that_differs_from_path_id() -> None:
    repository = RecordingRepository()
    service = _build_service(repository)
    record_id = transaction_id(0)
    service.create_transaction(build_create_payload(record_id))

    with pytest.raises(InvalidTransactionError, match="does not match"):
        service.update_transaction(record_id, build_payload(transaction_id(1), amount="1.00"))

    assert "save" not in repository.calls
    assert service.get_transaction(record_id).amount == Decimal("100.00")


def test_update_without_body_id_uses_path_id() -> None:
    service = _build_service()
    record_id = transaction_id(0)
    service.create_transaction(build_create_payload(record_id))

    updated = service.update_transaction(record_id, build_payload(None, amount="12.34"))

    assert updated.id == record_id
    assert updated.amount == Decimal("12.34")


def test_concurrent_creates_with_same_id_yield_exactly_one_success() -> None:
    repository = SlowRepository()
    service = _build_service(repository)
    record_id = transaction_id(0)

    def _create(_: int) -> str:
        try:
            service.create_transaction(build_create_payload(record_id))
        except DuplicateTransactionError:
            return "duplicate"
        return "created"

    with ThreadPoolExecutor(max_workers=8) as executor:
        outcomes = list(executor.map(_create, range(16)))

    assert outcomes.count("created") == 1
    assert outcomes.count("duplicate") == 15
    assert repository.calls["insert"] == 1


def test_concurrent_updates_on_same_id_are_serialized() -> None:
    repository = SlowRepository()
    service = _build_service(repository)
    record_id = transaction_id(0)
    service.create_transaction(build_create_payload(record_id))

    def _update(index: int):
        return service.update_transaction(record_id, build_payload(record_id, amount=f"{index + 1}.00"))

    with ThreadPoolExecutor(max_workers=8) as executor:
        results = list(executor.map(_update, range(12)))

    assert repository.overlaps == 0
    assert repository.calls["save"] == 12
    stamps = sorted(result.updated_at for result in results)
    assert len(set(stamps)) == 12
    final = service.get_transaction(record_id)
    assert final.updated_at == stamps[-1]


def test_lock_timeout_surfaces_as_distinct_failure_without_mutation() -> None:
    repository = RecordingRepository()
    locks = ShardLockTable(stripes=8, timeout_seconds=0.05)
    service = _build_service(repository, locks=locks, cache=TransactionCache())
    record_id = transaction_id(0)
    service.create_transaction(build_create_payload(record_id))

    with locks.locked(record_id):
        with pytest.raises(LockAcquisitionTimeout):
            service.update_transaction(record_id, build_payload(record_id, amount="1.00"))

    assert "save" not in repository.calls
    assert service.get_transaction(record_id).amount == Decimal("100.00")


def test_reads_do_not_wait_for_held_shard_locks() -> None:
    locks = ShardLockTable(stripes=8)
    service = _build_service(locks=locks)
    record_id = transaction_id(0)
    service.create_transaction(build_create_payload(record_id))

    with locks.locked(record_id):
        assert service.get_transaction(record_id).id == record_id
        assert len(service.list_transactions(0, 10)) == 1


def test_disabled_cache_reads_every_time_from_store() -> None:
    repository = RecordingRepository()
    service = _build_service(repository, cache=TransactionCache(enabled=False))
    record_id = transaction_id(0)
    service.create_transaction(build_create_payload(record_id))

    service.get_transaction(record_id)
    service.get_transaction(record_id)

    assert repository.calls["get"] == 2
