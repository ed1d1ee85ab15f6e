# tests/test_concurrency.py
"""
Tests for optimistic concurrency control.

Two callers acting on the same transaction must never both win: the loser
gets ConcurrentModificationError and the balances see the posting once.

The interleaving tests are deterministic: a validator hook runs the
competing operation between the loser's read and its write. The threaded
test needs row locks and only runs against PostgreSQL.
"""

import threading
from datetime import date
from decimal import Decimal

import pytest
from django.db import connection, connections

from balances.aggregator import BalanceAggregator
from balances.models import AccountBalance, PostingApplication
from conftest import journal_draft
from ledger.exceptions import ConcurrentModificationError
from ledger.lifecycle import TransactionLifecycleManager
from ledger.models import Transaction
from ledger.repository import LedgerRepository
from ledger.validators import LedgerEntryValidator


Status = Transaction.Status


class InterleavingValidator(LedgerEntryValidator):
    """Runs `hook` once, at the start of the next validate() call."""

    hook = None

    def validate(self, draft, require_balanced=True):
        hook, self.hook = self.hook, None
        if hook is not None:
            hook()
        super().validate(draft, require_balanced)


@pytest.fixture
def slow_manager(repository, aggregator):
    return TransactionLifecycleManager(
        repository,
        aggregator,
        validator=InterleavingValidator(repository),
    )


@pytest.fixture
def approved_txn(manager, fiscal_year, cash_account, revenue_account):
    txn = manager.create_draft(journal_draft(cash_account, revenue_account, "100.00", day=date(2024, 3, 15)))
    return manager.approve(txn.pk, "controller")


# =============================================================================
# Deterministic interleavings
# =============================================================================

@pytest.mark.django_db
class TestInterleavedOperations:
    def test_concurrent_post_applies_once(self, slow_manager, manager, approved_txn, periods, cash_account):
        slow_manager.validator.hook = lambda: manager.post(approved_txn.pk, "controller-b")

        with pytest.raises(ConcurrentModificationError):
            slow_manager.post(approved_txn.pk, "controller-a")

        approved_txn.refresh_from_db()
        assert approved_txn.status == Status.POSTED
        assert approved_txn.posted_by == "controller-b"
        bucket = AccountBalance.objects.get(account=cash_account, fiscal_period=periods[2])
        assert bucket.current_balance == Decimal("100.00")
        assert bucket.entry_count == 1
        assert PostingApplication.objects.filter(transaction=approved_txn).count() == 1

    def test_post_loses_to_void(self, slow_manager, manager, approved_txn):
        slow_manager.validator.hook = lambda: manager.void(approved_txn.pk, reason="Cancelled")

        with pytest.raises(ConcurrentModificationError):
            slow_manager.post(approved_txn.pk, "controller-a")

        approved_txn.refresh_from_db()
        assert approved_txn.status == Status.VOIDED
        assert not AccountBalance.objects.exists()

    def test_approve_loses_to_return(self, slow_manager, manager, fiscal_year, cash_account, revenue_account):
        txn = manager.create_draft(journal_draft(cash_account, revenue_account, "10.00"))
        manager.submit_for_approval(txn.pk)
        slow_manager.validator.hook = lambda: manager.return_to_draft(txn.pk, reason="Missing receipt")

        with pytest.raises(ConcurrentModificationError):
            slow_manager.approve(txn.pk, "controller-a")

        txn.refresh_from_db()
        assert txn.status == Status.DRAFT
        assert txn.approved_by == ""


@pytest.mark.django_db
class TestCompareAndSet:
    def test_stale_copy_cannot_write(self, manager, repository, fiscal_year, cash_account, revenue_account):
        txn = manager.create_draft(journal_draft(cash_account, revenue_account, "10.00"))
        first = repository.load_transaction(txn.pk)
        second = repository.load_transaction(txn.pk)

        assert repository.compare_and_set(first, Status.DRAFT, status=Status.PENDING_APPROVAL) is True
        assert repository.compare_and_set(second, Status.DRAFT, status=Status.VOIDED) is False

        txn.refresh_from_db()
        assert txn.status == Status.PENDING_APPROVAL
        assert txn.version == 2
        assert second.version == 1


# =============================================================================
# Real threads (PostgreSQL only)
# =============================================================================

@pytest.mark.skipif(connection.vendor != "postgresql", reason="row-level locking needs PostgreSQL")
@pytest.mark.django_db(transaction=True)
def test_parallel_posts_single_winner(fiscal_year, cash_account, revenue_account, periods):
    repository = LedgerRepository()
    manager = TransactionLifecycleManager(repository, BalanceAggregator(repository))
    txn = manager.create_draft(journal_draft(cash_account, revenue_account, "100.00"))
    manager.approve(txn.pk, "controller")

    barrier = threading.Barrier(4)
    outcomes = []

    def worker(name):
        worker_repository = LedgerRepository()
        worker_manager = TransactionLifecycleManager(worker_repository, BalanceAggregator(worker_repository))
        barrier.wait()
        try:
            worker_manager.post(txn.pk, name)
            outcomes.append("posted")
        except ConcurrentModificationError:
            outcomes.append("conflict")
        finally:
            connections.close_all()

    threads = [threading.Thread(target=worker, args=(f"worker-{n}",)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ["conflict", "conflict", "conflict", "posted"]
    bucket = AccountBalance.objects.get(account=cash_account, fiscal_period=periods[2])
    assert bucket.current_balance == Decimal("100.00")
