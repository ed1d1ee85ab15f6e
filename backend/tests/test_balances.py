# tests/test_balances.py
"""
Tests for BalanceAggregator.

Tests cover:
- Applying and reversing postings (idempotency, reversibility)
- Opening balances and year-end carry-forward
- Rebuilding from the posted-entry log
- Rebuild locks against concurrent postings
- Trial balance
"""

from datetime import date
from decimal import Decimal

import pytest
from django.utils import timezone

from balances.models import AccountBalance, BalanceRebuildLock, PostingApplication
from conftest import journal_draft
from ledger import commands
from ledger.exceptions import ConcurrentModificationError, ConsistencyError
from ledger.models import Transaction
from ledger.types import EntryDraft


def _bucket(account, period, fund=None):
    return AccountBalance.objects.get(account=account, fiscal_period=period, fund=fund)


def _snapshot():
    return {
        b.key: tuple(getattr(b, name) for name in AccountBalance.DERIVED_FIELDS)
        for b in AccountBalance.objects.all()
    }


# =============================================================================
# Apply / reverse
# =============================================================================

@pytest.mark.django_db
class TestApplyPosting:
    def test_sign_follows_normal_balance(self, post_journal, periods, expense_account, cash_account):
        post_journal(expense_account, cash_account, "40.00")

        assert _bucket(expense_account, periods[2]).current_balance == Decimal("40.00")
        assert _bucket(cash_account, periods[2]).current_balance == Decimal("-40.00")

    def test_apply_is_idempotent(self, post_journal, aggregator, periods, cash_account, revenue_account):
        txn = post_journal(cash_account, revenue_account, "100.00")
        before = _snapshot()

        assert aggregator.apply_posting(txn) is False
        assert aggregator.apply_posting(txn) is False

        assert _snapshot() == before
        assert PostingApplication.objects.filter(transaction=txn).count() == 1

    def test_reverse_is_exact_negation(self, post_journal, aggregator, periods, cash_account, revenue_account):
        post_journal(cash_account, revenue_account, "70.00")
        before = _snapshot()
        txn = post_journal(cash_account, revenue_account, "30.00")

        assert aggregator.reverse_posting(txn) is True
        assert aggregator.reverse_posting(txn) is False

        assert _snapshot() == before

    def test_reverse_without_apply_is_noop(self, manager, aggregator, fiscal_year, cash_account, revenue_account):
        txn = manager.create_draft(journal_draft(cash_account, revenue_account, "10.00"))

        assert aggregator.reverse_posting(txn) is False
        assert AccountBalance.objects.count() == 0

    def test_funds_have_separate_buckets(self, post_journal, periods, cash_account, revenue_account, fund, restricted_fund):
        post_journal(cash_account, revenue_account, "10.00", fund=fund)
        post_journal(cash_account, revenue_account, "25.00", fund=restricted_fund)
        post_journal(cash_account, revenue_account, "5.00")

        assert _bucket(cash_account, periods[2], fund).current_balance == Decimal("10.00")
        assert _bucket(cash_account, periods[2], restricted_fund).current_balance == Decimal("25.00")
        assert _bucket(cash_account, periods[2]).current_balance == Decimal("5.00")

    def test_lines_on_same_account_are_combined(self, manager, periods, cash_account, revenue_account):
        draft = journal_draft(cash_account, revenue_account, "60.00")
        draft.entries[0].debit_amount = Decimal("45.00")
        draft.entries.append(EntryDraft(account_id=cash_account.pk, debit_amount=Decimal("15.00")))
        txn = manager.create_draft(draft)
        manager.approve(txn.pk, "controller")
        manager.post(txn.pk, "controller")

        cash = _bucket(cash_account, periods[2])
        assert cash.current_balance == Decimal("60.00")
        assert cash.entry_count == 2


# =============================================================================
# Openings and running balances
# =============================================================================

@pytest.mark.django_db
class TestOpeningBalances:
    def test_later_period_opens_with_earlier_activity(self, post_journal, periods, cash_account, revenue_account):
        post_journal(cash_account, revenue_account, "100.00", day=date(2024, 1, 10))
        post_journal(cash_account, revenue_account, "50.00", day=date(2024, 3, 10))

        march = _bucket(cash_account, periods[2])
        assert march.opening_balance == Decimal("100.00")
        assert march.current_balance == Decimal("50.00")
        assert march.closing_balance == Decimal("150.00")

    def test_backdated_posting_rolls_forward(self, post_journal, periods, cash_account, revenue_account):
        post_journal(cash_account, revenue_account, "50.00", day=date(2024, 3, 10))
        post_journal(cash_account, revenue_account, "20.00", day=date(2024, 1, 10))

        march = _bucket(cash_account, periods[2])
        assert march.opening_balance == Decimal("20.00")
        assert march.closing_balance == Decimal("70.00")

    def test_running_balance(self, post_journal, aggregator, periods, cash_account, revenue_account):
        post_journal(cash_account, revenue_account, "100.00", day=date(2024, 1, 10))
        post_journal(cash_account, revenue_account, "50.00", day=date(2024, 3, 10))

        assert aggregator.get_running_balance(cash_account.pk, periods[1].pk) == Decimal("100.00")
        assert aggregator.get_running_balance(cash_account.pk, periods[11].pk) == Decimal("150.00")

    def test_get_balance_without_activity_is_zero(self, aggregator, periods, cash_account):
        balance = aggregator.get_balance(cash_account.pk, periods[5].pk)

        assert balance.pk is None
        assert balance.current_balance == Decimal("0.00")
        assert balance.closing_balance == Decimal("0.00")

    def test_balance_sheet_carries_into_next_year(
        self, post_journal, aggregator, repository, periods, next_fiscal_year, cash_account, revenue_account
    ):
        post_journal(cash_account, revenue_account, "500.00", day=date(2024, 12, 10))
        for period in periods:
            commands.close_period(repository, period.pk)
        commands.close_fiscal_year(repository, periods[0].fiscal_year_id)
        january = next_fiscal_year.periods.get(number=1)

        post_journal(cash_account, revenue_account, "40.00", day=date(2025, 1, 5))

        cash = _bucket(cash_account, january)
        revenue = _bucket(revenue_account, january)
        assert cash.opening_balance == Decimal("500.00")
        assert cash.closing_balance == Decimal("540.00")
        assert revenue.opening_balance == Decimal("0.00")
        assert revenue.closing_balance == Decimal("40.00")
        assert aggregator.get_running_balance(revenue_account.pk, january.pk) == Decimal("40.00")
        assert aggregator.get_running_balance(cash_account.pk, january.pk) == Decimal("540.00")


# =============================================================================
# Rebuild from the log
# =============================================================================

@pytest.mark.django_db
class TestRebuild:
    @pytest.fixture
    def activity(self, post_journal, manager, make_invoice, cash_account, revenue_account, expense_account, fund):
        post_journal(cash_account, revenue_account, "1000.00", day=date(2024, 1, 5))
        post_journal(expense_account, cash_account, "120.50", day=date(2024, 2, 9), fund=fund)
        voided = post_journal(cash_account, revenue_account, "99.99", day=date(2024, 1, 6))
        manager.void(voided.pk, reason="Wrong vendor")
        post_journal(cash_account, revenue_account, "15.25", day=date(2024, 4, 20))
        make_invoice("300.00", due_date=date(2024, 5, 1), day=date(2024, 4, 1))

    def test_rebuild_matches_incremental(self, activity, aggregator):
        incremental = _snapshot()
        AccountBalance.objects.all().delete()

        result = aggregator.rebuild_from_log()

        assert result["created"] == len(incremental)
        assert result["updated"] == 0
        assert _snapshot() == incremental

    def test_rebuild_over_consistent_state_changes_nothing(self, activity, aggregator):
        before = _snapshot()

        result = aggregator.rebuild_from_log()

        assert result == {
            "scope": "*",
            "buckets_checked": len(before),
            "created": 0,
            "updated": 0,
            "mismatches": [],
            "forced": False,
        }
        assert _snapshot() == before

    def test_rebuild_single_account(self, activity, aggregator, cash_account):
        AccountBalance.objects.filter(account=cash_account).delete()

        result = aggregator.rebuild_from_log(account_id=cash_account.pk)

        assert result["scope"] == str(cash_account.pk)
        assert result["created"] == 3
        assert aggregator.verify()["missing"] == []

    def test_mismatch_raises_consistency_error(self, activity, aggregator, cash_account, periods):
        AccountBalance.objects.filter(account=cash_account, fiscal_period=periods[0]).update(
            current_balance=Decimal("999.00")
        )

        with pytest.raises(ConsistencyError) as exc_info:
            aggregator.rebuild_from_log()

        fields = {m["field"] for m in exc_info.value.mismatches}
        assert "current_balance" in fields
        assert _bucket(cash_account, periods[0]).current_balance == Decimal("999.00")
        assert not BalanceRebuildLock.objects.exists()

    def test_force_lets_the_log_win(self, activity, aggregator, cash_account, periods):
        AccountBalance.objects.filter(account=cash_account, fiscal_period=periods[0]).update(
            current_balance=Decimal("999.00")
        )

        result = aggregator.rebuild_from_log(force=True)

        assert result["forced"] is True
        assert result["updated"] == 1
        assert _bucket(cash_account, periods[0]).current_balance == Decimal("1000.00")
        assert aggregator.verify()["mismatches"] == []

    def test_verify_reports_without_writing(self, activity, aggregator, cash_account, periods):
        AccountBalance.objects.filter(account=cash_account, fiscal_period=periods[0]).update(entry_count=7)
        AccountBalance.objects.filter(account=cash_account, fiscal_period=periods[3]).delete()

        report = aggregator.verify()

        assert [m["field"] for m in report["mismatches"]] == ["entry_count"]
        assert (cash_account.pk, None, periods[3].pk) in report["missing"]
        assert _bucket(cash_account, periods[0]).entry_count == 7

    def test_compute_from_log_ignores_voided(self, activity, aggregator, cash_account, periods):
        states = aggregator.compute_from_log(cash_account.pk)

        january = states[(cash_account.pk, None, periods[0].pk)]
        assert january.current_balance == Decimal("1000.00")
        assert january.entry_count == 1


# =============================================================================
# Rebuild locks
# =============================================================================

@pytest.mark.django_db
class TestRebuildLock:
    def test_posting_rejected_while_rebuild_runs(self, manager, fiscal_year, periods, cash_account, revenue_account):
        txn = manager.create_draft(journal_draft(cash_account, revenue_account, "10.00"))
        manager.approve(txn.pk, "controller")
        BalanceRebuildLock.objects.create(scope="*", owner="test", acquired_at=timezone.now())

        with pytest.raises(ConcurrentModificationError, match="rebuild is running"):
            manager.post(txn.pk, "controller")

        txn.refresh_from_db()
        assert txn.status == Transaction.Status.APPROVED
        assert not AccountBalance.objects.exists()

    def test_account_lock_only_blocks_that_account(self, post_journal, expense_account, cash_account, revenue_account):
        BalanceRebuildLock.objects.create(scope=str(expense_account.pk), acquired_at=timezone.now())

        post_journal(cash_account, revenue_account, "10.00")

        with pytest.raises(ConcurrentModificationError):
            post_journal(expense_account, cash_account, "5.00")

    def test_second_rebuild_rejected(self, aggregator, db):
        BalanceRebuildLock.objects.create(scope="*", acquired_at=timezone.now())

        with pytest.raises(ConcurrentModificationError, match="already running"):
            aggregator.rebuild_from_log()

    def test_account_rebuild_blocked_by_full_rebuild(self, aggregator, cash_account):
        BalanceRebuildLock.objects.create(scope="*", acquired_at=timezone.now())

        with pytest.raises(ConcurrentModificationError):
            aggregator.rebuild_from_log(account_id=cash_account.pk)

    def test_lock_released_after_rebuild(self, post_journal, aggregator, cash_account, revenue_account):
        post_journal(cash_account, revenue_account, "10.00")

        aggregator.rebuild_from_log()

        assert not BalanceRebuildLock.objects.exists()


# =============================================================================
# Trial balance
# =============================================================================

@pytest.mark.django_db
class TestTrialBalance:
    def test_trial_balance_is_balanced(self, post_journal, make_bill, aggregator, periods, cash_account, revenue_account, expense_account):
        post_journal(cash_account, revenue_account, "800.00", day=date(2024, 1, 3))
        post_journal(expense_account, cash_account, "250.00", day=date(2024, 2, 3))
        make_bill("75.00", due_date=date(2024, 3, 1), day=date(2024, 2, 20))

        report = aggregator.trial_balance(periods[2].pk)

        assert report["is_balanced"] is True
        assert report["total_debit"] == report["total_credit"] == "875.00"
        rows = {row["number"]: row for row in report["accounts"]}
        assert rows["1000"]["debit"] == "550.00"
        assert rows["4000"]["credit"] == "800.00"
        assert rows["5000"]["debit"] == "325.00"
        assert rows["2000"]["credit"] == "75.00"

    def test_trial_balance_excludes_later_periods(self, post_journal, aggregator, periods, cash_account, revenue_account):
        post_journal(cash_account, revenue_account, "10.00", day=date(2024, 1, 3))
        post_journal(cash_account, revenue_account, "90.00", day=date(2024, 6, 3))

        report = aggregator.trial_balance(periods[0].pk)

        assert report["total_debit"] == "10.00"
