# ledger/repository.py
"""
Persistence for the ledger core.

LedgerRepository is the only place the core services touch the ORM for
reads and writes of primary state. Services receive an instance through
their constructor (see ledger/services.py), so tests can hand them a
repository wired however they like.
"""

import logging

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from ledger.exceptions import NotFoundError
from ledger.models import (
    Account,
    AuditLogEntry,
    FiscalPeriod,
    Fund,
    Payment,
    Transaction,
    TransactionEntry,
)


logger = logging.getLogger(__name__)


class LedgerRepository:
    """ORM-backed implementation of the ledger persistence interface."""

    # =========================================================================
    # Accounts & funds
    # =========================================================================

    def load_account(self, account_id) -> Account:
        try:
            return Account.objects.get(pk=account_id)
        except Account.DoesNotExist:
            raise NotFoundError(f"Account {account_id} not found.")

    def list_active_accounts(self):
        return list(Account.objects.filter(is_active=True).order_by("number"))

    def accounts_by_id(self, account_ids) -> dict:
        return Account.objects.in_bulk([a for a in account_ids if a is not None])

    def load_fund(self, fund_id) -> Fund:
        try:
            return Fund.objects.get(pk=fund_id)
        except Fund.DoesNotExist:
            raise NotFoundError(f"Fund {fund_id} not found.")

    def funds_by_id(self, fund_ids) -> dict:
        return Fund.objects.in_bulk(list(fund_ids))

    # =========================================================================
    # Fiscal calendar
    # =========================================================================

    def load_fiscal_period(self, period_id) -> FiscalPeriod:
        try:
            return FiscalPeriod.objects.select_related("fiscal_year").get(pk=period_id)
        except FiscalPeriod.DoesNotExist:
            raise NotFoundError(f"Fiscal period {period_id} not found.")

    def fiscal_period_for(self, day):
        return (
            FiscalPeriod.objects
            .select_related("fiscal_year")
            .filter(start_date__lte=day, end_date__gte=day)
            .order_by("start_date")
            .first()
        )

    def periods_by_id(self, period_ids) -> dict:
        return FiscalPeriod.objects.select_related("fiscal_year").in_bulk(list(period_ids))

    def periods_overlapping(self, start_date, end_date):
        return list(
            FiscalPeriod.objects
            .filter(start_date__lte=end_date, end_date__gte=start_date)
            .order_by("start_date")
        )

    # =========================================================================
    # Transactions
    # =========================================================================

    def load_transaction(self, txn_id, for_update: bool = False) -> Transaction:
        qs = Transaction.objects.select_related("fiscal_period__fiscal_year", "customer", "vendor")
        if for_update:
            qs = qs.select_for_update(of=("self",))
        try:
            return qs.get(pk=txn_id)
        except Transaction.DoesNotExist:
            raise NotFoundError(f"Transaction {txn_id} not found.")

    def save_transaction(self, txn: Transaction, entries=None) -> Transaction:
        """
        Save a transaction header and, when given, replace its entries.

        Header and lines are written in one database transaction so a
        failure part way through leaves nothing behind.
        """
        with transaction.atomic():
            txn.save()
            if entries is not None:
                txn.entries.all().delete()
                TransactionEntry.objects.bulk_create([
                    TransactionEntry(
                        transaction=txn,
                        line_number=line_number,
                        account_id=entry.account_id,
                        fund_id=entry.fund_id,
                        description=entry.description,
                        debit_amount=entry.debit_amount,
                        credit_amount=entry.credit_amount,
                    )
                    for line_number, entry in enumerate(entries, start=1)
                ])
        return txn

    def compare_and_set(self, txn: Transaction, expected_status, **changes) -> bool:
        """
        Apply `changes` only if the row still has the status and version the
        caller read. Bumps the version. Updates `txn` in place on success.
        """
        changes.setdefault("updated_at", timezone.now())
        updated = (
            Transaction.objects
            .filter(pk=txn.pk, status=expected_status, version=txn.version)
            .update(version=F("version") + 1, **changes)
        )
        if updated != 1:
            return False

        for field, value in changes.items():
            setattr(txn, field, value)
        txn.version += 1
        return True

    def add_payment(self, payment: Payment) -> Payment:
        payment.save()
        return payment

    def list_invoices_by_customer(self, customer_id=None):
        """Invoices with money still owed: not voided and amount_due > amount_paid."""
        return self._open_documents(Transaction.TransactionType.INVOICE, customer_id=customer_id)

    def list_bills_by_vendor(self, vendor_id=None):
        return self._open_documents(Transaction.TransactionType.BILL, vendor_id=vendor_id)

    def _open_documents(self, txn_type, **counterparty):
        qs = (
            Transaction.objects
            .filter(transaction_type=txn_type, amount_due__gt=F("amount_paid"))
            .exclude(status=Transaction.Status.VOIDED)
            .select_related("customer", "vendor")
            .order_by("due_date", "id")
        )
        for field, value in counterparty.items():
            if value is not None:
                qs = qs.filter(**{field: value})
        return list(qs)

    def count_unfinished_in_period(self, period_id) -> int:
        return Transaction.objects.filter(
            fiscal_period_id=period_id,
            status__in=[Transaction.Status.DRAFT, Transaction.Status.PENDING_APPROVAL],
        ).count()

    # =========================================================================
    # Posted-entry log
    # =========================================================================

    def list_posted_entries_for_account(self, account_id, period_range=None):
        """
        Entries of posted transactions for one account.

        period_range is an iterable of fiscal period ids; None means all.
        """
        qs = self._posted_entries().filter(account_id=account_id)
        if period_range is not None:
            qs = qs.filter(transaction__fiscal_period_id__in=list(period_range))
        return list(qs)

    def list_posted_entries(self, account_id=None):
        if account_id is not None:
            return self.list_posted_entries_for_account(account_id)
        return list(self._posted_entries())

    def _posted_entries(self):
        return (
            TransactionEntry.objects
            .filter(transaction__status__in=Transaction.POSTED_STATUSES)
            .select_related("account", "transaction")
            .order_by("transaction_id", "line_number")
        )

    # =========================================================================
    # Balances
    # =========================================================================

    def load_balance(self, account_id, period_id, fund_id=None, for_update: bool = False):
        from balances.models import AccountBalance

        qs = AccountBalance.objects.all()
        if for_update:
            qs = qs.select_for_update()
        return qs.filter(
            account_id=account_id,
            fiscal_period_id=period_id,
            fund_id=fund_id,
        ).first()

    def save_balance(self, balance):
        balance.save()
        return balance

    def balances_for_account_fund(self, account_id, fund_id, for_update: bool = False):
        """Every bucket of one (account, fund), oldest period first."""
        from balances.models import AccountBalance

        qs = AccountBalance.objects.select_related("fiscal_period")
        if for_update:
            qs = qs.select_for_update(of=("self",))
        return list(
            qs.filter(account_id=account_id, fund_id=fund_id)
            .order_by("fiscal_period__start_date", "id")
        )

    def balances_in_scope(self, account_id=None, for_update: bool = False):
        from balances.models import AccountBalance

        qs = AccountBalance.objects.select_related("fiscal_period", "account")
        if for_update:
            qs = qs.select_for_update(of=("self",))
        if account_id is not None:
            qs = qs.filter(account_id=account_id)
        return list(qs.order_by("account_id", "fund_id", "fiscal_period__start_date"))

    # =========================================================================
    # Budgets
    # =========================================================================

    def load_budget(self, budget_id, for_update: bool = False):
        from budgets.models import Budget

        qs = Budget.objects.select_related("fiscal_year", "fund")
        if for_update:
            qs = qs.select_for_update(of=("self",))
        try:
            return qs.get(pk=budget_id)
        except Budget.DoesNotExist:
            raise NotFoundError(f"Budget {budget_id} not found.")

    def save_budget(self, budget):
        budget.save()
        return budget

    def budget_items(self, budget_id):
        from budgets.models import BudgetItem

        return list(
            BudgetItem.objects
            .filter(budget_id=budget_id)
            .select_related("account")
            .prefetch_related("distribution")
            .order_by("id")
        )

    def append_budget_revision(self, revision, changes):
        """Store a revision and its change rows. Revisions are never updated."""
        with transaction.atomic():
            revision.save()
            for change in changes:
                change.revision = revision
                change.save()
        return revision

    def next_revision_number(self, budget_id) -> int:
        from budgets.models import BudgetRevision

        last = (
            BudgetRevision.objects
            .filter(budget_id=budget_id)
            .order_by("-revision_number")
            .values_list("revision_number", flat=True)
            .first()
        )
        return (last or 0) + 1

    # =========================================================================
    # Audit
    # =========================================================================

    def record_audit(
        self,
        action,
        entity_type: str,
        entity_id,
        user_id: str = "",
        details: dict | None = None,
        previous_state: dict | None = None,
        new_state: dict | None = None,
    ) -> AuditLogEntry:
        return AuditLogEntry.objects.create(
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            user_id=user_id or "",
            details=details or {},
            previous_state=previous_state,
            new_state=new_state,
        )
