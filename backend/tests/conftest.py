# tests/conftest.py
"""
Pytest fixtures for FundLedger tests.

Fixtures build state through the command layer (create_account,
create_fiscal_year, the lifecycle manager) rather than raw model saves, so
the audit trail and balances are what production would produce.
"""

from datetime import date
from decimal import Decimal

import pytest
from django.conf import settings
from django.contrib.auth import get_user_model

from balances.aggregator import BalanceAggregator
from ledger import commands
from ledger.lifecycle import TransactionLifecycleManager
from ledger.models import Account, Customer, Fund, Transaction, Vendor
from ledger.repository import LedgerRepository
from ledger.types import EntryDraft, TransactionDraft


User = get_user_model()


@pytest.fixture(autouse=True, scope="session")
def _testing_settings():
    """Ensure test-only settings are enabled for the balance write barrier."""
    settings.TESTING = True


# =============================================================================
# Core services
# =============================================================================

@pytest.fixture
def repository():
    return LedgerRepository()


@pytest.fixture
def aggregator(repository):
    return BalanceAggregator(repository)


@pytest.fixture
def manager(repository, aggregator):
    return TransactionLifecycleManager(repository, aggregator)


# =============================================================================
# Calendar, funds & counterparties
# =============================================================================

@pytest.fixture
def fiscal_year(db, repository):
    """Calendar-year FY2024 with twelve OPEN monthly periods."""
    return commands.create_fiscal_year(
        repository,
        name="FY2024",
        start_date=date(2024, 1, 1),
        is_current=True,
    )


@pytest.fixture
def periods(fiscal_year):
    return list(fiscal_year.periods.order_by("number"))


@pytest.fixture
def next_fiscal_year(db, repository, fiscal_year):
    """FY2025, created PENDING."""
    return commands.create_fiscal_year(
        repository,
        name="FY2025",
        start_date=date(2025, 1, 1),
        status="PENDING",
    )


@pytest.fixture
def fund(db):
    return Fund.objects.create(code="GEN", name="General Fund")


@pytest.fixture
def restricted_fund(db):
    return Fund.objects.create(
        code="GRANT-A",
        name="Youth Program Grant",
        fund_type=Fund.FundType.RESTRICTED,
    )


@pytest.fixture
def customer(db):
    return Customer.objects.create(number="C-001", name="City Arts Council")


@pytest.fixture
def second_customer(db):
    return Customer.objects.create(number="C-002", name="Riverside School District")


@pytest.fixture
def vendor(db):
    return Vendor.objects.create(number="V-001", name="Office Supply Co")


# =============================================================================
# Account Fixtures
# =============================================================================

@pytest.fixture
def cash_account(db, repository):
    return commands.create_account(
        repository, "1000", "Operating Cash", Account.AccountType.ASSET,
        subtype=Account.SubType.CURRENT_ASSET, is_cash_account=True,
    )


@pytest.fixture
def receivable_account(db, repository):
    return commands.create_account(
        repository, "1200", "Accounts Receivable", Account.AccountType.ASSET,
        subtype=Account.SubType.CURRENT_ASSET,
    )


@pytest.fixture
def payable_account(db, repository):
    return commands.create_account(
        repository, "2000", "Accounts Payable", Account.AccountType.LIABILITY,
        subtype=Account.SubType.CURRENT_LIABILITY,
    )


@pytest.fixture
def revenue_account(db, repository):
    return commands.create_account(
        repository, "4000", "Grant Revenue", Account.AccountType.REVENUE,
        subtype=Account.SubType.GRANT_REVENUE,
    )


@pytest.fixture
def expense_account(db, repository):
    return commands.create_account(
        repository, "5000", "Program Supplies", Account.AccountType.EXPENSE,
        subtype=Account.SubType.PROGRAM_EXPENSE,
    )


# =============================================================================
# Transaction helpers
# =============================================================================

def journal_draft(debit_account, credit_account, amount, day=date(2024, 3, 15), fund=None, **kwargs):
    """A two-line draft: debit one account, credit another."""
    amount = Decimal(amount)
    fund_id = fund.pk if fund is not None else None
    return TransactionDraft(
        date=day,
        entries=[
            EntryDraft(account_id=debit_account.pk, debit_amount=amount, fund_id=fund_id),
            EntryDraft(account_id=credit_account.pk, credit_amount=amount, fund_id=fund_id),
        ],
        **kwargs,
    )


@pytest.fixture
def post_journal(manager, fiscal_year):
    """Create, approve and post a balanced journal entry in one call."""

    def _post(debit_account, credit_account, amount, day=date(2024, 3, 15), fund=None):
        txn = manager.create_draft(
            journal_draft(debit_account, credit_account, amount, day=day, fund=fund),
            created_by="clerk",
        )
        manager.approve(txn.pk, "controller")
        return manager.post(txn.pk, "controller")

    return _post


@pytest.fixture
def make_invoice(manager, fiscal_year, receivable_account, revenue_account, customer):
    """Create an invoice draft; posted=True also approves and posts it."""

    def _invoice(amount, due_date, day=date(2024, 2, 1), customer=customer, posted=True, reference=""):
        txn = manager.create_draft(
            journal_draft(
                receivable_account,
                revenue_account,
                amount,
                day=day,
                transaction_type=Transaction.TransactionType.INVOICE,
                customer_id=customer.pk,
                due_date=due_date,
                reference=reference,
            ),
            created_by="clerk",
        )
        if posted:
            manager.approve(txn.pk, "controller")
            txn = manager.post(txn.pk, "controller")
        return txn

    return _invoice


@pytest.fixture
def make_bill(manager, fiscal_year, expense_account, payable_account, vendor):
    def _bill(amount, due_date, day=date(2024, 2, 1), posted=True):
        txn = manager.create_draft(
            journal_draft(
                expense_account,
                payable_account,
                amount,
                day=day,
                transaction_type=Transaction.TransactionType.BILL,
                vendor_id=vendor.pk,
                due_date=due_date,
            ),
            created_by="clerk",
        )
        if posted:
            manager.approve(txn.pk, "controller")
            txn = manager.post(txn.pk, "controller")
        return txn

    return _bill


# =============================================================================
# API Client Fixtures
# =============================================================================

@pytest.fixture
def user(db):
    return User.objects.create_user(username="controller", password="testpass123")


@pytest.fixture
def api_client():
    """Create a DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def authenticated_client(api_client, user):
    """Create an authenticated API client."""
    api_client.force_authenticate(user=user)
    return api_client
