# tests/test_validator.py
"""
Tests for LedgerEntryValidator.

The validator is side-effect free and reports every problem it finds in
one ValidationError.
"""

from datetime import date
from decimal import Decimal

import pytest

from conftest import journal_draft
from ledger import commands
from ledger.exceptions import ValidationError
from ledger.models import AuditLogEntry, Transaction
from ledger.types import EntryDraft, TransactionDraft
from ledger.validators import LedgerEntryValidator


@pytest.fixture
def validator(repository):
    return LedgerEntryValidator(repository)


# =============================================================================
# Balance
# =============================================================================

@pytest.mark.django_db
class TestBalance:
    def test_balanced_entries_pass(self, validator, cash_account, revenue_account):
        validator.validate(journal_draft(cash_account, revenue_account, "250.00"))

    def test_unbalanced_entries_rejected(self, validator, cash_account, revenue_account):
        draft = TransactionDraft(
            date=date(2024, 3, 1),
            entries=[
                EntryDraft(account_id=cash_account.pk, debit_amount=Decimal("100.00")),
                EntryDraft(account_id=revenue_account.pk, credit_amount=Decimal("90.00")),
            ],
        )
        with pytest.raises(ValidationError, match="not balanced"):
            validator.validate(draft)

    def test_unbalanced_allowed_while_drafting(self, validator, cash_account, revenue_account):
        draft = TransactionDraft(
            date=date(2024, 3, 1),
            entries=[
                EntryDraft(account_id=cash_account.pk, debit_amount=Decimal("100.00")),
                EntryDraft(account_id=revenue_account.pk, credit_amount=Decimal("90.00")),
            ],
        )
        validator.validate(draft, require_balanced=False)

    def test_default_tolerance_rejects_one_cent(self, validator, cash_account, revenue_account):
        draft = TransactionDraft(
            date=date(2024, 3, 1),
            entries=[
                EntryDraft(account_id=cash_account.pk, debit_amount=Decimal("100.00")),
                EntryDraft(account_id=revenue_account.pk, credit_amount=Decimal("99.99")),
            ],
        )
        assert validator.tolerance == Decimal("0.00")
        with pytest.raises(ValidationError, match="not balanced"):
            validator.validate(draft)

    def test_tolerance_absorbs_small_difference(self, repository, cash_account, revenue_account):
        validator = LedgerEntryValidator(repository, tolerance=Decimal("0.01"))
        draft = TransactionDraft(
            date=date(2024, 3, 1),
            entries=[
                EntryDraft(account_id=cash_account.pk, debit_amount=Decimal("100.00")),
                EntryDraft(account_id=revenue_account.pk, credit_amount=Decimal("99.99")),
            ],
        )
        validator.validate(draft)

    def test_empty_entries_rejected(self, validator):
        with pytest.raises(ValidationError, match="at least one entry"):
            validator.validate(TransactionDraft(date=date(2024, 3, 1), entries=[]))


# =============================================================================
# Line shape
# =============================================================================

@pytest.mark.django_db
class TestLineShape:
    def _single(self, account, debit="0", credit="0"):
        return TransactionDraft(
            date=date(2024, 3, 1),
            entries=[EntryDraft(account_id=account.pk, debit_amount=Decimal(debit), credit_amount=Decimal(credit))],
        )

    def test_negative_amount_rejected(self, validator, cash_account):
        with pytest.raises(ValidationError, match="cannot be negative"):
            validator.validate(self._single(cash_account, debit="-5.00"), require_balanced=False)

    def test_both_sides_rejected(self, validator, cash_account):
        with pytest.raises(ValidationError, match="both debit and credit"):
            validator.validate(self._single(cash_account, debit="5.00", credit="5.00"), require_balanced=False)

    def test_zero_line_rejected(self, validator, cash_account):
        with pytest.raises(ValidationError, match="must have a debit or a credit"):
            validator.validate(self._single(cash_account), require_balanced=False)

    def test_sub_cent_amount_rejected(self, validator, cash_account):
        with pytest.raises(ValidationError, match="two decimal places"):
            validator.validate(self._single(cash_account, debit="1.005"), require_balanced=False)

    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "-Infinity", "sNaN"])
    def test_non_finite_amount_rejected(self, validator, cash_account, revenue_account, amount):
        draft = TransactionDraft(
            date=date(2024, 3, 1),
            entries=[
                EntryDraft(account_id=cash_account.pk, debit_amount=Decimal(amount)),
                EntryDraft(account_id=revenue_account.pk, credit_amount=Decimal("1.00")),
            ],
        )
        with pytest.raises(ValidationError, match="finite"):
            validator.validate(draft)

    def test_amount_beyond_precision_rejected(self, validator, cash_account, revenue_account):
        draft = TransactionDraft(
            date=date(2024, 3, 1),
            entries=[
                EntryDraft(account_id=cash_account.pk, debit_amount=Decimal("1E+30")),
                EntryDraft(account_id=revenue_account.pk, credit_amount=Decimal("1.00")),
            ],
        )
        with pytest.raises(ValidationError, match="too large"):
            validator.validate(draft)

    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "1E+30"])
    def test_bad_amount_never_reaches_the_ledger(self, manager, cash_account, revenue_account, amount):
        draft = TransactionDraft(
            date=date(2024, 3, 1),
            entries=[
                EntryDraft(account_id=cash_account.pk, debit_amount=Decimal(amount)),
                EntryDraft(account_id=revenue_account.pk, credit_amount=Decimal("1.00")),
            ],
        )
        with pytest.raises(ValidationError):
            manager.create_draft(draft)

        assert not Transaction.objects.exists()


# =============================================================================
# References
# =============================================================================

@pytest.mark.django_db
class TestReferences:
    def test_unknown_account_rejected(self, validator, cash_account):
        draft = TransactionDraft(
            date=date(2024, 3, 1),
            entries=[
                EntryDraft(account_id=cash_account.pk, debit_amount=Decimal("10.00")),
                EntryDraft(account_id=999999, credit_amount=Decimal("10.00")),
            ],
        )
        with pytest.raises(ValidationError, match="Account 999999 does not exist"):
            validator.validate(draft)

    def test_inactive_account_rejected(self, validator, repository, cash_account, revenue_account):
        commands.deactivate_account(repository, revenue_account.pk)
        with pytest.raises(ValidationError, match="Account 4000 is inactive"):
            validator.validate(journal_draft(cash_account, revenue_account, "10.00"))

    def test_inactive_fund_rejected(self, validator, cash_account, revenue_account, fund):
        fund.is_active = False
        fund.save()
        with pytest.raises(ValidationError, match="Fund GEN is inactive"):
            validator.validate(journal_draft(cash_account, revenue_account, "10.00", fund=fund))

    def test_unknown_fund_rejected(self, validator, cash_account):
        draft = TransactionDraft(
            date=date(2024, 3, 1),
            entries=[EntryDraft(account_id=cash_account.pk, debit_amount=Decimal("10.00"), fund_id=424242)],
        )
        with pytest.raises(ValidationError, match="Fund 424242 does not exist"):
            validator.validate(draft, require_balanced=False)

    def test_invoice_requires_customer_and_due_date(self, validator, receivable_account, revenue_account):
        draft = journal_draft(
            receivable_account,
            revenue_account,
            "10.00",
            transaction_type=Transaction.TransactionType.INVOICE,
        )
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(draft)
        assert exc_info.value.errors == ["An invoice requires a customer."]

    def test_bill_requires_due_date(self, validator, expense_account, payable_account, vendor):
        draft = journal_draft(
            expense_account,
            payable_account,
            "10.00",
            transaction_type=Transaction.TransactionType.BILL,
            vendor_id=vendor.pk,
        )
        with pytest.raises(ValidationError, match="requires a due date"):
            validator.validate(draft)


# =============================================================================
# Reporting every problem
# =============================================================================

@pytest.mark.django_db
class TestErrorCollection:
    def test_all_problems_reported_together(self, validator, repository, cash_account, revenue_account):
        commands.deactivate_account(repository, revenue_account.pk)
        draft = TransactionDraft(
            date=date(2024, 3, 1),
            entries=[
                EntryDraft(account_id=cash_account.pk, debit_amount=Decimal("-1.00")),
                EntryDraft(account_id=revenue_account.pk, credit_amount=Decimal("1.00")),
                EntryDraft(account_id=999999, credit_amount=Decimal("1.00")),
            ],
        )
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(draft)

        errors = exc_info.value.errors
        assert "Line 1: amounts cannot be negative." in errors
        assert "Account 4000 is inactive." in errors
        assert "Account 999999 does not exist." in errors

    def test_validation_has_no_side_effects(self, validator, cash_account, revenue_account):
        before = (Transaction.objects.count(), AuditLogEntry.objects.count())
        with pytest.raises(ValidationError):
            validator.validate(
                TransactionDraft(
                    date=date(2024, 3, 1),
                    entries=[EntryDraft(account_id=cash_account.pk, debit_amount=Decimal("5.00"))],
                )
            )
        assert (Transaction.objects.count(), AuditLogEntry.objects.count()) == before
