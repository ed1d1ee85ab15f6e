# ledger/validators.py
"""
Ledger entry validation.

LedgerEntryValidator answers one question: may these lines be recorded as a
transaction? It has no side effects; it reads accounts and funds through
the repository and raises ValidationError listing every problem found.
"""

from decimal import Decimal, InvalidOperation

from django.conf import settings

from ledger.exceptions import ValidationError
from ledger.models import MONEY_Q, ZERO, Transaction


class LedgerEntryValidator:
    def __init__(self, repository, tolerance: Decimal | None = None):
        self.repository = repository
        if tolerance is None:
            tolerance = getattr(settings, "LEDGER_BALANCE_TOLERANCE", ZERO)
        self.tolerance = Decimal(tolerance)

    def validate(self, draft, require_balanced: bool = True) -> None:
        """
        Validate a TransactionDraft.

        require_balanced=False is used while a transaction is still DRAFT:
        lines must be well formed and reference live accounts, but the two
        sides may not match yet.
        """
        entries = list(draft.entries)
        if not entries:
            raise ValidationError("Transaction must have at least one entry.")

        errors = []
        for line_no, entry in enumerate(entries, start=1):
            errors.extend(self._check_line(line_no, entry))

        if require_balanced and not errors:
            total_debit = sum((e.debit_amount for e in entries), ZERO)
            total_credit = sum((e.credit_amount for e in entries), ZERO)
            if abs(total_debit - total_credit) > self.tolerance:
                errors.append(
                    f"Entries are not balanced. Debit={total_debit} Credit={total_credit}"
                )

        errors.extend(self._check_accounts(entries))
        errors.extend(self._check_funds(entries))
        errors.extend(self._check_counterparty(draft))

        if errors:
            raise ValidationError(errors)

    def _check_line(self, line_no: int, entry) -> list[str]:
        try:
            debit = Decimal(entry.debit_amount)
            credit = Decimal(entry.credit_amount)
        except (InvalidOperation, TypeError, ValueError):
            return [f"Line {line_no}: amounts must be decimal numbers."]

        if not debit.is_finite() or not credit.is_finite():
            return [f"Line {line_no}: amounts must be finite numbers."]
        if debit < 0 or credit < 0:
            return [f"Line {line_no}: amounts cannot be negative."]
        try:
            precise = debit.quantize(MONEY_Q) == debit and credit.quantize(MONEY_Q) == credit
        except InvalidOperation:
            return [f"Line {line_no}: amounts are too large."]
        if not precise:
            return [f"Line {line_no}: amounts cannot have more than two decimal places."]
        if debit > 0 and credit > 0:
            return [f"Line {line_no}: a line cannot have both debit and credit."]
        if debit == 0 and credit == 0:
            return [f"Line {line_no}: a line must have a debit or a credit."]
        return []

    def _check_accounts(self, entries) -> list[str]:
        account_ids = {e.account_id for e in entries}
        accounts = self.repository.accounts_by_id(account_ids)

        errors = []
        for account_id in sorted(account_ids, key=str):
            account = accounts.get(account_id)
            if account is None:
                errors.append(f"Account {account_id} does not exist.")
            elif not account.is_active:
                errors.append(f"Account {account.number} is inactive.")
        return errors

    def _check_funds(self, entries) -> list[str]:
        fund_ids = {e.fund_id for e in entries if e.fund_id is not None}
        if not fund_ids:
            return []
        funds = self.repository.funds_by_id(fund_ids)

        errors = []
        for fund_id in sorted(fund_ids, key=str):
            fund = funds.get(fund_id)
            if fund is None:
                errors.append(f"Fund {fund_id} does not exist.")
            elif not fund.is_active:
                errors.append(f"Fund {fund.code} is inactive.")
        return errors

    def _check_counterparty(self, draft) -> list[str]:
        txn_type = draft.transaction_type
        if txn_type == Transaction.TransactionType.INVOICE and not draft.customer_id:
            return ["An invoice requires a customer."]
        if txn_type == Transaction.TransactionType.BILL and not draft.vendor_id:
            return ["A bill requires a vendor."]
        if txn_type in Transaction.PAYABLE_TYPES and draft.due_date is None:
            return [f"A {txn_type.lower()} requires a due date."]
        return []
