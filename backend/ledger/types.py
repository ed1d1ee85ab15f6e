# ledger/types.py
"""
Plain data carriers passed into the ledger core.

The validator and lifecycle manager work on these rather than on request
payloads, so the same checks run for API input, fixtures and re-validation
of stored transactions.
"""

from dataclasses import dataclass, field, asdict
from datetime import date as date_type
from decimal import Decimal
from typing import Optional

from ledger.models import ZERO


@dataclass
class EntryDraft:
    account_id: int
    debit_amount: Decimal = ZERO
    credit_amount: Decimal = ZERO
    fund_id: Optional[int] = None
    description: str = ""

    @classmethod
    def from_entry(cls, entry) -> "EntryDraft":
        return cls(
            account_id=entry.account_id,
            debit_amount=entry.debit_amount,
            credit_amount=entry.credit_amount,
            fund_id=entry.fund_id,
            description=entry.description,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["debit_amount"] = str(self.debit_amount)
        data["credit_amount"] = str(self.credit_amount)
        return data


@dataclass
class TransactionDraft:
    """What a caller proposes before anything is stored."""

    date: date_type
    entries: list[EntryDraft] = field(default_factory=list)
    transaction_type: str = "JOURNAL_ENTRY"
    description: str = ""
    reference: str = ""
    customer_id: Optional[int] = None
    vendor_id: Optional[int] = None
    due_date: Optional[date_type] = None

    @classmethod
    def from_transaction(cls, txn) -> "TransactionDraft":
        return cls(
            date=txn.date,
            entries=[EntryDraft.from_entry(e) for e in txn.entries.all()],
            transaction_type=txn.transaction_type,
            description=txn.description,
            reference=txn.reference,
            customer_id=txn.customer_id,
            vendor_id=txn.vendor_id,
            due_date=txn.due_date,
        )

    @property
    def total_debit(self) -> Decimal:
        return sum((e.debit_amount for e in self.entries), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((e.credit_amount for e in self.entries), ZERO)
