# reporting/aging.py
"""
Receivables and payables aging.

Every open document (not voided, amount_due > amount_paid) is placed in one
bucket by days past its due date as of the report date:

    days <= 0  -> current
    1..30      -> 1-30
    31..60     -> 31-60
    61..90     -> 61-90
    > 90       -> 90Plus

Each row total and the report total equal the sum of their buckets.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from django.utils import timezone

from ledger.models import ZERO


BUCKETS = ("current", "1-30", "31-60", "61-90", "90Plus")


def bucket_for(days_overdue: int) -> str:
    if days_overdue <= 0:
        return "current"
    if days_overdue <= 30:
        return "1-30"
    if days_overdue <= 60:
        return "31-60"
    if days_overdue <= 90:
        return "61-90"
    return "90Plus"


def _empty_buckets() -> dict:
    return {name: ZERO for name in BUCKETS}


@dataclass
class AgingDocument:
    transaction_id: int
    reference: str
    due_date: date | None
    days_overdue: int
    bucket: str
    outstanding: Decimal


@dataclass
class AgingRow:
    counterparty_id: int | None
    counterparty_name: str
    buckets: dict = field(default_factory=_empty_buckets)
    documents: list = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum(self.buckets.values(), ZERO)

    def add(self, document: AgingDocument) -> None:
        self.buckets[document.bucket] += document.outstanding
        self.documents.append(document)


@dataclass
class AgingReport:
    as_of_date: date
    rows: list = field(default_factory=list)
    totals: dict = field(default_factory=_empty_buckets)

    @property
    def total(self) -> Decimal:
        return sum(self.totals.values(), ZERO)

    def to_dict(self) -> dict:
        return {
            "as_of_date": self.as_of_date.isoformat(),
            "rows": [
                {
                    "counterparty_id": row.counterparty_id,
                    "counterparty_name": row.counterparty_name,
                    **{name: str(amount) for name, amount in row.buckets.items()},
                    "total": str(row.total),
                    "documents": [
                        {
                            "transaction_id": d.transaction_id,
                            "reference": d.reference,
                            "due_date": d.due_date.isoformat() if d.due_date else None,
                            "days_overdue": d.days_overdue,
                            "bucket": d.bucket,
                            "outstanding": str(d.outstanding),
                        }
                        for d in row.documents
                    ],
                }
                for row in self.rows
            ],
            **{name: str(amount) for name, amount in self.totals.items()},
            "total": str(self.total),
        }


class AgingEngine:
    def __init__(self, repository, clock=None):
        self.repository = repository
        self.clock = clock or timezone.localdate

    def compute_aging(self, customer_id=None, as_of_date: date | None = None) -> AgingReport:
        """Accounts-receivable aging for one customer, or all customers."""
        documents = self.repository.list_invoices_by_customer(customer_id)
        return self._build(documents, "customer", as_of_date)

    def compute_payables_aging(self, vendor_id=None, as_of_date: date | None = None) -> AgingReport:
        """Accounts-payable aging for one vendor, or all vendors."""
        documents = self.repository.list_bills_by_vendor(vendor_id)
        return self._build(documents, "vendor", as_of_date)

    def _build(self, documents, counterparty_field: str, as_of_date) -> AgingReport:
        as_of = as_of_date or self.clock()
        report = AgingReport(as_of_date=as_of)
        rows = {}

        for txn in documents:
            outstanding = txn.amount_due - txn.amount_paid
            if outstanding <= 0:
                continue
            # A document without a due date is treated as due on its own date.
            due = txn.due_date or txn.date
            days = (as_of - due).days
            document = AgingDocument(
                transaction_id=txn.pk,
                reference=txn.reference,
                due_date=txn.due_date,
                days_overdue=days,
                bucket=bucket_for(days),
                outstanding=outstanding,
            )

            counterparty = getattr(txn, counterparty_field)
            key = counterparty.pk if counterparty else None
            if key not in rows:
                rows[key] = AgingRow(
                    counterparty_id=key,
                    counterparty_name=counterparty.name if counterparty else "",
                )
            rows[key].add(document)
            report.totals[document.bucket] += outstanding

        report.rows = sorted(rows.values(), key=lambda r: (r.counterparty_name, r.counterparty_id or 0))
        return report
