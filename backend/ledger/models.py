# ledger/models.py
"""
General ledger models for FundLedger.

These tables are the primary state of the ledger. All mutations go through
the command layer (ledger/lifecycle.py, ledger/commands.py), which enforces
workflow rules and keeps the balance aggregates in step.

Models:
- Fund: Fund-accounting dimension (restricted/unrestricted money)
- FiscalYear / FiscalPeriod: Accounting calendar
- Account: Chart of Accounts
- Customer / Vendor: Counterparties for invoices and bills
- Transaction: Journal entries, bills and invoices (one table, typed)
- TransactionEntry: Debit/credit lines of a transaction
- Payment: Append-only payments against bills and invoices
- AuditLogEntry: Append-only audit trail

model.save() only enforces TRUE INVARIANTS (normal balance follows type,
lines are one-sided). Status transitions live in ledger/policies.py.
"""

from decimal import Decimal

from django.db import models
from django.db.models import Q
from django.utils import timezone


MONEY_Q = Decimal("0.01")
ZERO = Decimal("0.00")


def _money_field(**kwargs):
    return models.DecimalField(max_digits=18, decimal_places=2, default=ZERO, **kwargs)


class Fund(models.Model):
    """A pool of resources tracked separately (restricted grants, endowment, ...)."""

    class FundType(models.TextChoices):
        GENERAL = "GENERAL", "General"
        RESTRICTED = "RESTRICTED", "Restricted"
        TEMPORARILY_RESTRICTED = "TEMPORARILY_RESTRICTED", "Temporarily Restricted"
        PERMANENTLY_RESTRICTED = "PERMANENTLY_RESTRICTED", "Permanently Restricted"
        BOARD_DESIGNATED = "BOARD_DESIGNATED", "Board Designated"

    code = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    fund_type = models.CharField(
        max_length=30,
        choices=FundType.choices,
        default=FundType.GENERAL,
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["code"]

    def __str__(self):
        return f"{self.code} - {self.name}"


class FiscalYear(models.Model):
    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending"
        OPEN = "OPEN", "Open"
        CLOSED = "CLOSED", "Closed"

    name = models.CharField(max_length=50, unique=True)
    start_date = models.DateField()
    end_date = models.DateField()
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
    )
    is_current = models.BooleanField(default=False)
    closed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["start_date"]

    def __str__(self):
        return f"{self.name} ({self.status})"


class FiscalPeriod(models.Model):
    """
    A subdivision of a fiscal year. Balances are bucketed per period and
    postings are only accepted into OPEN periods.
    """

    Status = FiscalYear.Status

    fiscal_year = models.ForeignKey(
        FiscalYear,
        on_delete=models.CASCADE,
        related_name="periods",
    )
    number = models.PositiveSmallIntegerField()
    name = models.CharField(max_length=50)
    start_date = models.DateField()
    end_date = models.DateField()
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.OPEN,
    )
    closed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["start_date"]
        constraints = [
            models.UniqueConstraint(
                fields=["fiscal_year", "number"],
                name="uniq_fiscal_period_number",
            )
        ]
        indexes = [
            models.Index(fields=["start_date", "end_date"], name="ledger_period_dates_idx"),
        ]

    def __str__(self):
        return f"{self.fiscal_year.name} P{self.number} ({self.status})"

    def contains(self, day) -> bool:
        return self.start_date <= day <= self.end_date


class Account(models.Model):
    """
    Chart of Accounts entry.

    Accounts are never physically deleted once an entry references them;
    deactivate instead. After creation only is_active and parent change.
    """

    class AccountType(models.TextChoices):
        ASSET = "ASSET", "Asset"
        LIABILITY = "LIABILITY", "Liability"
        EQUITY = "EQUITY", "Equity"
        REVENUE = "REVENUE", "Revenue"
        EXPENSE = "EXPENSE", "Expense"

    class SubType(models.TextChoices):
        CURRENT_ASSET = "CURRENT_ASSET", "Current Asset"
        FIXED_ASSET = "FIXED_ASSET", "Fixed Asset"
        OTHER_ASSET = "OTHER_ASSET", "Other Asset"
        CURRENT_LIABILITY = "CURRENT_LIABILITY", "Current Liability"
        LONG_TERM_LIABILITY = "LONG_TERM_LIABILITY", "Long-Term Liability"
        RETAINED_EARNINGS = "RETAINED_EARNINGS", "Retained Earnings"
        FUND_BALANCE = "FUND_BALANCE", "Fund Balance"
        OPERATING_REVENUE = "OPERATING_REVENUE", "Operating Revenue"
        NON_OPERATING_REVENUE = "NON_OPERATING_REVENUE", "Non-Operating Revenue"
        GRANT_REVENUE = "GRANT_REVENUE", "Grant Revenue"
        OPERATING_EXPENSE = "OPERATING_EXPENSE", "Operating Expense"
        ADMINISTRATIVE_EXPENSE = "ADMINISTRATIVE_EXPENSE", "Administrative Expense"
        PROGRAM_EXPENSE = "PROGRAM_EXPENSE", "Program Expense"

    class NormalBalance(models.TextChoices):
        DEBIT = "DEBIT", "Debit"
        CREDIT = "CREDIT", "Credit"

    NORMAL_BALANCE_MAP = {
        AccountType.ASSET: NormalBalance.DEBIT,
        AccountType.LIABILITY: NormalBalance.CREDIT,
        AccountType.EQUITY: NormalBalance.CREDIT,
        AccountType.REVENUE: NormalBalance.CREDIT,
        AccountType.EXPENSE: NormalBalance.DEBIT,
    }

    # Balance-sheet accounts carry their balance across fiscal years;
    # revenue and expense restart at zero each year.
    BALANCE_SHEET_TYPES = {AccountType.ASSET, AccountType.LIABILITY, AccountType.EQUITY}

    number = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    account_type = models.CharField(max_length=20, choices=AccountType.choices)
    subtype = models.CharField(
        max_length=30,
        choices=SubType.choices,
        blank=True,
        default="",
    )
    normal_balance = models.CharField(max_length=6, choices=NormalBalance.choices)
    is_active = models.BooleanField(default=True)
    is_cash_account = models.BooleanField(default=False)
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="children",
    )
    fund = models.ForeignKey(
        Fund,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="accounts",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["number"]
        indexes = [
            models.Index(fields=["account_type", "is_active"], name="ledger_account_type_idx"),
        ]

    def __str__(self):
        return f"{self.number} - {self.name}"

    def save(self, *args, **kwargs):
        self.normal_balance = self.NORMAL_BALANCE_MAP[self.account_type]
        super().save(*args, **kwargs)

    @property
    def carries_across_years(self) -> bool:
        return self.account_type in self.BALANCE_SHEET_TYPES

    def signed_amount(self, debit: Decimal, credit: Decimal) -> Decimal:
        """Net effect of a debit/credit pair in this account's normal direction."""
        if self.normal_balance == self.NormalBalance.DEBIT:
            return debit - credit
        return credit - debit


class Customer(models.Model):
    number = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True, default="")
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Vendor(models.Model):
    number = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True, default="")
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Transaction(models.Model):
    """
    A double-entry transaction: journal entry, bill or invoice.

    sum(debit_amount) == sum(credit_amount) must hold before the transaction
    leaves DRAFT. Entries are frozen once it does; corrections are new
    offsetting transactions. `version` is the optimistic-lock counter every
    status change compares and bumps.
    """

    class TransactionType(models.TextChoices):
        JOURNAL_ENTRY = "JOURNAL_ENTRY", "Journal Entry"
        BILL = "BILL", "Bill"
        INVOICE = "INVOICE", "Invoice"

    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        PENDING_APPROVAL = "PENDING_APPROVAL", "Pending Approval"
        APPROVED = "APPROVED", "Approved"
        POSTED = "POSTED", "Posted"
        PARTIALLY_PAID = "PARTIALLY_PAID", "Partially Paid"
        PAID = "PAID", "Paid"
        VOIDED = "VOIDED", "Voided"

    PAYABLE_TYPES = {TransactionType.BILL, TransactionType.INVOICE}

    # Statuses whose entries count toward balances.
    POSTED_STATUSES = {Status.POSTED, Status.PARTIALLY_PAID, Status.PAID}

    transaction_type = models.CharField(
        max_length=20,
        choices=TransactionType.choices,
        default=TransactionType.JOURNAL_ENTRY,
    )
    reference = models.CharField(max_length=50, blank=True, default="")
    date = models.DateField()
    description = models.TextField(blank=True, default="")
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.DRAFT,
    )
    version = models.PositiveIntegerField(default=1)

    fiscal_year = models.ForeignKey(
        FiscalYear,
        on_delete=models.PROTECT,
        related_name="transactions",
    )
    fiscal_period = models.ForeignKey(
        FiscalPeriod,
        on_delete=models.PROTECT,
        related_name="transactions",
    )
    amount = _money_field(help_text="Total debits")

    # Bills and invoices
    customer = models.ForeignKey(
        Customer,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="invoices",
    )
    vendor = models.ForeignKey(
        Vendor,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="bills",
    )
    due_date = models.DateField(null=True, blank=True)
    amount_due = _money_field()
    amount_paid = _money_field()

    # Workflow stamps
    created_by = models.CharField(max_length=150, blank=True, default="")
    approved_by = models.CharField(max_length=150, blank=True, default="")
    approved_at = models.DateTimeField(null=True, blank=True)
    posted_by = models.CharField(max_length=150, blank=True, default="")
    posted_at = models.DateTimeField(null=True, blank=True)
    voided_by = models.CharField(max_length=150, blank=True, default="")
    voided_at = models.DateTimeField(null=True, blank=True)
    void_reason = models.TextField(blank=True, default="")
    returned_reason = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["date", "id"]
        indexes = [
            models.Index(fields=["status"], name="ledger_txn_status_idx"),
            models.Index(fields=["transaction_type", "status"], name="ledger_txn_type_status_idx"),
            models.Index(fields=["fiscal_period", "status"], name="ledger_txn_period_status_idx"),
        ]

    def __str__(self):
        return f"{self.transaction_type} {self.reference or self.pk} ({self.status})"

    @property
    def is_payable_document(self) -> bool:
        return self.transaction_type in self.PAYABLE_TYPES

    @property
    def outstanding_amount(self) -> Decimal:
        return self.amount_due - self.amount_paid


class TransactionEntry(models.Model):
    """One debit or credit line. Exactly one side is non-zero."""

    transaction = models.ForeignKey(
        Transaction,
        on_delete=models.CASCADE,
        related_name="entries",
    )
    line_number = models.PositiveIntegerField()
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="entries",
    )
    fund = models.ForeignKey(
        Fund,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="entries",
    )
    description = models.CharField(max_length=255, blank=True, default="")
    debit_amount = _money_field()
    credit_amount = _money_field()

    class Meta:
        ordering = ["line_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["transaction", "line_number"],
                name="uniq_entry_line_number",
            ),
            models.CheckConstraint(
                condition=(
                    Q(debit_amount__gt=0, credit_amount=0)
                    | Q(debit_amount=0, credit_amount__gt=0)
                ),
                name="entry_one_sided",
            ),
        ]

    def __str__(self):
        side = f"Dr {self.debit_amount}" if self.debit_amount else f"Cr {self.credit_amount}"
        return f"{self.account_id}: {side}"


class Payment(models.Model):
    """A payment against a bill or invoice. Append-only."""

    class Method(models.TextChoices):
        CHECK = "CHECK", "Check"
        ACH = "ACH", "ACH"
        WIRE = "WIRE", "Wire"
        CREDIT_CARD = "CREDIT_CARD", "Credit Card"
        CASH = "CASH", "Cash"
        OTHER = "OTHER", "Other"

    transaction = models.ForeignKey(
        Transaction,
        on_delete=models.PROTECT,
        related_name="payments",
    )
    amount = _money_field()
    date = models.DateField()
    method = models.CharField(max_length=20, choices=Method.choices, default=Method.OTHER)
    reference = models.CharField(max_length=100, blank=True, default="")
    created_by = models.CharField(max_length=150, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["date", "id"]
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="payment_positive"),
        ]

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise RuntimeError("Payments are append-only.")
        super().save(*args, **kwargs)


class AuditLogEntry(models.Model):
    """Append-only record of who did what to which ledger entity."""

    class Action(models.TextChoices):
        CREATE = "CREATE", "Create"
        UPDATE = "UPDATE", "Update"
        SUBMIT = "SUBMIT", "Submit"
        APPROVE = "APPROVE", "Approve"
        REJECT = "REJECT", "Reject"
        RETURN = "RETURN", "Return to Draft"
        POST = "POST", "Post"
        VOID = "VOID", "Void"
        PAYMENT = "PAYMENT", "Payment"
        CLOSE = "CLOSE", "Close"
        REVISION = "REVISION", "Revision"
        ACTIVATE = "ACTIVATE", "Activate"
        DEACTIVATE = "DEACTIVATE", "Deactivate"

    action = models.CharField(max_length=20, choices=Action.choices)
    entity_type = models.CharField(max_length=50)
    entity_id = models.CharField(max_length=64)
    user_id = models.CharField(max_length=150, blank=True, default="")
    timestamp = models.DateTimeField(default=timezone.now)
    details = models.JSONField(default=dict, blank=True)
    previous_state = models.JSONField(null=True, blank=True)
    new_state = models.JSONField(null=True, blank=True)

    class Meta:
        ordering = ["timestamp", "id"]
        indexes = [
            models.Index(fields=["entity_type", "entity_id"], name="ledger_audit_entity_idx"),
        ]

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise RuntimeError("Audit log entries are append-only.")
        super().save(*args, **kwargs)
