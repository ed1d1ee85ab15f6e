# balances/models.py
"""
Balance models (materialized views over the posted-entry log).

These tables are DERIVED from posted transaction entries. They can be:
- Rebuilt from scratch by replaying the log (rebuild_balances)
- Updated incrementally as transactions are posted and voided

NEVER modify these tables directly. They are owned by BalanceAggregator.
"""

from django.db import models
from django.db.models import Q

from balances.write_barrier import balance_writes_permitted
from ledger.models import ZERO, Account, FiscalPeriod, FiscalYear, Fund, Transaction


class AggregatorOwnedModel(models.Model):
    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not balance_writes_permitted():
            raise RuntimeError(
                f"{self.__class__.__name__} is owned by the balance aggregator. "
                "Direct saves are only allowed within aggregator_writes_allowed()."
            )
        super().save(*args, **kwargs)


def _money_field(**kwargs):
    return models.DecimalField(max_digits=18, decimal_places=2, default=ZERO, **kwargs)


class AccountBalance(AggregatorOwnedModel):
    """
    Balance bucket for one (account, fiscal period, fund).

    Amounts follow the account's normal balance:
    - DEBIT-normal accounts (assets, expenses): net = debits - credits
    - CREDIT-normal accounts (liabilities, equity, revenue): net = credits - debits

    current_balance is the net activity posted into the period.
    opening_balance is the net activity of every earlier period for the same
    account and fund: across fiscal years for balance-sheet accounts, within
    the fiscal year for revenue and expense.
    closing_balance = opening_balance + current_balance.
    """

    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="balances",
    )
    fund = models.ForeignKey(
        Fund,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="+",
    )
    fiscal_year = models.ForeignKey(
        FiscalYear,
        on_delete=models.PROTECT,
        related_name="+",
    )
    fiscal_period = models.ForeignKey(
        FiscalPeriod,
        on_delete=models.PROTECT,
        related_name="balances",
    )

    opening_balance = _money_field()
    current_balance = _money_field(help_text="Net activity in the period (normal direction)")
    closing_balance = _money_field()
    debit_total = _money_field(help_text="Sum of debits posted in the period")
    credit_total = _money_field(help_text="Sum of credits posted in the period")
    entry_count = models.IntegerField(
        default=0,
        help_text="Number of posted entries in the period",
    )

    version = models.PositiveIntegerField(default=0)
    last_updated = models.DateTimeField(null=True, blank=True)

    # Fields a rebuild recomputes and compares.
    DERIVED_FIELDS = (
        "opening_balance",
        "current_balance",
        "closing_balance",
        "debit_total",
        "credit_total",
        "entry_count",
    )

    class Meta:
        verbose_name = "Account Balance"
        verbose_name_plural = "Account Balances"
        constraints = [
            models.UniqueConstraint(
                fields=["account", "fiscal_period", "fund"],
                condition=Q(fund__isnull=False),
                name="uniq_balance_bucket_fund",
            ),
            models.UniqueConstraint(
                fields=["account", "fiscal_period"],
                condition=Q(fund__isnull=True),
                name="uniq_balance_bucket_no_fund",
            ),
        ]
        indexes = [
            models.Index(fields=["fiscal_period"], name="balances_period_idx"),
            models.Index(fields=["account", "fund"], name="balances_account_fund_idx"),
        ]

    def __str__(self):
        return f"{self.account_id}/{self.fiscal_period_id}/{self.fund_id}: {self.closing_balance}"

    @property
    def key(self) -> tuple:
        return (self.account_id, self.fund_id, self.fiscal_period_id)


class PostingApplication(AggregatorOwnedModel):
    """
    Dedupe record: a transaction's posting was applied (or reversed) once.

    The unique (transaction, kind) pair makes apply/reverse safe to retry.
    """

    class Kind(models.TextChoices):
        APPLY = "APPLY", "Apply"
        REVERSE = "REVERSE", "Reverse"

    transaction = models.ForeignKey(
        Transaction,
        on_delete=models.PROTECT,
        related_name="posting_applications",
    )
    kind = models.CharField(max_length=10, choices=Kind.choices)
    applied_at = models.DateTimeField()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["transaction", "kind"],
                name="uniq_posting_application",
            )
        ]

    def __str__(self):
        return f"{self.kind} {self.transaction_id}"


class BalanceRebuildLock(AggregatorOwnedModel):
    """
    Held while a rebuild runs. scope is "*" for a full rebuild or an
    account id. Postings touching a locked scope are rejected.
    """

    ALL_ACCOUNTS = "*"

    scope = models.CharField(max_length=64, unique=True)
    owner = models.CharField(max_length=150, blank=True, default="")
    acquired_at = models.DateTimeField()

    def __str__(self):
        return f"rebuild lock {self.scope} ({self.owner})"
