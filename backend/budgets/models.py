# budgets/models.py
"""
Budget models.

Models:
- Budget: A spending/revenue plan for one fiscal year (optionally one fund)
- BudgetItem: A planned amount for one account
- BudgetPeriodDistribution: How an item's amount is spread over periods
- BudgetRevision / BudgetRevisionChange: Append-only record of every
  change-set applied to a budget

sum(distribution.amount) == item.amount is maintained by the command layer
(budgets/commands.py, budgets/revisions.py); nothing else writes items.
"""

from django.db import models
from django.utils import timezone

from ledger.models import ZERO, Account, FiscalYear, Fund


def _money_field(**kwargs):
    return models.DecimalField(max_digits=18, decimal_places=2, default=ZERO, **kwargs)


class Budget(models.Model):
    class BudgetType(models.TextChoices):
        ANNUAL = "ANNUAL", "Annual"
        QUARTERLY = "QUARTERLY", "Quarterly"
        MONTHLY = "MONTHLY", "Monthly"
        PROJECT = "PROJECT", "Project"
        PROGRAM = "PROGRAM", "Program"
        DEPARTMENT = "DEPARTMENT", "Department"

    class PeriodType(models.TextChoices):
        MONTHLY = "MONTHLY", "Monthly"
        QUARTERLY = "QUARTERLY", "Quarterly"
        ANNUAL = "ANNUAL", "Annual"

    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        PENDING_APPROVAL = "PENDING_APPROVAL", "Pending Approval"
        APPROVED = "APPROVED", "Approved"
        ACTIVE = "ACTIVE", "Active"
        CLOSED = "CLOSED", "Closed"
        REJECTED = "REJECTED", "Rejected"

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    fiscal_year = models.ForeignKey(
        FiscalYear,
        on_delete=models.PROTECT,
        related_name="budgets",
    )
    fund = models.ForeignKey(
        Fund,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="budgets",
    )
    budget_type = models.CharField(
        max_length=20,
        choices=BudgetType.choices,
        default=BudgetType.ANNUAL,
    )
    period_type = models.CharField(
        max_length=10,
        choices=PeriodType.choices,
        default=PeriodType.MONTHLY,
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.DRAFT,
    )
    start_date = models.DateField()
    end_date = models.DateField()
    total_amount = _money_field()
    version = models.PositiveIntegerField(default=1)
    notes = models.TextField(blank=True, default="")

    created_by = models.CharField(max_length=150, blank=True, default="")
    approved_by = models.CharField(max_length=150, blank=True, default="")
    approved_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-start_date", "name"]
        indexes = [
            models.Index(fields=["fiscal_year", "status"], name="budgets_year_status_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.status})"


class BudgetItem(models.Model):
    budget = models.ForeignKey(
        Budget,
        on_delete=models.CASCADE,
        related_name="items",
    )
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="budget_items",
    )
    fund = models.ForeignKey(
        Fund,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="budget_items",
    )
    name = models.CharField(max_length=255, blank=True, default="")
    description = models.TextField(blank=True, default="")
    amount = _money_field()
    notes = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return f"{self.name or self.account_id}: {self.amount}"


class BudgetPeriodDistribution(models.Model):
    budget_item = models.ForeignKey(
        BudgetItem,
        on_delete=models.CASCADE,
        related_name="distribution",
    )
    period_number = models.PositiveSmallIntegerField()
    period_name = models.CharField(max_length=50)
    start_date = models.DateField()
    end_date = models.DateField()
    amount = _money_field()

    class Meta:
        ordering = ["period_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["budget_item", "period_number"],
                name="uniq_budget_distribution_period",
            )
        ]

    def __str__(self):
        return f"{self.period_name}: {self.amount}"


class AppendOnlyModel(models.Model):
    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise RuntimeError(f"{self.__class__.__name__} records are immutable.")
        super().save(*args, **kwargs)


class BudgetRevision(AppendOnlyModel):
    budget = models.ForeignKey(
        Budget,
        on_delete=models.PROTECT,
        related_name="revisions",
    )
    revision_number = models.PositiveIntegerField()
    description = models.TextField(blank=True, default="")
    reason = models.TextField(blank=True, default="")
    created_by = models.CharField(max_length=150, blank=True, default="")
    created_at = models.DateTimeField(default=timezone.now)
    previous_total_amount = _money_field()
    new_total_amount = _money_field()

    class Meta:
        ordering = ["revision_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["budget", "revision_number"],
                name="uniq_budget_revision_number",
            )
        ]

    def __str__(self):
        return f"Budget {self.budget_id} rev {self.revision_number}"


class BudgetRevisionChange(AppendOnlyModel):
    class ChangeType(models.TextChoices):
        ADD = "ADD", "Add"
        MODIFY = "MODIFY", "Modify"
        REMOVE = "REMOVE", "Remove"

    revision = models.ForeignKey(
        BudgetRevision,
        on_delete=models.PROTECT,
        related_name="changes",
    )
    change_type = models.CharField(max_length=10, choices=ChangeType.choices)
    # Plain id: a REMOVE outlives the item it names.
    budget_item_id = models.BigIntegerField(null=True, blank=True)
    account = models.ForeignKey(
        Account,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="+",
    )
    description = models.TextField(blank=True, default="")
    previous_amount = _money_field()
    new_amount = _money_field()

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return f"{self.change_type} {self.budget_item_id or self.account_id}"
