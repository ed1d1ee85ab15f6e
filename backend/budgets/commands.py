# budgets/commands.py
"""
Command layer for budgets.

Creating budgets and items, and moving a budget through its approval
workflow. Changes to an approved budget's items go through
BudgetRevisionEngine (budgets/revisions.py) so they leave a revision record.
"""

import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from budgets.distribution import check_period_amounts, generate_distribution
from budgets.models import Budget, BudgetItem, BudgetPeriodDistribution
from budgets.policies import assert_transition, can_edit_items
from ledger.exceptions import InvalidStateError, NotFoundError, ValidationError
from ledger.lifecycle import to_money
from ledger.models import AuditLogEntry, FiscalYear


logger = logging.getLogger(__name__)

Status = Budget.Status
Action = AuditLogEntry.Action


def store_distribution(budget: Budget, item: BudgetItem, period_amounts=None) -> None:
    """
    Replace an item's distribution rows so they add up to item.amount.

    Without period_amounts the amount is spread evenly.
    """
    item.distribution.all().delete()
    BudgetPeriodDistribution.objects.bulk_create([
        BudgetPeriodDistribution(
            budget_item=item,
            period_number=row.period_number,
            period_name=row.period_name,
            start_date=row.start_date,
            end_date=row.end_date,
            amount=row.amount,
        )
        for row in generate_distribution(
            budget.period_type, budget.start_date, budget.end_date, item.amount, period_amounts
        )
    ])


def recompute_total(budget: Budget) -> Decimal:
    total = budget.items.aggregate(total=Sum("amount"))["total"]
    return to_money(total or 0)


@transaction.atomic
def create_budget(
    repository,
    name: str,
    fiscal_year_id,
    period_type: str = Budget.PeriodType.MONTHLY,
    budget_type: str = Budget.BudgetType.ANNUAL,
    fund_id=None,
    description: str = "",
    notes: str = "",
    created_by: str = "",
) -> Budget:
    """Create a DRAFT budget spanning its fiscal year."""
    errors = []
    if not name or not name.strip():
        errors.append("Budget name is required.")
    if period_type not in Budget.PeriodType.values:
        errors.append(f"Unknown period type '{period_type}'.")
    if budget_type not in Budget.BudgetType.values:
        errors.append(f"Unknown budget type '{budget_type}'.")
    if errors:
        raise ValidationError(errors)

    try:
        fiscal_year = FiscalYear.objects.get(pk=fiscal_year_id)
    except FiscalYear.DoesNotExist:
        raise NotFoundError(f"Fiscal year {fiscal_year_id} not found.")
    if fund_id is not None:
        repository.load_fund(fund_id)

    budget = repository.save_budget(Budget(
        name=name.strip(),
        description=description,
        fiscal_year=fiscal_year,
        fund_id=fund_id,
        budget_type=budget_type,
        period_type=period_type,
        start_date=fiscal_year.start_date,
        end_date=fiscal_year.end_date,
        notes=notes,
        created_by=created_by,
    ))
    repository.record_audit(
        Action.CREATE,
        "Budget",
        budget.pk,
        user_id=created_by,
        details={"name": budget.name, "fiscal_year": fiscal_year.name},
    )
    logger.info(f"Created budget {budget.pk} '{budget.name}' for {fiscal_year.name}")
    return budget


@transaction.atomic
def add_budget_item(
    repository,
    budget_id,
    account_id,
    amount,
    name: str = "",
    description: str = "",
    fund_id=None,
    created_by: str = "",
    period_amounts=None,
) -> BudgetItem:
    """Add a line to a budget that is still being drafted."""
    budget = repository.load_budget(budget_id, for_update=True)
    allowed, reason = can_edit_items(budget)
    if not allowed:
        raise InvalidStateError(reason)

    amount = to_money(amount)
    if amount < 0:
        raise ValidationError("Budget item amount cannot be negative.")
    account = repository.load_account(account_id)
    if not account.is_active:
        raise ValidationError(f"Account {account.number} is inactive.")
    if period_amounts is not None:
        errors = check_period_amounts(budget.period_type, amount, period_amounts)
        if errors:
            raise ValidationError(errors)

    item = BudgetItem.objects.create(
        budget=budget,
        account=account,
        fund_id=fund_id if fund_id is not None else budget.fund_id,
        name=name or account.name,
        description=description,
        amount=amount,
    )
    store_distribution(budget, item, period_amounts)

    budget.total_amount = recompute_total(budget)
    repository.save_budget(budget)
    repository.record_audit(
        Action.UPDATE,
        "Budget",
        budget.pk,
        user_id=created_by,
        details={"added_item": item.pk, "account_id": account.pk, "amount": str(amount)},
    )
    return item


def _transition(repository, budget_id, to_status, action, user_id: str = "", details=None, **changes) -> Budget:
    budget = repository.load_budget(budget_id, for_update=True)
    assert_transition(budget, to_status)

    from_status = budget.status
    budget.status = to_status
    for field, value in changes.items():
        setattr(budget, field, value)
    repository.save_budget(budget)

    repository.record_audit(
        action,
        "Budget",
        budget.pk,
        user_id=user_id,
        details=details,
        previous_state={"status": from_status},
        new_state={"status": to_status},
    )
    logger.info(f"Budget {budget.pk}: {from_status} -> {to_status}")
    return budget


@transaction.atomic
def submit_budget(repository, budget_id, submitted_by: str = "") -> Budget:
    budget = repository.load_budget(budget_id)
    if not budget.items.exists():
        raise ValidationError("A budget needs at least one item before it is submitted.")
    return _transition(repository, budget_id, Status.PENDING_APPROVAL, Action.SUBMIT, user_id=submitted_by)


@transaction.atomic
def approve_budget(repository, budget_id, approver_id: str) -> Budget:
    return _transition(
        repository,
        budget_id,
        Status.APPROVED,
        Action.APPROVE,
        user_id=approver_id,
        approved_by=approver_id or "",
        approved_at=timezone.now(),
    )


@transaction.atomic
def reject_budget(repository, budget_id, reason: str, rejected_by: str = "") -> Budget:
    if not reason or not reason.strip():
        raise ValidationError("A rejection reason is required.")
    return _transition(
        repository,
        budget_id,
        Status.REJECTED,
        Action.REJECT,
        user_id=rejected_by,
        details={"reason": reason.strip()},
        rejection_reason=reason.strip(),
    )


@transaction.atomic
def reopen_budget(repository, budget_id, reopened_by: str = "") -> Budget:
    """REJECTED -> DRAFT so the budget can be reworked and resubmitted."""
    return _transition(repository, budget_id, Status.DRAFT, Action.RETURN, user_id=reopened_by)


@transaction.atomic
def activate_budget(repository, budget_id, activated_by: str = "") -> Budget:
    return _transition(repository, budget_id, Status.ACTIVE, Action.ACTIVATE, user_id=activated_by)


@transaction.atomic
def close_budget(repository, budget_id, closed_by: str = "") -> Budget:
    return _transition(repository, budget_id, Status.CLOSED, Action.CLOSE, user_id=closed_by)
