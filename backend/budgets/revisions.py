# budgets/revisions.py
"""
Budget Revision Engine.

A revision is a change-set (ADD / MODIFY / REMOVE item) applied to a budget
as one unit. Every change is validated before anything is written; then the
revision record is appended, the items and their distributions are
rewritten, and the budget's total and version move forward. If any step
fails, nothing is committed.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.db import transaction

from budgets.commands import store_distribution
from budgets.distribution import check_period_amounts
from budgets.models import BudgetItem, BudgetRevision, BudgetRevisionChange
from budgets.policies import can_revise
from ledger.exceptions import InvalidStateError, ValidationError
from ledger.lifecycle import to_money
from ledger.models import ZERO, AuditLogEntry


logger = logging.getLogger(__name__)

ChangeType = BudgetRevisionChange.ChangeType


@dataclass
class BudgetChange:
    change_type: str
    budget_item_id: Optional[int] = None
    account_id: Optional[int] = None
    amount: Optional[Decimal] = None
    description: str = ""
    name: str = ""
    fund_id: Optional[int] = None
    period_amounts: Optional[list] = None


class BudgetRevisionEngine:
    def __init__(self, repository):
        self.repository = repository

    def apply_revision(
        self,
        budget_id,
        changes: list[BudgetChange],
        description: str = "",
        reason: str = "",
        created_by: str = "",
    ) -> BudgetRevision:
        """
        Apply a change-set to a budget and record it as the next revision.

        Raises:
            InvalidStateError: the budget is CLOSED
            ValidationError: any change is invalid (all problems are listed)
        """
        with transaction.atomic():
            budget = self.repository.load_budget(budget_id, for_update=True)
            allowed, why = can_revise(budget)
            if not allowed:
                raise InvalidStateError(why)

            items = {item.pk: item for item in self.repository.budget_items(budget.pk)}
            planned = self._validate(budget, changes, items)

            previous_total = sum((item.amount for item in items.values()), ZERO)
            new_total = previous_total
            for change, amount in planned:
                if change.change_type == ChangeType.ADD:
                    new_total += amount
                elif change.change_type == ChangeType.MODIFY:
                    new_total += amount - items[change.budget_item_id].amount
                else:
                    new_total -= items[change.budget_item_id].amount

            revision = BudgetRevision(
                budget=budget,
                revision_number=self.repository.next_revision_number(budget.pk),
                description=description,
                reason=reason,
                created_by=created_by,
                previous_total_amount=previous_total,
                new_total_amount=new_total,
            )

            change_rows = []
            for change, amount in planned:
                change_rows.append(self._apply_change(budget, items, change, amount))

            self.repository.append_budget_revision(revision, change_rows)

            budget.total_amount = new_total
            budget.version += 1
            self.repository.save_budget(budget)

            self.repository.record_audit(
                AuditLogEntry.Action.REVISION,
                "Budget",
                budget.pk,
                user_id=created_by,
                details={
                    "revision_number": revision.revision_number,
                    "changes": len(change_rows),
                    "reason": reason,
                },
                previous_state={"total_amount": str(previous_total), "version": budget.version - 1},
                new_state={"total_amount": str(new_total), "version": budget.version},
            )

        logger.info(
            f"Applied revision {revision.revision_number} to budget {budget.pk}: "
            f"{previous_total} -> {new_total}",
            extra={"budget_id": budget.pk, "user_id": created_by},
        )
        return revision

    def _validate(self, budget, changes, items: dict) -> list[tuple[BudgetChange, Decimal]]:
        if not changes:
            raise ValidationError("A revision must contain at least one change.")

        errors = []
        planned = []
        touched = set()
        account_ids = [c.account_id for c in changes if c.change_type == ChangeType.ADD]
        accounts = self.repository.accounts_by_id(account_ids)

        for index, change in enumerate(changes, start=1):
            label = f"Change {index}"
            amount = ZERO
            if change.change_type not in ChangeType.values:
                errors.append(f"{label}: unknown change type '{change.change_type}'.")
                continue

            if change.change_type != ChangeType.REMOVE:
                if change.amount is None:
                    errors.append(f"{label}: amount is required.")
                    continue
                try:
                    amount = to_money(change.amount)
                except ValidationError as exc:
                    errors.append(f"{label}: {exc}")
                    continue

            if change.change_type == ChangeType.ADD:
                account = accounts.get(change.account_id)
                if account is None:
                    errors.append(f"{label}: account {change.account_id} not found.")
                elif not account.is_active:
                    errors.append(f"{label}: account {account.number} is inactive.")
                if amount <= 0:
                    errors.append(f"{label}: a new item needs a positive amount.")
            else:
                if change.budget_item_id not in items:
                    errors.append(f"{label}: item {change.budget_item_id} is not part of this budget.")
                    continue
                if change.budget_item_id in touched:
                    errors.append(f"{label}: item {change.budget_item_id} is changed more than once.")
                touched.add(change.budget_item_id)
                if change.change_type == ChangeType.MODIFY and amount < 0:
                    errors.append(f"{label}: amount cannot be negative.")

            if change.period_amounts is not None:
                if change.change_type == ChangeType.REMOVE:
                    errors.append(f"{label}: a removed item takes no period amounts.")
                else:
                    errors.extend(
                        f"{label}: {problem}"
                        for problem in check_period_amounts(budget.period_type, amount, change.period_amounts)
                    )

            planned.append((change, amount))

        if errors:
            raise ValidationError(errors)
        return planned

    def _apply_change(self, budget, items: dict, change: BudgetChange, amount: Decimal) -> BudgetRevisionChange:
        if change.change_type == ChangeType.ADD:
            item = BudgetItem.objects.create(
                budget=budget,
                account_id=change.account_id,
                fund_id=change.fund_id if change.fund_id is not None else budget.fund_id,
                name=change.name,
                description=change.description,
                amount=amount,
            )
            store_distribution(budget, item, change.period_amounts)
            return BudgetRevisionChange(
                change_type=ChangeType.ADD,
                budget_item_id=item.pk,
                account_id=item.account_id,
                description=change.description,
                previous_amount=ZERO,
                new_amount=amount,
            )

        item = items[change.budget_item_id]
        previous = item.amount
        if change.change_type == ChangeType.MODIFY:
            item.amount = amount
            if change.description:
                item.description = change.description
            item.save()
            store_distribution(budget, item, change.period_amounts)
        else:
            amount = ZERO
            item.delete()

        return BudgetRevisionChange(
            change_type=change.change_type,
            budget_item_id=change.budget_item_id,
            account_id=item.account_id,
            description=change.description,
            previous_amount=previous,
            new_amount=amount,
        )
