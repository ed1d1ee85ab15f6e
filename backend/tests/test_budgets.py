# tests/test_budgets.py
"""
Tests for budgets: distribution, approval workflow and revisions.
"""

from datetime import date
from decimal import Decimal

import pytest

from budgets import commands
from budgets.distribution import generate_distribution, split_amount
from budgets.models import Budget, BudgetItem, BudgetRevision, BudgetRevisionChange
from budgets.revisions import BudgetChange, BudgetRevisionEngine
from ledger import commands as ledger_commands
from ledger.exceptions import InvalidStateError, ValidationError
from ledger.models import AuditLogEntry


Status = Budget.Status
ChangeType = BudgetRevisionChange.ChangeType


@pytest.fixture
def engine(repository):
    return BudgetRevisionEngine(repository)


@pytest.fixture
def budget(repository, fiscal_year):
    return commands.create_budget(repository, "Operating Budget 2024", fiscal_year.pk, created_by="finance")


@pytest.fixture
def supplies_item(repository, budget, expense_account):
    return commands.add_budget_item(repository, budget.pk, expense_account.pk, "1000.00", name="Supplies")


@pytest.fixture
def approved_budget(repository, budget, supplies_item):
    commands.submit_budget(repository, budget.pk)
    return commands.approve_budget(repository, budget.pk, "board")


def _distribution_total(item):
    return sum(row.amount for row in item.distribution.all())


# =============================================================================
# Distribution
# =============================================================================

class TestDistribution:
    def test_split_gives_remainder_to_first_period(self):
        shares = split_amount(Decimal("1000.00"), 12)

        assert shares[0] == Decimal("83.37")
        assert shares[1:] == [Decimal("83.33")] * 11
        assert sum(shares) == Decimal("1000.00")

    @pytest.mark.parametrize("amount", ["0.01", "0.05", "99.99", "100000.00", "7.00"])
    @pytest.mark.parametrize("period_type, count", [("MONTHLY", 12), ("QUARTERLY", 4), ("ANNUAL", 1)])
    def test_rows_always_add_up(self, amount, period_type, count):
        rows = generate_distribution(period_type, date(2024, 1, 1), date(2024, 12, 31), Decimal(amount))

        assert len(rows) == count
        assert sum(row.amount for row in rows) == Decimal(amount)

    def test_monthly_rows_cover_the_year(self):
        rows = generate_distribution("MONTHLY", date(2024, 7, 1), date(2025, 6, 30), Decimal("120.00"))

        assert rows[0].period_name == "July 2024"
        assert rows[0].start_date == date(2024, 7, 1)
        assert rows[0].end_date == date(2024, 7, 31)
        assert rows[-1].period_name == "June 2025"
        assert rows[-1].end_date == date(2025, 6, 30)

    def test_quarter_names(self):
        rows = generate_distribution("QUARTERLY", date(2024, 7, 1), date(2025, 6, 30), Decimal("400.00"))

        assert [row.period_name for row in rows] == [
            "Q1 (Jul-Sep)",
            "Q2 (Oct-Dec)",
            "Q3 (Jan-Mar)",
            "Q4 (Apr-Jun)",
        ]

    def test_annual_name(self):
        rows = generate_distribution("ANNUAL", date(2024, 7, 1), date(2025, 6, 30), Decimal("400.00"))

        assert rows[0].period_name == "FY 2024-2025"


# =============================================================================
# Budget commands
# =============================================================================

@pytest.mark.django_db
class TestBudgetCommands:
    def test_create_budget_spans_fiscal_year(self, budget, fiscal_year):
        assert budget.status == Status.DRAFT
        assert budget.start_date == fiscal_year.start_date
        assert budget.end_date == fiscal_year.end_date
        assert budget.total_amount == Decimal("0.00")

    def test_create_budget_validates_input(self, repository, fiscal_year):
        with pytest.raises(ValidationError) as exc_info:
            commands.create_budget(repository, "", fiscal_year.pk, period_type="WEEKLY")

        assert len(exc_info.value.errors) == 2

    def test_add_item_stores_distribution(self, budget, supplies_item):
        budget.refresh_from_db()
        assert budget.total_amount == Decimal("1000.00")
        assert supplies_item.distribution.count() == 12
        assert _distribution_total(supplies_item) == Decimal("1000.00")

    def test_add_item_rejects_negative(self, repository, budget, expense_account):
        with pytest.raises(ValidationError, match="cannot be negative"):
            commands.add_budget_item(repository, budget.pk, expense_account.pk, "-5.00")

    def test_add_item_rejects_inactive_account(self, repository, budget, expense_account):
        ledger_commands.deactivate_account(repository, expense_account.pk)
        with pytest.raises(ValidationError, match="inactive"):
            commands.add_budget_item(repository, budget.pk, expense_account.pk, "5.00")

    def test_add_item_with_custom_split(self, repository, budget, expense_account):
        summer = ["50.00"] * 5 + ["300.00", "300.00", "300.00"] + ["50.00"] * 4

        item = commands.add_budget_item(
            repository, budget.pk, expense_account.pk, "1350.00", name="Summer camp", period_amounts=summer
        )

        amounts = list(item.distribution.order_by("period_number").values_list("amount", flat=True))
        assert amounts == [Decimal(value) for value in summer]
        budget.refresh_from_db()
        assert budget.total_amount == Decimal("1350.00")

    def test_add_item_rejects_split_not_matching_amount(self, repository, budget, expense_account):
        with pytest.raises(ValidationError, match="must sum to total amount"):
            commands.add_budget_item(
                repository, budget.pk, expense_account.pk, "1200.00", period_amounts=["99.00"] * 12
            )

        assert not BudgetItem.objects.exists()

    def test_add_item_rejects_split_of_wrong_length(self, repository, budget, expense_account):
        with pytest.raises(ValidationError, match="need 12 period amounts"):
            commands.add_budget_item(
                repository, budget.pk, expense_account.pk, "400.00", period_amounts=["100.00"] * 4
            )

    def test_submit_requires_items(self, repository, budget):
        with pytest.raises(ValidationError, match="at least one item"):
            commands.submit_budget(repository, budget.pk)

    def test_approval_workflow(self, repository, approved_budget):
        assert approved_budget.status == Status.APPROVED
        assert approved_budget.approved_by == "board"

        commands.activate_budget(repository, approved_budget.pk)
        closed = commands.close_budget(repository, approved_budget.pk)

        assert closed.status == Status.CLOSED

    def test_reject_and_rework(self, repository, budget, supplies_item):
        commands.submit_budget(repository, budget.pk)

        rejected = commands.reject_budget(repository, budget.pk, "Supplies too high", rejected_by="board")
        assert rejected.status == Status.REJECTED
        assert rejected.rejection_reason == "Supplies too high"

        reopened = commands.reopen_budget(repository, budget.pk)
        assert reopened.status == Status.DRAFT

    def test_reject_requires_reason(self, repository, budget, supplies_item):
        commands.submit_budget(repository, budget.pk)

        with pytest.raises(ValidationError):
            commands.reject_budget(repository, budget.pk, "")

    def test_illegal_transition(self, repository, budget):
        with pytest.raises(InvalidStateError):
            commands.approve_budget(repository, budget.pk, "board")

    def test_items_locked_after_approval(self, repository, approved_budget, expense_account):
        with pytest.raises(InvalidStateError, match="through a revision"):
            commands.add_budget_item(repository, approved_budget.pk, expense_account.pk, "5.00")


# =============================================================================
# Revisions
# =============================================================================

@pytest.mark.django_db
class TestRevisions:
    def test_modify_item(self, engine, approved_budget, supplies_item):
        revision = engine.apply_revision(
            approved_budget.pk,
            [BudgetChange(ChangeType.MODIFY, budget_item_id=supplies_item.pk, amount=Decimal("1200.00"))],
            reason="Program expansion",
            created_by="finance",
        )

        approved_budget.refresh_from_db()
        supplies_item.refresh_from_db()
        assert revision.revision_number == 1
        assert revision.previous_total_amount == Decimal("1000.00")
        assert revision.new_total_amount == Decimal("1200.00")
        assert approved_budget.total_amount == Decimal("1200.00")
        assert approved_budget.version == 2
        assert supplies_item.amount == Decimal("1200.00")
        assert _distribution_total(supplies_item) == Decimal("1200.00")

    def test_add_and_remove_in_one_revision(self, engine, approved_budget, supplies_item, revenue_account):
        revision = engine.apply_revision(
            approved_budget.pk,
            [
                BudgetChange(ChangeType.REMOVE, budget_item_id=supplies_item.pk),
                BudgetChange(ChangeType.ADD, account_id=revenue_account.pk, amount="2400.00", name="Grants"),
            ],
        )

        approved_budget.refresh_from_db()
        items = list(approved_budget.items.all())
        assert [item.name for item in items] == ["Grants"]
        assert _distribution_total(items[0]) == Decimal("2400.00")
        assert approved_budget.total_amount == Decimal("2400.00")

        changes = list(revision.changes.order_by("id"))
        assert [c.change_type for c in changes] == [ChangeType.REMOVE, ChangeType.ADD]
        assert changes[0].budget_item_id == supplies_item.pk
        assert changes[0].previous_amount == Decimal("1000.00")
        assert changes[1].new_amount == Decimal("2400.00")

    def test_revisions_are_numbered(self, engine, approved_budget, supplies_item):
        for amount in ("1100.00", "900.00"):
            engine.apply_revision(
                approved_budget.pk,
                [BudgetChange(ChangeType.MODIFY, budget_item_id=supplies_item.pk, amount=amount)],
            )

        numbers = list(
            BudgetRevision.objects.filter(budget=approved_budget).values_list("revision_number", flat=True)
        )
        assert numbers == [1, 2]
        approved_budget.refresh_from_db()
        assert approved_budget.version == 3

    def test_modify_item_with_custom_split(self, engine, approved_budget, supplies_item):
        front_loaded = ["400.00", "200.00"] + ["60.00"] * 10

        engine.apply_revision(
            approved_budget.pk,
            [
                BudgetChange(
                    ChangeType.MODIFY,
                    budget_item_id=supplies_item.pk,
                    amount="1200.00",
                    period_amounts=front_loaded,
                )
            ],
        )

        amounts = list(supplies_item.distribution.order_by("period_number").values_list("amount", flat=True))
        assert amounts == [Decimal(value) for value in front_loaded]

    def test_custom_split_must_match_amount(self, engine, approved_budget, supplies_item):
        with pytest.raises(ValidationError, match="Change 1: Period values must sum to total amount"):
            engine.apply_revision(
                approved_budget.pk,
                [
                    BudgetChange(
                        ChangeType.MODIFY,
                        budget_item_id=supplies_item.pk,
                        amount="1200.00",
                        period_amounts=["90.00"] * 12,
                    )
                ],
            )

        assert _distribution_total(supplies_item) == Decimal("1000.00")
        assert not BudgetRevision.objects.exists()

    def test_invalid_change_rejects_whole_revision(self, engine, approved_budget, supplies_item, expense_account):
        with pytest.raises(ValidationError) as exc_info:
            engine.apply_revision(
                approved_budget.pk,
                [
                    BudgetChange(ChangeType.MODIFY, budget_item_id=supplies_item.pk, amount="1500.00"),
                    BudgetChange(ChangeType.ADD, account_id=expense_account.pk, amount="0"),
                    BudgetChange(ChangeType.REMOVE, budget_item_id=987654),
                ],
            )

        assert len(exc_info.value.errors) == 2
        supplies_item.refresh_from_db()
        approved_budget.refresh_from_db()
        assert supplies_item.amount == Decimal("1000.00")
        assert approved_budget.version == 1
        assert not BudgetRevision.objects.exists()

    def test_item_changed_twice_rejected(self, engine, approved_budget, supplies_item):
        with pytest.raises(ValidationError, match="more than once"):
            engine.apply_revision(
                approved_budget.pk,
                [
                    BudgetChange(ChangeType.MODIFY, budget_item_id=supplies_item.pk, amount="10.00"),
                    BudgetChange(ChangeType.REMOVE, budget_item_id=supplies_item.pk),
                ],
            )

    def test_empty_revision_rejected(self, engine, approved_budget):
        with pytest.raises(ValidationError, match="at least one change"):
            engine.apply_revision(approved_budget.pk, [])

    def test_closed_budget_cannot_be_revised(self, engine, repository, approved_budget, supplies_item):
        commands.close_budget(repository, approved_budget.pk)

        with pytest.raises(InvalidStateError, match="Closed budgets"):
            engine.apply_revision(
                approved_budget.pk,
                [BudgetChange(ChangeType.MODIFY, budget_item_id=supplies_item.pk, amount="10.00")],
            )

    def test_draft_budget_can_be_revised(self, engine, budget, supplies_item):
        engine.apply_revision(
            budget.pk,
            [BudgetChange(ChangeType.MODIFY, budget_item_id=supplies_item.pk, amount="10.00")],
        )

        budget.refresh_from_db()
        assert budget.total_amount == Decimal("10.00")

    def test_revision_is_audited(self, engine, approved_budget, supplies_item):
        engine.apply_revision(
            approved_budget.pk,
            [BudgetChange(ChangeType.MODIFY, budget_item_id=supplies_item.pk, amount="10.00")],
            created_by="finance",
        )

        entry = AuditLogEntry.objects.get(action=AuditLogEntry.Action.REVISION)
        assert entry.entity_id == str(approved_budget.pk)
        assert entry.user_id == "finance"
        assert entry.new_state == {"total_amount": "10.00", "version": 2}

    def test_revision_records_are_immutable(self, engine, approved_budget, supplies_item):
        revision = engine.apply_revision(
            approved_budget.pk,
            [BudgetChange(ChangeType.MODIFY, budget_item_id=supplies_item.pk, amount="10.00")],
        )

        revision.reason = "rewritten"
        with pytest.raises(RuntimeError, match="immutable"):
            revision.save()

    def test_every_item_distribution_matches_amount(self, engine, approved_budget, supplies_item, revenue_account):
        engine.apply_revision(
            approved_budget.pk,
            [
                BudgetChange(ChangeType.MODIFY, budget_item_id=supplies_item.pk, amount="333.33"),
                BudgetChange(ChangeType.ADD, account_id=revenue_account.pk, amount="0.07"),
            ],
        )

        for item in BudgetItem.objects.filter(budget=approved_budget):
            assert _distribution_total(item) == item.amount
