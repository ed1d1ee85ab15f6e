# reporting/variance.py
"""
Budget-vs-actual variance.

For each budget item:
    budget   = sum of the item's distribution rows picked by the selector
    actual   = net posted activity on the item's account (and fund, when the
               item has one) over the fiscal periods those rows cover
    variance = actual - budget
    variance_percentage = variance / budget * 100, or 0 when budget is 0

Actuals come from the balance aggregator, in the account's normal
direction, so spending on an expense line and income on a revenue line are
both positive.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from django.utils import timezone

from ledger.exceptions import ValidationError
from ledger.models import MONEY_Q, ZERO


HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PeriodSelector:
    """Which distribution rows a variance report covers."""

    mode: str
    period_number: int | None = None
    as_of: date | None = None

    SINGLE = "single"
    YEAR_TO_DATE = "ytd"
    FULL_YEAR = "full"

    @classmethod
    def single(cls, period_number: int) -> "PeriodSelector":
        return cls(mode=cls.SINGLE, period_number=period_number)

    @classmethod
    def year_to_date(cls, as_of: date | None = None) -> "PeriodSelector":
        return cls(mode=cls.YEAR_TO_DATE, as_of=as_of)

    @classmethod
    def full_year(cls) -> "PeriodSelector":
        return cls(mode=cls.FULL_YEAR)

    def matches(self, row, today: date) -> bool:
        if self.mode == self.SINGLE:
            return row.period_number == self.period_number
        if self.mode == self.YEAR_TO_DATE:
            return row.start_date <= (self.as_of or today)
        return True


def variance_percentage(variance: Decimal, budget: Decimal) -> Decimal:
    if budget == 0:
        return ZERO
    return (variance / budget * HUNDRED).quantize(MONEY_Q)


@dataclass
class VarianceLine:
    budget_amount: Decimal = ZERO
    actual_amount: Decimal = ZERO

    @property
    def variance(self) -> Decimal:
        return self.actual_amount - self.budget_amount

    @property
    def variance_percentage(self) -> Decimal:
        return variance_percentage(self.variance, self.budget_amount)

    def amounts(self) -> dict:
        return {
            "budget_amount": str(self.budget_amount),
            "actual_amount": str(self.actual_amount),
            "variance": str(self.variance),
            "variance_percentage": str(self.variance_percentage),
        }


@dataclass
class PeriodVariance(VarianceLine):
    period_number: int = 0
    period_name: str = ""


@dataclass
class ItemVariance(VarianceLine):
    budget_item_id: int = 0
    account_id: int = 0
    name: str = ""
    periods: list = field(default_factory=list)


@dataclass
class VarianceReport(VarianceLine):
    budget_id: int = 0
    selector: PeriodSelector | None = None
    items: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "budget_id": self.budget_id,
            "mode": self.selector.mode if self.selector else None,
            **self.amounts(),
            "items": [
                {
                    "budget_item_id": item.budget_item_id,
                    "account_id": item.account_id,
                    "name": item.name,
                    **item.amounts(),
                    "periods": [
                        {
                            "period_number": p.period_number,
                            "period_name": p.period_name,
                            **p.amounts(),
                        }
                        for p in item.periods
                    ],
                }
                for item in self.items
            ],
        }


class VarianceEngine:
    def __init__(self, repository, aggregator, clock=None):
        self.repository = repository
        self.aggregator = aggregator
        self.clock = clock or timezone.localdate

    def compute_variance(self, budget_id, selector: PeriodSelector) -> VarianceReport:
        if selector.mode == PeriodSelector.SINGLE and not selector.period_number:
            raise ValidationError("A single-period variance needs a period number.")

        budget = self.repository.load_budget(budget_id)
        today = self.clock()
        report = VarianceReport(budget_id=budget.pk, selector=selector)
        fiscal_periods = [
            p for p in self.repository.periods_overlapping(budget.start_date, budget.end_date)
            if p.fiscal_year_id == budget.fiscal_year_id
        ]

        for item in self.repository.budget_items(budget.pk):
            line = ItemVariance(
                budget_item_id=item.pk,
                account_id=item.account_id,
                name=item.name or item.account.name,
            )
            covered = set()
            for row in item.distribution.all():
                if not selector.matches(row, today):
                    continue
                period_ids = [
                    p.pk for p in fiscal_periods
                    if p.start_date <= row.end_date and p.end_date >= row.start_date
                ]
                detail = PeriodVariance(
                    period_number=row.period_number,
                    period_name=row.period_name,
                    budget_amount=row.amount,
                    actual_amount=self.aggregator.get_period_activity(
                        item.account_id, period_ids, item.fund_id
                    ),
                )
                line.periods.append(detail)
                line.budget_amount += row.amount
                covered.update(period_ids)

            # Actual over the union of periods, so a fiscal period spanning
            # two distribution rows is not counted twice.
            line.actual_amount = self.aggregator.get_period_activity(
                item.account_id, covered, item.fund_id
            )
            report.items.append(line)
            report.budget_amount += line.budget_amount
            report.actual_amount += line.actual_amount

        return report
