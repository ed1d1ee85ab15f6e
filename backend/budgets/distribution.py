# budgets/distribution.py
"""
Spreading a budget item's amount over the budget's periods.

By default the amount is split equally in whole cents; the rounding
remainder goes to the first period so the rows always add back to the item
amount. Callers may instead supply their own per-period amounts, which must
match the period count and sum to the item amount.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation

from ledger.fiscal import add_months
from ledger.models import MONEY_Q


PERIOD_MONTHS = {
    "MONTHLY": 1,
    "QUARTERLY": 3,
    "ANNUAL": 12,
}


@dataclass(frozen=True)
class DistributionRow:
    period_number: int
    period_name: str
    start_date: date
    end_date: date
    amount: Decimal


def _period_name(period_type: str, number: int, start: date, end: date, budget_start: date, budget_end: date) -> str:
    if period_type == "MONTHLY":
        return start.strftime("%B %Y")
    if period_type == "QUARTERLY":
        return f"Q{number} ({start:%b}-{end:%b})"
    return f"FY {budget_start.year}-{budget_end.year}"


def split_amount(amount: Decimal, parts: int) -> list[Decimal]:
    """Split into `parts` cent amounts; the first absorbs the remainder."""
    cents = int((Decimal(amount).quantize(MONEY_Q) * 100).to_integral_value())
    base, remainder = divmod(cents, parts)
    shares = [base] * parts
    shares[0] += remainder
    return [(Decimal(share) / 100).quantize(MONEY_Q) for share in shares]


def period_count(period_type: str) -> int:
    return 12 // PERIOD_MONTHS[period_type]


def check_period_amounts(period_type: str, amount: Decimal, period_amounts) -> list[str]:
    """Problems with caller-supplied per-period amounts; empty when they are usable."""
    expected = period_count(period_type)
    if len(period_amounts) != expected:
        return [f"{period_type} budgets need {expected} period amounts, got {len(period_amounts)}."]

    values = []
    for number, value in enumerate(period_amounts, start=1):
        try:
            value = Decimal(str(value))
            if not value.is_finite() or value.quantize(MONEY_Q) != value:
                raise InvalidOperation
        except (InvalidOperation, TypeError, ValueError):
            return [f"Period {number}: amount must be a number with at most two decimal places."]
        if value < 0:
            return [f"Period {number}: amount cannot be negative."]
        values.append(value)

    total = sum(values, Decimal("0.00"))
    if total != amount:
        return [f"Period values must sum to total amount ({total} != {amount})."]
    return []


def generate_distribution(
    period_type: str,
    start_date: date,
    end_date: date,
    amount: Decimal,
    period_amounts=None,
) -> list[DistributionRow]:
    """
    Build the distribution rows for one item.

    MONTHLY yields 12 rows, QUARTERLY 4 and ANNUAL 1, starting at the
    budget's start date. The last row ends on the budget's end date.
    period_amounts, when given, must already have passed
    check_period_amounts; otherwise the amount is split evenly.
    """
    months = PERIOD_MONTHS[period_type]
    count = 12 // months
    if period_amounts is None:
        shares = split_amount(amount, count)
    else:
        shares = [Decimal(str(value)).quantize(MONEY_Q) for value in period_amounts]

    rows = []
    for index in range(count):
        period_start = add_months(start_date, index * months)
        if index == count - 1:
            period_end = end_date
        else:
            period_end = add_months(start_date, (index + 1) * months) - timedelta(days=1)
        number = index + 1
        rows.append(DistributionRow(
            period_number=number,
            period_name=_period_name(period_type, number, period_start, period_end, start_date, end_date),
            start_date=period_start,
            end_date=period_end,
            amount=shares[index],
        ))
    return rows
