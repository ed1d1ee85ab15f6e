# ledger/commands.py
"""
Command layer for chart-of-accounts and fiscal-calendar operations.

Views call commands; commands enforce rules and write the audit trail.
Transaction workflow lives in ledger/lifecycle.py.

Pattern:
1. Load the target (NotFoundError if missing)
2. Apply business policies (can_*)
3. Perform the operation (model changes)
4. Record an audit entry

Failures raise ledger.exceptions errors; nothing is committed.
"""

import logging
from datetime import date

from django.db import IntegrityError, transaction
from django.utils import timezone

from ledger.exceptions import InvalidStateError, NotFoundError, ValidationError
from ledger.fiscal import period_boundaries
from ledger.models import Account, AuditLogEntry, FiscalPeriod, FiscalYear, TransactionEntry
from ledger.policies import (
    can_close_fiscal_year,
    can_close_period,
    can_delete_account,
    can_set_parent,
)


logger = logging.getLogger(__name__)

Action = AuditLogEntry.Action


def _audit(repository, action, entity, user_id="", **kwargs):
    repository.record_audit(action, entity.__class__.__name__, entity.pk, user_id=user_id, **kwargs)


# =============================================================================
# Chart of Accounts
# =============================================================================

@transaction.atomic
def create_account(
    repository,
    number: str,
    name: str,
    account_type: str,
    subtype: str = "",
    description: str = "",
    parent_id=None,
    fund_id=None,
    is_cash_account: bool = False,
    created_by: str = "",
) -> Account:
    """
    Add an account to the chart.

    The normal balance is derived from the account type and cannot be
    chosen by the caller.
    """
    errors = []
    if not number or not number.strip():
        errors.append("Account number is required.")
    if not name or not name.strip():
        errors.append("Account name is required.")
    if account_type not in Account.AccountType.values:
        errors.append(f"Unknown account type '{account_type}'.")
    if subtype and subtype not in Account.SubType.values:
        errors.append(f"Unknown account subtype '{subtype}'.")
    if errors:
        raise ValidationError(errors)

    if Account.objects.filter(number=number.strip()).exists():
        raise ValidationError(f"Account number '{number}' already exists.")

    parent = repository.load_account(parent_id) if parent_id is not None else None
    if fund_id is not None:
        repository.load_fund(fund_id)

    account = Account(
        number=number.strip(),
        name=name.strip(),
        description=description,
        account_type=account_type,
        subtype=subtype,
        parent=parent,
        fund_id=fund_id,
        is_cash_account=is_cash_account,
    )
    try:
        with transaction.atomic():
            account.save()
    except IntegrityError:
        raise ValidationError(f"Account number '{number}' already exists.")

    _audit(
        repository,
        Action.CREATE,
        account,
        user_id=created_by,
        details={"number": account.number, "account_type": account.account_type},
    )
    logger.info(f"Created account {account.number} ({account.account_type})")
    return account


def _set_active(repository, account_id, is_active: bool, user_id: str) -> Account:
    account = repository.load_account(account_id)
    if account.is_active == is_active:
        return account

    account.is_active = is_active
    account.save(update_fields=["is_active", "updated_at"])
    _audit(
        repository,
        Action.ACTIVATE if is_active else Action.DEACTIVATE,
        account,
        user_id=user_id,
        previous_state={"is_active": not is_active},
        new_state={"is_active": is_active},
    )
    return account


@transaction.atomic
def deactivate_account(repository, account_id, updated_by: str = "") -> Account:
    """Stop new entries against an account. Posted history is untouched."""
    return _set_active(repository, account_id, False, updated_by)


@transaction.atomic
def reactivate_account(repository, account_id, updated_by: str = "") -> Account:
    return _set_active(repository, account_id, True, updated_by)


@transaction.atomic
def set_account_parent(repository, account_id, parent_id, updated_by: str = "") -> Account:
    account = repository.load_account(account_id)
    parent = repository.load_account(parent_id) if parent_id is not None else None

    allowed, reason = can_set_parent(account, parent)
    if not allowed:
        raise ValidationError(reason)

    previous = account.parent_id
    account.parent = parent
    account.save(update_fields=["parent", "updated_at"])
    _audit(
        repository,
        Action.UPDATE,
        account,
        user_id=updated_by,
        previous_state={"parent_id": previous},
        new_state={"parent_id": account.parent_id},
    )
    return account


@transaction.atomic
def delete_account(repository, account_id, deleted_by: str = "") -> None:
    account = repository.load_account(account_id)
    has_entries = TransactionEntry.objects.filter(account=account).exists()

    allowed, reason = can_delete_account(account, has_entries)
    if not allowed:
        raise ValidationError(reason)

    _audit(repository, Action.UPDATE, account, user_id=deleted_by, details={"deleted": True})
    account.delete()
    logger.info(f"Deleted account {account.number}")


# =============================================================================
# Fiscal Calendar
# =============================================================================

@transaction.atomic
def create_fiscal_year(
    repository,
    name: str,
    start_date: date,
    end_date: date | None = None,
    period_count: int = 12,
    status: str = FiscalYear.Status.OPEN,
    is_current: bool = False,
    created_by: str = "",
) -> FiscalYear:
    """
    Create a fiscal year and its periods.

    Periods are equal runs of months (period_count must divide 12) and are
    created OPEN unless the year itself is PENDING.
    """
    try:
        boundaries = period_boundaries(start_date, period_count, end_date)
    except ValueError as exc:
        raise ValidationError(str(exc))

    year_end = boundaries[-1][2]
    if year_end <= start_date:
        raise ValidationError("Fiscal year must end after it starts.")
    if FiscalYear.objects.filter(name=name).exists():
        raise ValidationError(f"Fiscal year '{name}' already exists.")
    if FiscalYear.objects.filter(start_date__lte=year_end, end_date__gte=start_date).exists():
        raise ValidationError(f"Fiscal year '{name}' overlaps an existing fiscal year.")

    if is_current:
        FiscalYear.objects.filter(is_current=True).update(is_current=False)

    year = FiscalYear.objects.create(
        name=name,
        start_date=start_date,
        end_date=year_end,
        status=status,
        is_current=is_current,
    )
    period_status = (
        FiscalPeriod.Status.PENDING if status == FiscalYear.Status.PENDING
        else FiscalPeriod.Status.OPEN
    )
    FiscalPeriod.objects.bulk_create([
        FiscalPeriod(
            fiscal_year=year,
            number=number,
            name=period_start.strftime("%B %Y") if period_count == 12 else f"{name} P{number}",
            start_date=period_start,
            end_date=period_end,
            status=period_status,
        )
        for number, period_start, period_end in boundaries
    ])

    _audit(
        repository,
        Action.CREATE,
        year,
        user_id=created_by,
        details={"start_date": start_date.isoformat(), "periods": period_count},
    )
    logger.info(f"Created fiscal year {name} with {period_count} periods")
    return year


@transaction.atomic
def close_period(repository, period_id, closed_by: str = "", aggregator=None) -> FiscalPeriod:
    """
    Close a fiscal period. Further postings into it are rejected and
    posted transactions dated in it can no longer be voided.
    """
    try:
        period = FiscalPeriod.objects.select_for_update().select_related("fiscal_year").get(pk=period_id)
    except FiscalPeriod.DoesNotExist:
        raise NotFoundError(f"Fiscal period {period_id} not found.")

    allowed, reason = can_close_period(period, repository.count_unfinished_in_period(period.pk))
    if not allowed:
        raise InvalidStateError(reason)

    period.status = FiscalPeriod.Status.CLOSED
    period.closed_at = timezone.now()
    period.save(update_fields=["status", "closed_at"])

    if aggregator is not None:
        aggregator.close_period_balances(period)

    _audit(
        repository,
        Action.CLOSE,
        period,
        user_id=closed_by,
        new_state={"status": period.status},
    )
    logger.info(f"Closed fiscal period {period}")
    return period


@transaction.atomic
def close_fiscal_year(repository, year_id, closed_by: str = "") -> FiscalYear:
    """
    Close a fiscal year whose periods are all closed. The next PENDING year,
    if any, is opened and becomes current.
    """
    try:
        year = FiscalYear.objects.select_for_update().get(pk=year_id)
    except FiscalYear.DoesNotExist:
        raise NotFoundError(f"Fiscal year {year_id} not found.")

    open_periods = year.periods.exclude(status=FiscalPeriod.Status.CLOSED).count()
    allowed, reason = can_close_fiscal_year(year, open_periods)
    if not allowed:
        raise InvalidStateError(reason)

    year.status = FiscalYear.Status.CLOSED
    year.closed_at = timezone.now()
    year.is_current = False
    year.save(update_fields=["status", "closed_at", "is_current"])
    _audit(repository, Action.CLOSE, year, user_id=closed_by, new_state={"status": year.status})

    next_year = (
        FiscalYear.objects
        .filter(status=FiscalYear.Status.PENDING, start_date__gt=year.end_date)
        .order_by("start_date")
        .first()
    )
    if next_year is not None:
        next_year.status = FiscalYear.Status.OPEN
        next_year.is_current = True
        next_year.save(update_fields=["status", "is_current"])
        next_year.periods.filter(status=FiscalPeriod.Status.PENDING).update(
            status=FiscalPeriod.Status.OPEN
        )
        _audit(
            repository,
            Action.ACTIVATE,
            next_year,
            user_id=closed_by,
            new_state={"status": next_year.status, "is_current": True},
        )

    logger.info(f"Closed fiscal year {year.name}")
    return year
